from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import httpx


logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
FILE_TEMPLATE = "臺北市{year}年{month}月登革熱病媒蚊密度調查結果表.csv"
CANDIDATE_YEARS: Tuple[int, ...] = (114, 113, 115)
MONTHS: Tuple[int, ...] = tuple(range(1, 13))
HTTP_TIMEOUT = 10.0


class DiscoveryError(RuntimeError):
    """No survey file exists for any candidate year/month."""


@dataclass(frozen=True)
class FileDescriptor:
    year: int
    month: int
    name: str


def candidate_files(years: Sequence[int] = CANDIDATE_YEARS, template: str = FILE_TEMPLATE) -> List[FileDescriptor]:
    return [FileDescriptor(year, month, template.format(year=year, month=month)) for year in years for month in MONTHS]


class LocalDataSource:
    """Survey files in a directory on disk."""

    def __init__(self, root: Path | str = DATA_DIR):
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"LocalDataSource({str(self.root)!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, LocalDataSource) and other.root == self.root

    def __hash__(self) -> int:
        return hash(("local", self.root))

    async def exists(self, name: str) -> bool:
        return (self.root / name).is_file()

    async def read_text(self, name: str) -> str:
        return await asyncio.to_thread((self.root / name).read_text, encoding="utf-8-sig")

    def signature(self) -> Tuple[object, ...]:
        if not self.root.is_dir():
            return ("local", str(self.root))
        files = sorted(self.root.glob("*.csv"))
        return ("local", str(self.root)) + tuple((f.name, f.stat().st_mtime) for f in files)


class HttpDataSource:
    """Survey files published under a base URL."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._client = client

    def __repr__(self) -> str:
        return f"HttpDataSource({self.base_url!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, HttpDataSource) and other.base_url == self.base_url

    def __hash__(self) -> int:
        return hash(("http", self.base_url))

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/{name}"

    def _session(self) -> httpx.AsyncClient:
        if self._client is None:
            return httpx.AsyncClient(timeout=HTTP_TIMEOUT)
        return self._client

    async def exists(self, name: str) -> bool:
        client = self._session()
        try:
            resp = await client.head(self.url_for(name))
            return resp.is_success
        finally:
            if client is not self._client:
                await client.aclose()

    async def read_text(self, name: str) -> str:
        client = self._session()
        try:
            resp = await client.get(self.url_for(name))
            resp.raise_for_status()
            return resp.text
        finally:
            if client is not self._client:
                await client.aclose()

    def signature(self) -> Tuple[object, ...]:
        return ("http", self.base_url)


def get_data_source():
    url = os.environ.get("DENGUE_DATA_URL", "").strip()
    if url:
        return HttpDataSource(url)
    return LocalDataSource(os.environ.get("DENGUE_DATA_DIR") or DATA_DIR)


async def _probe(source, candidate: FileDescriptor) -> Optional[FileDescriptor]:
    try:
        return candidate if await source.exists(candidate.name) else None
    except Exception as exc:  # a failed probe only means "not there"
        logger.debug("probe failed for %s: %s", candidate.name, exc)
        return None


async def discover_files(source, years: Sequence[int] = CANDIDATE_YEARS, template: str = FILE_TEMPLATE) -> List[FileDescriptor]:
    """Probe every candidate concurrently and keep the ones that exist.

    Result order is not meaningful; callers sort for display.
    """
    candidates = candidate_files(years, template)
    results = await asyncio.gather(*(_probe(source, c) for c in candidates))
    found = [r for r in results if r is not None]
    logger.info("discovered %d of %d candidate files in %r", len(found), len(candidates), source)
    return found
