from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from dengue_core.filters import (
    ALL,
    SortDirection,
    SurveyFilters,
    district_mask,
    filter_records,
    normalize_filters,
    parse_month_token,
)
from dengue_core.numeric import coerce_numeric
from dengue_core.sorting import collation_key, default_order, sort_records
from dengue_core.sources import (
    CANDIDATE_YEARS,
    FILE_TEMPLATE,
    DiscoveryError,
    FileDescriptor,
    discover_files,
    get_data_source,
)


logger = logging.getLogger(__name__)

DISPLAY_LIMIT = 1000
LEGACY_DEFAULT_YEAR = 114
UNKNOWN_SURVEY_TYPE = "未知"

SURVEY_COLUMNS = {
    "日期": "survey_date",
    "區別": "district",
    "里別": "village",
    "調查戶數": "households",
    "陽性戶數": "positive_households",
    "布氏指數": "breteau_index",
    "布氏級數": "breteau_level",
    "容器指數": "container_index",
    "調查種類": "survey_type",
}
TABLE_COLUMNS = [
    "survey_date",
    "district",
    "village",
    "households",
    "positive_households",
    "breteau_index",
    "breteau_level",
    "container_index",
]
COLUMN_LABELS = {
    "survey_date": "日期",
    "district": "行政區",
    "village": "里別",
    "households": "調查戶數",
    "positive_households": "陽性戶數",
    "breteau_index": "布氏指數",
    "breteau_level": "布氏級數",
    "container_index": "容器指數",
    "survey_type": "調查種類",
}

# District name -> element id in the district map.
DISTRICT_SLUGS = {
    "北投區": "beitou",
    "士林區": "shilin",
    "內湖區": "neihu",
    "松山區": "songshan",
    "中山區": "zhongshan",
    "大同區": "datong",
    "萬華區": "wanhua",
    "中正區": "zhongzheng",
    "大安區": "daan",
    "信義區": "xinyi",
    "南港區": "nangang",
    "文山區": "wenshan",
}

ProgressCallback = Callable[[str, float], None]


@dataclass(frozen=True)
class DistrictSummary:
    total_households: int = 0
    positive_households: int = 0
    avg_breteau: float = 0.0
    avg_container: float = 0.0


@dataclass(frozen=True)
class MonthlyChange:
    households: float = 0.0
    positive: float = 0.0
    breteau: float = 0.0
    container: float = 0.0
    has_comparison: bool = False
    comparison_year: Optional[int] = None
    comparison_month: Optional[int] = None


# ---------------- Parsing ----------------
def empty_frame() -> pd.DataFrame:
    df = pd.DataFrame({c: pd.Series(dtype="object") for c in SURVEY_COLUMNS.values()})
    df["year"] = pd.Series(dtype="int64")
    df["month"] = pd.Series(dtype="int64")
    return df


def parse_survey_csv(text: str, month: int, year: int = LEGACY_DEFAULT_YEAR) -> pd.DataFrame:
    """Parse one monthly survey sheet.

    Plain comma splitting, no quoting. Rows with fewer fields than the header
    are dropped; every kept row is stamped with the file's year and month.
    """
    lines = text.lstrip("\ufeff").strip().split("\n")
    headers = [SURVEY_COLUMNS.get(h.strip(), h.strip()) for h in lines[0].split(",")]
    rows: List[Dict[str, object]] = []
    for line in lines[1:]:
        values = line.split(",")
        if len(values) < len(headers):
            continue
        row: Dict[str, object] = {h: values[i].strip() for i, h in enumerate(headers)}
        row["month"] = int(month)
        row["year"] = int(year)
        rows.append(row)
    if not rows:
        return empty_frame()
    df = pd.DataFrame.from_records(rows)
    for col in SURVEY_COLUMNS.values():
        if col not in df.columns:
            df[col] = ""
    df["year"] = df["year"].astype("int64")
    df["month"] = df["month"].astype("int64")
    return df


def format_survey_date(value: object) -> str:
    s = "" if value is None else str(value)
    if len(s) != 8:
        return s
    return f"{s[:4]}/{s[4:6]}/{s[6:]}"


# ---------------- File metadata ----------------
def date_range_label(files: Iterable[FileDescriptor]) -> str:
    ordered = sorted(files, key=lambda f: (f.year, f.month))
    if not ordered:
        return ""
    first, last = ordered[0], ordered[-1]
    if first.year == last.year:
        if first.month == last.month:
            return f"{first.year}年{first.month}月病媒蚊密度調查結果"
        return f"{first.year}年{first.month}月至{last.month}月病媒蚊密度調查結果"
    return f"{first.year}年{first.month}月至{last.year}年{last.month}月病媒蚊密度調查結果"


def month_options(files: Iterable[FileDescriptor]) -> List[Dict[str, str]]:
    ordered = sorted({(f.year, f.month) for f in files}, reverse=True)
    options = [{"value": ALL, "label": "全部月份"}]
    options.extend({"value": f"{y}-{m}", "label": f"{y}年{m}月"} for y, m in ordered)
    return options


def district_options(df: pd.DataFrame) -> List[str]:
    if df.empty or "district" not in df.columns:
        return []
    return sorted({str(d) for d in df["district"].dropna() if str(d)}, key=collation_key)


def month_label(month: str) -> str:
    sel = parse_month_token(month)
    if sel.kind == "all":
        return "全部月份"
    if sel.kind == "year_month":
        return f"{sel.year}年{sel.month}月"
    return f"{sel.month}月"


# ---------------- Compute helpers ----------------
def summarize_records(df: pd.DataFrame) -> DistrictSummary:
    """Sums and means over any record subset; an empty subset is all zeros."""
    if df.empty:
        return DistrictSummary()
    n = len(df)
    return DistrictSummary(
        total_households=int(coerce_numeric(df["households"], integer=True).sum()),
        positive_households=int(coerce_numeric(df["positive_households"], integer=True).sum()),
        avg_breteau=float(coerce_numeric(df["breteau_index"]).sum()) / n,
        avg_container=float(coerce_numeric(df["container_index"]).sum()) / n,
    )


def previous_period(year: int, month: int) -> Tuple[int, int]:
    if month > 1:
        return year, month - 1
    return year - 1, 12


def pct_change(current: float, previous: float, *, zero_base_growth: bool = False) -> float:
    if previous > 0:
        return (current - previous) / previous * 100
    if zero_base_growth and current > 0:
        return 100.0
    return 0.0


def _period_records(df: pd.DataFrame, year: int, month: int, district: Optional[str]) -> pd.DataFrame:
    if df.empty:
        return df
    mask = (df["year"] == year) & (df["month"] == month) & district_mask(df, district)
    return df[mask]


def compute_monthly_change(
    df: pd.DataFrame,
    month: str,
    district: Optional[str] = ALL,
    *,
    legacy_year: int = LEGACY_DEFAULT_YEAR,
) -> MonthlyChange:
    sel = parse_month_token(month)
    if sel.kind == "all" or sel.month is None:
        return MonthlyChange()
    year = sel.year if sel.kind == "year_month" else legacy_year
    prev_year, prev_month = previous_period(year, sel.month)

    current = _period_records(df, year, sel.month, district)
    previous = _period_records(df, prev_year, prev_month, district)
    if current.empty or previous.empty:
        return MonthlyChange()

    cur, prev = summarize_records(current), summarize_records(previous)
    return MonthlyChange(
        households=pct_change(cur.total_households, prev.total_households),
        positive=pct_change(cur.positive_households, prev.positive_households, zero_base_growth=True),
        breteau=pct_change(cur.avg_breteau, prev.avg_breteau),
        container=pct_change(cur.avg_container, prev.avg_container),
        has_comparison=True,
        comparison_year=prev_year,
        comparison_month=prev_month,
    )


def change_tone(metric: str, pct: float) -> str:
    """Presentation sign convention for a month-over-month change."""
    if metric == "households":
        return "positive" if pct >= 0 else "negative"
    return "favorable" if pct <= 0 else "unfavorable"


def compute_district_summaries(df: pd.DataFrame) -> Dict[str, DistrictSummary]:
    if df.empty:
        return {}
    groups = {str(name): group for name, group in df.groupby("district", sort=False) if str(name)}
    return {name: summarize_records(groups[name]) for name in sorted(groups, key=collation_key)}


def survey_type_counts(df: pd.DataFrame) -> Dict[str, int]:
    if df.empty:
        return {}
    types = df["survey_type"].fillna("").astype(str).replace({"": UNKNOWN_SURVEY_TYPE})
    return {str(k): int(v) for k, v in types.value_counts(sort=False).items()}


def monthly_breteau_trend(df: pd.DataFrame, district: Optional[str] = ALL) -> pd.DataFrame:
    """Average Breteau index per loaded (year, month), oldest first."""
    if df.empty:
        return pd.DataFrame(columns=["year", "month", "label", "avg_breteau"])
    scoped = df[district_mask(df, district)].assign(breteau=lambda d: coerce_numeric(d["breteau_index"]))
    trend = scoped.groupby(["year", "month"], sort=True)["breteau"].mean().reset_index(name="avg_breteau")
    trend["label"] = trend["year"].astype(str) + "年" + trend["month"].astype(str) + "月"
    return trend[["year", "month", "label", "avg_breteau"]]


def district_breteau_comparison(df: pd.DataFrame) -> pd.DataFrame:
    """Average Breteau index for each Taipei district, zero when it has no rows."""
    rows = []
    for name in DISTRICT_SLUGS:
        part = df[df["district"] == name] if not df.empty else df
        rows.append({"district": name, "avg_breteau": summarize_records(part).avg_breteau})
    return pd.DataFrame(rows, columns=["district", "avg_breteau"])


# ---------------- Store ----------------
class DatasetStore:
    """Loaded records plus the currently filtered and sorted view.

    ``all`` is replaced only by ``load``; ``filtered`` is rebuilt from ``all``
    on every filter change.
    """

    def __init__(self) -> None:
        self.all: pd.DataFrame = empty_frame()
        self.filtered: pd.DataFrame = empty_frame()
        self.files: List[FileDescriptor] = []
        self.filters = SurveyFilters()

    def load(self, df: pd.DataFrame, files: Sequence[FileDescriptor] = ()) -> "DatasetStore":
        self.all = df.reset_index(drop=True)
        self.files = list(files)
        self.filters = SurveyFilters()
        self.filtered = default_order(self.all)
        return self

    @property
    def sort_column(self) -> Optional[str]:
        return self.filters.sort_column

    @property
    def sort_direction(self) -> SortDirection:
        return self.filters.sort_direction

    def apply_filters(self, month: str = ALL, district: str = ALL) -> pd.DataFrame:
        self.filters = SurveyFilters(month, district, self.filters.sort_column, self.filters.sort_direction)
        self.filtered = self._ordered(filter_records(self.all, month, district))
        return self.filtered

    def sort_by(self, column: str) -> pd.DataFrame:
        if self.filters.sort_column == column:
            direction: SortDirection = "desc" if self.filters.sort_direction == "asc" else "asc"
        else:
            direction = "asc"
        self.filters = SurveyFilters(self.filters.month, self.filters.district, column, direction)
        self.filtered = self._ordered(self.filtered)
        return self.filtered

    def reset_sort(self) -> pd.DataFrame:
        self.filters = SurveyFilters(self.filters.month, self.filters.district)
        self.filtered = self._ordered(self.filtered)
        return self.filtered

    def apply(self, filters: SurveyFilters) -> pd.DataFrame:
        self.filters = filters
        self.filtered = self._ordered(filter_records(self.all, filters.month, filters.district))
        return self.filtered

    def table_view(self, limit: int = DISPLAY_LIMIT) -> Tuple[pd.DataFrame, int]:
        return self.filtered.head(limit), len(self.filtered)

    def _ordered(self, df: pd.DataFrame) -> pd.DataFrame:
        if self.filters.sort_column:
            return sort_records(df, self.filters.sort_column, self.filters.sort_direction)
        return default_order(df)


# ---------------- Loading ----------------
def _report(progress: Optional[ProgressCallback], message: str, percent: float) -> None:
    if progress is not None:
        progress(message, percent)


async def load_dataset(
    source,
    *,
    years: Sequence[int] = CANDIDATE_YEARS,
    template: str = FILE_TEMPLATE,
    progress: Optional[ProgressCallback] = None,
) -> DatasetStore:
    """Discover, fetch and parse every available monthly sheet into a store.

    Raises ``DiscoveryError`` when no file exists. A file that fails to
    fetch or parse is logged and skipped.
    """
    _report(progress, "正在檢測可用檔案...", 0)
    files = await discover_files(source, years, template)
    if not files:
        raise DiscoveryError(f"no survey files found in {source!r}")
    files = sorted(files, key=lambda f: (f.year, f.month))
    _report(progress, f"找到 {len(files)} 個檔案，開始載入...", 20)

    frames: List[pd.DataFrame] = []
    total = len(files)
    for i, f in enumerate(files):
        _report(progress, f"載入中... ({i + 1}/{total})", 20 + (i / total) * 60)
        try:
            text = await source.read_text(f.name)
            frames.append(parse_survey_csv(text, f.month, f.year))
        except Exception as exc:
            logger.warning("failed to load %s: %s", f.name, exc)
            continue

    _report(progress, "正在初始化介面...", 85)
    frames = [frame for frame in frames if not frame.empty]
    records = pd.concat(frames, ignore_index=True) if frames else empty_frame()
    store = DatasetStore().load(records, files)
    logger.info("loaded %d records from %d files (%s)", len(records), total, date_range_label(files))
    _report(progress, "載入完成！", 100)
    return store


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(signature: Tuple[object, ...], source) -> DatasetStore:
    return asyncio.run(load_dataset(source))


def load_dashboard_data(source=None) -> DatasetStore:
    """Cached store for the configured data source.

    A local directory is re-read when its CSV files (or their mtimes) change.
    """
    source = source or get_data_source()
    return _load_dashboard_data_cached(source.signature(), source)


def reload_dashboard_data() -> None:
    _load_dashboard_data_cached.cache_clear()


def prepare_context(filters: dict | SurveyFilters, store: DatasetStore) -> Dict[str, object]:
    """Filter and sort a private view of ``store`` for one request."""
    filt = (
        filters
        if isinstance(filters, SurveyFilters)
        else normalize_filters(
            filters,
            available_months=[o["value"] for o in month_options(store.files)],
            available_districts=district_options(store.all),
        )
    )
    view = DatasetStore().load(store.all, store.files)
    view.apply(filt)
    return {
        "filters": filt,
        "store": view,
        "all_records": view.all,
        "filtered": view.filtered,
        "files": view.files,
    }
