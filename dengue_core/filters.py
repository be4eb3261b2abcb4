from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Optional

import pandas as pd


ALL = "all"
SortDirection = Literal["asc", "desc"]


@dataclass(frozen=True)
class MonthSelector:
    """Parsed month token.

    ``kind`` is ``"all"``, ``"year_month"`` (token ``"114-3"``) or
    ``"legacy_month"`` (bare token ``"3"``). A legacy token matches the month
    in every loaded year; it is kept for old links and is not extended.
    """

    kind: Literal["all", "year_month", "legacy_month"]
    year: Optional[int] = None
    month: Optional[int] = None


@dataclass(frozen=True)
class SurveyFilters:
    month: str = ALL
    district: str = ALL
    sort_column: Optional[str] = None
    sort_direction: SortDirection = "asc"


def parse_month_token(token: object) -> MonthSelector:
    s = str(token if token is not None else ALL).strip()
    if not s or s == ALL:
        return MonthSelector("all")
    if "-" in s:
        year, _, month = s.partition("-")
        try:
            return MonthSelector("year_month", int(year), int(month))
        except ValueError:
            return MonthSelector("all")
    try:
        return MonthSelector("legacy_month", None, int(s))
    except ValueError:
        return MonthSelector("all")


def month_mask(df: pd.DataFrame, month: str | MonthSelector) -> pd.Series:
    sel = month if isinstance(month, MonthSelector) else parse_month_token(month)
    if df.empty or sel.kind == "all":
        return pd.Series(True, index=df.index)
    mask = df["month"] == sel.month
    if sel.kind == "year_month":
        mask &= df["year"] == sel.year
    return mask


def district_mask(df: pd.DataFrame, district: Optional[str]) -> pd.Series:
    if df.empty or not district or district == ALL:
        return pd.Series(True, index=df.index)
    return df["district"] == district


def filter_records(df: pd.DataFrame, month: str | MonthSelector = ALL, district: Optional[str] = ALL) -> pd.DataFrame:
    """Records matching the month token AND the district; ``df`` is left untouched."""
    if df.empty:
        return df.copy()
    return df[month_mask(df, month) & district_mask(df, district)].copy()


def normalize_filters(
    raw: dict,
    *,
    available_months: Optional[Iterable[str]] = None,
    available_districts: Optional[Iterable[str]] = None,
) -> SurveyFilters:
    month = str(raw.get("month") or ALL).strip()
    if available_months is not None and month != ALL:
        months = set(available_months)
        sel = parse_month_token(month)
        # Legacy bare months stay valid as long as some loaded year has that month.
        if sel.kind == "legacy_month":
            if not any(m.endswith(f"-{sel.month}") for m in months):
                month = ALL
        elif sel.kind == "all" or month not in months:
            month = ALL

    district = str(raw.get("district") or ALL).strip()
    if available_districts is not None and district != ALL and district not in set(available_districts):
        district = ALL

    sort_column = raw.get("sort_column") or None
    sort_direction = raw.get("sort_direction", "asc")
    if sort_direction not in ("asc", "desc"):
        sort_direction = "asc"

    return SurveyFilters(
        month=month,
        district=district,
        sort_column=str(sort_column) if sort_column else None,
        sort_direction=sort_direction,
    )
