from __future__ import annotations

from functools import cmp_to_key, lru_cache
from typing import Optional

import icu
import pandas as pd

from dengue_core.filters import SortDirection
from dengue_core.numeric import is_blank, parse_number


DATE_COLUMN = "survey_date"
COLLATION_LOCALE = "zh_TW"


@lru_cache(maxsize=None)
def _collator(locale: str = COLLATION_LOCALE) -> icu.Collator:
    return icu.Collator.createInstance(icu.Locale(locale))


def collation_key(value: object) -> bytes:
    """zh-TW sort key for district / village / survey-type text.

    Han characters order by stroke count; Latin text stays case-sensitive
    at the tertiary level (lowercase before uppercase).
    """
    return _collator().getSortKey(str(value))


def _cmp(x, y) -> int:
    return (x > y) - (x < y)


def compare_values(a: object, b: object, direction: SortDirection = "asc", column: Optional[str] = None) -> int:
    asc = direction == "asc"
    a_blank, b_blank = is_blank(a), is_blank(b)
    if a_blank and b_blank:
        return 0
    if a_blank:
        return 1 if asc else -1
    if b_blank:
        return -1 if asc else 1

    num_a, num_b = parse_number(a), parse_number(b)
    if num_a is not None and num_b is not None:
        result = _cmp(num_a, num_b)
        return result if asc else -result

    if column == DATE_COLUMN:
        date_a = parse_number(a, integer=True) or 0
        date_b = parse_number(b, integer=True) or 0
        result = _cmp(date_a, date_b)
        return result if asc else -result

    result = _cmp(collation_key(a), collation_key(b))
    return result if asc else -result


def sort_records(df: pd.DataFrame, column: str, direction: SortDirection = "asc") -> pd.DataFrame:
    if df.empty or column not in df.columns:
        return df.copy()
    values = df[column].tolist()
    order = sorted(range(len(values)), key=cmp_to_key(lambda i, j: compare_values(values[i], values[j], direction, column)))
    return df.iloc[order].copy()


def default_order(df: pd.DataFrame) -> pd.DataFrame:
    """Newest survey date first; rows without a date go last."""
    if df.empty or DATE_COLUMN not in df.columns:
        return df.copy()
    dates = [parse_number(v, integer=True) or 0 for v in df[DATE_COLUMN].tolist()]
    order = sorted(range(len(dates)), key=lambda i: dates[i], reverse=True)
    return df.iloc[order].copy()
