from __future__ import annotations

import math
import re
from typing import Optional

import pandas as pd

# Leading-number grammar of the survey sheets: "12", "3.5", "12 戶" and "7abc"
# all carry a usable prefix.
_INT_PREFIX = r"^\s*([+-]?\d+)"
_FLOAT_PREFIX = r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"

_INT_RE = re.compile(_INT_PREFIX)
_FLOAT_RE = re.compile(_FLOAT_PREFIX)


def is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NA:
        return True
    return isinstance(value, str) and value == ""


def parse_number(value: object, *, integer: bool = False) -> Optional[float]:
    """Parse the leading numeric prefix of ``value``; ``None`` when there is none."""
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(int(value)) if integer else float(value)
    match = (_INT_RE if integer else _FLOAT_RE).match(str(value))
    if not match:
        return None
    return float(match.group(1))


def coerce_numeric(series: pd.Series, *, integer: bool = False) -> pd.Series:
    """Raw text field -> number, defaulting missing or non-numeric values to 0.

    This is the only place survey text becomes numbers; aggregation never
    parses values inline.
    """
    if series is None or len(series) == 0:
        return pd.Series(dtype="float64")
    text = series.astype("string").fillna("")
    extracted = text.str.extract(_INT_PREFIX if integer else _FLOAT_PREFIX, expand=False)
    out = pd.to_numeric(extracted, errors="coerce").fillna(0.0).astype("float64")
    out.index = series.index
    return out
