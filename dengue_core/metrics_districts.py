from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

import pandas as pd

from dengue_core.data import (
    DISTRICT_SLUGS,
    compute_district_summaries,
    month_label,
    summarize_records,
)
from dengue_core.filters import ALL, SurveyFilters, filter_records
from dengue_core.risk import NEUTRAL_COLOR, breteau_color, classify_breteau


def map_colors(df: pd.DataFrame, selected_district: Optional[str] = ALL) -> Dict[str, Dict[str, Any]]:
    """Fill color and opacity per map element id.

    With a district selected, every other district is greyed out.
    """
    out: Dict[str, Dict[str, Any]] = {}
    for name, slug in DISTRICT_SLUGS.items():
        if selected_district in (None, ALL) or selected_district == name:
            part = df[df["district"] == name] if not df.empty else df
            out[slug] = {"district": name, "fill": breteau_color(summarize_records(part).avg_breteau), "opacity": 1.0}
        else:
            out[slug] = {"district": name, "fill": NEUTRAL_COLOR, "opacity": 0.6}
    return out


def district_tooltip(all_records: pd.DataFrame, district: str, month: str = ALL) -> Dict[str, Any]:
    """Summary of one district under the current month filter, ignoring the district filter."""
    scoped = filter_records(all_records, month, district)
    summary = summarize_records(scoped)
    return {
        "district": district,
        "slug": DISTRICT_SLUGS.get(district),
        "period": month_label(month),
        "summary": asdict(summary),
        "risk": asdict(classify_breteau(summary.avg_breteau)),
    }


def compute_districts(filters: SurveyFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())
    summaries = compute_district_summaries(filtered)
    return {
        "filters": asdict(filters),
        "districts": {
            name: {**asdict(s), "risk": asdict(classify_breteau(s.avg_breteau)), "slug": DISTRICT_SLUGS.get(name)}
            for name, s in summaries.items()
        },
        "map": map_colors(filtered, filters.district),
        "highlight": DISTRICT_SLUGS.get(filters.district) if filters.district != ALL else None,
    }
