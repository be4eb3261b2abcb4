from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from dengue_core.charts import district_comparison_chart, monthly_trend_chart, survey_type_chart, to_vega_spec
from dengue_core.data import (
    change_tone,
    compute_monthly_change,
    date_range_label,
    district_breteau_comparison,
    monthly_breteau_trend,
    summarize_records,
    survey_type_counts,
)
from dengue_core.filters import ALL, SurveyFilters
from dengue_core.risk import classify_breteau


CHANGE_METRICS = ("households", "positive", "breteau", "container")


def _format_change(pct: float) -> str:
    return f"+{pct:.1f}%" if pct >= 0 else f"{pct:.1f}%"


def compute_overview(filters: SurveyFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    all_records: pd.DataFrame = ctx.get("all_records", pd.DataFrame())
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())

    summary = summarize_records(filtered)
    change = compute_monthly_change(all_records, filters.month, filters.district)

    changes: Dict[str, Any] = {"has_comparison": change.has_comparison}
    if change.has_comparison:
        changes["comparison"] = {"year": change.comparison_year, "month": change.comparison_month}
        for metric in CHANGE_METRICS:
            pct = getattr(change, metric)
            changes[metric] = {"pct": pct, "text": f"{_format_change(pct)} 較上月", "tone": change_tone(metric, pct)}

    trend = monthly_breteau_trend(all_records, filters.district)
    trend_title = "全市平均布氏指數" if filters.district == ALL else f"{filters.district}平均布氏指數"
    type_counts = survey_type_counts(filtered)

    return {
        "filters": asdict(filters),
        "range_label": date_range_label(ctx.get("files", [])),
        "kpis": {
            "total_households": summary.total_households,
            "positive_households": summary.positive_households,
            "avg_breteau": summary.avg_breteau,
            "avg_container": summary.avg_container,
            "risk": asdict(classify_breteau(summary.avg_breteau)),
        },
        "changes": changes,
        "survey_types": type_counts,
        "trend": trend.to_dict(orient="records"),
        "charts": {
            "monthly_trend": to_vega_spec(monthly_trend_chart(trend, trend_title)),
            "district_comparison": to_vega_spec(district_comparison_chart(district_breteau_comparison(filtered))),
            "survey_types": to_vega_spec(survey_type_chart(type_counts)),
        },
    }
