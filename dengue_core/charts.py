from __future__ import annotations

from typing import Any, Dict

import altair as alt
import pandas as pd

from dengue_core.risk import breteau_color, rgba

alt.data_transformers.disable_max_rows()

SURVEY_TYPE_COLORS = {
    "住宅": "#3b82f6",
    "菜園": "#22c55e",
    "學校": "#f59e0b",
    "市場": "#ef4444",
    "公園": "#a855f7",
    "機關": "#06b6d4",
    "山區": "#65a30d",
    "其他": "#9ca3af",
    "未知": "#6b7280",
}


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def monthly_trend_chart(trend: pd.DataFrame, title: str = "全市平均布氏指數") -> alt.Chart:
    if trend.empty:
        trend = pd.DataFrame({"label": ["無資料"], "avg_breteau": [0.0]})
    return (
        alt.Chart(trend)
        .mark_line(point={"filled": True, "size": 60}, color="#667eea", strokeWidth=4)
        .encode(
            x=alt.X("label:N", title=None, sort=None),
            y=alt.Y("avg_breteau:Q", title="布氏指數", scale=alt.Scale(zero=True)),
            tooltip=[alt.Tooltip("label:N", title="月份"), alt.Tooltip("avg_breteau:Q", title=title, format=".1f")],
        )
        .properties(height=260, title=title)
    )


def district_comparison_chart(comparison: pd.DataFrame) -> alt.Chart:
    src = comparison.assign(
        fill=lambda d: d["avg_breteau"].map(lambda v: rgba(breteau_color(v), 0.8)),
        stroke=lambda d: d["avg_breteau"].map(breteau_color),
    )
    return (
        alt.Chart(src)
        .mark_bar(cornerRadiusTopRight=4, cornerRadiusBottomRight=4, strokeWidth=2)
        .encode(
            y=alt.Y("district:N", title=None, sort=None),
            x=alt.X("avg_breteau:Q", title="布氏指數"),
            color=alt.Color("fill:N", scale=None),
            stroke=alt.Stroke("stroke:N", scale=None),
            tooltip=[alt.Tooltip("district:N", title="行政區"), alt.Tooltip("avg_breteau:Q", title="平均布氏指數", format=".1f")],
        )
        .properties(height=360)
    )


def survey_type_chart(counts: Dict[str, int]) -> alt.Chart:
    src = pd.DataFrame({"survey_type": list(counts.keys()), "count": list(counts.values())})
    total = int(src["count"].sum()) if not src.empty else 0
    src["share"] = src["count"] / total if total else 0.0
    palette = [SURVEY_TYPE_COLORS.get(t, SURVEY_TYPE_COLORS["未知"]) for t in src["survey_type"]]
    return (
        alt.Chart(src)
        .mark_arc(innerRadius=60, stroke="#ffffff", strokeWidth=3)
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color(
                "survey_type:N",
                scale=alt.Scale(domain=src["survey_type"].tolist(), range=palette),
                legend=alt.Legend(orient="bottom", title=None),
            ),
            tooltip=[
                alt.Tooltip("survey_type:N", title="調查種類"),
                alt.Tooltip("count:Q", title="筆數", format=","),
                alt.Tooltip("share:Q", title="比例", format=".1%"),
            ],
        )
        .properties(height=260)
    )
