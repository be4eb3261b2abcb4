from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

import pandas as pd

from dengue_core.data import COLUMN_LABELS, DISPLAY_LIMIT, TABLE_COLUMNS, DatasetStore, format_survey_date, month_label
from dengue_core.filters import ALL, SurveyFilters


def table_status(
    filters: SurveyFilters,
    *,
    filtered_count: int,
    total_count: int,
    limit: int = DISPLAY_LIMIT,
) -> str:
    parts = [f"篩選條件: {month_label(filters.month)} × {'全部行政區' if filters.district == ALL else filters.district}"]
    if filters.sort_column:
        direction = "升序" if filters.sort_direction == "asc" else "降序"
        parts.append(f"排序: {COLUMN_LABELS.get(filters.sort_column, filters.sort_column)} ({direction})")
    if filtered_count <= limit:
        parts.append(f"顯示全部 {filtered_count} 筆資料")
    else:
        parts.append(f"顯示前 {limit} 筆資料（共 {filtered_count} 筆）")
    parts.append(f"本平台目前總資料量: {total_count} 筆")
    return " | ".join(parts)


def table_rows(df: pd.DataFrame) -> list:
    if df.empty:
        return []
    cols = [c for c in TABLE_COLUMNS if c in df.columns]
    out = df[cols].copy()
    out["survey_date"] = out["survey_date"].map(format_survey_date)
    return out.to_dict(orient="records")


def compute_table(filters: SurveyFilters, ctx: Dict[str, Any], *, limit: Optional[int] = None) -> Dict[str, Any]:
    store: DatasetStore = ctx["store"]
    limit = DISPLAY_LIMIT if limit is None else limit
    shown, filtered_count = store.table_view(limit)
    return {
        "filters": asdict(filters),
        "columns": [{"key": c, "label": COLUMN_LABELS[c]} for c in TABLE_COLUMNS],
        "rows": table_rows(shown),
        "shown_count": len(shown),
        "filtered_count": filtered_count,
        "total_count": len(store.all),
        "status": table_status(filters, filtered_count=filtered_count, total_count=len(store.all), limit=limit),
    }
