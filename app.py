import asyncio
import logging
from contextlib import contextmanager
from typing import Optional

import altair as alt
import pandas as pd
import streamlit as st

from dengue_core.charts import district_comparison_chart, monthly_trend_chart, survey_type_chart
from dengue_core.data import (
    COLUMN_LABELS,
    TABLE_COLUMNS,
    DatasetStore,
    date_range_label,
    district_breteau_comparison,
    district_options,
    load_dataset,
    month_options,
    prepare_context,
)
from dengue_core.metrics_districts import compute_districts, district_tooltip
from dengue_core.metrics_overview import compute_overview
from dengue_core.metrics_table import compute_table
from dengue_core.sources import DiscoveryError, get_data_source

logger = logging.getLogger(__name__)
alt.data_transformers.disable_max_rows()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        .risk-badge {padding: 4px 8px;border-radius: 8px;color: white;font-size: 0.8rem;text-align: center;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body


@st.cache_resource(show_spinner=False)
def load_store(source_key: str) -> DatasetStore:
    bar = st.progress(0, text="正在檢測可用檔案...")

    def on_progress(message: str, percent: float) -> None:
        bar.progress(int(percent), text=message)

    store = asyncio.run(load_dataset(get_data_source(), progress=on_progress))
    bar.empty()
    return store


def render_kpis(overview: dict):
    kpis = overview["kpis"]
    changes = overview["changes"]

    def delta(metric: str) -> Optional[str]:
        if not changes.get("has_comparison"):
            return None
        return changes[metric]["text"]

    cols = st.columns(4)
    cols[0].metric("總調查戶數", f"{kpis['total_households']:,}", delta=delta("households"))
    cols[1].metric("陽性戶數", f"{kpis['positive_households']:,}", delta=delta("positive"), delta_color="inverse")
    cols[2].metric("平均布氏指數", f"{kpis['avg_breteau']:.1f}", delta=delta("breteau"), delta_color="inverse")
    cols[3].metric("平均容器指數", f"{kpis['avg_container']:.1f}", delta=delta("container"), delta_color="inverse")
    if not changes.get("has_comparison"):
        st.caption("監測指標（無上月資料可比較）")


def render_district_panel(districts_payload: dict, store: DatasetStore, month: str):
    rows = [
        {
            "行政區": info["district"],
            "填色": info["fill"],
            "透明度": info["opacity"],
        }
        for info in districts_payload["map"].values()
    ]
    st.dataframe(pd.DataFrame(rows), hide_index=True, use_container_width=True)
    choice = st.selectbox("行政區詳情", options=[r["行政區"] for r in rows])
    if choice:
        tip = district_tooltip(store.all, choice, month)
        summary = tip["summary"]
        st.markdown(f"**{tip['district']}** · {tip['period']}")
        st.markdown(
            f"平均布氏指數 **{summary['avg_breteau']:.1f}** · 總調查戶數 **{summary['total_households']:,}** · "
            f"陽性戶數 **{summary['positive_households']:,}**"
        )
        st.markdown(
            f"<div class='risk-badge' style='background:{tip['risk']['color']}'>{tip['risk']['label_zh']}</div>",
            unsafe_allow_html=True,
        )


def session_table_view(store: DatasetStore, source_key: str) -> DatasetStore:
    """Per-session copy of the store so the table sort survives reruns."""
    if st.session_state.get("table_view_key") != source_key:
        st.session_state["table_view"] = DatasetStore().load(store.all, store.files)
        st.session_state["table_view_key"] = source_key
    return st.session_state["table_view"]


def render_sort_header(view: DatasetStore):
    # clicking the active column again flips its direction
    cols = st.columns(len(TABLE_COLUMNS) + 1)
    for col, column in zip(cols, TABLE_COLUMNS):
        arrow = ""
        if view.sort_column == column:
            arrow = " ▲" if view.sort_direction == "asc" else " ▼"
        col.button(COLUMN_LABELS[column] + arrow, key=f"sort_{column}", on_click=view.sort_by, args=(column,), use_container_width=True)
    cols[-1].button("預設排序", key="sort_reset", on_click=view.reset_sort, disabled=view.sort_column is None, use_container_width=True)


# ---------- UI setup ----------
st.set_page_config(page_title="臺北市登革熱病媒蚊密度儀表板", layout="wide")
inject_base_styles()
st.title("臺北市登革熱病媒蚊密度調查")

source = get_data_source()
source_key = repr(source.signature())
try:
    base_store = load_store(source_key)
except DiscoveryError:
    logger.exception("no survey files available")
    st.error("無法載入資料，請檢查檔案是否存在。")
    st.stop()

st.caption(date_range_label(base_store.files))

with st.sidebar:
    st.markdown("### 篩選")
    month_opts = month_options(base_store.files)
    month_labels = {o["value"]: o["label"] for o in month_opts}
    month = st.selectbox("月份", options=list(month_labels), format_func=lambda v: month_labels[v])
    district_opts = ["all"] + district_options(base_store.all)
    district = st.selectbox("行政區", options=district_opts, format_func=lambda v: "全部行政區" if v == "all" else v)

    st.markdown("---")
    if st.button("重新載入資料"):
        load_store.clear()
        st.session_state.pop("table_view", None)
        st.rerun()

view = session_table_view(base_store, source_key)
view.apply_filters(month, district)
filters = {"month": month, "district": district, "sort_column": view.sort_column, "sort_direction": view.sort_direction}
ctx = prepare_context(filters, base_store)
f = ctx["filters"]
overview = compute_overview(f, ctx)

with card("摘要"):
    render_kpis(overview)

chart_cols = st.columns(2)
with chart_cols[0]:
    with card("月份趨勢"):
        st.altair_chart(monthly_trend_chart(pd.DataFrame(overview["trend"]), "全市平均布氏指數" if f.district == "all" else f"{f.district}平均布氏指數"), use_container_width=True)
with chart_cols[1]:
    with card("調查種類分布"):
        st.altair_chart(survey_type_chart(overview["survey_types"]), use_container_width=True)

district_cols = st.columns([3, 2])
with district_cols[0]:
    with card("行政區布氏指數比較"):
        st.altair_chart(district_comparison_chart(district_breteau_comparison(ctx["filtered"])), use_container_width=True)
with district_cols[1]:
    with card("行政區風險"):
        render_district_panel(compute_districts(f, ctx), base_store, f.month)

with card("調查資料"):
    table_payload = compute_table(f, ctx)
    st.caption(table_payload["status"])
    render_sort_header(view)
    table_df = pd.DataFrame(table_payload["rows"])
    if table_df.empty:
        st.info("沒有符合條件的資料")
    else:
        st.dataframe(table_df.rename(columns=COLUMN_LABELS), hide_index=True, use_container_width=True)
        st.download_button(
            "匯出 CSV",
            data=ctx["filtered"].to_csv(index=False).encode("utf-8-sig"),
            file_name="dengue_survey.csv",
            mime="text/csv",
        )
