from __future__ import annotations

from dataclasses import asdict
import logging
import math

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from dengue_api.schemas import MetaListResponse, MetaMonthsResponse, RiskTierModel, SurveyFiltersModel
from dengue_core.data import (
    TABLE_COLUMNS,
    DatasetStore,
    date_range_label,
    district_options,
    load_dashboard_data,
    month_options,
    prepare_context,
    reload_dashboard_data,
)
from dengue_core.filters import SurveyFilters, normalize_filters
from dengue_core.metrics_districts import compute_districts, district_tooltip
from dengue_core.metrics_overview import compute_overview
from dengue_core.metrics_table import compute_table
from dengue_core.risk import classify_breteau
from dengue_core.sources import DiscoveryError


app = FastAPI(title="Dengue Vector Survey API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: SurveyFiltersModel, store: DatasetStore) -> SurveyFilters:
    return normalize_filters(
        model.model_dump(),
        available_months=[o["value"] for o in month_options(store.files)],
        available_districts=district_options(store.all),
    )


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _discovery_failed(exc: DiscoveryError) -> JSONResponse:
    logger.error("no survey data available: %s", exc)
    return _error(exc, status_code=503)


@app.get("/meta/months", response_model=MetaMonthsResponse)
def meta_months():
    try:
        store = load_dashboard_data()
        return _json({"months": month_options(store.files)})
    except DiscoveryError as exc:
        return _discovery_failed(exc)
    except Exception as exc:
        logger.exception("meta_months failed")
        return _error(exc)


@app.get("/meta/districts", response_model=MetaListResponse)
def meta_districts():
    try:
        store = load_dashboard_data()
        return _json({"values": district_options(store.all)})
    except DiscoveryError as exc:
        return _discovery_failed(exc)
    except Exception as exc:
        logger.exception("meta_districts failed")
        return _error(exc)


@app.get("/meta/range")
def meta_range():
    try:
        store = load_dashboard_data()
        return _json({"label": date_range_label(store.files), "files": len(store.files), "records": len(store.all)})
    except DiscoveryError as exc:
        return _discovery_failed(exc)
    except Exception as exc:
        logger.exception("meta_range failed")
        return _error(exc)


@app.post("/overview")
def overview(filters: SurveyFiltersModel):
    try:
        store = load_dashboard_data()
        f = _filters_from_model(filters, store)
        ctx = prepare_context(f, store)
        return _json(compute_overview(f, ctx))
    except DiscoveryError as exc:
        return _discovery_failed(exc)
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.post("/districts")
def districts(filters: SurveyFiltersModel):
    try:
        store = load_dashboard_data()
        f = _filters_from_model(filters, store)
        ctx = prepare_context(f, store)
        return _json(compute_districts(f, ctx))
    except DiscoveryError as exc:
        return _discovery_failed(exc)
    except Exception as exc:
        logger.exception("districts failed")
        return _error(exc)


@app.get("/districts/{name}/tooltip")
def tooltip(name: str, month: str = Query(default="all")):
    try:
        store = load_dashboard_data()
        f = normalize_filters({"month": month}, available_months=[o["value"] for o in month_options(store.files)])
        return _json(district_tooltip(store.all, name, f.month))
    except DiscoveryError as exc:
        return _discovery_failed(exc)
    except Exception as exc:
        logger.exception("tooltip failed")
        return _error(exc)


@app.post("/table")
def table(filters: SurveyFiltersModel, limit: int = Query(default=1000, ge=1, le=1000)):
    try:
        store = load_dashboard_data()
        f = _filters_from_model(filters, store)
        ctx = prepare_context(f, store)
        return _json(compute_table(f, ctx, limit=limit))
    except DiscoveryError as exc:
        return _discovery_failed(exc)
    except Exception as exc:
        logger.exception("table failed")
        return _error(exc)


@app.get("/risk", response_model=RiskTierModel)
def risk(index: float = Query(ge=0)):
    return asdict(classify_breteau(index))


@app.post("/reload")
def reload():
    reload_dashboard_data()
    try:
        store = load_dashboard_data()
        return _json({"label": date_range_label(store.files), "files": len(store.files), "records": len(store.all)})
    except DiscoveryError as exc:
        return _discovery_failed(exc)
    except Exception as exc:
        logger.exception("reload failed")
        return _error(exc)


@app.post("/export/table")
def export_table(filters: SurveyFiltersModel):
    try:
        store = load_dashboard_data()
        f = _filters_from_model(filters, store)
        ctx = prepare_context(f, store)
        export_df: pd.DataFrame = ctx["filtered"]
        cols = [c for c in TABLE_COLUMNS + ["survey_type", "year", "month"] if c in export_df.columns]
        csv_bytes = export_df[cols].to_csv(index=False).encode("utf-8-sig")
    except DiscoveryError as exc:
        return _discovery_failed(exc)
    except Exception as exc:
        logger.exception("export failed")
        return _error(exc)
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=dengue_survey.csv"})
