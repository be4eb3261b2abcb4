# tests/test_api.py
# Tests for the FastAPI service over a temporary data directory.

import pytest
from fastapi.testclient import TestClient

from dengue_api.main import app


@pytest.fixture
def client(data_dir, monkeypatch, clear_dashboard_cache):
    monkeypatch.delenv("DENGUE_DATA_URL", raising=False)
    monkeypatch.setenv("DENGUE_DATA_DIR", str(data_dir))
    return TestClient(app)


@pytest.fixture
def empty_client(tmp_path, monkeypatch, clear_dashboard_cache):
    empty = tmp_path / "empty"
    empty.mkdir()
    monkeypatch.delenv("DENGUE_DATA_URL", raising=False)
    monkeypatch.setenv("DENGUE_DATA_DIR", str(empty))
    return TestClient(app)


def test_meta_endpoints(client):
    months = client.get("/meta/months").json()["months"]
    assert months[0]["value"] == "all"
    assert months[1] == {"value": "115-3", "label": "115年3月"}

    assert client.get("/meta/districts").json()["values"] == ["士林區", "大安區", "北投區"]

    meta = client.get("/meta/range").json()
    assert meta["label"] == "113年12月至115年3月病媒蚊密度調查結果"
    assert meta["records"] == 11


def test_overview(client):
    resp = client.post("/overview", json={"month": "114-4"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["kpis"]["total_households"] == 180
    assert body["changes"]["has_comparison"] is True
    assert body["filters"]["month"] == "114-4"


def test_unknown_filter_tokens_fall_back_to_all(client):
    body = client.post("/overview", json={"month": "120-1", "district": "nowhere"}).json()
    assert body["filters"]["month"] == "all"
    assert body["filters"]["district"] == "all"


def test_table_sorted_and_formatted(client):
    resp = client.post(
        "/table",
        json={"month": "114-3", "sort_column": "breteau_index", "sort_direction": "desc"},
    )
    body = resp.json()
    assert body["filtered_count"] == 3
    assert body["rows"][0]["breteau_index"] == ""
    assert body["rows"][0]["survey_date"] == "2025/03/18"


def test_districts_and_tooltip(client):
    body = client.post("/districts", json={"district": "北投區"}).json()
    assert body["highlight"] == "beitou"
    assert body["map"]["shilin"]["opacity"] == 0.6

    tip = client.get("/districts/北投區/tooltip", params={"month": "114-4"}).json()
    assert tip["summary"]["total_households"] == 60


def test_risk_endpoint(client):
    assert client.get("/risk", params={"index": 4}).json()["tier"] == 1
    assert client.get("/risk", params={"index": 200}).json()["tier"] == 9
    assert client.get("/risk", params={"index": -1}).status_code == 422


def test_export_table(client):
    resp = client.post("/export/table", json={"district": "大安區"})
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.content.decode("utf-8-sig").strip().splitlines()
    assert lines[0].startswith("survey_date,district")
    assert len(lines) == 3


def test_reload(client):
    assert client.post("/reload").json()["files"] == 5


def test_missing_data_is_reported(empty_client):
    resp = empty_client.get("/meta/range")
    assert resp.status_code == 503
    assert resp.json()["type"] == "DiscoveryError"


@pytest.mark.parametrize("path", ["/export/table", "/reload", "/table", "/overview"])
def test_missing_data_is_reported_on_post_endpoints(empty_client, path):
    resp = empty_client.post(path, json={})
    assert resp.status_code == 503
    body = resp.json()
    assert body["type"] == "DiscoveryError"
    assert "no survey files" in body["error"]


def test_export_failure_returns_json_error(client, monkeypatch):
    def broken():
        raise ValueError("bad sheet")

    monkeypatch.setattr("dengue_api.main.load_dashboard_data", broken)
    resp = client.post("/export/table", json={})
    assert resp.status_code == 500
    assert resp.json() == {"error": "bad sheet", "type": "ValueError"}

    resp = client.post("/reload")
    assert resp.status_code == 500
    assert resp.json()["type"] == "ValueError"
