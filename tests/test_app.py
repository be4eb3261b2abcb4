# tests/test_app.py
# Tests for the Streamlit dashboard's table sort controls.

from pathlib import Path

import pytest
from streamlit.testing.v1 import AppTest

APP_PATH = str(Path(__file__).resolve().parents[1] / "app.py")


@pytest.fixture
def app(data_dir, monkeypatch):
    monkeypatch.delenv("DENGUE_DATA_URL", raising=False)
    monkeypatch.setenv("DENGUE_DATA_DIR", str(data_dir))
    at = AppTest.from_file(APP_PATH, default_timeout=60)
    at.run()
    assert not at.exception
    return at


def test_header_click_toggles_direction(app):
    view = app.session_state["table_view"]
    assert view.sort_column is None

    app.button(key="sort_breteau_index").click().run()
    view = app.session_state["table_view"]
    assert (view.sort_column, view.sort_direction) == ("breteau_index", "asc")

    app.button(key="sort_breteau_index").click().run()
    view = app.session_state["table_view"]
    assert (view.sort_column, view.sort_direction) == ("breteau_index", "desc")

    app.button(key="sort_village").click().run()
    view = app.session_state["table_view"]
    assert (view.sort_column, view.sort_direction) == ("village", "asc")


def test_reset_restores_default_order(app):
    app.button(key="sort_households").click().run()
    app.button(key="sort_reset").click().run()
    view = app.session_state["table_view"]
    assert view.sort_column is None
    assert view.sort_direction == "asc"
