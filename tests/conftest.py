# tests/conftest.py
# Pytest fixtures shared by the dengue survey dashboard tests.

from pathlib import Path
from typing import Dict, List, Tuple

import pandas as pd
import pytest

from dengue_core.data import DatasetStore, parse_survey_csv, reload_dashboard_data
from dengue_core.sources import FILE_TEMPLATE, FileDescriptor

HEADER = "日期,區別,里別,調查戶數,陽性戶數,布氏指數,布氏級數,容器指數,調查種類"

# (year, month) -> data lines. 114-2 is deliberately missing.
SHEETS: Dict[Tuple[int, int], List[str]] = {
    (113, 12): [
        "20241203,北投區,大屯里,40,2,5,2,4,住宅",
        "20241210,士林區,天母里,60,0,0,0,0,學校",
    ],
    (114, 1): [
        "20250105,北投區,大屯里,50,3,6,2,5,住宅",
        "20250112,士林區,天母里,70,0,2,1,2,學校",
    ],
    (114, 3): [
        "20250303,北投區,大屯里,50,2,4,1,3.5,住宅",
        "20250310,士林區,天母里,60,3,6,2,5.2,菜園",
        "20250318,大安區,龍安里,30,1,,1,2,",
    ],
    (114, 4): [
        "20250402,北投區,大屯里,60,4,8,2,6,住宅",
        "20250407,士林區,天母里,90,3,4,1,4,學校",
        "20250415,大安區,龍安里,30,1,3,1,2,市場",
    ],
    (115, 3): [
        "20260302,北投區,大屯里,20,1,5,2,3,住宅",
    ],
}


def make_csv(lines: List[str], header: str = HEADER) -> str:
    return "\n".join([header] + list(lines)) + "\n"


@pytest.fixture
def survey_files() -> List[FileDescriptor]:
    return [FileDescriptor(y, m, FILE_TEMPLATE.format(year=y, month=m)) for (y, m) in SHEETS]


@pytest.fixture
def survey_records() -> pd.DataFrame:
    frames = [parse_survey_csv(make_csv(lines), m, y) for (y, m), lines in SHEETS.items()]
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def survey_store(survey_records, survey_files) -> DatasetStore:
    return DatasetStore().load(survey_records, survey_files)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    for (y, m), lines in SHEETS.items():
        (tmp_path / FILE_TEMPLATE.format(year=y, month=m)).write_text(make_csv(lines), encoding="utf-8")
    return tmp_path


@pytest.fixture
def clear_dashboard_cache():
    reload_dashboard_data()
    yield
    reload_dashboard_data()
