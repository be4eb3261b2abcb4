from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class SurveyFiltersModel(BaseModel):
    month: str = "all"
    district: str = "all"
    sort_column: Optional[str] = None
    sort_direction: Literal["asc", "desc"] = "asc"


class MonthOptionModel(BaseModel):
    value: str
    label: str


class MetaMonthsResponse(BaseModel):
    months: List[MonthOptionModel] = Field(default_factory=list)


class MetaListResponse(BaseModel):
    values: List[str]


class RiskTierModel(BaseModel):
    tier: int
    label: str
    label_zh: str
    color: str
