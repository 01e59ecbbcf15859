from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    selected_periods: List[str] = Field(default_factory=list)
    selected_regions: List[str] = Field(default_factory=list)
    selected_categories: List[str] = Field(default_factory=list)
    top_n: int = 5
    recent_limit: int = 5


class MetaListResponse(BaseModel):
    values: List[str]
