from typing import List, Optional

from pydantic import BaseModel, Field


class Insight(BaseModel):
    # "trend", "warning" or "tip"; anything else is rendered with a default style
    type: str = Field(min_length=1)
    message: str = Field(min_length=1)
    tips: Optional[List[str]] = None


class InsightRequest(BaseModel):
    userId: str


class InsightResponse(BaseModel):
    insights: List[Insight]


class LatestInsights(BaseModel):
    month_year: str
    insights: Optional[List[Insight]] = None
    created_at: Optional[str] = None
