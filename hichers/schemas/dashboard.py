"""Dashboard view models."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from hichers.schemas.loyalty import SchemeType

Trend = Literal["up", "down", "flat"]


class MetricCard(BaseModel):
    """One headline number on the dashboard.

    `available` is False when the metrics fetch failed; the UI shows an
    unavailable indicator instead of the value.
    """

    key: str
    label: str
    value: Optional[float] = None
    display: str = "—"
    delta_percent: Optional[float] = None
    trend: Optional[Trend] = None
    note: str = ""
    available: bool = True


class SchemeCard(BaseModel):
    id: Optional[int] = None
    name: str
    description: str
    scheme_type: SchemeType
    is_active: bool
    members: int = 0
    rewards: int = 0


class GrowthPoint(BaseModel):
    month: str
    total: int
    new: int


class DashboardView(BaseModel):
    metrics_available: bool = False
    schemes_available: bool = False
    cards: list[MetricCard] = Field(default_factory=list)
    schemes: list[SchemeCard] = Field(default_factory=list)
    most_popular: Optional[SchemeCard] = None
    customer_growth: list[GrowthPoint] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
