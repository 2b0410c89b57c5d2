"""Loyalty scheme schemas."""

from datetime import date
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class SchemeType(str, Enum):
    POINTS = "POINTS"
    DISCOUNT = "DISCOUNT"
    STAMPS = "STAMPS"


SCHEME_TYPE_IDS = {
    SchemeType.POINTS: 1,
    SchemeType.DISCOUNT: 2,
    SchemeType.STAMPS: 3,
}

SCHEME_TYPE_DESCRIPTIONS = {
    SchemeType.POINTS: "Earn points for purchases and redeem for rewards",
    SchemeType.DISCOUNT: "Get discounts on future purchases",
    SchemeType.STAMPS: "Collect stamps to earn free items",
}

RedeemFrequency = Literal["daily", "weekly", "monthly"]


class SchemeDraft(BaseModel):
    """Form values for a new points or stamps scheme."""

    name: str = Field(min_length=3)
    scheme_type: SchemeType = SchemeType.POINTS

    # POINTS
    amount_spend: Optional[float] = Field(default=10, ge=0)
    points_collected: Optional[int] = Field(default=5, ge=1)
    points_redeem: Optional[int] = Field(default=15, ge=1)
    amount_from_points: Optional[float] = Field(default=1, ge=0.1)
    redeem_frequency: Optional[RedeemFrequency] = "monthly"

    # STAMPS
    stamps_to_collect: Optional[int] = Field(default=10, ge=1)
    free_items: Optional[int] = Field(default=1, ge=1)

    months_expire: int = Field(default=3, ge=1)
    return_policy_days: int = Field(default=30, ge=0)
    valid_from_date: date = Field(default_factory=date.today)
    is_active: bool = True

    @field_validator("scheme_type")
    @classmethod
    def _points_or_stamps(cls, value: SchemeType) -> SchemeType:
        if value not in (SchemeType.POINTS, SchemeType.STAMPS):
            raise ValueError("Only POINTS and STAMPS schemes can be created")
        return value


class LoyaltyScheme(BaseModel):
    """Scheme as loaded from loyalty/load-loyalty-scheme."""

    id: Optional[int] = None
    name: str
    description: str = ""
    scheme_type: SchemeType = SchemeType.POINTS
    amount_spend: Optional[float] = None
    points_collected: Optional[int] = None
    points_redeem: Optional[int] = None
    amount_from_points: Optional[float] = None
    redeem_frequency: Optional[str] = None
    stamps_to_collect: Optional[int] = None
    free_items: Optional[int] = None
    months_expire: Optional[int] = None
    return_policy_days: Optional[int] = None
    valid_from_date: Optional[str] = None
    valid_to_date: Optional[str] = None
    is_active: bool = False
    member_count: int = 0
    map_id: Optional[int] = None


class SchemeCreation(BaseModel):
    """Result of create_with_retry."""

    scheme: LoyaltyScheme
    renamed: bool = False
    message: str = ""
