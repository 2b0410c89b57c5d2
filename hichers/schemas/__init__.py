"""Pydantic schemas for API request/response validation."""

from hichers.schemas.dashboard import DashboardView, MetricCard, SchemeCard
from hichers.schemas.loyalty import LoyaltyScheme, SchemeCreation, SchemeDraft, SchemeType
from hichers.schemas.offer import (
    ClassifiedOffers,
    DiscountFields,
    Offer,
    OfferDetail,
    OfferDraft,
    OfferType,
    TimeStatus,
)
from hichers.schemas.session import BusinessProfile, Session

__all__ = [
    "BusinessProfile",
    "ClassifiedOffers",
    "DashboardView",
    "DiscountFields",
    "LoyaltyScheme",
    "MetricCard",
    "Offer",
    "OfferDetail",
    "OfferDraft",
    "OfferType",
    "SchemeCard",
    "SchemeCreation",
    "SchemeDraft",
    "SchemeType",
    "Session",
    "TimeStatus",
]
