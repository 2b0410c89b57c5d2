"""Offer schemas."""

from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class OfferType(IntEnum):
    """Offer types known to the Hichers API."""

    BUY_ONE_GET_ONE = 1
    PERCENTAGE = 2
    CASH = 3
    MINIMUM_SPEND = 4
    MULTI_BUY = 5
    FLASH_SALE = 6

    @property
    def label(self) -> str:
        return OFFER_TYPE_LABELS[self]


OFFER_TYPE_LABELS = {
    OfferType.BUY_ONE_GET_ONE: "Buy One Get One",
    OfferType.PERCENTAGE: "Percentage Discount",
    OfferType.CASH: "Cash Discount",
    OfferType.MINIMUM_SPEND: "Minimum Spend",
    OfferType.MULTI_BUY: "Multi Buy",
    OfferType.FLASH_SALE: "Flash Sales",
}


class TimeStatus(str, Enum):
    PAST = "past"
    PRESENT = "present"
    FUTURE = "future"

    @classmethod
    def parse(cls, value: object) -> Optional["TimeStatus"]:
        """Case-insensitive parse; unknown values give None."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class DiscountFields(BaseModel):
    """Discount values as entered on the form (strings, like the remote API)."""

    items_buying: Optional[str] = None
    items_free: Optional[str] = None
    percent_discount: Optional[str] = None
    cash_discount: Optional[str] = None
    minimum_spend: Optional[str] = None
    product_name: Optional[str] = None
    while_stocks_last: bool = False


class OfferDraft(BaseModel):
    """User-authored offer, not yet validated."""

    title: str = ""
    description: str = ""
    offer_type_id: int = OfferType.PERCENTAGE
    discount: DiscountFields = Field(default_factory=DiscountFields)
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    valid_from_time: str = "00:00"
    valid_until_time: str = "23:59"


class ValidOffer(BaseModel):
    """A draft that passed validation; only the selected discount group is set."""

    id: Optional[int] = None
    title: str
    description: str
    offer_type_id: OfferType
    discount: DiscountFields
    valid_from: datetime
    valid_until: datetime


class Offer(BaseModel):
    """Offer as shown on the dashboard."""

    id: Optional[int] = None
    title: str = "Untitled Offer"
    description: str = ""
    offer_type_id: Optional[int] = None
    discount: DiscountFields = Field(default_factory=DiscountFields)
    discount_label: str = ""
    valid_from: str = ""
    valid_until: str = ""
    valid_from_time: str = ""
    valid_until_time: str = ""
    is_active: bool = True
    time_status: Optional[TimeStatus] = None
    map_id: Optional[int] = None
    redemption_count: int = 0


class ClassifiedOffers(BaseModel):
    """Offers partitioned for the Current / Future / Past tabs."""

    past: list[Offer] = Field(default_factory=list)
    present: list[Offer] = Field(default_factory=list)
    future: list[Offer] = Field(default_factory=list)

    @computed_field
    @property
    def counts(self) -> dict[str, int]:
        return {
            "past": len(self.past),
            "present": len(self.present),
            "future": len(self.future),
        }


class OfferDetail(BaseModel):
    """Offer plus the statistics returned by offer/view-offer."""

    offer: Offer
    scanned_count: int = 0
    click_count: int = 0
    redemption_count: int = 0
    conversion_rate: float = 0.0
    business_name: Optional[str] = None
    expire_reason: Optional[str] = None


class OfferTypeOption(BaseModel):
    id: int
    label: str


class OfferWriteResponse(BaseModel):
    """Outcome of a create/update/delete/end-early call."""

    success: bool = True
    message: str = ""
    offer_id: Optional[int] = None
