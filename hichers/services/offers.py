"""Offer lifecycle - validation, remote payloads, classification and CRUD.

Offers live in the remote Hichers API; this module validates drafts before
they reach the network and sorts loaded offers into Current / Future / Past.
"""

from __future__ import annotations

import re
from datetime import datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable, Optional

import structlog

from hichers.config import get_settings
from hichers.exceptions import (
    NetworkError,
    RemoteApiError,
    TimeoutError,
    ValidationError,
)
from hichers.schemas.offer import (
    ClassifiedOffers,
    DiscountFields,
    Offer,
    OfferDetail,
    OfferDraft,
    OfferType,
    OfferWriteResponse,
    TimeStatus,
    ValidOffer,
)
from hichers.services.envelopes import as_float, as_int, format_amount, pick
from hichers.services.offer_parsing import offer_from_remote

if TYPE_CHECKING:
    from hichers.services.gateway import LoyaltyGateway

logger = structlog.get_logger()
settings = get_settings()

# Discount fields that belong to each offer type.
DISCOUNT_GROUPS: dict[OfferType, tuple[str, ...]] = {
    OfferType.BUY_ONE_GET_ONE: ("items_buying", "items_free"),
    OfferType.PERCENTAGE: ("percent_discount",),
    OfferType.CASH: ("cash_discount",),
    OfferType.MINIMUM_SPEND: ("minimum_spend", "cash_discount"),
    OfferType.MULTI_BUY: ("items_buying", "items_free"),
    OfferType.FLASH_SALE: ("percent_discount", "cash_discount"),
}

FIELD_LABELS = {
    "items_buying": "Items to buy",
    "items_free": "Free items",
    "percent_discount": "Percentage discount",
    "cash_discount": "Cash discount",
    "minimum_spend": "Minimum spend",
}


_FORM_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def _form_time(value: str, field: str) -> time:
    """Strict "HH:MM" from the form; anything else is a ValidationError."""
    match = _FORM_TIME_RE.match((value or "").strip())
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours < 24 and minutes < 60:
            return time(hours, minutes)
    raise ValidationError("Enter a time as HH:MM", field)


def _positive(value: Optional[str]) -> Optional[Decimal]:
    """Positive number from a form string, else None."""
    if value is None or str(value).strip() == "":
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return number if number > 0 else None


def _require(fields: DiscountFields, name: str) -> None:
    if _positive(getattr(fields, name)) is None:
        raise ValidationError(f"{FIELD_LABELS[name]} is required for this offer type", name)


def _check_percent(fields: DiscountFields) -> None:
    percent = _positive(fields.percent_discount)
    if percent is None or percent > 100:
        raise ValidationError(
            "Percentage discount must be greater than 0 and at most 100", "percent_discount"
        )


def _validate_discount(offer_type: OfferType, fields: DiscountFields) -> DiscountFields:
    """Check the selected group and clear every other discount field."""
    if offer_type in (OfferType.BUY_ONE_GET_ONE, OfferType.MULTI_BUY):
        _require(fields, "items_buying")
        _require(fields, "items_free")
    elif offer_type is OfferType.PERCENTAGE:
        _check_percent(fields)
    elif offer_type is OfferType.CASH:
        _require(fields, "cash_discount")
    elif offer_type is OfferType.MINIMUM_SPEND:
        _require(fields, "minimum_spend")
        _require(fields, "cash_discount")
    elif offer_type is OfferType.FLASH_SALE:
        if _positive(fields.percent_discount) is not None:
            _check_percent(fields)
        elif _positive(fields.cash_discount) is None:
            raise ValidationError(
                "Flash sales need a percentage or cash discount", "percent_discount"
            )

    kept = {
        name: format_amount(getattr(fields, name))
        for name in DISCOUNT_GROUPS[offer_type]
        if _positive(getattr(fields, name)) is not None
    }
    return DiscountFields(
        **kept,
        product_name=fields.product_name,
        while_stocks_last=fields.while_stocks_last,
    )


def validate_draft(
    draft: OfferDraft,
    now: datetime | None = None,
    lead_minutes: int | None = None,
    *,
    offer_id: int | None = None,
    require_lead_time: bool = True,
) -> ValidOffer:
    """Validate a draft, raising ValidationError for the first broken rule.

    Order: lead time, title, description, validity window, offer type,
    then the discount fields of the selected type.
    """
    now = now or datetime.now()
    if lead_minutes is None:
        lead_minutes = settings.offer_lead_minutes

    if draft.valid_from is None:
        raise ValidationError("Valid from date is required", "valid_from")
    starts = datetime.combine(draft.valid_from, _form_time(draft.valid_from_time, "valid_from_time"))
    if require_lead_time and starts < now + timedelta(minutes=lead_minutes):
        raise ValidationError(
            f"Offer must start at least {lead_minutes} minutes in the future", "valid_from"
        )

    title = draft.title.strip()
    if len(title) < 3:
        raise ValidationError("Title must be at least 3 characters", "title")
    description = draft.description.strip()
    if len(description) < 10:
        raise ValidationError("Description must be at least 10 characters", "description")

    if draft.valid_until is None:
        raise ValidationError("Valid until date is required", "valid_until")
    ends = datetime.combine(draft.valid_until, _form_time(draft.valid_until_time, "valid_until_time"))
    if ends <= starts:
        raise ValidationError("Valid until must be after valid from", "valid_until")

    try:
        offer_type = OfferType(draft.offer_type_id)
    except ValueError:
        raise ValidationError("Offer type is required", "offer_type_id") from None

    return ValidOffer(
        id=offer_id,
        title=title,
        description=description,
        offer_type_id=offer_type,
        discount=_validate_discount(offer_type, draft.discount),
        valid_from=starts,
        valid_until=ends,
    )


def to_remote_contract(valid: ValidOffer, user_id: int) -> dict:
    """Payload for save-offer / update-offer.

    Dates go out with forward slashes, both split (`validFromDate` +
    `validFromTime`) and combined (`validfrom`). Unused discount amounts
    are sent as "0".
    """
    discount = valid.discount
    payload = {
        "userID": user_id,
        "offerTypeID": int(valid.offer_type_id),
        "offerName": valid.title,
        "offerInformation": valid.description,
        "validFromDate": valid.valid_from.strftime("%Y/%m/%d"),
        "validFromTime": valid.valid_from.strftime("%H:%M"),
        "validToDate": valid.valid_until.strftime("%Y/%m/%d"),
        "validToTime": valid.valid_until.strftime("%H:%M"),
        "validfrom": valid.valid_from.strftime("%Y/%m/%d %H:%M"),
        "validto": valid.valid_until.strftime("%Y/%m/%d %H:%M"),
        "itemsBuy": discount.items_buying or "0",
        "itemsFree": discount.items_free or "0",
        "percentageDiscount": discount.percent_discount or "0",
        "cashDiscount": discount.cash_discount or "0",
        "minSpend": discount.minimum_spend or "0",
        "whileStocksLast": discount.while_stocks_last,
        "offerPicture": "",
        "predefined": False,
        "editFlag": valid.id is not None,
        "deleteFlag": False,
    }
    if valid.id is not None:
        payload["offerID"] = valid.id
    return payload


def effective_status(offer: Offer) -> TimeStatus:
    """Time status used for tabs and actions.

    Offers with no usable status are treated as current so they stay
    visible to the business; each one is logged.
    """
    if offer.time_status is None:
        logger.warning("Offer has no time status, treating as present", offer_id=offer.id)
        return TimeStatus.PRESENT
    return offer.time_status


def classify(offers: list[Offer]) -> ClassifiedOffers:
    """Partition offers into past / present / future; each lands in exactly one."""
    result = ClassifiedOffers()
    buckets = {
        TimeStatus.PAST: result.past,
        TimeStatus.PRESENT: result.present,
        TimeStatus.FUTURE: result.future,
    }
    for offer in offers:
        buckets[effective_status(offer)].append(offer)
    return result


def _write_result(response: Any, default_message: str) -> OfferWriteResponse:
    if isinstance(response, dict) and response.get("success") is False:
        message = response.get("message") or response.get("error") or "Offer request failed"
        raise RemoteApiError(200, str(message))

    message = default_message
    offer_id = None
    if isinstance(response, dict):
        message = response.get("message") or response.get("msg") or default_message
        data = response.get("data")
        source = data if isinstance(data, dict) else response
        offer_id = as_int(pick(source, "offerID", "offerid", "id"))
    return OfferWriteResponse(success=True, message=str(message), offer_id=offer_id)


def _detail_body(response: Any) -> dict:
    """The view-offer body nests the offer under one of a few keys."""
    if isinstance(response, list):
        return response[0] if response and isinstance(response[0], dict) else {}
    if not isinstance(response, dict):
        return {}
    for key in ("offer", "response", "data"):
        value = response.get(key)
        if isinstance(value, dict):
            return value
        if isinstance(value, list) and value and isinstance(value[0], dict):
            return value[0]
    return response


class OfferManager:
    def __init__(
        self,
        gateway: LoyaltyGateway,
        *,
        clock: Callable[[], datetime] = datetime.now,
        lead_minutes: int | None = None,
    ):
        self.gateway = gateway
        self.clock = clock
        self.lead_minutes = lead_minutes if lead_minutes is not None else settings.offer_lead_minutes

    async def list_offers(self) -> list[Offer]:
        """All offers for the signed-in business; failures give an empty list."""
        try:
            result = await self.gateway.load_offers()
        except (RemoteApiError, NetworkError, TimeoutError) as e:
            logger.warning("Failed to load offers", error=str(e))
            return []
        return result["offers"]

    async def list_classified(self) -> ClassifiedOffers:
        return classify(await self.list_offers())

    async def find(self, offer_id: int) -> Offer | None:
        for offer in await self.list_offers():
            if offer.id == offer_id:
                return offer
        return None

    async def create(self, draft: OfferDraft) -> OfferWriteResponse:
        valid = validate_draft(draft, self.clock(), self.lead_minutes)
        payload = to_remote_contract(valid, self.gateway.session.user_id)
        response = await self.gateway.save_offer(payload)
        result = _write_result(response, "Offer created successfully")
        logger.info("Offer created", offer_id=result.offer_id, offer_type=int(valid.offer_type_id))
        return result

    async def update(self, offer_id: int, draft: OfferDraft) -> OfferWriteResponse:
        """Edit an existing offer; the lead-time rule only applies to new offers."""
        valid = validate_draft(
            draft,
            self.clock(),
            self.lead_minutes,
            offer_id=offer_id,
            require_lead_time=False,
        )
        payload = to_remote_contract(valid, self.gateway.session.user_id)
        response = await self.gateway.update_offer(offer_id, payload)
        result = _write_result(response, "Offer updated successfully")
        result.offer_id = result.offer_id or offer_id
        logger.info("Offer updated", offer_id=offer_id)
        return result

    async def delete(self, offer_id: int) -> OfferWriteResponse:
        response = await self.gateway.delete_offer(offer_id)
        result = _write_result(response, "Offer deleted successfully")
        result.offer_id = offer_id
        logger.info("Offer deleted", offer_id=offer_id)
        return result

    async def end_early(self, offer: Offer) -> OfferWriteResponse:
        """End a running offer now.

        Only current offers can be ended; the remote API has no separate
        end operation, so ending removes the offer.
        """
        status = effective_status(offer)
        if status is not TimeStatus.PRESENT:
            raise ValidationError(
                f"Only current offers can be ended early (this offer is {status.value})",
                "time_status",
            )
        if offer.id is None:
            raise ValidationError("Offer has no id", "id")
        result = await self.delete(offer.id)
        result.message = "Offer ended"
        return result

    async def view(self, offer_id: int, map_id: int) -> OfferDetail:
        response = await self.gateway.view_offer(offer_id, map_id)
        if isinstance(response, dict) and response.get("success") is False:
            raise TimeoutError("Offer details are taking too long to load.")

        body = _detail_body(response)
        offer = offer_from_remote({"offerid": offer_id, "mapid": map_id, **body}, self.clock())
        redemptions = as_int(pick(body, "redemptioncount", "redemptionCount"))
        return OfferDetail(
            offer=offer,
            scanned_count=as_int(pick(body, "scannedcount", "scannedCount")) or 0,
            click_count=as_int(pick(body, "clickcount", "clickCount")) or 0,
            redemption_count=redemptions or offer.redemption_count,
            conversion_rate=as_float(pick(body, "conversionrate", "conversionRate")) or 0.0,
            business_name=pick(body, "businessname", "businessName"),
            expire_reason=pick(body, "expirereason", "expireReason"),
        )
