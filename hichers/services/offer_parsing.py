"""Offer parsing helpers.

Maps Hichers offer rows (and our own outbound payloads) onto `Offer`, derives
the time status from the validity window and renders discount labels.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from hichers.schemas.offer import DiscountFields, Offer, OfferType, TimeStatus
from hichers.services.envelopes import (
    as_bool,
    as_int,
    format_amount,
    normalize_inbound_date,
    normalize_time,
    pick,
)


def compute_discount_label(offer_type_id: int | None, fields: DiscountFields | dict | None) -> str:
    """Human label for an offer's discount ("Buy 1 Get 1", "20%", "£10").

    Unknown offer types give an empty string.
    """
    if isinstance(fields, DiscountFields):
        values = fields.model_dump()
    else:
        values = dict(fields or {})

    def amount(key: str, fallback: str) -> str:
        return format_amount(values.get(key)) or fallback

    if offer_type_id == OfferType.BUY_ONE_GET_ONE:
        return f"Buy {amount('items_buying', '1')} Get {amount('items_free', '1')}"
    if offer_type_id == OfferType.PERCENTAGE:
        return f"{amount('percent_discount', '0')}%"
    if offer_type_id == OfferType.CASH:
        return f"£{amount('cash_discount', '0')}"
    if offer_type_id == OfferType.MINIMUM_SPEND:
        return f"£{amount('cash_discount', '0')} off with min spend £{amount('minimum_spend', '0')}"
    if offer_type_id == OfferType.MULTI_BUY:
        return f"Buy {amount('items_buying', '0')} Get {amount('items_free', '0')} Free"
    if offer_type_id == OfferType.FLASH_SALE:
        if format_amount(values.get("percent_discount")) not in (None, "0"):
            return f"Flash Sale {amount('percent_discount', '0')}%"
        return f"Flash Sale £{amount('cash_discount', '0')}"
    return ""


def combine_date_time(date_text: str, time_text: str, default_time: str) -> datetime | None:
    """"2025-01-15" + "09:30" -> datetime, or None when the date is unusable."""
    day = normalize_inbound_date(date_text)
    if not day:
        return None
    clock = normalize_time(time_text, default_time)
    try:
        return datetime.strptime(f"{day} {clock}", "%Y-%m-%d %H:%M")
    except ValueError:
        return None


def derive_time_status(valid_from: datetime, valid_until: datetime, now: datetime) -> TimeStatus:
    """FUTURE before the window, PRESENT inside it, PAST after it."""
    if now < valid_from:
        return TimeStatus.FUTURE
    if now > valid_until:
        return TimeStatus.PAST
    return TimeStatus.PRESENT


def _split_combined(value: Any) -> tuple[str, str]:
    """"2025/01/15 09:30" -> ("2025/01/15", "09:30")."""
    if not isinstance(value, str) or not value.strip():
        return "", ""
    parts = value.strip().split()
    return parts[0], parts[1] if len(parts) > 1 else ""


def _discount_from_remote(raw: dict) -> DiscountFields:
    return DiscountFields(
        items_buying=format_amount(pick(raw, "itemsbuy", "itemsBuy", "itemsBuying")),
        items_free=format_amount(pick(raw, "itemsfree", "itemsFree")),
        percent_discount=format_amount(
            pick(raw, "percentagediscount", "percentageDiscount", "percentDiscount")
        ),
        cash_discount=format_amount(pick(raw, "cashdiscount", "cashDiscount")),
        minimum_spend=format_amount(pick(raw, "minspend", "minSpend", "minimumSpend")),
        product_name=pick(raw, "productname", "productName"),
        while_stocks_last=as_bool(pick(raw, "whilestockslast", "whileStocksLast", default=False)),
    )


def offer_from_remote(raw: dict, now: datetime | None = None) -> Offer:
    """Map one offer row onto `Offer`.

    Accepts the load-offers contract (`offerid`, `validfromdate`,
    `expireflag`, ...), our own save-offer payload (`offerID`,
    `validFromDate`, `validfrom`, ...) and rows already in dashboard shape.
    The time status is derived from the validity window whenever both ends
    parse; the reported `timestatus` is only a fallback.
    """
    now = now or datetime.now()

    combined_from_date, combined_from_time = _split_combined(pick(raw, "validfrom"))
    combined_to_date, combined_to_time = _split_combined(pick(raw, "validto"))

    valid_from = normalize_inbound_date(
        pick(raw, "validfromdate", "validFromDate", "validFrom", default=combined_from_date)
    )
    valid_until = normalize_inbound_date(
        pick(raw, "validtodate", "validToDate", "validUntil", default=combined_to_date)
    )
    from_time = normalize_time(
        pick(raw, "validfromtime", "validFromTime", default=combined_from_time), "00:00"
    )
    until_time = normalize_time(
        pick(raw, "validtotime", "validToTime", "validUntilTime", default=combined_to_time), "23:59"
    )

    offer_type_id = as_int(pick(raw, "offertypeid", "offerTypeID", "offerTypeId"))
    discount = _discount_from_remote(raw)

    starts = combine_date_time(valid_from, from_time, "00:00")
    ends = combine_date_time(valid_until, until_time, "23:59")
    if starts and ends:
        time_status = derive_time_status(starts, ends, now)
    else:
        time_status = TimeStatus.parse(pick(raw, "timestatus", "timeStatus"))

    expire_flag = pick(raw, "expireflag", "expireFlag")
    if expire_flag is not None:
        is_active = not as_bool(expire_flag)
    else:
        is_active = as_bool(pick(raw, "isActive", default=True))

    description = pick(raw, "offerinformation", "offerInformation", "description", default="")
    title = pick(raw, "offername", "offerName", "offertitle", "title", "description")

    return Offer(
        id=as_int(pick(raw, "offerid", "offerID", "id")),
        title=title or "Untitled Offer",
        description=description,
        offer_type_id=offer_type_id,
        discount=discount,
        discount_label=compute_discount_label(offer_type_id, discount),
        valid_from=valid_from,
        valid_until=valid_until,
        valid_from_time=from_time,
        valid_until_time=until_time,
        is_active=is_active,
        time_status=time_status,
        map_id=as_int(pick(raw, "mapid", "mapID", "mapId")),
        redemption_count=as_int(pick(raw, "redemptioncount", "redemptionCount")) or 0,
    )
