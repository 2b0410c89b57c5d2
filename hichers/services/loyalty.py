"""Loyalty scheme management: payloads, duplicate-name recovery and mapping."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Protocol

import structlog

from hichers.exceptions import (
    DuplicateSchemeError,
    NetworkError,
    RemoteApiError,
    TimeoutError,
)
from hichers.schemas.loyalty import (
    SCHEME_TYPE_DESCRIPTIONS,
    SCHEME_TYPE_IDS,
    LoyaltyScheme,
    SchemeCreation,
    SchemeDraft,
    SchemeType,
)
from hichers.services.envelopes import (
    as_bool,
    as_float,
    as_int,
    format_amount,
    normalize_inbound_date,
    pick,
    to_outbound_date,
)

if TYPE_CHECKING:
    from hichers.services.gateway import LoyaltyGateway

logger = structlog.get_logger()

# The remote API stores open-ended schemes with this end date.
OPEN_ENDED_DATE = "9999-12-12"

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."

_TYPES_BY_ID = {type_id: scheme_type for scheme_type, type_id in SCHEME_TYPE_IDS.items()}


def scheme_type_from_id(value: Any) -> SchemeType:
    """1=POINTS, 2=DISCOUNT, 3=STAMPS; anything else reads as POINTS."""
    return _TYPES_BY_ID.get(as_int(value), SchemeType.POINTS)


def map_remote_to_local(raw: dict) -> LoyaltyScheme:
    """Map a load-loyalty-scheme row onto `LoyaltyScheme`."""
    scheme_id = as_int(pick(raw, "loyaltyschemeid", "id"))
    scheme_type = scheme_type_from_id(pick(raw, "loyaltyschemetypeid", default=1))

    time_status = str(pick(raw, "timestatus", default="")).lower()
    is_active = time_status == "present" and not as_bool(pick(raw, "expireflag", default=False))

    valid_to = normalize_inbound_date(pick(raw, "validtodate"))
    if valid_to == OPEN_ENDED_DATE:
        valid_to = ""

    return LoyaltyScheme(
        id=scheme_id,
        name=pick(raw, "loyaltyschemename", "name") or f"Loyalty Scheme {scheme_id or ''}".strip(),
        description=pick(raw, "description") or SCHEME_TYPE_DESCRIPTIONS[scheme_type],
        scheme_type=scheme_type,
        amount_spend=as_float(pick(raw, "moneyforpoints")),
        points_collected=as_int(pick(raw, "pointsfrommoney")),
        points_redeem=as_int(pick(raw, "pointstoredeem")),
        amount_from_points=as_float(pick(raw, "moneyfrompoints", "amountfrompoints")),
        redeem_frequency=pick(raw, "redeemfrequency"),
        stamps_to_collect=as_int(pick(raw, "stampstocollect")),
        free_items=as_int(pick(raw, "freeitems")),
        months_expire=as_int(pick(raw, "expiremonths")),
        return_policy_days=as_int(pick(raw, "returnpolicy")),
        valid_from_date=normalize_inbound_date(pick(raw, "validfromdate")) or None,
        valid_to_date=valid_to or None,
        is_active=is_active,
        member_count=as_int(pick(raw, "usercount")) or 0,
        map_id=as_int(pick(raw, "mapid")),
    )


def describe_scheme(scheme: LoyaltyScheme) -> str:
    """One-line summary for a scheme card."""
    if scheme.scheme_type is SchemeType.STAMPS and scheme.stamps_to_collect and scheme.free_items:
        plural = "s" if scheme.free_items > 1 else ""
        return (
            f"Collect {scheme.stamps_to_collect} stamps, "
            f"get {scheme.free_items} free item{plural}"
        )
    if scheme.scheme_type is SchemeType.POINTS and scheme.points_collected and scheme.points_redeem:
        spend = format_amount(scheme.amount_spend) or "1"
        return (
            f"Earn {scheme.points_collected} point per £{spend} spent, "
            f"redeem {scheme.points_redeem} points for rewards"
        )
    return scheme.description or "Loyalty rewards program"


def build_remote_payload(draft: SchemeDraft, user_id: int) -> dict:
    """Remote contract for save-loyalty-scheme.

    Every field is always present; the ones that do not apply to the
    selected type go out as "0" (and "monthly" for the redeem frequency).
    """
    points = draft.scheme_type is SchemeType.POINTS
    stamps = draft.scheme_type is SchemeType.STAMPS

    def amount(value: Any, applies: bool) -> str:
        if not applies:
            return "0"
        return format_amount(value) or "0"

    return {
        "userID": user_id,
        "loyaltySchemeName": draft.name,
        "loyaltySchemeTypeID": str(SCHEME_TYPE_IDS[draft.scheme_type]),
        "amountSpend": amount(draft.amount_spend, points),
        "pointsCollected": amount(draft.points_collected, points),
        "pointsRedeem": amount(draft.points_redeem, points),
        "amountFromPoints": amount(draft.amount_from_points, points),
        "redeemFrequency": (draft.redeem_frequency or "monthly") if points else "monthly",
        "stampsCollect": amount(draft.stamps_to_collect, stamps),
        "freeItems": amount(draft.free_items, stamps),
        "monthsExpire": str(draft.months_expire),
        "validFromDate": to_outbound_date(draft.valid_from_date),
        "predefined": True,
        "unsubscribeFlag": False,
        "returnPolicy": draft.return_policy_days,
        "isActive": draft.is_active,
    }


class DuplicateDetector(Protocol):
    """Decides whether a save-loyalty-scheme response means "name taken"."""

    def is_duplicate(self, response: Any) -> bool: ...


class MessageMarkerDuplicateDetector:
    """The API answers a duplicate name with a success envelope whose
    message contains a marker such as "already added"."""

    def __init__(self, marker: str = "already added"):
        self.marker = marker.lower()

    def is_duplicate(self, response: Any) -> bool:
        if not isinstance(response, dict) or response.get("response") != "Success":
            return False
        message = response.get("msg") or response.get("message") or ""
        return self.marker in str(message).lower()


def _raise_for_failure(response: Any) -> None:
    if not isinstance(response, dict):
        return
    if response.get("status") == "fail" or response.get("errors"):
        errors = response.get("errors")
        message = "Unknown API error"
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("message") or message
        raise RemoteApiError(200, message)


class SchemeManager:
    def __init__(
        self,
        gateway: LoyaltyGateway,
        *,
        detector: DuplicateDetector | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.gateway = gateway
        self.detector = detector or MessageMarkerDuplicateDetector()
        self.clock = clock

    async def list_schemes(self) -> list[LoyaltyScheme]:
        """Schemes for the signed-in business; failures give an empty list."""
        try:
            result = await self.gateway.load_loyalty_schemes()
        except (RemoteApiError, NetworkError, TimeoutError) as e:
            logger.warning("Failed to load loyalty schemes", error=str(e))
            return []
        return result["schemes"]

    async def _submit(self, payload: dict) -> Any:
        try:
            response = await self.gateway.save_loyalty_scheme(payload)
        except RemoteApiError as e:
            if e.status == 401:
                raise RemoteApiError(401, SESSION_EXPIRED_MESSAGE) from e
            raise
        _raise_for_failure(response)
        return response

    async def create_with_retry(self, draft: SchemeDraft) -> SchemeCreation:
        """Create a scheme, retrying once under a dated name on a duplicate.

        "Gold" becomes "Gold20250115". A second duplicate raises
        DuplicateSchemeError; other failures propagate unchanged.
        """
        user_id = self.gateway.session.user_id
        payload = build_remote_payload(draft, user_id)
        name = draft.name

        response = await self._submit(payload)
        renamed = False
        if self.detector.is_duplicate(response):
            name = f"{draft.name}{self.clock():%Y%m%d}"
            logger.info("Scheme name already in use, retrying", original=draft.name, renamed=name)
            response = await self._submit({**payload, "loyaltySchemeName": name})
            if self.detector.is_duplicate(response):
                message = (response.get("msg") or response.get("message") or "").strip()
                raise DuplicateSchemeError(409, message or f"Scheme '{name}' already exists")
            renamed = True

        scheme = self._created_scheme(draft, name, response)
        logger.info("Loyalty scheme created", name=name, scheme_type=draft.scheme_type.value)
        message = ""
        if isinstance(response, dict):
            message = response.get("msg") or response.get("message") or ""
        return SchemeCreation(scheme=scheme, renamed=renamed, message=message)

    @staticmethod
    def _created_scheme(draft: SchemeDraft, name: str, response: Any) -> LoyaltyScheme:
        data = response.get("data") if isinstance(response, dict) else None
        if isinstance(data, dict) and pick(data, "loyaltyschemeid", "id") is not None:
            return map_remote_to_local(data)

        points = draft.scheme_type is SchemeType.POINTS
        stamps = draft.scheme_type is SchemeType.STAMPS
        scheme = LoyaltyScheme(
            name=name,
            scheme_type=draft.scheme_type,
            amount_spend=draft.amount_spend if points else None,
            points_collected=draft.points_collected if points else None,
            points_redeem=draft.points_redeem if points else None,
            amount_from_points=draft.amount_from_points if points else None,
            redeem_frequency=draft.redeem_frequency if points else None,
            stamps_to_collect=draft.stamps_to_collect if stamps else None,
            free_items=draft.free_items if stamps else None,
            months_expire=draft.months_expire,
            return_policy_days=draft.return_policy_days,
            valid_from_date=draft.valid_from_date.isoformat(),
            is_active=draft.is_active,
        )
        scheme.description = describe_scheme(scheme)
        return scheme
