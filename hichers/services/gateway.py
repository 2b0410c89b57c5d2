"""Client for the external Hichers loyalty API.

Single choke point for remote calls: bearer auth, per-call deadlines,
error-message extraction and the tolerance the API needs (it mixes JSON and
plain-text bodies across endpoints).
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any, Callable

import httpx
import structlog

from hichers.config import get_settings
from hichers.exceptions import (
    AuthRequiredError,
    NetworkError,
    RemoteApiError,
    TimeoutError,
)
from hichers.schemas.session import Session
from hichers.services.envelopes import normalize_list_envelope
from hichers.services.loyalty import map_remote_to_local
from hichers.services.offer_parsing import offer_from_remote

logger = structlog.get_logger()
settings = get_settings()

UNAUTHENTICATED_ENDPOINTS = frozenset({"auth/generate-otp", "auth/validate-otp"})

# Timeouts on these are non-fatal for list views.
SOFT_TIMEOUT_PREFIXES = ("offer/", "loyalty/")

# Plain-text 2xx bodies on these are wrapped as a success message.
TEXT_BODY_PREFIXES = ("offer/", "loyalty/save-loyalty-scheme")

SOFT_TIMEOUT_RESULT = {"success": False, "error": "API timeout"}


def is_soft_failure(result: Any) -> bool:
    """True for the `{"success": False}` object returned on a soft timeout."""
    return isinstance(result, dict) and result.get("success") is False


def extract_error_message(body: str, status: int) -> str:
    """Best human-readable message from an error body."""
    try:
        payload = json.loads(body)
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        message = payload.get("message")
        if not message:
            errors = payload.get("errors")
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                message = errors[0].get("message")
        if message:
            return str(message)
    elif payload is None and body.strip():
        return body.strip()

    return f"HTTP error! status: {status}"


class LoyaltyGateway:
    """Typed adapter over the Hichers REST API.

    The session is injected; nothing is read from global state.
    """

    def __init__(
        self,
        session: Session,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        scheme_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session = session
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.scheme_timeout = (
            scheme_timeout if scheme_timeout is not None else settings.scheme_create_timeout
        )
        self.transport = transport
        self.clock = clock

    # Core request

    def _headers(self, endpoint: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.session.auth_token
        if not token and endpoint not in UNAUTHENTICATED_ENDPOINTS:
            logger.error("Authentication required - no token found", endpoint=endpoint)
            raise AuthRequiredError()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        *,
        params: dict | None = None,
        timeout: float | None = None,
        soft_timeout: bool | None = None,
    ) -> Any:
        """Call the API and return the decoded body.

        Raises AuthRequiredError, RemoteApiError, NetworkError or
        TimeoutError. A timeout on an `offer/` or `loyalty/` endpoint
        returns `{"success": False, ...}` instead, unless `soft_timeout`
        is False.
        """
        endpoint = endpoint.lstrip("/")
        method = method.upper()
        headers = self._headers(endpoint)
        deadline = timeout if timeout is not None else self.timeout
        if soft_timeout is None:
            soft_timeout = endpoint.startswith(SOFT_TIMEOUT_PREFIXES)

        url = f"{self.base_url}/{endpoint}"
        content = None
        if body is not None and method != "GET":
            content = json.dumps(body)

        logger.info("Hichers API request", method=method, endpoint=endpoint)
        try:
            async with httpx.AsyncClient(timeout=deadline, transport=self.transport) as client:
                response = await asyncio.wait_for(
                    client.request(method, url, params=params, headers=headers, content=content),
                    timeout=deadline,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(
                "Hichers API request timed out",
                endpoint=endpoint,
                timeout=deadline,
                soft=soft_timeout,
            )
            if soft_timeout:
                return dict(SOFT_TIMEOUT_RESULT)
            raise TimeoutError(
                "API request timed out. The server is taking too long to respond."
            ) from None
        except httpx.RequestError as exc:
            logger.warning("Hichers API network error", endpoint=endpoint, error=str(exc))
            raise NetworkError("Network error: Could not connect to API server") from exc

        logger.info("Hichers API response", endpoint=endpoint, status_code=response.status_code)
        text = response.text

        if not response.is_success:
            message = extract_error_message(text, response.status_code)
            logger.warning(
                "Hichers API error response",
                endpoint=endpoint,
                status_code=response.status_code,
                message=message,
            )
            raise RemoteApiError(response.status_code, message)

        if not text.strip():
            return {}
        try:
            return json.loads(text)
        except ValueError:
            if endpoint.startswith(TEXT_BODY_PREFIXES):
                return {"success": True, "message": text}
            raise RemoteApiError(response.status_code, "Invalid JSON response from API") from None

    def _user_id(self) -> int:
        if self.session.user_id is None:
            raise AuthRequiredError("No user id in session")
        return self.session.user_id

    # Auth

    async def generate_otp(self, country_code: str, mobile_number: str) -> dict:
        return await self.request(
            "auth/generate-otp",
            "POST",
            {"countryCode": country_code, "mobileNumber": mobile_number, "webFlag": True},
        )

    async def validate_otp(self, user_id: int, otp: str) -> dict:
        # The API expects the user id as a string here.
        return await self.request(
            "auth/validate-otp",
            "POST",
            {"userID": str(user_id), "otp": otp},
        )

    # Offers

    async def load_offers(self) -> dict[str, list]:
        """Return `{"offers": [Offer, ...]}` whatever envelope the API used."""
        user_id = self._user_id()
        raw = await self.request(
            "offer/load-offers",
            "POST",
            {"userID": user_id},
            params={"userID": user_id},
        )
        if is_soft_failure(raw):
            return {"offers": []}

        envelope = normalize_list_envelope(raw)
        now = self.clock()
        offers = [offer_from_remote(row, now) for row in envelope.items]
        logger.info("Loaded offers", shape=envelope.shape.value, count=len(offers))
        return {"offers": offers}

    async def save_offer(self, payload: dict) -> dict:
        user_id = self._user_id()
        return await self.request(
            "offer/save-offer",
            "POST",
            payload,
            params={"userID": user_id},
            soft_timeout=False,
        )

    async def update_offer(self, offer_id: int, payload: dict) -> dict:
        user_id = self._user_id()
        return await self.request(
            f"offer/update-offer/{offer_id}",
            "PUT",
            payload,
            params={"userID": user_id},
            soft_timeout=False,
        )

    async def delete_offer(self, offer_id: int) -> dict:
        user_id = self._user_id()
        return await self.request(
            f"offer/delete-offer/{offer_id}",
            "DELETE",
            params={"userID": user_id},
            soft_timeout=False,
        )

    async def view_offer(self, offer_id: int, map_id: int) -> dict:
        user_id = self._user_id()
        return await self.request(
            "offer/view-offer",
            "POST",
            {"offerID": int(offer_id), "mapID": int(map_id)},
            params={"userID": user_id},
        )

    # Loyalty schemes

    async def load_loyalty_schemes(self) -> dict[str, list]:
        """Return `{"schemes": [LoyaltyScheme, ...]}`."""
        user_id = self._user_id()
        raw = await self.request(
            "loyalty/load-loyalty-scheme",
            "GET",
            params={"userID": user_id},
        )
        if is_soft_failure(raw):
            return {"schemes": []}

        envelope = normalize_list_envelope(raw)
        schemes = [map_remote_to_local(row) for row in envelope.items]
        logger.info("Loaded loyalty schemes", shape=envelope.shape.value, count=len(schemes))
        return {"schemes": schemes}

    async def save_loyalty_scheme(self, payload: dict) -> dict:
        body = {**payload, "userID": self._user_id()}
        return await self.request(
            "loyalty/save-loyalty-scheme",
            "POST",
            body,
            timeout=self.scheme_timeout,
            soft_timeout=False,
        )

    # Dashboard

    async def web_info(self) -> dict | None:
        """Raw dashboard metrics envelope (None for a non-object body)."""
        result = await self.request(
            "web/web-info",
            "POST",
            {"userID": str(self._user_id())},
        )
        return result if isinstance(result, dict) and result else None
