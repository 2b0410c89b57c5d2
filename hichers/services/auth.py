"""Phone OTP sign-in.

generate-otp sends a code and returns a temporary user id; validate-otp
exchanges that id plus the code for a bearer token. The token, user id and
business profile are then written to the session store.
"""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING, Awaitable, Callable

import structlog

from hichers.config import get_settings
from hichers.exceptions import HichersError, RemoteApiError, ValidationError
from hichers.schemas.session import BusinessProfile, OtpChallenge, Session
from hichers.services.envelopes import as_int
from hichers.session import SessionStore

if TYPE_CHECKING:
    from hichers.services.gateway import LoyaltyGateway

logger = structlog.get_logger()
settings = get_settings()

_OTP_RE = re.compile(r"^\d{4,}$")


class AuthService:
    def __init__(
        self,
        gateway: LoyaltyGateway,
        store: SessionStore,
        *,
        attempts: int | None = None,
        retry_delay: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.gateway = gateway
        self.store = store
        self.attempts = attempts if attempts is not None else settings.otp_validate_attempts
        self.retry_delay = retry_delay if retry_delay is not None else settings.otp_retry_delay
        self.sleep = sleep

    async def request_otp(self, country_code: str | None, mobile_number: str) -> OtpChallenge:
        country_code = (country_code or settings.default_country_code).strip()
        mobile_number = re.sub(r"\s+", "", mobile_number or "")
        if not mobile_number.isdigit():
            raise ValidationError("Enter a valid mobile number", "mobile_number")

        response = await self.gateway.generate_otp(country_code, mobile_number)
        user_id = as_int(response.get("userID")) if isinstance(response, dict) else None
        if not isinstance(response, dict) or response.get("response") != "Success" or user_id is None:
            logger.warning("OTP generation rejected", country_code=country_code)
            raise RemoteApiError(200, "Could not send a verification code. Please try again.")

        self.store.set_pending_otp(user_id, country_code, mobile_number)
        logger.info("OTP sent", user_id=user_id)
        return OtpChallenge(
            message=f"A verification code has been sent to {country_code} {mobile_number}",
            country_code=country_code,
            mobile_number=mobile_number,
        )

    async def resend_otp(self) -> OtpChallenge:
        phone = self.store.pending_phone()
        if not phone:
            raise ValidationError("No pending sign-in. Enter your mobile number again.", "mobile_number")
        return await self.request_otp(phone.get("countryCode"), phone.get("mobileNumber", ""))

    async def _validate(self, user_id: int, otp: str) -> dict:
        """validate-otp with a fixed number of attempts."""
        for attempt in range(1, self.attempts + 1):
            try:
                response = await self.gateway.validate_otp(user_id, otp)
                if (
                    isinstance(response, dict)
                    and response.get("response") == "OTP matched"
                    and response.get("token")
                ):
                    return response
                reply = response.get("response") if isinstance(response, dict) else None
                raise RemoteApiError(200, f"Invalid OTP response from server: {reply}")
            except HichersError as e:
                logger.warning(
                    "OTP validation failed",
                    attempt=attempt,
                    max_attempts=self.attempts,
                    error=str(e),
                )
                if attempt >= self.attempts:
                    raise
                await self.sleep(self.retry_delay)
        raise RemoteApiError(200, "Failed to validate OTP after multiple attempts")

    async def verify_otp(self, otp: str) -> Session:
        otp = (otp or "").strip()
        if not _OTP_RE.match(otp):
            raise ValidationError("Enter the verification code you received", "otp")
        user_id = self.store.pending_otp_user_id()
        if user_id is None:
            raise ValidationError("No pending sign-in. Request a new code.", "otp")

        response = await self._validate(user_id, otp)

        user = response.get("user") if isinstance(response.get("user"), dict) else {}
        profile = BusinessProfile.from_remote_user(user)
        if profile.phone is None or profile.country_code is None:
            phone = self.store.pending_phone() or {}
            profile.phone = profile.phone or phone.get("mobileNumber")
            profile.country_code = profile.country_code or phone.get("countryCode")

        session = Session(
            auth_token=response["token"],
            user_id=as_int(user.get("userid")) or user_id,
            business_profile=profile,
        )
        self.store.save(session)
        self.store.clear_pending_otp()
        logger.info("Signed in", user_id=session.user_id)
        return session

    def logout(self) -> None:
        self.store.clear()
        logger.info("Signed out")
