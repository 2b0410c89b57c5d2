"""Session store backed by a mutable mapping.

In the web app the mapping is the signed cookie session installed by
Starlette's SessionMiddleware, so the token survives page reloads. Tests
hand in a plain dict.

Keys mirror the browser storage the dashboard has always used. Reads try
the `hichers*` key first and fall back to the plain one; writes set both.
"""

from __future__ import annotations

import json
from collections.abc import MutableMapping
from typing import Any

import structlog

from hichers.schemas.session import BusinessProfile, Session

logger = structlog.get_logger()

TOKEN_KEYS = ("hichersToken", "token")
USER_ID_KEYS = ("hichersUserID", "userID")
PROFILE_KEYS = ("hichersUser", "userInfo")
TEMP_USER_ID_KEY = "tempUserID"
TEMP_PHONE_KEY = "tempPhoneDetails"


def _first(store: MutableMapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = store.get(key)
        if value not in (None, ""):
            return value
    return None


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class SessionStore:
    """Read/write the Hichers session from a key/value store."""

    def __init__(self, store: MutableMapping[str, Any] | None = None):
        self._store: MutableMapping[str, Any] = store if store is not None else {}

    def load(self) -> Session:
        """Return the current session; a token without a user id reads as signed out."""
        token = _first(self._store, TOKEN_KEYS)
        user_id = _to_int(_first(self._store, USER_ID_KEYS))

        profile = BusinessProfile()
        raw_profile = _first(self._store, PROFILE_KEYS)
        if raw_profile:
            try:
                data = json.loads(raw_profile) if isinstance(raw_profile, str) else raw_profile
                profile = BusinessProfile.model_validate(data)
            except (ValueError, TypeError):
                logger.warning("Stored business profile is unreadable; ignoring it")

        if token and user_id is None:
            logger.warning("Session token present without a user id; treating as signed out")
            return Session(business_profile=profile)

        return Session(auth_token=token, user_id=user_id, business_profile=profile)

    def save(self, session: Session) -> None:
        """Persist a validated session under both key families."""
        for key in TOKEN_KEYS:
            self._store[key] = session.auth_token
        for key in USER_ID_KEYS:
            self._store[key] = str(session.user_id) if session.user_id is not None else None
        profile_json = session.business_profile.model_dump_json()
        for key in PROFILE_KEYS:
            self._store[key] = profile_json

    def clear(self) -> None:
        """Explicit logout: drop auth and transient OTP state."""
        for key in (*TOKEN_KEYS, *USER_ID_KEYS, *PROFILE_KEYS, TEMP_USER_ID_KEY, TEMP_PHONE_KEY):
            self._store.pop(key, None)

    # Transient OTP flow state

    def set_pending_otp(self, user_id: int, country_code: str, mobile_number: str) -> None:
        self._store[TEMP_USER_ID_KEY] = str(user_id)
        self._store[TEMP_PHONE_KEY] = json.dumps(
            {"countryCode": country_code, "mobileNumber": mobile_number}
        )

    def pending_otp_user_id(self) -> int | None:
        return _to_int(self._store.get(TEMP_USER_ID_KEY))

    def pending_phone(self) -> dict | None:
        raw = self._store.get(TEMP_PHONE_KEY)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    def clear_pending_otp(self) -> None:
        self._store.pop(TEMP_USER_ID_KEY, None)
        self._store.pop(TEMP_PHONE_KEY, None)
