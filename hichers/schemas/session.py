"""Session schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class BusinessProfile(BaseModel):
    """Business details returned with a validated OTP."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    logo: Optional[str] = None
    phone: Optional[str] = None
    country_code: Optional[str] = None

    @classmethod
    def from_remote_user(cls, user: dict | None) -> "BusinessProfile":
        """Build a profile from the `user` object of auth/validate-otp."""
        user = user or {}
        return cls(
            name=user.get("businessname") or user.get("fullname"),
            logo=user.get("businesslogo") or user.get("logo"),
            phone=user.get("mobilenumber"),
            country_code=user.get("countrycode"),
        )


class Session(BaseModel):
    """Auth token, owning user and business profile."""

    auth_token: Optional[str] = None
    user_id: Optional[int] = None
    business_profile: BusinessProfile = BusinessProfile()

    @model_validator(mode="after")
    def _token_needs_user(self) -> "Session":
        if self.auth_token and self.user_id is None:
            raise ValueError("A session token must belong to a user id")
        return self

    @property
    def is_authenticated(self) -> bool:
        return bool(self.auth_token)


class SessionResponse(BaseModel):
    """Public view of the current session (token never echoed back)."""

    authenticated: bool
    user_id: Optional[int] = None
    business_profile: BusinessProfile


class OtpRequest(BaseModel):
    country_code: Optional[str] = None
    mobile_number: str


class OtpVerification(BaseModel):
    otp: str


class OtpChallenge(BaseModel):
    """Returned after an OTP was sent; the code itself is never exposed."""

    message: str
    country_code: str
    mobile_number: str
