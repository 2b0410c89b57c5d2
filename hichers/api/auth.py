"""Phone OTP sign-in endpoints."""

from fastapi import APIRouter, Depends

from hichers.api.deps import get_auth_service, get_session_store
from hichers.schemas.session import (
    OtpChallenge,
    OtpRequest,
    OtpVerification,
    SessionResponse,
)
from hichers.services.auth import AuthService
from hichers.session import SessionStore

router = APIRouter()


def _session_response(store: SessionStore) -> SessionResponse:
    session = store.load()
    return SessionResponse(
        authenticated=session.is_authenticated,
        user_id=session.user_id,
        business_profile=session.business_profile,
    )


@router.post("/generate-otp", response_model=OtpChallenge)
async def generate_otp(
    payload: OtpRequest,
    auth: AuthService = Depends(get_auth_service),
):
    """Send a verification code to the business phone."""
    return await auth.request_otp(payload.country_code, payload.mobile_number)


@router.post("/resend-otp", response_model=OtpChallenge)
async def resend_otp(auth: AuthService = Depends(get_auth_service)):
    """Send a new code to the phone from the pending sign-in."""
    return await auth.resend_otp()


@router.post("/validate-otp", response_model=SessionResponse)
async def validate_otp(
    payload: OtpVerification,
    auth: AuthService = Depends(get_auth_service),
    store: SessionStore = Depends(get_session_store),
):
    """Exchange the code for a session."""
    await auth.verify_otp(payload.otp)
    return _session_response(store)


@router.post("/logout")
async def logout(auth: AuthService = Depends(get_auth_service)):
    auth.logout()
    return {"status": "signed_out"}


@router.get("/session", response_model=SessionResponse)
async def current_session(store: SessionStore = Depends(get_session_store)):
    return _session_response(store)
