"""
FastAPI router for authentication endpoints.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.firebase import FirebaseTokenVerifier
from wakecall.auth.middleware import CurrentUserDep
from wakecall.auth.schemas import (
    EmailOtpRequest,
    EmailOtpVerify,
    FirebasePhoneVerify,
    MessageResponse,
    PhoneOtpRequest,
    PhoneOtpVerify,
    RefreshRequest,
    TokenResponse,
    UserResponse,
)
from wakecall.auth.service import AuthService
from wakecall.notifications.email import EmailSender, get_email_sender
from wakecall.shared.database import get_db_session
from wakecall.telephony.factory import get_telephony_config, get_telephony_provider
from wakecall.telephony.interface import TelephonyProvider

router = APIRouter(prefix="/api/auth", tags=["auth"])


@lru_cache(maxsize=1)
def get_firebase_verifier() -> FirebaseTokenVerifier:
    return FirebaseTokenVerifier()


def get_auth_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    email_sender: Annotated[EmailSender, Depends(get_email_sender)],
    telephony: Annotated[TelephonyProvider, Depends(get_telephony_provider)],
    firebase: Annotated[FirebaseTokenVerifier, Depends(get_firebase_verifier)],
) -> AuthService:
    return AuthService(
        session=session,
        email_sender=email_sender,
        telephony_provider=telephony,
        sms_from_number=get_telephony_config().twilio_from_number,
        firebase_verifier=firebase,
    )


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


@router.post("/request-otp", response_model=MessageResponse)
async def request_otp(data: EmailOtpRequest, service: AuthServiceDep) -> MessageResponse:
    """Email a one-time login or registration code."""
    await service.request_email_otp(data)
    return MessageResponse(message="Verification code sent")


@router.post("/verify-otp", response_model=TokenResponse)
async def verify_otp(data: EmailOtpVerify, service: AuthServiceDep) -> TokenResponse:
    return await service.verify_email_otp(data)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(data: RefreshRequest, service: AuthServiceDep) -> TokenResponse:
    return await service.refresh(data.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    # Tokens are stateless; the client drops them.
    return MessageResponse(message="Logged out")


@router.get("/check", response_model=UserResponse)
async def check(user: CurrentUserDep) -> UserResponse:
    return UserResponse.model_validate(user)


@router.post("/phone/send-otp", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def send_phone_otp(
    data: PhoneOtpRequest,
    user: CurrentUserDep,
    service: AuthServiceDep,
) -> MessageResponse:
    await service.send_phone_otp(user, data.phone)
    return MessageResponse(message="Verification code sent")


@router.post("/phone/verify-otp", response_model=UserResponse)
async def verify_phone_otp(
    data: PhoneOtpVerify,
    user: CurrentUserDep,
    service: AuthServiceDep,
) -> UserResponse:
    updated = await service.verify_phone_otp(user, data.phone, data.code)
    return UserResponse.model_validate(updated)


@router.post("/phone/verify-firebase", response_model=UserResponse)
async def verify_firebase_phone(
    data: FirebasePhoneVerify,
    user: CurrentUserDep,
    service: AuthServiceDep,
) -> UserResponse:
    updated = await service.verify_firebase_phone(user, data.id_token)
    return UserResponse.model_validate(updated)
