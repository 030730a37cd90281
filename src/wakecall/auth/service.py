"""
Authentication service: email OTP sessions and phone verification.
"""

import anyio
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.firebase import FirebaseTokenVerifier
from wakecall.auth.jwt import JWTService
from wakecall.auth.models import OtpPurpose, User
from wakecall.auth.otp import OtpManager
from wakecall.auth.repository import UserRepository
from wakecall.auth.schemas import (
    EmailOtpRequest,
    EmailOtpVerify,
    TokenResponse,
    UserResponse,
)
from wakecall.config import Settings, get_settings
from wakecall.notifications.email import EmailSender, otp_email
from wakecall.shared.exceptions import (
    ConflictError,
    InvalidTokenError,
    NotFoundError,
    OtpError,
    ValidationError,
)
from wakecall.shared.logging import get_logger
from wakecall.telephony.interface import SmsRequest, TelephonyProvider

logger = get_logger(__name__)


class AuthService:
    """Passwordless login plus phone ownership checks."""

    def __init__(
        self,
        session: AsyncSession,
        email_sender: EmailSender,
        telephony_provider: TelephonyProvider,
        sms_from_number: str,
        settings: Settings | None = None,
        firebase_verifier: FirebaseTokenVerifier | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._email_sender = email_sender
        self._telephony = telephony_provider
        self._sms_from = sms_from_number
        self._firebase = firebase_verifier
        self._users = UserRepository(session)
        self._otp = OtpManager(session, self._settings)
        self._jwt = JWTService(self._settings)

    async def request_email_otp(self, data: EmailOtpRequest) -> None:
        """Issue a login or registration code and email it."""
        email = data.email.lower()
        existing = await self._users.get_by_email(email)

        if data.mode == "register":
            if existing is not None:
                raise ConflictError(
                    "An account with this email already exists",
                    "EMAIL_TAKEN",
                )
            if not data.name:
                raise ValidationError("Name is required to register")
            purpose = OtpPurpose.EMAIL_REGISTER
            code = await self._otp.issue(purpose, email, name=data.name)
        else:
            if existing is None:
                raise NotFoundError("No account found for this email", "USER_NOT_FOUND")
            purpose = OtpPurpose.EMAIL_LOGIN
            code = await self._otp.issue(purpose, email, user_id=existing.id)

        await self._session.commit()
        await self._email_sender.send(
            otp_email(email, code, self._settings.otp_expire_minutes)
        )

    async def verify_email_otp(self, data: EmailOtpVerify) -> TokenResponse:
        email = data.email.lower()
        purpose = OtpPurpose.EMAIL_REGISTER if data.mode == "register" else OtpPurpose.EMAIL_LOGIN
        otp = await self._otp.verify(purpose, email, data.code)

        user = await self._users.get_by_email(email)
        if purpose is OtpPurpose.EMAIL_REGISTER:
            if user is not None:
                raise ConflictError(
                    "An account with this email already exists",
                    "EMAIL_TAKEN",
                )
            user = await self._users.create(email=email, name=otp.name or email.split("@")[0])
            logger.info("User registered", extra={"user_id": user.id})
        elif user is None:
            raise NotFoundError("No account found for this email", "USER_NOT_FOUND")

        await self._session.commit()
        await self._session.refresh(user)
        logger.info("User logged in", extra={"user_id": user.id, "remember_me": data.remember_me})
        return self._issue_tokens(user, remember_me=data.remember_me)

    async def refresh(self, refresh_token: str) -> TokenResponse:
        payload = self._jwt.validate_refresh_token(refresh_token)
        user = await self._users.get_by_id(int(payload["sub"]))
        if user is None:
            raise InvalidTokenError("User not found")
        return self._issue_tokens(user, remember_me=bool(payload.get("remember_me")))

    def _issue_tokens(self, user: User, remember_me: bool) -> TokenResponse:
        return TokenResponse(
            access_token=self._jwt.create_access_token(user.id, user.email),
            refresh_token=self._jwt.create_refresh_token(user.id, remember_me=remember_me),
            expires_in=self._jwt.access_token_expires_in,
            user=UserResponse.model_validate(user),
        )

    async def _ensure_phone_available(self, user: User, phone: str) -> None:
        owner = await self._users.get_by_verified_phone(phone)
        if owner is not None and owner.id != user.id:
            raise ConflictError(
                "This phone number is already linked to another account",
                "PHONE_TAKEN",
            )

    async def send_phone_otp(self, user: User, phone: str) -> None:
        """Text a verification code to ``phone``."""
        await self._ensure_phone_available(user, phone)
        code = await self._otp.issue(OtpPurpose.PHONE, phone, user_id=user.id)
        await self._session.commit()

        await self._telephony.send_sms(
            SmsRequest(
                to=phone,
                from_number=self._sms_from,
                body=(
                    f"Your wakecall verification code is {code}. "
                    f"It expires in {self._settings.otp_expire_minutes} minutes."
                ),
            )
        )

    async def verify_phone_otp(self, user: User, phone: str, code: str) -> User:
        pending = await self._otp.pending_for_user(OtpPurpose.PHONE, user.id)
        if pending is not None and pending.target != phone:
            raise OtpError("Phone number doesn't match our records", "PHONE_MISMATCH")

        await self._otp.consume(pending, code)
        await self._ensure_phone_available(user, phone)
        return await self._mark_phone_verified(user, phone)

    async def verify_firebase_phone(self, user: User, id_token: str) -> User:
        if self._firebase is None:
            raise InvalidTokenError("Firebase phone verification is not configured")
        claims = await anyio.to_thread.run_sync(self._firebase.verify, id_token)
        phone = claims["phone_number"]
        await self._ensure_phone_available(user, phone)
        return await self._mark_phone_verified(user, phone)

    async def _mark_phone_verified(self, user: User, phone: str) -> User:
        user.phone = phone
        user.phone_verified = True
        await self._session.commit()
        await self._session.refresh(user)
        logger.info("Phone verified", extra={"user_id": user.id})
        return user
