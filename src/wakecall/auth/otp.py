"""
One-time passcode issuing and verification.

Codes are random decimal strings drawn from ``secrets``. Only a SHA-256 hash
is persisted; a code is deleted as soon as it is used, expires, or runs out
of attempts.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.models import OtpCode, OtpPurpose
from wakecall.auth.repository import OtpRepository
from wakecall.config import Settings, get_settings
from wakecall.shared.exceptions import OtpError
from wakecall.shared.logging import get_logger

logger = get_logger(__name__)


def generate_code(length: int = 6) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


class OtpManager:
    """Issues and checks one-time codes for a single purpose."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._repo = OtpRepository(session)

    async def issue(
        self,
        purpose: OtpPurpose,
        target: str,
        user_id: int | None = None,
        name: str | None = None,
        now: datetime | None = None,
    ) -> str:
        """Create a fresh code, replacing any pending one.

        Args:
            purpose: What the code authorizes.
            target: Email address or phone number the code is sent to.
            user_id: Owner, when the user already exists.
            name: Display name carried through a registration.
            now: Clock override.

        Returns:
            The plaintext code, to be handed to a delivery channel.
        """
        now = now or datetime.now(timezone.utc)
        code = generate_code(self._settings.otp_length)
        await self._repo.replace(
            OtpCode(
                purpose=purpose,
                target=target,
                user_id=user_id,
                name=name,
                code_hash=hash_code(code),
                expires_at=now + timedelta(minutes=self._settings.otp_expire_minutes),
                attempts=0,
                created_at=now,
            )
        )
        logger.info(
            "OTP issued",
            extra={"purpose": purpose.value, "user_id": user_id},
        )
        return code

    async def consume(
        self,
        otp: OtpCode | None,
        code: str,
        now: datetime | None = None,
    ) -> OtpCode:
        """Check ``code`` against a pending record and consume it.

        A wrong code counts an attempt; the increment is committed before the
        error propagates so the request rollback cannot undo it.
        """
        now = now or datetime.now(timezone.utc)

        if otp is None:
            raise OtpError(
                "No verification code found. Please request a new one.",
                "OTP_NOT_FOUND",
            )

        if otp.expires_at <= now:
            await self._repo.remove(otp)
            await self._session.commit()
            raise OtpError("Verification code has expired", "OTP_EXPIRED")

        if otp.attempts >= self._settings.otp_max_attempts:
            await self._repo.remove(otp)
            await self._session.commit()
            raise OtpError(
                "Too many incorrect attempts. Please request a new code.",
                "OTP_LOCKED",
            )

        if not hmac.compare_digest(otp.code_hash, hash_code(code.strip())):
            otp.attempts += 1
            await self._session.commit()
            logger.info(
                "OTP mismatch",
                extra={"purpose": otp.purpose.value, "attempts": otp.attempts},
            )
            raise OtpError("Incorrect verification code", "OTP_INCORRECT")

        await self._repo.remove(otp)
        return otp

    async def verify(
        self,
        purpose: OtpPurpose,
        target: str,
        code: str,
        now: datetime | None = None,
    ) -> OtpCode:
        otp = await self._repo.find(purpose, target)
        return await self.consume(otp, code, now=now)

    async def pending_for_user(self, purpose: OtpPurpose, user_id: int) -> OtpCode | None:
        return await self._repo.find_for_user(purpose, user_id)
