"""JWT token handling for session management."""

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError as PyJWTInvalidTokenError

from wakecall.config import Settings, get_settings
from wakecall.shared.exceptions import InvalidTokenError, TokenExpiredError
from wakecall.shared.logging import get_logger

logger = get_logger(__name__)


class JWTService:
    """Creates and validates the access/refresh token pair."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def create_access_token(self, user_id: int, email: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "email": email,
            "type": "access",
            "iat": now,
            "exp": now + timedelta(minutes=self._settings.jwt_access_token_expire_minutes),
        }
        return jwt.encode(
            payload,
            self._settings.jwt_secret_key,
            algorithm=self._settings.jwt_algorithm,
        )

    def create_refresh_token(self, user_id: int, remember_me: bool = False) -> str:
        """Create a refresh token; remember-me stretches its lifetime."""
        now = datetime.now(timezone.utc)
        days = (
            self._settings.jwt_remember_me_expire_days
            if remember_me
            else self._settings.jwt_refresh_token_expire_days
        )
        payload = {
            "sub": str(user_id),
            "type": "refresh",
            "remember_me": remember_me,
            "iat": now,
            "exp": now + timedelta(days=days),
        }
        return jwt.encode(
            payload,
            self._settings.jwt_secret_key,
            algorithm=self._settings.jwt_algorithm,
        )

    def decode_token(self, token: str) -> dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self._settings.jwt_secret_key,
                algorithms=[self._settings.jwt_algorithm],
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except PyJWTInvalidTokenError as e:
            logger.warning("Invalid token", extra={"error": str(e)})
            raise InvalidTokenError(details={"error": str(e)}) from e

    def validate_access_token(self, token: str) -> dict[str, Any]:
        payload = self.decode_token(token)
        if payload.get("type") != "access":
            raise InvalidTokenError(
                "Invalid token type",
                details={"expected": "access", "got": payload.get("type")},
            )
        return payload

    def validate_refresh_token(self, token: str) -> dict[str, Any]:
        payload = self.decode_token(token)
        if payload.get("type") != "refresh":
            raise InvalidTokenError(
                "Invalid token type",
                details={"expected": "refresh", "got": payload.get("type")},
            )
        return payload

    @property
    def access_token_expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return self._settings.jwt_access_token_expire_minutes * 60
