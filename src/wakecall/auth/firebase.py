"""
Firebase phone-auth ID token verification.

The client completes phone sign-in with Firebase and posts the resulting ID
token. The token is RS256-signed by Google's ``securetoken`` service account;
signing keys are fetched as a JWKS and cached.
"""

import time
from typing import Any

import httpx
import jwt

from wakecall.config import Settings, get_settings
from wakecall.shared.exceptions import InvalidTokenError
from wakecall.shared.logging import get_logger

logger = get_logger(__name__)

SECURETOKEN_JWKS_URI = (
    "https://www.googleapis.com/service_accounts/v1/jwk/"
    "securetoken@system.gserviceaccount.com"
)
SECURETOKEN_ISSUER = "https://securetoken.google.com/"


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens and extracts the verified phone number."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.Client | None = None,
        jwks_uri: str = SECURETOKEN_JWKS_URI,
        cache_ttl_seconds: int = 3600,
    ) -> None:
        self._settings = settings or get_settings()
        self._http_client = http_client
        self._jwks_uri = jwks_uri
        self._cache_ttl = cache_ttl_seconds
        self._keys: dict[str, jwt.PyJWK] = {}
        self._last_fetch: float = 0

    def _get_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=httpx.Timeout(10.0))
        return self._http_client

    def _refresh_keys(self) -> None:
        now = time.time()
        if self._keys and now - self._last_fetch < self._cache_ttl:
            return

        try:
            response = self._get_client().get(self._jwks_uri)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.exception("Failed to fetch Firebase signing keys")
            raise InvalidTokenError(
                "Unable to verify phone token",
                details={"error": str(e)},
            ) from e

        keys: dict[str, jwt.PyJWK] = {}
        for key_data in response.json().get("keys", []):
            kid = key_data.get("kid")
            if kid:
                keys[kid] = jwt.PyJWK(key_data, algorithm="RS256")
        self._keys = keys
        self._last_fetch = now

    def verify(self, id_token: str) -> dict[str, Any]:
        """Verify signature, issuer and audience; return the claims.

        Raises:
            InvalidTokenError: When the token is not a valid phone sign-in.
        """
        project_id = self._settings.firebase_project_id
        if not project_id:
            raise InvalidTokenError("Firebase phone verification is not configured")

        try:
            header = jwt.get_unverified_header(id_token)
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError("Malformed phone token") from e

        self._refresh_keys()
        key = self._keys.get(header.get("kid", ""))
        if key is None:
            raise InvalidTokenError("Unknown signing key", details={"kid": header.get("kid")})

        try:
            claims = jwt.decode(
                id_token,
                key=key.key,
                algorithms=["RS256"],
                audience=project_id,
                issuer=f"{SECURETOKEN_ISSUER}{project_id}",
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("Phone token has expired") from e
        except jwt.InvalidTokenError as e:
            logger.warning("Firebase token rejected", extra={"error": str(e)})
            raise InvalidTokenError("Invalid phone token", details={"error": str(e)}) from e

        if not claims.get("phone_number"):
            raise InvalidTokenError("Phone token carries no phone number")

        return claims
