"""
Authentication dependencies for JWT validation.

This module exposes:
- get_current_user
- CurrentUserDep (FastAPI dependency resolving the ``User`` row)
- VerifiedUserDep (additionally requires a verified phone)
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.jwt import JWTService
from wakecall.auth.models import User
from wakecall.auth.repository import UserRepository
from wakecall.config import Settings, get_settings
from wakecall.shared.database import get_db_session
from wakecall.shared.exceptions import AuthenticationError, PermissionDeniedError
from wakecall.shared.logging import get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    """Extract and validate the current user from the Bearer token."""
    if credentials is None:
        logger.warning(
            "Missing authentication credentials",
            extra={"endpoint": str(request.url.path), "method": request.method},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "MISSING_CREDENTIALS",
                "message": "Authentication credentials required",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = JWTService(settings).validate_access_token(credentials.credentials)
    except AuthenticationError as e:
        logger.info(
            "Rejected token",
            extra={"endpoint": str(request.url.path), "code": e.code},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": e.code, "message": e.message},
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    user = await UserRepository(session).get_by_id(int(payload["sub"]))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "USER_NOT_FOUND", "message": "User not found"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


async def require_verified_phone(user: CurrentUserDep) -> User:
    if not user.phone or not user.phone_verified:
        raise PermissionDeniedError(
            "Please verify your phone number first",
            "PHONE_NOT_VERIFIED",
        )
    return user


VerifiedUserDep = Annotated[User, Depends(require_verified_phone)]
