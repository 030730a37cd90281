"""
Repositories for users and one-time codes.
"""

from typing import Protocol

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.models import OtpCode, OtpPurpose, User


class UserRepositoryProtocol(Protocol):
    """Protocol for user repository operations."""

    async def get_by_id(self, user_id: int) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def create(self, email: str, name: str) -> User: ...


class UserRepository:
    """Repository for user database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: int) -> User | None:
        return await self._session.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.lower())
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_verified_phone(self, phone: str) -> User | None:
        stmt = select(User).where(User.phone == phone, User.phone_verified.is_(True))
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def create(self, email: str, name: str) -> User:
        """Create a user.

        Args:
            email: Login email, stored lowercased.
            name: Display name used in generated calls.

        Returns:
            The persisted user.
        """
        user = User(email=email.lower(), name=name)
        self._session.add(user)
        await self._session.flush()
        return user

    async def add_credits(self, user_id: int, amount: int) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(call_credits=User.call_credits + amount)
        )
        await self._session.execute(stmt)

    async def deduct_credit(self, user_id: int) -> bool:
        """Atomically take one credit. Returns False when the balance is zero."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.call_credits > 0)
            .values(call_credits=User.call_credits - 1)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1


class OtpRepository:
    """Repository for pending one-time codes."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def replace(self, otp: OtpCode) -> OtpCode:
        """Store a code, discarding earlier codes for the same target or user."""
        clauses = [OtpCode.target == otp.target]
        if otp.user_id is not None:
            clauses.append(OtpCode.user_id == otp.user_id)
        await self._session.execute(
            delete(OtpCode).where(OtpCode.purpose == otp.purpose, or_(*clauses))
        )
        self._session.add(otp)
        await self._session.flush()
        return otp

    async def find(self, purpose: OtpPurpose, target: str) -> OtpCode | None:
        stmt = (
            select(OtpCode)
            .where(OtpCode.purpose == purpose, OtpCode.target == target)
            .order_by(OtpCode.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def find_for_user(self, purpose: OtpPurpose, user_id: int) -> OtpCode | None:
        stmt = (
            select(OtpCode)
            .where(OtpCode.purpose == purpose, OtpCode.user_id == user_id)
            .order_by(OtpCode.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def remove(self, otp: OtpCode) -> None:
        await self._session.delete(otp)
        await self._session.flush()
