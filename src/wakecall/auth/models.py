"""
SQLAlchemy models for authentication.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Enum as SQLEnum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wakecall.shared.database import Base, UTCDateTime, utcnow


class OtpPurpose(str, Enum):
    """What a one-time code authorizes."""

    EMAIL_LOGIN = "email_login"
    EMAIL_REGISTER = "email_register"
    PHONE = "phone"


class User(Base):
    """Application user."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    phone_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_personalized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    call_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    welcome_email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class OtpCode(Base):
    """A pending one-time code. Only the hash of the code is stored."""

    __tablename__ = "otp_codes"
    __table_args__ = (Index("ix_otp_purpose_target", "purpose", "target"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    purpose: Mapped[OtpPurpose] = mapped_column(
        SQLEnum(OtpPurpose, name="otp_purpose", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    target: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
