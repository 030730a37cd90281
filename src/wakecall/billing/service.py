"""
Credit balance, trial status and purchase fulfilment.
"""

import hashlib
import hmac

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.models import User
from wakecall.auth.repository import UserRepository
from wakecall.billing.bundles import BUNDLES, get_bundle
from wakecall.billing.models import Purchase
from wakecall.billing.schemas import BundleOut, PurchaseNotification, PurchaseResult, TrialStatusOut
from wakecall.calls.repository import CallHistoryRepository
from wakecall.config import Settings, get_settings
from wakecall.shared.exceptions import NotFoundError, ValidationError
from wakecall.shared.logging import get_logger

logger = get_logger(__name__)


def sign_payload(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class BillingService:
    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._users = UserRepository(session)
        self._history = CallHistoryRepository(session)

    @staticmethod
    def bundles() -> list[BundleOut]:
        return [
            BundleOut(
                id=b.id,
                name=b.name,
                price_cents=b.price_cents,
                credits=b.credits,
                currency=b.currency,
            )
            for b in BUNDLES.values()
        ]

    async def trial_status(self, user: User) -> TrialStatusOut:
        first_free = not await self._history.has_scheduled_call(user.id)
        return TrialStatusOut(
            call_credits=user.call_credits,
            calls_made=await self._history.count_for_user(user.id),
            is_first_call_free=first_free,
            has_credits=first_free or user.call_credits > 0,
        )

    def verify_signature(self, body: bytes, signature: str) -> bool:
        """HMAC-SHA256 of the raw body, hex encoded. Always False without a secret."""
        secret = self._settings.billing_webhook_secret
        if not secret or not signature:
            return False
        return hmac.compare_digest(sign_payload(secret, body), signature.strip().lower())

    async def apply_purchase(self, notification: PurchaseNotification) -> PurchaseResult:
        """Grant the bundle's credits once per purchase reference.

        Raises:
            ValidationError: Unknown bundle or amount mismatch.
            NotFoundError: Unknown user.
        """
        bundle = get_bundle(notification.bundle_id)
        if bundle is None:
            raise ValidationError(
                f"Unknown bundle {notification.bundle_id!r}",
                details={"bundle_id": notification.bundle_id},
            )
        if notification.amount_cents is not None and notification.amount_cents != bundle.price_cents:
            raise ValidationError(
                "Paid amount does not match the bundle price",
                details={"expected": bundle.price_cents, "received": notification.amount_cents},
            )

        user = await self._users.get_by_id(notification.user_id)
        if user is None:
            raise NotFoundError("User not found", "USER_NOT_FOUND")

        existing = await self._session.execute(
            select(Purchase).where(Purchase.reference == notification.reference)
        )
        if existing.scalar_one_or_none() is not None:
            logger.info("Purchase already applied", extra={"reference": notification.reference})
            return PurchaseResult(applied=False, credits_granted=0, call_credits=user.call_credits)

        purchase = Purchase(
            reference=notification.reference,
            user_id=user.id,
            bundle_id=bundle.id,
            credits=bundle.credits,
            amount_cents=bundle.price_cents,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(purchase)
                await self._session.flush()
        except IntegrityError:
            logger.info("Purchase applied concurrently", extra={"reference": notification.reference})
            return PurchaseResult(applied=False, credits_granted=0, call_credits=user.call_credits)

        await self._users.add_credits(user.id, bundle.credits)
        await self._session.commit()
        await self._session.refresh(user)

        logger.info(
            "Purchase applied",
            extra={
                "reference": notification.reference,
                "user_id": user.id,
                "bundle_id": bundle.id,
                "credits": bundle.credits,
                "balance": user.call_credits,
            },
        )
        return PurchaseResult(applied=True, credits_granted=bundle.credits, call_credits=user.call_credits)
