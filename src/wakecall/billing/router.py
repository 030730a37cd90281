"""
FastAPI routers for bundles, trial status and purchase notifications.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.middleware import CurrentUserDep
from wakecall.billing.schemas import BundleOut, PurchaseNotification, PurchaseResult, TrialStatusOut
from wakecall.billing.service import BillingService
from wakecall.shared.database import get_db_session
from wakecall.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/billing", tags=["billing"])
webhook_router = APIRouter(prefix="/webhooks/billing", tags=["webhooks"])

SIGNATURE_HEADER = "X-Billing-Signature"


def get_billing_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> BillingService:
    return BillingService(session)


BillingServiceDep = Annotated[BillingService, Depends(get_billing_service)]


@router.get("/bundles", response_model=list[BundleOut])
async def list_bundles() -> list[BundleOut]:
    return BillingService.bundles()


@router.get("/trial-status", response_model=TrialStatusOut)
async def trial_status(user: CurrentUserDep, service: BillingServiceDep) -> TrialStatusOut:
    return await service.trial_status(user)


@webhook_router.post("/purchase", response_model=PurchaseResult)
async def purchase_notification(request: Request, service: BillingServiceDep) -> PurchaseResult:
    body = await request.body()
    if not service.verify_signature(body, request.headers.get(SIGNATURE_HEADER, "")):
        logger.warning("Purchase notification signature rejected")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "INVALID_SIGNATURE", "message": "Invalid webhook signature"},
        )

    try:
        notification = PurchaseNotification.model_validate_json(body)
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "code": "VALIDATION_ERROR",
                "message": "Malformed purchase notification",
                "errors": e.errors(include_url=False, include_context=False),
            },
        ) from e

    return await service.apply_purchase(notification)
