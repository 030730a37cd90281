"""
FastAPI router for telephony webhook endpoints.

The provider retries any non-2xx response, so every request with a valid
signature is acknowledged with 200, including ones we cannot use.
"""

from typing import Annotated
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.shared.database import get_db_session
from wakecall.shared.logging import get_logger
from wakecall.telephony.factory import get_telephony_config, get_telephony_provider
from wakecall.telephony.interface import TelephonyProvider, WebhookParseError
from wakecall.telephony.webhooks.handler import WebhookHandler

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks/telephony", tags=["webhooks"])

SIGNATURE_HEADER = "X-Twilio-Signature"


def _signed_url(request: Request) -> str:
    """The URL the provider signed: our public callback URL plus the query string."""
    url = get_telephony_config().get_webhook_url(request.url.path)
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


def _payload(request: Request, body: bytes) -> dict[str, str]:
    payload: dict[str, str] = dict(request.query_params)
    for key, values in parse_qs(body.decode("utf-8", errors="replace"), keep_blank_values=True).items():
        payload[key] = values[-1]
    return payload


@router.post("/status")
async def telephony_status(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db_session)],
    provider: Annotated[TelephonyProvider, Depends(get_telephony_provider)],
) -> Response:
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER, "")

    if not provider.validate_webhook_signature(body, signature, _signed_url(request)):
        logger.warning("Telephony webhook signature rejected", extra={"path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "INVALID_SIGNATURE", "message": "Invalid webhook signature"},
        )

    payload = _payload(request, body)
    try:
        event = provider.parse_webhook_event(payload)
    except WebhookParseError as e:
        logger.warning(
            "Unparseable telephony webhook acknowledged",
            extra={"error_code": e.error_code, "keys": sorted(payload)},
        )
        return Response(status_code=status.HTTP_200_OK)

    try:
        await WebhookHandler(session).handle_event(event)
    except SQLAlchemyError:
        logger.exception(
            "Failed to store telephony webhook",
            extra={"provider_call_id": event.provider_call_id},
        )
        await session.rollback()

    return Response(status_code=status.HTTP_200_OK)
