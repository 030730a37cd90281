"""
Pydantic schemas for billing endpoints.
"""

from pydantic import BaseModel, Field


class BundleOut(BaseModel):
    id: str
    name: str
    price_cents: int
    credits: int
    currency: str


class TrialStatusOut(BaseModel):
    call_credits: int
    calls_made: int
    is_first_call_free: bool
    has_credits: bool


class PurchaseNotification(BaseModel):
    """Body of a signed purchase notification from the checkout provider."""

    reference: str = Field(..., min_length=1, max_length=255)
    user_id: int
    bundle_id: str
    amount_cents: int | None = None


class PurchaseResult(BaseModel):
    applied: bool
    credits_granted: int
    call_credits: int
