"""
Call credit bundles offered at checkout.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Bundle:
    id: str
    name: str
    price_cents: int
    credits: int
    currency: str = "usd"


BUNDLES: dict[str, Bundle] = {
    b.id: b
    for b in (
        Bundle(id="20_calls", name="20 Wake-up Calls", price_cents=999, credits=20),
        Bundle(id="50_calls", name="50 Wake-up Calls", price_cents=1999, credits=50),
    )
}


def get_bundle(bundle_id: str) -> Bundle | None:
    return BUNDLES.get(bundle_id)
