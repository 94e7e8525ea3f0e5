"""Payment gateway placeholder.

No real gateway is integrated: a checkout is an opaque ``PAY-xxxxxxxx``
reference and a hosted-page URL built from ``PAYMENT_BASE_URL``.
"""
from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

from app.config import get_settings


@dataclass(frozen=True)
class PaymentSession:
    gateway: str
    payment_id: str
    payment_url: str


def create_payment_session(escrow_id: str, amount: int, currency: str, method: str) -> PaymentSession:
    settings = get_settings()
    payment_id = f"PAY-{uuid4().hex[:8].upper()}"
    return PaymentSession(
        gateway=settings.PAYMENT_GATEWAY_NAME,
        payment_id=payment_id,
        payment_url=f"{settings.PAYMENT_BASE_URL}/{payment_id}",
    )
