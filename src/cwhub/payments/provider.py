"""
Payment provider (mocked).

Stands in for the external gateway: hands out an order id and checkout URL
for a pending payment, and signs/verifies the success callback with a shared
secret. Only a correctly signed callback may confirm a payment without a
user session.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from cwhub.config import get_settings

if TYPE_CHECKING:
    from cwhub.db.models import Payment


@dataclass(frozen=True)
class ProviderOrder:
    order_id: str
    checkout_url: str


class MockPaymentProvider:
    def __init__(self, secret: str, checkout_base_url: str, return_url: str) -> None:
        self._secret = secret.encode()
        self.checkout_base_url = checkout_base_url
        self.return_url = return_url

    def create_order(self, payment: Payment) -> ProviderOrder:
        """Register the payment with the provider and get a checkout URL."""
        order_id = f"mock{payment.id.replace('-', '')[:28]}"
        query = urlencode(
            {
                "prepay_id": order_id,
                "amount": f"{payment.amount:.2f}",
                "redirect_url": self.return_url,
            }
        )
        return ProviderOrder(order_id=order_id, checkout_url=f"{self.checkout_base_url}?{query}")

    def sign(self, payment_id: str, status: str) -> str:
        """HMAC-SHA256 signature the provider attaches to its callback."""
        message = f"{payment_id}:{status}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def verify_signature(self, payment_id: str, status: str, signature: str) -> bool:
        """Constant-time check of a callback signature, compared as bytes."""
        return hmac.compare_digest(self.sign(payment_id, status).encode(), signature.encode())


def get_payment_provider() -> MockPaymentProvider:
    """Provider configured from settings (FastAPI dependency, overridable in tests)."""
    settings = get_settings()
    return MockPaymentProvider(
        secret=settings.payment_provider_secret,
        checkout_base_url=settings.payment_checkout_base_url,
        return_url=f"{settings.public_base_url}/payment/success",
    )
