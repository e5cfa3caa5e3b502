"""Request/response schemas for payment endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class CreatePaymentRequest(BaseModel):
    """Start an upgrade. Amount defaults to the configured upgrade price."""

    amount: Decimal | None = Field(None, max_digits=10, decimal_places=2)


class CreatePaymentResponse(BaseModel):
    payment_id: str
    amount: Decimal
    status: str
    checkout_url: str


class ProviderCallbackRequest(BaseModel):
    """Inbound event from the payment provider."""

    payment_id: str
    status: str
    signature: str = Field(..., min_length=64, max_length=64)


class SimulateSuccessRequest(BaseModel):
    """Owner-initiated confirmation used in place of a real provider round trip."""

    payment_id: str


class ConfirmResponse(BaseModel):
    payment_id: str
    status: str
    transitioned: bool
    is_premium: bool


class PaymentStatusResponse(BaseModel):
    payment_id: str
    status: str
    amount: Decimal
    created_at: datetime | None = None
    completed_at: datetime | None = None


class PaymentHistoryResponse(BaseModel):
    payments: list[PaymentStatusResponse]
