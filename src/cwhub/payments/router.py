"""Payment router: /api/payment/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cwhub.auth.credentials import get_user_by_id
from cwhub.auth.dependencies import require_user
from cwhub.auth.gate import enforce_session_gate
from cwhub.config import get_settings
from cwhub.database import get_session
from cwhub.db.models import Payment, User
from cwhub.errors import Forbidden, Invalid, NotFound
from cwhub.payments.ledger import (
    ConfirmResult,
    confirm_payment,
    create_payment,
    get_payment_status,
    list_payments,
)
from cwhub.payments.provider import MockPaymentProvider, get_payment_provider
from cwhub.payments.schemas import (
    ConfirmResponse,
    CreatePaymentRequest,
    CreatePaymentResponse,
    PaymentHistoryResponse,
    PaymentStatusResponse,
    ProviderCallbackRequest,
    SimulateSuccessRequest,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/payment", tags=["Payments"], dependencies=[Depends(enforce_session_gate)])

PROVIDER_SUCCESS = "success"


def _status_response(payment: Payment) -> PaymentStatusResponse:
    return PaymentStatusResponse(
        payment_id=payment.id,
        status=payment.status,
        amount=payment.amount,
        created_at=payment.created_at,
        completed_at=payment.completed_at,
    )


async def _confirm_response(db: AsyncSession, result: ConfirmResult) -> ConfirmResponse:
    owner = await get_user_by_id(db, result.payment.user_id)
    if owner is not None:
        await db.refresh(owner, attribute_names=["is_premium"])
    return ConfirmResponse(
        payment_id=result.payment.id,
        status=result.payment.status,
        transitioned=result.transitioned,
        is_premium=bool(owner and owner.is_premium),
    )


@router.post("/create", response_model=CreatePaymentResponse, name="api_payment_create")
async def create(
    body: CreatePaymentRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    provider: MockPaymentProvider = Depends(get_payment_provider),
) -> CreatePaymentResponse:
    """Open a pending upgrade payment and return the provider checkout URL."""
    amount = body.amount if body.amount is not None else get_settings().default_upgrade_amount
    payment, order = await create_payment(db, user, amount, provider)
    return CreatePaymentResponse(
        payment_id=payment.id,
        amount=payment.amount,
        status=payment.status,
        checkout_url=order.checkout_url,
    )


@router.post("/callback", response_model=ConfirmResponse, name="api_payment_callback")
async def provider_callback(
    body: ProviderCallbackRequest,
    db: AsyncSession = Depends(get_session),
    provider: MockPaymentProvider = Depends(get_payment_provider),
) -> ConfirmResponse:
    """Provider notification. Trusted only with a valid signature; no session needed."""
    if not provider.verify_signature(body.payment_id, body.status, body.signature):
        logger.warning("payment_callback_bad_signature", payment_id=body.payment_id)
        msg = "Invalid provider signature"
        raise Forbidden(msg)
    if body.status != PROVIDER_SUCCESS:
        msg = f"Unsupported payment status: {body.status}"
        raise Invalid(msg)

    result = await confirm_payment(db, body.payment_id)
    return await _confirm_response(db, result)


@router.post("/simulate-success", response_model=ConfirmResponse, name="api_payment_simulate")
async def simulate_success(
    body: SimulateSuccessRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> ConfirmResponse:
    """Confirm one of the caller's own payments without the provider (test/demo flow)."""
    if not get_settings().payment_simulation_enabled:
        msg = "Payment simulation is disabled"
        raise NotFound(msg)
    result = await confirm_payment(db, body.payment_id, caller_id=user.id)
    return await _confirm_response(db, result)


@router.get("/status/{payment_id}", response_model=PaymentStatusResponse, name="api_payment_status")
async def status(
    payment_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> PaymentStatusResponse:
    """Status and amount of one of the caller's payments."""
    return _status_response(await get_payment_status(db, payment_id, caller_id=user.id))


@router.get("/history", response_model=PaymentHistoryResponse, name="api_payment_history")
async def history(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> PaymentHistoryResponse:
    """The caller's payments, newest first."""
    return PaymentHistoryResponse(payments=[_status_response(p) for p in await list_payments(db, user.id)])
