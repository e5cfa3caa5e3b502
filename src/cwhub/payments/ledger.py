"""
Payment ledger: upgrade payments and their state machine.

    pending -> completed

There is no failed or cancelled state; an unconfirmed payment stays pending.
Confirmation is a compare-and-swap on the status column, and the premium
grant runs in the same transaction, so concurrent or repeated confirmations
move the payment once and grant once.

Who may confirm: the payment provider (signed callback, checked by the
router before calling confirm_payment with no caller) or the user who owns
the payment (caller_id must match). Nobody else.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select, update

from cwhub.db.models import Payment, User
from cwhub.errors import AlreadyEntitled, Conflict, Forbidden, Invalid, NotFound
from cwhub.payments.entitlement import grant_premium

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cwhub.payments.provider import MockPaymentProvider, ProviderOrder

logger = structlog.get_logger()

PENDING = "pending"
COMPLETED = "completed"

VALID_TRANSITIONS: dict[str, list[str]] = {
    PENDING: [COMPLETED],
    COMPLETED: [],
}


def validate_transition(current: str, target: str) -> None:
    """Raise Invalid unless current -> target is an allowed move."""
    allowed = VALID_TRANSITIONS.get(current)
    if allowed is None or target not in allowed:
        msg = f"Invalid transition: {current} -> {target}"
        raise Invalid(msg)


@dataclass(frozen=True)
class ConfirmResult:
    payment: Payment
    transitioned: bool
    premium_granted: bool


async def _get_payment(db: AsyncSession, payment_id: str, *, refresh: bool = False) -> Payment:
    stmt = select(Payment).where(Payment.id == payment_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    payment = (await db.execute(stmt)).scalar_one_or_none()
    if payment is None:
        msg = "Payment not found"
        raise NotFound(msg)
    return payment


async def create_payment(
    db: AsyncSession,
    user: User,
    amount: Decimal,
    provider: MockPaymentProvider,
) -> tuple[Payment, ProviderOrder]:
    """
    Open a pending upgrade payment for the user.

    Raises:
        Invalid: If amount is not positive.
        AlreadyEntitled: If the user is already premium.
    """
    if amount <= 0:
        msg = "Amount must be positive"
        raise Invalid(msg)

    await db.refresh(user, attribute_names=["is_premium"])
    if user.is_premium:
        raise AlreadyEntitled

    payment = Payment(user_id=user.id, amount=amount, status=PENDING, created_at=datetime.now(timezone.utc))
    db.add(payment)
    await db.flush()

    order = provider.create_order(payment)
    payment.provider_order_id = order.order_id
    await db.commit()

    logger.info("payment_created", payment_id=payment.id, user_id=user.id, amount=str(amount))
    return payment, order


async def confirm_payment(
    db: AsyncSession,
    payment_id: str,
    *,
    caller_id: str | None = None,
) -> ConfirmResult:
    """
    Move a payment to completed and grant premium to its owner.

    Re-confirming a completed payment is a successful no-op.

    Raises:
        NotFound: Unknown payment id.
        Forbidden: caller_id is given and does not own the payment.
    """
    payment = await _get_payment(db, payment_id)
    if caller_id is not None and payment.user_id != caller_id:
        logger.warning("payment_confirm_forbidden", payment_id=payment_id, caller_id=caller_id)
        msg = "Payment belongs to another user"
        raise Forbidden(msg)

    if payment.status == COMPLETED:
        return ConfirmResult(payment=payment, transitioned=False, premium_granted=False)
    validate_transition(payment.status, COMPLETED)

    result = await db.execute(
        update(Payment)
        .where(Payment.id == payment_id)
        .where(Payment.status == PENDING)
        .values(status=COMPLETED, completed_at=datetime.now(timezone.utc))
    )
    if not result.rowcount:
        # Another confirmation committed first.
        await db.rollback()
        payment = await _get_payment(db, payment_id, refresh=True)
        if payment.status != COMPLETED:
            msg = f"Payment is {payment.status}"
            raise Conflict(msg)
        return ConfirmResult(payment=payment, transitioned=False, premium_granted=False)

    granted = await grant_premium(db, payment.user_id, payment_id=payment.id)
    await db.commit()

    payment = await _get_payment(db, payment_id, refresh=True)
    logger.info("payment_completed", payment_id=payment.id, user_id=payment.user_id, premium_granted=granted)
    return ConfirmResult(payment=payment, transitioned=True, premium_granted=granted)


async def get_payment_status(db: AsyncSession, payment_id: str, *, caller_id: str | None = None) -> Payment:
    """
    Look up a payment.

    With caller_id, payments owned by someone else are reported as NotFound
    so ids cannot be probed.
    """
    payment = await _get_payment(db, payment_id)
    if caller_id is not None and payment.user_id != caller_id:
        msg = "Payment not found"
        raise NotFound(msg)
    return payment


async def list_payments(db: AsyncSession, user_id: str) -> Sequence[Payment]:
    """The user's payments, newest first."""
    result = await db.execute(select(Payment).where(Payment.user_id == user_id).order_by(Payment.created_at.desc()))
    return result.scalars().all()
