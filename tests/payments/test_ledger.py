"""Tests for the payment ledger and entitlement upgrade."""

import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select

from cwhub.auth.credentials import register_local
from cwhub.database import get_session_factory
from cwhub.db.models import EntitlementGrant, User
from cwhub.errors import AlreadyEntitled, Forbidden, Invalid, NotFound
from cwhub.payments.entitlement import count_grants, grant_premium
from cwhub.payments.ledger import (
    COMPLETED,
    PENDING,
    confirm_payment,
    create_payment,
    get_payment_status,
    list_payments,
)
from cwhub.payments.provider import get_payment_provider


@pytest_asyncio.fixture
async def buyer(db_session) -> User:
    return await register_local(db_session, "buyer", "abc123")


@pytest_asyncio.fixture
async def stranger(db_session) -> User:
    return await register_local(db_session, "stranger", "abc123")


@pytest.fixture
def provider():
    return get_payment_provider()


class TestGrantPremium:
    async def test_grant_is_idempotent(self, db_session, buyer):
        assert await grant_premium(db_session, buyer.id) is True
        await db_session.commit()
        assert await grant_premium(db_session, buyer.id) is False
        await db_session.commit()

        await db_session.refresh(buyer)
        assert buyer.is_premium is True
        assert await count_grants(db_session, buyer.id) == 1

    async def test_unknown_user_is_not_granted(self, db_session):
        assert await grant_premium(db_session, "no-such-user") is False


class TestCreatePayment:
    async def test_creates_pending_with_checkout(self, db_session, buyer, provider):
        payment, order = await create_payment(db_session, buyer, Decimal("20"), provider)
        assert payment.status == PENDING
        assert payment.amount == Decimal("20")
        assert payment.provider_order_id == order.order_id
        assert order.checkout_url.startswith(provider.checkout_base_url)
        assert "amount=20.00" in order.checkout_url

        await db_session.refresh(buyer)
        assert buyer.is_premium is False

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
    async def test_non_positive_amount(self, db_session, buyer, provider, amount):
        with pytest.raises(Invalid):
            await create_payment(db_session, buyer, amount, provider)

    async def test_premium_user_already_entitled(self, db_session, buyer, provider):
        await grant_premium(db_session, buyer.id)
        await db_session.commit()
        with pytest.raises(AlreadyEntitled):
            await create_payment(db_session, buyer, Decimal("20"), provider)


class TestConfirmPayment:
    async def test_confirm_grants_premium(self, db_session, buyer, provider):
        payment, _ = await create_payment(db_session, buyer, Decimal("20"), provider)
        result = await confirm_payment(db_session, payment.id)
        assert result.transitioned is True
        assert result.premium_granted is True
        assert result.payment.status == COMPLETED
        assert result.payment.completed_at is not None

        await db_session.refresh(buyer)
        assert buyer.is_premium is True

    async def test_double_confirm_transitions_once(self, db_session, buyer, provider):
        payment, _ = await create_payment(db_session, buyer, Decimal("20"), provider)
        first = await confirm_payment(db_session, payment.id)
        second = await confirm_payment(db_session, payment.id, caller_id=buyer.id)

        assert first.transitioned is True
        assert second.transitioned is False
        assert second.payment.status == COMPLETED
        assert await count_grants(db_session, buyer.id) == 1

        grant = (await db_session.execute(select(EntitlementGrant))).scalar_one()
        assert grant.payment_id == payment.id

    async def test_concurrent_confirm_transitions_once(self, db_session, buyer, provider):
        payment, _ = await create_payment(db_session, buyer, Decimal("20"), provider)
        factory = get_session_factory()

        async def attempt():
            async with factory() as db:
                return await confirm_payment(db, payment.id)

        results = await asyncio.gather(*(attempt() for _ in range(3)))

        assert sum(r.transitioned for r in results) == 1
        assert all(r.payment.status == COMPLETED for r in results)
        assert await count_grants(db_session, buyer.id) == 1

    async def test_other_user_cannot_confirm(self, db_session, buyer, stranger, provider):
        payment, _ = await create_payment(db_session, buyer, Decimal("20"), provider)
        with pytest.raises(Forbidden):
            await confirm_payment(db_session, payment.id, caller_id=stranger.id)

        status = await get_payment_status(db_session, payment.id)
        assert status.status == PENDING

    async def test_unknown_payment(self, db_session):
        with pytest.raises(NotFound):
            await confirm_payment(db_session, "no-such-payment")

    async def test_second_payment_after_upgrade_grants_nothing(self, db_session, buyer, provider):
        """Two pending payments both confirmed: the flag flips once."""
        first, _ = await create_payment(db_session, buyer, Decimal("20"), provider)
        second, _ = await create_payment(db_session, buyer, Decimal("20"), provider)

        assert (await confirm_payment(db_session, first.id)).premium_granted is True
        result = await confirm_payment(db_session, second.id)
        assert result.transitioned is True
        assert result.premium_granted is False
        assert await count_grants(db_session, buyer.id) == 1


class TestPaymentQueries:
    async def test_status_hidden_from_other_users(self, db_session, buyer, stranger, provider):
        payment, _ = await create_payment(db_session, buyer, Decimal("20"), provider)
        assert (await get_payment_status(db_session, payment.id, caller_id=buyer.id)).id == payment.id
        with pytest.raises(NotFound):
            await get_payment_status(db_session, payment.id, caller_id=stranger.id)

    async def test_list_payments_only_own(self, db_session, buyer, stranger, provider):
        mine, _ = await create_payment(db_session, buyer, Decimal("20"), provider)
        await create_payment(db_session, stranger, Decimal("30"), provider)
        assert [p.id for p in await list_payments(db_session, buyer.id)] == [mine.id]
