from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.future import select

from syncpay.core.exceptions import SignatureMismatchError
from syncpay.models import ActivityLog, Payment, Subscription
from syncpay.modules.payment.order_service import OrderService
from syncpay.modules.payment.reconciliation_service import ReconciliationService
from syncpay.modules.payment.signature import compute_signature

TEST_SECRET = "test_secret"
PAID_AT = datetime(2026, 3, 10, 10, 0, 0)


async def _ledger(session_factory):
    async with session_factory() as session:
        payments = (await session.execute(select(Payment))).scalars().all()
        subscriptions = (await session.execute(select(Subscription))).scalars().all()
    return payments, subscriptions


@pytest.mark.asyncio
async def test_order_to_active_subscription(db, session_factory, gateway_client):
    """Checkout, settlement, a duplicated callback and a forged one, in order."""
    order_service = OrderService(gateway_client, currency="INR")
    reconciliation = ReconciliationService(TEST_SECRET, clock=lambda: PAID_AT)

    # checkout opens a pending ledger row for the plan price
    created = await order_service.create_order(db, user_id="u1", plan_id="p1", billing_cycle="monthly", company_id="c1")
    assert created.amount == Decimal("500")

    payments, subscriptions = await _ledger(session_factory)
    assert [(p.gateway_order_id, p.status, p.amount) for p in payments] == [
        (created.gateway_order_id, "pending", Decimal("500")),
    ]
    assert subscriptions == []

    # the signed callback settles the row and activates the company
    signature = compute_signature(created.gateway_order_id, "pay_1", TEST_SECRET)
    async with session_factory() as session:
        result = await reconciliation.reconcile(session, created.gateway_order_id, "pay_1", signature, "c1", "p1")
    assert result.activated is True
    assert result.replayed is False

    payments, subscriptions = await _ledger(session_factory)
    assert [(p.status, p.gateway_payment_id, p.paid_at) for p in payments] == [("success", "pay_1", PAID_AT)]
    assert len(subscriptions) == 1
    subscription = subscriptions[0]
    assert (subscription.company_id, subscription.plan_id, subscription.status) == ("c1", "p1", "active")
    assert subscription.current_period_start == PAID_AT
    assert subscription.current_period_end == datetime(2026, 4, 10, 10, 0, 0)
    assert subscription.payment_id == payments[0].id

    # a duplicated callback changes nothing
    async with session_factory() as session:
        replay = await reconciliation.reconcile(session, created.gateway_order_id, "pay_1", signature, "c1", "p1")
    assert replay.replayed is True
    assert replay.current_period_end == result.current_period_end

    payments, subscriptions = await _ledger(session_factory)
    assert [(p.status, p.gateway_payment_id) for p in payments] == [("success", "pay_1")]
    assert [(s.status, s.current_period_end) for s in subscriptions] == [("active", datetime(2026, 4, 10, 10, 0, 0))]

    # a forged signature is refused and audited, the ledger stays as it was
    tampered = signature[:-1] + ("0" if signature[-1] != "0" else "1")
    async with session_factory() as session:
        with pytest.raises(SignatureMismatchError):
            await reconciliation.reconcile(session, created.gateway_order_id, "pay_2", tampered, "c1", "p1")

    payments, subscriptions = await _ledger(session_factory)
    assert [(p.status, p.gateway_payment_id) for p in payments] == [("success", "pay_1")]
    assert [(s.status, s.current_period_end) for s in subscriptions] == [("active", datetime(2026, 4, 10, 10, 0, 0))]
    async with session_factory() as session:
        categories = (await session.execute(select(ActivityLog.activity_type_category))).scalars().all()
    assert "Security/Signature" in categories
