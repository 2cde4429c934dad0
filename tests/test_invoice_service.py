from datetime import datetime
from decimal import Decimal
from unittest.mock import patch

import fitz
import pytest
import pytest_asyncio
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select

from syncpay.core.exceptions import (
    AccessDeniedError,
    InvalidInputError,
    PaymentNotFoundError,
    PersistenceError,
    UnauthorizedError,
)
from syncpay.models import Payment
from syncpay.modules.invoice.service import InvoiceService
from syncpay.repository.payment_repository import payment_repository


@pytest.fixture
def invoice_service():
    return InvoiceService(brand_name="SYNC", support_email="support@sync.app")


async def _add_payment(session_factory, payment_id, status="success", company_id="c1", invoice_number=None):
    async with session_factory() as session:
        session.add(Payment(
            id=payment_id,
            user_id="u1",
            company_id=company_id,
            plan_id="p1",
            amount=Decimal("500"),
            currency="INR",
            billing_cycle="monthly",
            gateway_order_id=f"order_{payment_id}",
            gateway_payment_id=f"pay_{payment_id}" if status == "success" else None,
            status=status,
            invoice_number=invoice_number,
            created_at=datetime(2026, 3, 5, 14, 30),
            paid_at=datetime(2026, 3, 5, 14, 31) if status == "success" else None,
        ))
        await session.commit()


async def _invoice_number(session_factory, payment_id):
    async with session_factory() as session:
        result = await session.execute(select(Payment.invoice_number).where(Payment.id == payment_id))
        return result.scalar_one()


@pytest_asyncio.fixture
async def paid(session_factory):
    await _add_payment(session_factory, "a1")
    return "a1"


@pytest.mark.asyncio
async def test_invoice_for_own_company(invoice_service, db, session_factory, paid):
    invoice = await invoice_service.generate_invoice(db, user_id="u1", payment_id=paid)

    assert invoice.invoice_number == "INV-000001"
    assert invoice.filename == "INV-000001.pdf"
    assert invoice.media_type == "application/pdf"
    assert invoice.content.startswith(b"%PDF")
    assert await _invoice_number(session_factory, paid) == 1

    with fitz.open(stream=invoice.content, filetype="pdf") as doc:
        text = doc[0].get_text()
    assert "INV-000001" in text
    assert "Acme Corp" in text
    assert "Pro Plan (monthly)" in text
    assert "pay_a1" in text


@pytest.mark.asyncio
async def test_other_company_is_denied_before_rendering(invoice_service, db, session_factory, paid):
    with patch("syncpay.modules.invoice.service.render_invoice_pdf") as render:
        with pytest.raises(AccessDeniedError) as exc_info:
            await invoice_service.generate_invoice(db, user_id="u2", payment_id=paid)

    assert exc_info.value.status_code == 403
    render.assert_not_called()
    assert await _invoice_number(session_factory, paid) is None


@pytest.mark.asyncio
async def test_unknown_user_is_denied(invoice_service, db, paid):
    with pytest.raises(AccessDeniedError):
        await invoice_service.generate_invoice(db, user_id="ghost", payment_id=paid)


@pytest.mark.asyncio
async def test_missing_payment_is_not_found(invoice_service, db):
    with pytest.raises(PaymentNotFoundError):
        await invoice_service.generate_invoice(db, user_id="u1", payment_id="nope")


@pytest.mark.asyncio
async def test_anonymous_caller_is_unauthorized(invoice_service, db, paid):
    with pytest.raises(UnauthorizedError):
        await invoice_service.generate_invoice(db, user_id=None, payment_id=paid)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["pending", "failed"])
async def test_unsettled_payment_has_no_invoice(invoice_service, db, session_factory, status):
    await _add_payment(session_factory, "open", status=status)
    with pytest.raises(InvalidInputError):
        await invoice_service.generate_invoice(db, user_id="u1", payment_id="open")
    assert await _invoice_number(session_factory, "open") is None


@pytest.mark.asyncio
async def test_invoice_number_is_assigned_once(invoice_service, session_factory, paid):
    async with session_factory() as session:
        first = await invoice_service.generate_invoice(session, user_id="u1", payment_id=paid)
    async with session_factory() as session:
        second = await invoice_service.generate_invoice(session, user_id="u1", payment_id=paid)

    assert first.invoice_number == second.invoice_number == "INV-000001"
    assert await _invoice_number(session_factory, paid) == 1


@pytest.mark.asyncio
async def test_invoice_numbers_are_sequential_across_payments(invoice_service, db, session_factory, paid):
    await _add_payment(session_factory, "a2")

    first = await invoice_service.generate_invoice(db, user_id="u1", payment_id=paid)
    second = await invoice_service.generate_invoice(db, user_id="u1", payment_id="a2")

    assert first.invoice_number == "INV-000001"
    assert second.invoice_number == "INV-000002"


@pytest.mark.asyncio
async def test_sequence_continues_after_highest_number(invoice_service, db, session_factory, paid):
    await _add_payment(session_factory, "old", invoice_number=41)

    invoice = await invoice_service.generate_invoice(db, user_id="u1", payment_id=paid)

    assert invoice.invoice_number == "INV-000042"


@pytest.mark.asyncio
async def test_racing_allocations_see_the_same_number(invoice_service, session_factory, paid):
    async with session_factory() as first_session, session_factory() as second_session:
        # both callers loaded the row before either allocated
        assert (await payment_repository.get_payment(first_session, paid)).invoice_number is None
        assert (await payment_repository.get_payment(second_session, paid)).invoice_number is None

        first = await invoice_service.allocate_invoice_number(first_session, paid)
        second = await invoice_service.allocate_invoice_number(second_session, paid)

    assert first == second == 1
    assert await _invoice_number(session_factory, paid) == 1


@pytest.mark.asyncio
async def test_collision_with_concurrent_allocation_is_retried(invoice_service, db, session_factory, paid):
    real_assign = payment_repository.assign_invoice_number_if_absent
    calls = []

    async def collide_once(session, payment_id):
        calls.append(payment_id)
        if len(calls) == 1:
            raise IntegrityError("UPDATE payments", {}, Exception("UNIQUE constraint failed: payments.invoice_number"))
        return await real_assign(session, payment_id)

    with patch.object(payment_repository, "assign_invoice_number_if_absent", side_effect=collide_once):
        number = await invoice_service.allocate_invoice_number(db, paid)

    assert number == 1
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_allocation_gives_up_after_repeated_collisions(db, paid):
    service = InvoiceService(brand_name="SYNC", support_email="support@sync.app", max_allocation_attempts=3)

    async def always_collide(session, payment_id):
        raise IntegrityError("UPDATE payments", {}, Exception("UNIQUE constraint failed"))

    with patch.object(payment_repository, "assign_invoice_number_if_absent", side_effect=always_collide) as assign:
        with pytest.raises(PersistenceError):
            await service.allocate_invoice_number(db, paid)
    assert assign.call_count == 3
