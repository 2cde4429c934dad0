from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import aliased, joinedload

from syncpay.models.payment_model import Payment, PaymentStatus
from syncpay.repository.base_repository import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    def __init__(self):
        super().__init__(Payment)

    async def create_pending(self, db: AsyncSession, **fields) -> Payment:
        payment = Payment(status=PaymentStatus.PENDING, **fields)
        db.add(payment)
        await db.flush()
        return payment

    async def get_payment(self, db: AsyncSession, payment_id: str, *, fresh: bool = False) -> Optional[Payment]:
        stmt = select(Payment).options(joinedload(Payment.plan)).where(Payment.id == payment_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalars().first()

    async def get_by_order_id(self, db: AsyncSession, order_id: str, *, fresh: bool = False) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.gateway_order_id == order_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalars().first()

    async def mark_success_if_pending(
        self,
        db: AsyncSession,
        order_id: str,
        *,
        gateway_payment_id: str,
        gateway_signature: str,
        paid_at: datetime,
    ) -> bool:
        """Compare-and-swap pending -> success. Returns True only for the caller that won the transition."""
        stmt = (
            update(Payment)
            .where(Payment.gateway_order_id == order_id, Payment.status == PaymentStatus.PENDING)
            .values(
                status=PaymentStatus.SUCCESS,
                gateway_payment_id=gateway_payment_id,
                gateway_signature=gateway_signature,
                paid_at=paid_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    async def list_stale_pending_order_ids(self, db: AsyncSession, created_before: datetime) -> List[str]:
        stmt = (
            select(Payment.gateway_order_id)
            .where(Payment.status == PaymentStatus.PENDING, Payment.created_at < created_before)
            .order_by(Payment.created_at.asc())
        )
        result = await db.execute(stmt)
        return result.scalars().all()

    async def mark_failed_if_pending(self, db: AsyncSession, order_id: str) -> bool:
        """Compare-and-swap pending -> failed. A row settled in the meantime is left alone."""
        stmt = (
            update(Payment)
            .where(Payment.gateway_order_id == order_id, Payment.status == PaymentStatus.PENDING)
            .values(status=PaymentStatus.FAILED)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    async def assign_invoice_number_if_absent(self, db: AsyncSession, payment_id: str) -> bool:
        """
        Assigns the next invoice sequence only when the row has none yet.
        A concurrent allocation for a different payment can pick the same
        sequence; the unique constraint rejects the loser with IntegrityError.
        """
        numbered = aliased(Payment)
        next_number = select(func.coalesce(func.max(numbered.invoice_number), 0) + 1).scalar_subquery()
        stmt = (
            update(Payment)
            .where(Payment.id == payment_id, Payment.invoice_number.is_(None))
            .values(invoice_number=next_number)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    async def list_by_company(
        self, db: AsyncSession, company_id: str, skip: int = 0, limit: int = 100
    ) -> Tuple[List[Payment], int]:
        stmt = (
            select(Payment)
            .where(Payment.company_id == company_id)
            .order_by(Payment.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(stmt)
        items = result.scalars().all()

        count_stmt = select(func.count()).select_from(Payment).where(Payment.company_id == company_id)
        total = await db.scalar(count_stmt) or 0
        return items, total

    async def existing_order_ids(self, db: AsyncSession, order_ids: Iterable[str]) -> Set[str]:
        order_ids = list(order_ids)
        if not order_ids:
            return set()
        result = await db.execute(select(Payment.gateway_order_id).where(Payment.gateway_order_id.in_(order_ids)))
        return set(result.scalars().all())


payment_repository = PaymentRepository()
