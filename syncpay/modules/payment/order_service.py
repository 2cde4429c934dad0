import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.exceptions import InvalidInputError, InvalidPlanError, PersistenceError, UnauthorizedError
from syncpay.models.payment_model import BillingCycle
from syncpay.models.plan_model import Plan
from syncpay.modules.payment.gateway_client import RazorpayClient
from syncpay.modules.payment.pricing import compute_amount, to_gateway_amount
from syncpay.repository.payment_repository import payment_repository
from syncpay.repository.plan_repository import plan_repository
from syncpay.utils.activity_logger import log_activity
from syncpay.utils.generators import generate_receipt_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreatedOrder:
    gateway_order_id: str
    amount: Decimal
    currency: str
    payment_id: str


class OrderService:
    def __init__(self, gateway: RazorpayClient, currency: str = "INR"):
        self.gateway = gateway
        self.currency = currency

    async def resolve_plan(self, db: AsyncSession, plan_id: Optional[str]) -> Plan:
        """Plan catalog lookup: an unknown or retired plan is an InvalidPlanError."""
        if not plan_id:
            raise InvalidPlanError()
        plan = await plan_repository.get_plan(db, plan_id)
        if not plan or not plan.is_active:
            raise InvalidPlanError()
        return plan

    async def create_order(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        plan_id: Optional[str],
        billing_cycle: Optional[str],
        company_id: Optional[str],
    ) -> CreatedOrder:
        if not user_id:
            raise UnauthorizedError()
        if not company_id:
            raise InvalidInputError("company_id is required")
        billing_cycle = billing_cycle or BillingCycle.MONTHLY
        if billing_cycle not in BillingCycle.ALL:
            raise InvalidInputError(f"Unsupported billing cycle: {billing_cycle}")

        plan = await self.resolve_plan(db, plan_id)
        amount = compute_amount(plan.monthly_price, billing_cycle)

        order = await self.gateway.create_order(
            amount=to_gateway_amount(amount),
            currency=self.currency,
            receipt=generate_receipt_id(),
            notes={
                "plan_id": plan.id,
                "company_id": company_id,
                "user_id": user_id,
                "billing_cycle": billing_cycle,
            },
        )

        # No compensating cancel exists for the gateway order: if this insert
        # fails the order is orphaned and picked up by the orphan sweep.
        try:
            payment = await payment_repository.create_pending(
                db,
                user_id=user_id,
                company_id=company_id,
                plan_id=plan.id,
                amount=amount,
                currency=self.currency,
                billing_cycle=billing_cycle,
                gateway_order_id=order.id,
            )
            await log_activity(
                db,
                user_id=user_id,
                activity_type_category="Billing/Order",
                company_id=company_id,
                activity_description=f"Opened order {order.id} for plan {plan.name} ({billing_cycle}), amount {amount} {self.currency}",
                commit=False,
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Ledger insert failed after gateway order {order.id} was created (orphaned): {e}")
            raise PersistenceError("Could not record the payment order, please retry")

        logger.info(f"Pending payment {payment.id} recorded for gateway order {order.id}")
        return CreatedOrder(
            gateway_order_id=order.id,
            amount=amount,
            currency=self.currency,
            payment_id=payment.id,
        )
