import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.exceptions import (
    ConfigurationError,
    InvalidInputError,
    OrderNotFoundError,
    PaymentConflictError,
    PersistenceError,
    SignatureMismatchError,
)
from syncpay.models.payment_model import BillingCycle, Payment, PaymentStatus
from syncpay.modules.payment.pricing import period_end_for
from syncpay.modules.payment.signature import verify_signature
from syncpay.repository.payment_repository import payment_repository
from syncpay.repository.subscription_repository import subscription_repository
from syncpay.utils.activity_logger import log_activity
from syncpay.utils.helpers import utcnow

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("syncpay.security")


@dataclass(frozen=True)
class ReconcileResult:
    activated: bool
    payment_id: str
    replayed: bool
    current_period_start: datetime
    current_period_end: datetime


class ReconciliationService:
    """
    Matches a gateway's signed payment claim to the ledger and activates the
    company's subscription.

    The ledger row moves pending -> success through a compare-and-swap, so a
    duplicated callback can win the transition at most once. The subscription
    period is derived from the ledger (paid_at + billing cycle), which makes a
    replay able to restore a missing projection without extending it.
    """

    def __init__(self, gateway_secret: str, clock: Optional[Callable[[], datetime]] = None):
        if not gateway_secret:
            raise ConfigurationError("Payment gateway is not configured")
        self.gateway_secret = gateway_secret
        self._clock = clock or utcnow

    @staticmethod
    def _resolve_cycle(billing_cycle: Optional[str]) -> Tuple[str, bool]:
        if billing_cycle in BillingCycle.ALL:
            return billing_cycle, False
        return BillingCycle.MONTHLY, True

    async def _record_signature_mismatch(self, db: AsyncSession, order_id: str, payment_id: str) -> None:
        security_logger.warning(f"Signature mismatch for order {order_id} (payment {payment_id})")
        try:
            await log_activity(
                db,
                user_id=None,
                activity_type_category="Security/Signature",
                company_id=None,
                activity_description=f"Rejected callback with invalid signature for order {order_id}, payment {payment_id}",
            )
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Could not persist signature mismatch audit entry for order {order_id}: {e}")

    async def _record_late_payment(self, db: AsyncSession, payment: Payment, payment_id: str) -> None:
        # Money moved at the gateway for a row already failed by the expiry job.
        logger.error(
            f"Validly signed payment {payment_id} arrived for failed order {payment.gateway_order_id} "
            f"(company {payment.company_id}); needs manual refund or settlement"
        )
        await log_activity(
            db,
            user_id=payment.user_id,
            activity_type_category="Billing/LatePayment",
            company_id=payment.company_id,
            activity_description=(
                f"Gateway payment {payment_id} for order {payment.gateway_order_id} ({payment.amount} {payment.currency}) "
                f"arrived after the ledger entry {payment.id} was failed; refund or settle manually"
            ),
            commit=False,
        )

    async def reconcile(
        self,
        db: AsyncSession,
        order_id: str,
        payment_id: str,
        signature: str,
        company_id: str,
        plan_id: str,
    ) -> ReconcileResult:
        for name, value in (
            ("order_id", order_id),
            ("payment_id", payment_id),
            ("signature", signature),
            ("company_id", company_id),
            ("plan_id", plan_id),
        ):
            if not value or not isinstance(value, str):
                raise InvalidInputError(f"{name} is required")

        if not verify_signature(order_id, payment_id, signature, self.gateway_secret):
            await self._record_signature_mismatch(db, order_id, payment_id)
            raise SignatureMismatchError()

        try:
            payment = await payment_repository.get_by_order_id(db, order_id)
            if not payment:
                raise OrderNotFoundError(order_id)
            if payment.company_id != company_id or payment.plan_id != plan_id:
                raise InvalidInputError("company_id or plan_id does not match the order")

            now = self._clock()
            won = await payment_repository.mark_success_if_pending(
                db,
                order_id,
                gateway_payment_id=payment_id,
                gateway_signature=signature,
                paid_at=now,
            )
            if won:
                result = await self._activate(db, payment, now)
                await db.commit()
                logger.info(
                    f"Payment {payment.id} settled; company {company_id} active until {result.current_period_end.isoformat()}"
                )
                return result

            payment = await payment_repository.get_by_order_id(db, order_id, fresh=True)
            if payment.status == PaymentStatus.SUCCESS and payment.gateway_payment_id == payment_id:
                result = await self._restore_projection(db, payment)
                await db.commit()
                logger.info(f"Replayed callback for order {order_id}; payment {payment.id} already settled")
                return result

            if payment.status == PaymentStatus.FAILED:
                await self._record_late_payment(db, payment, payment_id)
                await db.commit()
                raise PaymentConflictError(
                    f"Order {order_id} expired before payment {payment_id} arrived; flagged for manual settlement"
                )

            raise PaymentConflictError(f"Order {order_id} is already {payment.status}")
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Reconciliation of order {order_id} failed to persist: {e}")
            raise PersistenceError("Could not record the payment, please retry")

    async def _activate(self, db: AsyncSession, payment: Payment, paid_at: datetime) -> ReconcileResult:
        cycle, flagged = self._resolve_cycle(payment.billing_cycle)
        period_end = period_end_for(paid_at, cycle)

        await subscription_repository.upsert_active(
            db,
            company_id=payment.company_id,
            plan_id=payment.plan_id,
            period_start=paid_at,
            period_end=period_end,
            payment_id=payment.id,
        )
        if flagged:
            logger.warning(f"Payment {payment.id} has unknown billing cycle {payment.billing_cycle!r}; defaulted to monthly")
            await log_activity(
                db,
                user_id=payment.user_id,
                activity_type_category="Billing/Audit",
                company_id=payment.company_id,
                activity_description=f"Billing cycle {payment.billing_cycle!r} of payment {payment.id} unknown; activated one monthly period",
                commit=False,
            )
        await log_activity(
            db,
            user_id=payment.user_id,
            activity_type_category="Billing/Activation",
            company_id=payment.company_id,
            activity_description=f"Order {payment.gateway_order_id} paid; subscription active until {period_end.isoformat()}",
            commit=False,
        )
        return ReconcileResult(
            activated=True,
            payment_id=payment.id,
            replayed=False,
            current_period_start=paid_at,
            current_period_end=period_end,
        )

    async def _restore_projection(self, db: AsyncSession, payment: Payment) -> ReconcileResult:
        # Only inserts when the company has no subscription row; an existing
        # period (this one or a later one) is never touched on replay.
        cycle, _ = self._resolve_cycle(payment.billing_cycle)
        paid_at = payment.paid_at or self._clock()
        period_end = period_end_for(paid_at, cycle)
        await subscription_repository.insert_if_absent(
            db,
            company_id=payment.company_id,
            plan_id=payment.plan_id,
            period_start=paid_at,
            period_end=period_end,
            payment_id=payment.id,
        )
        return ReconcileResult(
            activated=True,
            payment_id=payment.id,
            replayed=True,
            current_period_start=paid_at,
            current_period_end=period_end,
        )
