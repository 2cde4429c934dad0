import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.exceptions import (
    AccessDeniedError,
    InvalidInputError,
    PaymentNotFoundError,
    PersistenceError,
    UnauthorizedError,
)
from syncpay.models.payment_model import PaymentStatus
from syncpay.modules.invoice.renderer import build_invoice_document, render_invoice_pdf
from syncpay.repository.company_repository import company_repository
from syncpay.repository.payment_repository import payment_repository
from syncpay.repository.user_repository import user_repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedInvoice:
    invoice_number: str
    filename: str
    content: bytes
    media_type: str = "application/pdf"


class InvoiceService:
    def __init__(self, brand_name: str, support_email: str, max_allocation_attempts: int = 5):
        self.brand_name = brand_name
        self.support_email = support_email
        self.max_allocation_attempts = max_allocation_attempts

    async def allocate_invoice_number(self, db: AsyncSession, payment_id: str) -> int:
        """
        Returns the payment's invoice sequence, assigning the next one if it has
        none. Safe under concurrency: only one assignment can succeed per
        payment, and every caller reads back the persisted value.
        """
        for attempt in range(1, self.max_allocation_attempts + 1):
            try:
                assigned = await payment_repository.assign_invoice_number_if_absent(db, payment_id)
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info(f"Invoice number collision for payment {payment_id} (attempt {attempt}), retrying")
                continue
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Invoice number allocation failed for payment {payment_id}: {e}")
                raise PersistenceError("Could not allocate an invoice number, please retry")

            payment = await payment_repository.get_payment(db, payment_id, fresh=True)
            if payment is not None and payment.invoice_number is not None:
                if assigned:
                    logger.info(f"Assigned invoice number {payment.invoice_number} to payment {payment_id}")
                return payment.invoice_number

        raise PersistenceError("Could not allocate an invoice number, please retry")

    async def generate_invoice(self, db: AsyncSession, user_id: Optional[str], payment_id: Optional[str]) -> RenderedInvoice:
        if not user_id:
            raise UnauthorizedError("Unauthorized")
        if not payment_id:
            raise InvalidInputError("Payment ID required")

        payment = await payment_repository.get_payment(db, payment_id)
        if not payment:
            raise PaymentNotFoundError()

        requester = await user_repository.get_user(db, user_id)
        if requester is None or requester.company_id != payment.company_id:
            logger.warning(f"User {user_id} denied invoice for payment {payment_id} of another company")
            raise AccessDeniedError()

        if payment.status != PaymentStatus.SUCCESS:
            raise InvalidInputError("Invoice is only available for completed payments")

        if payment.invoice_number is None:
            await self.allocate_invoice_number(db, payment_id)
            payment = await payment_repository.get_payment(db, payment_id, fresh=True)

        company = await company_repository.get_company(db, payment.company_id)

        document = build_invoice_document(
            invoice_sequence=payment.invoice_number,
            created_at=payment.created_at,
            status=payment.status,
            amount=payment.amount,
            currency=payment.currency,
            billing_cycle=payment.billing_cycle,
            gateway_payment_id=payment.gateway_payment_id,
            plan_name=payment.plan.name if payment.plan else None,
            company_name=company.name if company else None,
            billing_details=company.billing_details if company else None,
            brand_name=self.brand_name,
            support_email=self.support_email,
        )
        return RenderedInvoice(
            invoice_number=document.invoice_number,
            filename=f"{document.invoice_number}.pdf",
            content=render_invoice_pdf(document),
        )
