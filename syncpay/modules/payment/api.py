import math

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.config import GatewayConfig
from syncpay.core.dependencies import (
    get_current_user,
    get_db,
    get_gateway_config,
    get_order_service,
    get_reconciliation_service,
)
from syncpay.core.exceptions import AccessDeniedError, InvalidInputError
from syncpay.models.user_model import Users
from syncpay.modules.payment.order_service import OrderService
from syncpay.modules.payment.reconciliation_service import ReconciliationService
from syncpay.repository.payment_repository import payment_repository
from syncpay.schemas.payment_schema import (
    CreateOrderRequest,
    CreateOrderResponse,
    Payment,
    PaymentListResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)

router = APIRouter()


@router.post("/create-payment-order", response_model=CreateOrderResponse)
async def create_payment_order(
    request: CreateOrderRequest,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    order_service: OrderService = Depends(get_order_service),
    gateway_config: GatewayConfig = Depends(get_gateway_config),
):
    if not current_user.company_id:
        raise InvalidInputError("User is not a member of a company")
    company_id = request.company_id or current_user.company_id
    if company_id != current_user.company_id:
        raise AccessDeniedError("Cannot open an order for another company")

    order = await order_service.create_order(
        db,
        user_id=current_user.id,
        plan_id=request.plan_id,
        billing_cycle=request.billing_cycle,
        company_id=company_id,
    )
    return CreateOrderResponse(
        order_id=order.gateway_order_id,
        amount=order.amount,
        currency=order.currency,
        key_id=gateway_config.key_id,
    )


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
async def verify_payment(
    request: VerifyPaymentRequest,
    db: AsyncSession = Depends(get_db),
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
):
    # Called from the checkout callback; the gateway signature is the credential.
    result = await reconciliation_service.reconcile(
        db,
        order_id=request.order_id,
        payment_id=request.payment_id,
        signature=request.signature,
        company_id=request.company_id,
        plan_id=request.plan_id,
    )
    return VerifyPaymentResponse(
        success=result.activated,
        replayed=result.replayed,
        current_period_end=result.current_period_end,
    )


@router.get("/payments", response_model=PaymentListResponse)
async def list_company_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not current_user.company_id:
        raise InvalidInputError("User is not a member of a company")
    skip = (page - 1) * limit
    items, total = await payment_repository.list_by_company(db, current_user.company_id, skip=skip, limit=limit)
    total_pages = math.ceil(total / limit) if total else 0
    return PaymentListResponse(
        items=[Payment.model_validate(item) for item in items],
        total=total,
        current_page=page,
        total_pages=total_pages,
    )
