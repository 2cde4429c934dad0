import logging
from datetime import datetime, timedelta, timezone
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.exceptions import GatewayError
from syncpay.modules.payment.gateway_client import GatewayOrder, RazorpayClient
from syncpay.repository.payment_repository import payment_repository
from syncpay.repository.subscription_repository import subscription_repository
from syncpay.utils.activity_logger import log_activity

logger = logging.getLogger(__name__)


UNPAID_ORDER_STATUS = "created"


async def expire_stale_pending_payments(
    db: AsyncSession,
    gateway: RazorpayClient,
    now: datetime,
    ttl_hours: int,
) -> int:
    """
    Abandoned checkouts: pending rows older than the TTL move to failed, but
    only when the gateway confirms the order was never attempted. Gateway
    orders stay payable past the TTL, so an attempted or paid order keeps its
    row pending for the callback to settle.
    """
    cutoff = now - timedelta(hours=ttl_hours)
    order_ids = await payment_repository.list_stale_pending_order_ids(db, created_before=cutoff)

    count = 0
    for order_id in order_ids:
        try:
            order = await gateway.fetch_order(order_id)
        except GatewayError as e:
            logger.warning(f"Could not check gateway order {order_id}, leaving it pending: {e.detail}")
            continue

        if order.status != UNPAID_ORDER_STATUS or order.attempts:
            logger.warning(
                f"Stale pending payment for order {order_id} kept: gateway reports status {order.status!r}, "
                f"{order.attempts} attempts"
            )
            continue

        if await payment_repository.mark_failed_if_pending(db, order_id):
            count += 1

    if count:
        logger.info(f"Marked {count} pending payments created before {cutoff.isoformat()} as failed")
    return count


async def expire_subscriptions(db: AsyncSession, now: datetime) -> int:
    count = await subscription_repository.deactivate_expired(db, now)
    if count:
        logger.info(f"Deactivated {count} subscriptions whose period ended before {now.isoformat()}")
    return count


async def find_orphaned_gateway_orders(
    db: AsyncSession,
    gateway: RazorpayClient,
    now: datetime,
    lookback_hours: int,
) -> List[GatewayOrder]:
    """
    Reports gateway orders with no ledger row, i.e. orders whose ledger insert
    failed after the gateway accepted them. Orders are reported, not cancelled.
    """
    anchored = now if now.tzinfo else now.replace(tzinfo=timezone.utc)
    created_from = int((anchored - timedelta(hours=lookback_hours)).timestamp())
    created_to = int(anchored.timestamp())

    orders = await gateway.list_orders(created_from=created_from, created_to=created_to)
    known = await payment_repository.existing_order_ids(db, (order.id for order in orders))
    orphans = [order for order in orders if order.id not in known]

    for order in orphans:
        logger.warning(f"Gateway order {order.id} (receipt {order.receipt}) has no ledger entry")
        await log_activity(
            db,
            user_id=None,
            activity_type_category="Billing/Orphan",
            company_id=None,
            activity_description=(
                f"Gateway order {order.id} for {order.amount} {order.currency} "
                f"(notes: {order.notes}) has no ledger entry"
            ),
            commit=False,
        )
    return orphans
