# syncpay/tasks/billing_tasks.py
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.celery_app import celery_app
from syncpay.core.config import GatewayConfig, settings
from syncpay.core.database import db_manager
from syncpay.modules.payment import maintenance_service
from syncpay.modules.payment.gateway_client import RazorpayClient
from syncpay.utils.helpers import utcnow

logger = logging.getLogger(__name__)


@asynccontextmanager
async def job_session(
    job_name: str,
    session_factory: Optional[Callable[[], AsyncSession]] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    One transaction per job run: ledger transitions, subscription expiry and
    the audit rows a run writes are committed together, or rolled back together.
    """
    factory = session_factory or db_manager.async_session_maker
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"{job_name} rolled back: {e}")
            raise


def _gateway() -> RazorpayClient:
    return RazorpayClient(GatewayConfig.from_settings(settings))


async def _expire_subscriptions() -> int:
    async with job_session("expire_subscriptions") as db:
        return await maintenance_service.expire_subscriptions(db, utcnow())


async def _expire_stale_pending_payments(gateway: RazorpayClient) -> int:
    async with job_session("expire_stale_pending_payments") as db:
        return await maintenance_service.expire_stale_pending_payments(
            db, gateway, utcnow(), ttl_hours=settings.PENDING_PAYMENT_TTL_HOURS
        )


async def _sweep_orphaned_gateway_orders(gateway: RazorpayClient) -> List[str]:
    async with job_session("sweep_orphaned_gateway_orders") as db:
        orphans = await maintenance_service.find_orphaned_gateway_orders(
            db, gateway, utcnow(), lookback_hours=settings.ORPHAN_SWEEP_LOOKBACK_HOURS
        )
        return [order.id for order in orphans]


@celery_app.task(name="tasks.expire_subscriptions")
def expire_subscriptions():
    """Periodic task: subscriptions whose period has ended become inactive."""
    logger.info("Running periodic task: expire_subscriptions")
    count = asyncio.run(_expire_subscriptions())
    logger.info(f"expire_subscriptions finished, {count} subscriptions deactivated")
    return count


@celery_app.task(name="tasks.expire_stale_pending_payments")
def expire_stale_pending_payments():
    logger.info("Running periodic task: expire_stale_pending_payments")
    count = asyncio.run(_expire_stale_pending_payments(_gateway()))
    logger.info(f"expire_stale_pending_payments finished, {count} payments marked failed")
    return count


@celery_app.task(name="tasks.sweep_orphaned_gateway_orders")
def sweep_orphaned_gateway_orders():
    """Reports gateway orders that never reached the ledger. Nothing is cancelled."""
    logger.info("Running periodic task: sweep_orphaned_gateway_orders")
    orphan_ids = asyncio.run(_sweep_orphaned_gateway_orders(_gateway()))
    if orphan_ids:
        logger.warning(f"Found {len(orphan_ids)} orphaned gateway orders: {', '.join(orphan_ids)}")
    return orphan_ids
