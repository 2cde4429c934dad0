from celery import Celery
from celery.schedules import crontab
from syncpay.core.config import settings

# Initialize Celery
celery_app = Celery(
    "tasks",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "syncpay.tasks.billing_tasks",
    ]
)

celery_app.conf.update(
    task_track_started=True,
    beat_schedule={
        'expire-subscriptions-daily': {
            'task': 'tasks.expire_subscriptions',
            'schedule': crontab(hour=0, minute=5),  # Runs daily at 00:05
        },
        'expire-stale-pending-payments-hourly': {
            'task': 'tasks.expire_stale_pending_payments',
            'schedule': crontab(minute=15),
        },
        'sweep-orphaned-gateway-orders-hourly': {
            'task': 'tasks.sweep_orphaned_gateway_orders',
            'schedule': crontab(minute=45),
        },
    },
)
