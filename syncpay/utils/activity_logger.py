import datetime
from syncpay.utils.helpers import utcnow
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from syncpay.models.log_model import ActivityLog

async def log_activity(
    db: AsyncSession,
    user_id: Optional[str],
    activity_type_category: str,
    company_id: Optional[str],
    activity_description: str,
    timestamp: Optional[datetime.datetime] = None,
    commit: bool = True,
):
    """
    Records a billing activity in the audit trail.

    Args:
        db: The database session.
        user_id: The ID of the user performing the activity, if any.
        activity_type_category: The broad category of the activity (e.g., "Billing/Order", "Billing/Audit").
        company_id: The ID of the company associated with the activity.
        activity_description: A human-readable description of what happened.
        timestamp: The datetime of the activity. Defaults to now.
        commit: When False the entry joins the caller's transaction instead of committing it.
    """
    if timestamp is None:
        timestamp = utcnow()

    log_entry = ActivityLog(
        timestamp=timestamp,
        user_id=user_id,
        activity_type_category=activity_type_category,
        company_id=company_id,
        activity_description=activity_description
    )

    db.add(log_entry)
    if commit:
        await db.commit()
