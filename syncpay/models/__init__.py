from .company_model import Company
from .user_model import Users
from .log_model import ActivityLog
from .plan_model import Plan
from .payment_model import Payment
from .subscription_model import Subscription

__all__ = [
    "Company",
    "Users",
    "ActivityLog",
    "Plan",
    "Payment",
    "Subscription",
]
