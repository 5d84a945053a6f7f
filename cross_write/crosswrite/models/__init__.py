"""SQLAlchemy models for Cross Write."""
from crosswrite.models.draft import Draft
from crosswrite.models.integration import Integration
from crosswrite.models.scheduled_post import ScheduledPost
from crosswrite.models.user_usage import UserUsage
from crosswrite.models.analytics_event import AnalyticsEvent
from crosswrite.models.billing_subscription import BillingSubscription
from crosswrite.models.platform_post import PlatformPost

__all__ = [
    "Draft",
    "Integration",
    "ScheduledPost",
    "UserUsage",
    "AnalyticsEvent",
    "BillingSubscription",
    "PlatformPost",
]
