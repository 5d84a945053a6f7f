"""Business logic services."""
from crosswrite.services.publish_service import publish_to_platforms
from crosswrite.services.scheduler_service import process_due_posts
from crosswrite.services.usage_service import check_usage_limit, check_usage_limits, require_usage

__all__ = [
    "publish_to_platforms",
    "process_due_posts",
    "check_usage_limit",
    "check_usage_limits",
    "require_usage",
]
