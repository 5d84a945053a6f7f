"""
Plan catalogue: quota caps theo metric và giới hạn tính năng theo plan.
Cap = math.inf nghĩa là không giới hạn.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

from crosswrite.config import Settings

PLAN_FREE = "free"
PLAN_PRO = "pro"
PLAN_SELF_HOSTED = "self_hosted"

ALL_PLANS = (PLAN_FREE, PLAN_PRO, PLAN_SELF_HOSTED)

UNLIMITED = math.inf


class UsageMetric(str, Enum):
    """Metric có tính quota; value trùng tên cột trong user_usage."""

    ARTICLES_PUBLISHED = "articles_published"
    THUMBNAILS_GENERATED = "thumbnails_generated"
    AI_SUGGESTIONS_USED = "ai_suggestions_used"


PLAN_CAPS: Dict[str, Dict[UsageMetric, float]] = {
    PLAN_FREE: {
        UsageMetric.ARTICLES_PUBLISHED: 5,
        UsageMetric.THUMBNAILS_GENERATED: 3,
        UsageMetric.AI_SUGGESTIONS_USED: 500,
    },
    PLAN_PRO: {
        UsageMetric.ARTICLES_PUBLISHED: 200,
        UsageMetric.THUMBNAILS_GENERATED: 50,
        UsageMetric.AI_SUGGESTIONS_USED: 5000,
    },
    PLAN_SELF_HOSTED: {
        UsageMetric.ARTICLES_PUBLISHED: UNLIMITED,
        UsageMetric.THUMBNAILS_GENERATED: UNLIMITED,
        UsageMetric.AI_SUGGESTIONS_USED: UNLIMITED,
    },
}


@dataclass(frozen=True)
class PlanLimits:
    """Giới hạn tính năng (UI gate + thumbnail endpoint)."""

    ai_enabled: bool
    monthly_articles: Union[int, float]
    monthly_thumbnails: int
    max_platforms: Optional[int]  # None = tất cả platform


PLAN_LIMITS: Dict[str, PlanLimits] = {
    PLAN_SELF_HOSTED: PlanLimits(ai_enabled=False, monthly_articles=UNLIMITED, monthly_thumbnails=0, max_platforms=None),
    PLAN_FREE: PlanLimits(ai_enabled=True, monthly_articles=5, monthly_thumbnails=3, max_platforms=1),
    PLAN_PRO: PlanLimits(ai_enabled=True, monthly_articles=200, monthly_thumbnails=50, max_platforms=None),
}


def get_plan_cap(plan_id: str, metric: UsageMetric) -> float:
    """Cap của metric cho plan; plan không biết => 0."""
    return PLAN_CAPS.get(plan_id, {}).get(metric, 0)


def get_plan_limits(plan_id: Optional[str]) -> Optional[PlanLimits]:
    if not plan_id:
        return None
    return PLAN_LIMITS.get(plan_id.strip().lower())


def plan_from_price_id(price_id: Optional[str], settings: Settings) -> Optional[str]:
    """Map billing price id -> plan id; None nếu không khớp price nào đã cấu hình."""
    if not price_id:
        return None
    price_map = {settings.stripe_price_pro: PLAN_PRO}
    return price_map.get(price_id) if settings.stripe_price_pro else None


def can_use_ai(plan_id: str) -> bool:
    limits = PLAN_LIMITS.get(plan_id)
    return bool(limits and limits.ai_enabled)
