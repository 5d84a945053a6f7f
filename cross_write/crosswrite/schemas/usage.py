"""Usage/quota schemas."""
from typing import Dict, Optional

from pydantic import BaseModel, Field

from crosswrite.services.plans import UsageMetric


class MetricUsage(BaseModel):
    used: int
    limit: Optional[int] = Field(None, description="None = không giới hạn")


class UsageSummaryOut(BaseModel):
    plan_id: str
    month: str
    metrics: Dict[str, MetricUsage]


class UsageCheckRequest(BaseModel):
    metric: UsageMetric
    increment: int = Field(1, ge=1, le=100)


class UsageCheckOut(BaseModel):
    allowed: bool
    current: int
    limit: Optional[int] = None
    warning: Optional[str] = None
