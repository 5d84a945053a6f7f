"""Pydantic request/response schemas."""
from crosswrite.schemas.common import ApiResponse, ErrorResponse
from crosswrite.schemas.drafts import DraftCreateRequest, DraftListOut, DraftOut, DraftUpdateRequest
from crosswrite.schemas.integrations import (
    IntegrationConnectRequest,
    IntegrationOut,
    IntegrationTestOut,
    IntegrationUpdateRequest,
)
from crosswrite.schemas.publish import PublishRequest, PublishResponse
from crosswrite.schemas.scheduler import (
    ScheduledPostCreateRequest,
    ScheduledPostOut,
    ScheduledPostUpdateRequest,
    SchedulerStatusResponse,
    SweepResult,
)
from crosswrite.schemas.usage import UsageCheckOut, UsageCheckRequest, UsageSummaryOut

__all__ = [
    "ApiResponse",
    "ErrorResponse",
    "DraftCreateRequest",
    "DraftListOut",
    "DraftOut",
    "DraftUpdateRequest",
    "IntegrationConnectRequest",
    "IntegrationOut",
    "IntegrationTestOut",
    "IntegrationUpdateRequest",
    "PublishRequest",
    "PublishResponse",
    "ScheduledPostCreateRequest",
    "ScheduledPostOut",
    "ScheduledPostUpdateRequest",
    "SchedulerStatusResponse",
    "SweepResult",
    "UsageCheckOut",
    "UsageCheckRequest",
    "UsageSummaryOut",
]
