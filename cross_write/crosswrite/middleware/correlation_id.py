# Correlation-ID middleware: đọc X-Correlation-ID hoặc tạo mới, bind vào structlog context cùng user/path,
# log mỗi request (status, thời gian) và trả header về client.
import time
import uuid
from typing import Callable

import structlog.contextvars
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from crosswrite.dependencies import HEADER_USER_ID
from crosswrite.logging_config import get_logger

logger = get_logger(__name__)

HEADER_CORRELATION_ID = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(HEADER_CORRELATION_ID, "").strip() or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        context = {"correlation_id": correlation_id, "method": request.method, "path": request.url.path}
        user_id = request.headers.get(HEADER_USER_ID, "").strip()
        if user_id:
            context["user_id"] = user_id
        structlog.contextvars.bind_contextvars(**context)

        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "http.request",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000),
        )
        response.headers[HEADER_CORRELATION_ID] = correlation_id
        return response
