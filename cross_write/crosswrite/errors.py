"""
Exception handlers: mọi lỗi trả về envelope {success: false, error, extra?}.
Lỗi DB được map sang message thân thiện (duplicate key, foreign key, not null).
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException

from crosswrite.logging_config import get_logger
from crosswrite.schemas.common import ErrorResponse
from crosswrite.services.ai_provider import AIRateLimitError, AIServiceUnavailableError
from crosswrite.services.usage_service import QuotaExceededError

logger = get_logger(__name__)


def error_body(message: str, extra: dict = None) -> dict:
    body = ErrorResponse(error=message, extra=extra or None).model_dump()
    if body["extra"] is None:
        del body["extra"]
    return body


def database_error_message(exc: Exception) -> str:
    text = str(exc).lower()
    if "duplicate key" in text or "unique constraint" in text:
        return "A record with this information already exists"
    if "foreign key" in text:
        return "Referenced record does not exist"
    if "not null" in text:
        return "Required field is missing"
    return "Database operation failed"


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "Invalid value")
    return f"{loc}: {msg}" if loc else msg


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        body = error_body(str(exc.detail.get("message", "")), exc.detail.get("extra"))
    else:
        body = error_body(str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body(_validation_message(exc)))


async def quota_exception_handler(request: Request, exc: QuotaExceededError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content=error_body(str(exc), {"metric": exc.metric.value, "current": exc.current, "limit": exc.limit}),
    )


async def ai_unavailable_handler(request: Request, exc: AIServiceUnavailableError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=error_body(str(exc)))


async def ai_rate_limit_handler(request: Request, exc: AIRateLimitError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_body(str(exc)),
        headers={"X-RateLimit-Reset": str(int(exc.reset_at))},
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    message = database_error_message(exc)
    logger.error("db.error", path=request.url.path, error=str(exc), message=message)
    code = status.HTTP_409_CONFLICT if isinstance(exc, IntegrityError) else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=code, content=error_body(message))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(QuotaExceededError, quota_exception_handler)
    app.add_exception_handler(AIServiceUnavailableError, ai_unavailable_handler)
    app.add_exception_handler(AIRateLimitError, ai_rate_limit_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
