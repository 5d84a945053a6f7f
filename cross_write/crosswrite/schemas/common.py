"""Common schemas: response envelope {success, data?, error?}."""
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope chung cho mọi endpoint."""

    success: bool = Field(True, description="false khi có lỗi")
    data: Optional[T] = None
    error: Optional[str] = Field(None, description="Error message")


class ErrorResponse(BaseModel):
    """Envelope lỗi (kèm extra như current/limit khi vượt quota)."""

    success: bool = False
    error: str
    extra: Optional[Dict[str, Any]] = None


def ok(data: Any = None) -> dict:
    return {"success": True, "data": data}
