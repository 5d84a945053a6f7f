"""Request dependencies: danh tính user do auth layer phía trước gắn vào header."""
from typing import Optional

from fastapi import Header, HTTPException, status

HEADER_USER_ID = "X-User-ID"


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias=HEADER_USER_ID),
) -> str:
    """Thiếu header => 401."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user_id
