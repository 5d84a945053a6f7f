"""Drafts CRUD API."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.db import get_db
from crosswrite.dependencies import get_current_user_id
from crosswrite.schemas.common import ApiResponse, ok
from crosswrite.schemas.drafts import DraftCreateRequest, DraftListOut, DraftOut, DraftUpdateRequest
from crosswrite.services.draft_service import (
    MAX_PAGE_SIZE,
    create_draft,
    delete_draft,
    get_draft,
    list_drafts,
    update_draft,
)

router = APIRouter(prefix="/api/drafts", tags=["drafts"])


def _raise_for(e: ValueError) -> None:
    if str(e) == "draft_not_found":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Draft not found")
    if str(e) == "title_required":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title is required")
    raise e


@router.get("", response_model=ApiResponse[DraftListOut])
async def get_drafts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Danh sách draft của user: phân trang, lọc status, tìm theo title."""
    items, total = await list_drafts(db, user_id, page=page, limit=limit, status=status_filter, search=search)
    return ok(DraftListOut(
        items=[DraftOut.model_validate(d) for d in items],
        total=total,
        page=page,
        limit=limit,
    ))


@router.post("", response_model=ApiResponse[DraftOut], status_code=status.HTTP_201_CREATED)
async def post_draft(
    payload: DraftCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        draft = await create_draft(db, user_id, **payload.model_dump())
    except ValueError as e:
        _raise_for(e)
    return ok(DraftOut.model_validate(draft))


@router.get("/{draft_id}", response_model=ApiResponse[DraftOut])
async def get_one_draft(
    draft_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        draft = await get_draft(db, user_id, draft_id)
    except ValueError as e:
        _raise_for(e)
    return ok(DraftOut.model_validate(draft))


@router.patch("/{draft_id}", response_model=ApiResponse[DraftOut])
async def patch_draft(
    draft_id: UUID,
    payload: DraftUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        draft = await update_draft(db, user_id, draft_id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        _raise_for(e)
    return ok(DraftOut.model_validate(draft))


@router.delete("/{draft_id}", response_model=ApiResponse[dict])
async def remove_draft(
    draft_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Xóa hẳn draft (chỉ khi user chủ động xóa)."""
    try:
        await delete_draft(db, user_id, draft_id)
    except ValueError as e:
        _raise_for(e)
    return ok({"deleted": True, "id": str(draft_id)})
