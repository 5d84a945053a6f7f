"""Drafts CRUD, luôn scope theo user sở hữu."""
import re
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.logging_config import get_logger
from crosswrite.models import Draft
from crosswrite.models.draft import DRAFT_STATUS_DRAFT

logger = get_logger(__name__)

PREVIEW_LENGTH = 200
MAX_PAGE_SIZE = 100

# Field user được phép sửa; status/published_at do dispatcher và scheduler quản lý.
EDITABLE_FIELDS = (
    "title",
    "content",
    "platforms",
    "thumbnail_url",
    "seo_title",
    "seo_description",
    "tags",
)


def make_preview(content: str) -> str:
    """Preview plain text: bỏ ký tự markdown, gộp khoảng trắng, cắt PREVIEW_LENGTH."""
    text = re.sub(r"[#*_`>\[\]!]", "", content or "")
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > PREVIEW_LENGTH:
        return text[: PREVIEW_LENGTH - 3] + "..."
    return text


async def list_drafts(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[Draft], int]:
    """Trả về (items, total). Mới cập nhật trước."""
    page = max(1, page)
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    conds = [Draft.user_id == user_id]
    if status:
        conds.append(Draft.status == status)
    if search:
        conds.append(Draft.title.ilike(f"%{search.strip()}%"))

    r = await db.execute(select(func.count(Draft.id)).where(*conds))
    total = r.scalar() or 0
    r = await db.execute(
        select(Draft)
        .where(*conds)
        .order_by(Draft.updated_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(r.scalars().all()), total


async def get_draft(db: AsyncSession, user_id: str, draft_id: UUID) -> Draft:
    r = await db.execute(select(Draft).where(Draft.id == draft_id, Draft.user_id == user_id))
    draft = r.scalar_one_or_none()
    if not draft:
        raise ValueError("draft_not_found")
    return draft


async def create_draft(
    db: AsyncSession,
    user_id: str,
    title: str,
    content: str,
    platforms: Optional[List[str]] = None,
    tags: Optional[List[str]] = None,
    thumbnail_url: Optional[str] = None,
    seo_title: Optional[str] = None,
    seo_description: Optional[str] = None,
) -> Draft:
    if not (title or "").strip():
        raise ValueError("title_required")
    draft = Draft(
        user_id=user_id,
        title=title.strip(),
        content=content or "",
        content_preview=make_preview(content),
        status=DRAFT_STATUS_DRAFT,
        platforms=list(platforms or []),
        tags=list(tags or []),
        thumbnail_url=thumbnail_url,
        seo_title=seo_title,
        seo_description=seo_description,
    )
    db.add(draft)
    await db.flush()
    logger.info("drafts.created", draft_id=str(draft.id), user_id=user_id)
    return draft


async def update_draft(db: AsyncSession, user_id: str, draft_id: UUID, **changes) -> Draft:
    draft = await get_draft(db, user_id, draft_id)
    for field in EDITABLE_FIELDS:
        if field in changes and changes[field] is not None:
            setattr(draft, field, changes[field])
    if "title" in changes and not (draft.title or "").strip():
        raise ValueError("title_required")
    if changes.get("content") is not None:
        draft.content_preview = make_preview(draft.content)
    await db.flush()
    return draft


async def delete_draft(db: AsyncSession, user_id: str, draft_id: UUID) -> None:
    """Xóa draft (kèm scheduled/platform posts, analytics qua cascade)."""
    draft = await get_draft(db, user_id, draft_id)
    await db.delete(draft)
    await db.flush()
    logger.info("drafts.deleted", draft_id=str(draft_id), user_id=user_id)
