"""Scheduled post model."""
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crosswrite.db import Base, utc_now

SCHEDULE_PENDING = "pending"
SCHEDULE_PUBLISHED = "published"
SCHEDULE_CANCELLED = "cancelled"
SCHEDULE_FAILED = "failed"

TERMINAL_SCHEDULE_STATUSES = (SCHEDULE_PUBLISHED, SCHEDULE_CANCELLED, SCHEDULE_FAILED)


class ScheduledPost(Base):
    """
    Yêu cầu đăng bài hẹn giờ.
    status: pending -> published | cancelled | failed (sau khi hết retry).
    """

    __tablename__ = "scheduled_posts"
    __table_args__ = (
        Index("ix_scheduled_posts_claim", "status", "scheduled_at"),
        Index("ix_scheduled_posts_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    draft_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("drafts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    platforms: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default=SCHEDULE_PENDING, nullable=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )

    draft = relationship("Draft", back_populates="scheduled_posts")
