"""Draft model."""
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crosswrite.db import Base, utc_now

DRAFT_STATUS_DRAFT = "draft"
DRAFT_STATUS_SCHEDULED = "scheduled"
DRAFT_STATUS_PUBLISHED = "published"


class Draft(Base):
    """
    Bài viết của user.
    status: draft | scheduled | published.
    Chỉ xóa khi user chủ động xóa.
    """

    __tablename__ = "drafts"
    __table_args__ = (
        Index("ix_drafts_user_id", "user_id"),
        Index("ix_drafts_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_preview: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default=DRAFT_STATUS_DRAFT, nullable=False)
    platforms: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    seo_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    seo_description: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    scheduled_posts = relationship(
        "ScheduledPost",
        back_populates="draft",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    platform_posts = relationship(
        "PlatformPost",
        back_populates="draft",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    analytics_events = relationship(
        "AnalyticsEvent",
        back_populates="draft",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
