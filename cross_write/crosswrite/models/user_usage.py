"""Per-user, per-month usage counters."""
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from crosswrite.db import Base, utc_now


class UserUsage(Base):
    """
    Một dòng cho mỗi (user_id, month_year="YYYY-MM").
    Upsert atomic mỗi lần hành động có tính quota; sang tháng mới thì dòng mới.
    """

    __tablename__ = "user_usage"
    __table_args__ = (UniqueConstraint("user_id", "month_year", name="uq_user_usage_user_month"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    month_year: Mapped[str] = mapped_column(String(7), nullable=False)
    articles_published: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    thumbnails_generated: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    ai_suggestions_used: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now())
