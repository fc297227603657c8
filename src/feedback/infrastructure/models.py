"""
Feedback Infrastructure Models
==============================

SQLAlchemy ORM models for the feedback module.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Integer, Text, Uuid, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base
from src.config import FeedbackStatus, CATEGORY_MAX_LENGTH


class FeedbackModel(Base):
    """
    Database model for FeedbackRecord entity.

    ``(source, source_id)`` is unique; the constraint is what makes
    concurrent ingestion of the same item create at most one row.
    """
    __tablename__ = "feedback"
    __table_args__ = (
        UniqueConstraint("source", "source_id", name="uq_feedback_source_item"),
        Index("ix_feedback_category_status", "category", "status"),
    )

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Content
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)

    # Classification
    category: Mapped[str] = mapped_column(String(CATEGORY_MAX_LENGTH), nullable=False)
    sentiment: Mapped[str] = mapped_column(String(20), nullable=False)
    urgency_score: Mapped[int] = mapped_column(Integer, nullable=False)

    # Origin
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    source_id: Mapped[str] = mapped_column(String(255), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)

    # Triage
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=FeedbackStatus.NEW
    )
    assigned_team: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
