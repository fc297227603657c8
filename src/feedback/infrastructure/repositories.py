"""
Feedback Infrastructure Repositories
====================================

SQLAlchemy implementation of the feedback repository.
"""

from typing import List, Optional, Sequence
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import select, update, delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import FeedbackStatus
from src.core import DuplicateFeedbackException, RepositoryException
from src.feedback.application.services import IFeedbackRepository
from src.feedback.domain import FeedbackItem, FeedbackAnalysis, FeedbackRecord
from src.feedback.infrastructure.models import FeedbackModel
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Dialects with INSERT ... ON CONFLICT DO NOTHING
_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _parse_id(record_id: str) -> Optional[UUID]:
    try:
        return UUID(str(record_id))
    except ValueError:
        return None


def _to_entity(model: FeedbackModel) -> FeedbackRecord:
    return FeedbackRecord(
        id=str(model.id),
        raw_text=model.raw_text,
        category=model.category,
        sentiment=model.sentiment,
        urgency_score=model.urgency_score,
        source=model.source,
        source_id=model.source_id,
        author=model.author,
        status=model.status,
        assigned_team=model.assigned_team,
        notes=model.notes,
        created_at=model.created_at
    )


class SQLAlchemyFeedbackRepository(IFeedbackRepository):
    """SQLAlchemy implementation for feedback records."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_dedup_key(self, source: str, source_id: str) -> Optional[FeedbackRecord]:
        """Get record by ``(source, source_id)``."""
        stmt = select(FeedbackModel).where(
            FeedbackModel.source == source,
            FeedbackModel.source_id == source_id
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def create(self, item: FeedbackItem, analysis: FeedbackAnalysis) -> FeedbackRecord:
        """
        Insert a record unless its dedup key already exists.

        Raises:
            DuplicateFeedbackException: If ``(source, source_id)`` is taken
            RepositoryException: On any other storage failure
        """
        values = dict(
            id=uuid4(),
            raw_text=item.text,
            category=analysis.category,
            sentiment=analysis.sentiment,
            urgency_score=analysis.urgency,
            source=item.source,
            source_id=item.source_id,
            author=item.author,
            status=FeedbackStatus.NEW,
            assigned_team=analysis.suggested_team,
            notes=None,
            created_at=datetime.now(timezone.utc)
        )

        dialect = self._session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)

        try:
            if insert is not None:
                stmt = (
                    insert(FeedbackModel)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=["source", "source_id"])
                    .returning(FeedbackModel.id)
                )
                result = await self._session.execute(stmt)
                if result.scalar_one_or_none() is None:
                    raise DuplicateFeedbackException(item.source, item.source_id)
            else:
                try:
                    async with self._session.begin_nested():
                        self._session.add(FeedbackModel(**values))
                except IntegrityError:
                    raise DuplicateFeedbackException(item.source, item.source_id)

        except DuplicateFeedbackException:
            raise
        except Exception as e:
            raise RepositoryException(f"Failed to store feedback: {str(e)}")

        return FeedbackRecord(**{**values, "id": str(values["id"])})

    async def get_by_id(self, record_id: str) -> Optional[FeedbackRecord]:
        """Get record by id; malformed ids simply match nothing."""
        record_uuid = _parse_id(record_id)
        if record_uuid is None:
            return None

        stmt = select(FeedbackModel).where(FeedbackModel.id == record_uuid)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def get_many(self, record_ids: Sequence[str]) -> List[FeedbackRecord]:
        uuids = [u for u in (_parse_id(i) for i in record_ids) if u is not None]
        if not uuids:
            return []

        stmt = select(FeedbackModel).where(FeedbackModel.id.in_(uuids))
        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def _update(self, record_id: str, **values) -> bool:
        record_uuid = _parse_id(record_id)
        if record_uuid is None:
            return False

        stmt = update(FeedbackModel).where(FeedbackModel.id == record_uuid).values(**values)
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def update_status(self, record_id: str, status: str) -> bool:
        return await self._update(record_id, status=status)

    async def update_notes(self, record_id: str, notes: Optional[str]) -> bool:
        return await self._update(record_id, notes=notes)

    async def mark_escalated(
        self,
        record_id: str,
        team: str,
        urgency: int,
        notes: Optional[str] = None
    ) -> bool:
        """Status, team, urgency and (when given) notes change in one statement."""
        values = dict(
            status=FeedbackStatus.ESCALATED,
            assigned_team=team,
            urgency_score=urgency
        )
        if notes is not None:
            values["notes"] = notes
        return await self._update(record_id, **values)

    async def list_by_category(
        self,
        category: str,
        status: Optional[str] = None
    ) -> List[FeedbackRecord]:
        stmt = select(FeedbackModel).where(FeedbackModel.category == category)
        if status is not None:
            stmt = stmt.where(FeedbackModel.status == status)
        stmt = stmt.order_by(
            FeedbackModel.urgency_score.desc(),
            FeedbackModel.created_at.desc()
        )

        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def list_all(self) -> List[FeedbackRecord]:
        stmt = select(FeedbackModel).order_by(FeedbackModel.created_at)
        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def bulk_update_status(
        self,
        category: str,
        status: str,
        only_from: Optional[str] = None
    ) -> int:
        stmt = update(FeedbackModel).where(FeedbackModel.category == category)
        if only_from is not None:
            stmt = stmt.where(FeedbackModel.status == only_from)

        result = await self._session.execute(stmt.values(status=status))
        logger.info(
            "Bulk status update",
            extra={"category": category, "status": status, "affected": result.rowcount}
        )
        return result.rowcount

    async def delete_all(self) -> int:
        result = await self._session.execute(delete(FeedbackModel))
        return result.rowcount

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
