"""
Feedback Application Services
=============================

Application services for feedback triage.

Orchestrates business logic between domain entities, the record store,
the similarity index and the notification channel:

- ClassificationService: raw classifier output -> validated analysis
- SimilarityIndexService: embed + upsert / embed + query with threshold
- IngestionService: dedup -> classify -> persist -> index, per item
- SearchService: query -> threshold -> hydrate -> score-sorted merge
- InsightService: per-category rollups and dashboard totals
- TriageService: status transitions, notes, escalation, bulk actions
"""

import math
from typing import Optional, List, Any, Sequence
from abc import ABC, abstractmethod

from src.config import (
    FeedbackStatus, TriageAction, VALID_TEAMS, VALID_STATUSES,
    MIN_SIMILARITY_THRESHOLD, SEARCH_TOP_K, ESCALATION_URGENCY,
    VECTOR_METADATA_TEXT_LIMIT
)
from src.core import (
    DuplicateFeedbackException, ResourceNotFoundException, ValidationException
)
from src.feedback.domain import (
    ClassificationPromptBuilder, parse_analysis,
    FeedbackAnalysis, FeedbackItem, FeedbackRecord, VectorMatch,
    SearchHit, SearchResult, CategoryInsight, FeedbackStats,
    Outcome, ItemDisposition, IngestedItem, IngestionReport,
    EscalationResult, EscalationNotice, TriageOutcome,
    aggregate_insights, compute_stats,
    RECORD_ACTIONS, BULK_ACTIONS, is_documented_transition, target_status
)
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IFeedbackRepository(ABC):
    """Interface for feedback record storage."""

    @abstractmethod
    async def get_by_dedup_key(self, source: str, source_id: str) -> Optional[FeedbackRecord]:
        """Find the record for a ``(source, source_id)`` pair."""

    @abstractmethod
    async def create(self, item: FeedbackItem, analysis: FeedbackAnalysis) -> FeedbackRecord:
        """Insert a new record; raises DuplicateFeedbackException on key collision."""

    @abstractmethod
    async def get_by_id(self, record_id: str) -> Optional[FeedbackRecord]:
        """Get record by id."""

    @abstractmethod
    async def get_many(self, record_ids: Sequence[str]) -> List[FeedbackRecord]:
        """Get every record whose id is listed; missing ids are skipped."""

    @abstractmethod
    async def update_status(self, record_id: str, status: str) -> bool:
        """Set status; returns False if no record matched."""

    @abstractmethod
    async def update_notes(self, record_id: str, notes: Optional[str]) -> bool:
        """Set notes; returns False if no record matched."""

    @abstractmethod
    async def mark_escalated(
        self,
        record_id: str,
        team: str,
        urgency: int,
        notes: Optional[str] = None
    ) -> bool:
        """Apply an escalation in one update."""

    @abstractmethod
    async def list_by_category(
        self,
        category: str,
        status: Optional[str] = None
    ) -> List[FeedbackRecord]:
        """List records of one category, most urgent and newest first."""

    @abstractmethod
    async def list_all(self) -> List[FeedbackRecord]:
        """List every record."""

    @abstractmethod
    async def bulk_update_status(
        self,
        category: str,
        status: str,
        only_from: Optional[str] = None
    ) -> int:
        """Move records of a category into ``status``; returns rows changed."""

    @abstractmethod
    async def delete_all(self) -> int:
        """Delete every record; returns rows deleted."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit pending changes."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard pending changes."""


class ILLMClient(ABC):
    """Interface for the inference service (classification + embeddings)."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float,
        max_tokens: int,
        operation: str = "chat_completion"
    ) -> Any:
        """Generate chat completion; the result exposes ``.content``."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Generate a fixed-length embedding for text."""


class IVectorIndex(ABC):
    """Interface for the approximate-nearest-neighbour store."""

    @abstractmethod
    async def upsert(self, record_id: str, embedding: List[float], metadata: dict) -> None:
        """Insert or replace the entry for a record."""

    @abstractmethod
    async def query(self, embedding: List[float], top_k: int) -> List[VectorMatch]:
        """Return ranked matches with scores in [0, 1]."""


class INotificationDispatcher(ABC):
    """Interface for the escalation notification channel."""

    @abstractmethod
    async def notify(self, notice: EscalationNotice) -> Outcome:
        """Deliver a notice; never raises."""


# ========== Application Services ==========

class ClassificationService:
    """
    Service for feedback classification using an LLM.

    Never raises: network errors, unparsable responses and a missing
    client all produce ``FeedbackAnalysis.default()``.
    """

    def __init__(
        self,
        llm_client: Optional[ILLMClient],
        temperature: float = 0.2,
        max_tokens: int = 300
    ):
        self._llm = llm_client
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def classify(self, text: str) -> FeedbackAnalysis:
        """
        Classify one piece of feedback.

        Args:
            text: Raw feedback text

        Returns:
            FeedbackAnalysis with every field within its constraints
        """
        if self._llm is None:
            logger.warning("Classification skipped - no LLM client configured")
            return FeedbackAnalysis.default()

        try:
            response = await self._llm.chat_completion(
                messages=ClassificationPromptBuilder.build_messages(text),
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                operation="classification"
            )
            return parse_analysis(response.content)

        except Exception as e:
            logger.warning(
                "Classification failed, using default analysis",
                extra={"error": str(e), "text_preview": text[:80]}
            )
            return FeedbackAnalysis.default()


class SimilarityIndexService:
    """
    Embedding-backed similarity index for feedback records.

    Both operations are best-effort: indexing reports an ``Outcome`` and
    querying fails open to an empty list.
    """

    def __init__(
        self,
        llm_client: Optional[ILLMClient],
        vector_index: Optional[IVectorIndex],
        min_score: float = MIN_SIMILARITY_THRESHOLD,
        metadata_text_limit: int = VECTOR_METADATA_TEXT_LIMIT
    ):
        self._llm = llm_client
        self._index = vector_index
        self._min_score = min_score
        self._text_limit = metadata_text_limit

    @property
    def is_configured(self) -> bool:
        return self._llm is not None and self._index is not None

    @property
    def min_score(self) -> float:
        return self._min_score

    async def index(
        self,
        record_id: str,
        text: str,
        category: str,
        sentiment: str,
        urgency: int
    ) -> Outcome:
        """
        Embed ``text`` and upsert it under ``record_id``.

        The metadata snapshot is never refreshed afterwards, so it can lag
        behind later changes to the record.
        """
        if not self.is_configured:
            return Outcome.skipped("similarity index not configured")

        try:
            embedding = await self._llm.embed(text)
            await self._index.upsert(
                record_id,
                embedding,
                {
                    "category": category,
                    "sentiment": sentiment,
                    "urgency": urgency,
                    "text": text[:self._text_limit],
                }
            )
            return Outcome.ok()

        except Exception as e:
            logger.warning(
                "Failed to index feedback",
                extra={"record_id": record_id, "error": str(e)}
            )
            return Outcome.failed(str(e))

    async def query(self, text: str, top_k: int = SEARCH_TOP_K) -> List[VectorMatch]:
        """
        Find stored entries similar to ``text``.

        Matches scoring below the threshold are dropped; a score equal to
        the threshold is kept.
        """
        if not self.is_configured:
            return []

        try:
            embedding = await self._llm.embed(text)
            matches = await self._index.query(embedding, top_k)
        except Exception as e:
            logger.warning("Vector search failed", extra={"error": str(e)})
            return []

        return [m for m in matches if m.score >= self._min_score]


class IngestionService:
    """
    Batch ingestion pipeline.

    Items are processed sequentially in the order supplied. A failure on
    one item never aborts the batch.
    """

    def __init__(
        self,
        repository: IFeedbackRepository,
        classifier: ClassificationService,
        similarity_index: SimilarityIndexService
    ):
        self._repo = repository
        self._classifier = classifier
        self._index = similarity_index

    async def ingest(self, items: Sequence[FeedbackItem]) -> IngestionReport:
        """
        Ingest a batch of source items.

        Args:
            items: Feedback items in processing order

        Returns:
            IngestionReport; ``processed`` counts newly created records
        """
        report = IngestionReport()
        for item in items:
            report.items.append(await self._ingest_one(item))

        logger.info(
            "Ingestion finished",
            extra={
                "processed": report.processed,
                "skipped": report.skipped,
                "failed": report.failed
            }
        )
        return report

    async def _ingest_one(self, item: FeedbackItem) -> IngestedItem:
        result = IngestedItem(
            source=item.source,
            source_id=item.source_id,
            disposition=ItemDisposition.FAILED
        )

        try:
            # Fast path only; the store's unique constraint is what prevents duplicates
            if await self._repo.get_by_dedup_key(item.source, item.source_id):
                result.disposition = ItemDisposition.DUPLICATE
                return result

            analysis = await self._classifier.classify(item.text)
            result.classification_fallback = analysis.fallback

            record = await self._repo.create(item, analysis)
            # Committed per item; a later failure rolls back only its own item
            await self._repo.commit()

        except DuplicateFeedbackException:
            logger.info(
                "Feedback inserted concurrently, skipping",
                extra={"source": item.source, "source_id": item.source_id}
            )
            result.disposition = ItemDisposition.DUPLICATE
            return result

        except Exception as e:
            logger.error(
                "Failed to ingest feedback item",
                extra={"source": item.source, "source_id": item.source_id, "error": str(e)}
            )
            await self._repo.rollback()
            result.error = str(e)
            return result

        result.disposition = ItemDisposition.CREATED
        result.record_id = record.id

        if record.id:
            # Raw text, so queries and indexed content share one embedding space
            result.index_outcome = await self._index.index(
                record.id,
                item.text,
                record.category,
                record.sentiment,
                record.urgency_score
            )

        return result


def similarity_percent(score: float) -> int:
    """Score in [0, 1] as a whole percentage, halves rounded up."""
    return int(math.floor(score * 100 + 0.5))


class SearchService:
    """Semantic search over feedback records."""

    def __init__(
        self,
        repository: IFeedbackRepository,
        similarity_index: SimilarityIndexService,
        top_k: int = SEARCH_TOP_K
    ):
        self._repo = repository
        self._index = similarity_index
        self._top_k = top_k

    async def search(self, query: Optional[str]) -> SearchResult:
        """
        Find feedback similar to a free-text query.

        Raises:
            ValidationException: If the query is empty
        """
        if query is None or not query.strip():
            raise ValidationException("Search query must not be empty")

        threshold = self._index.min_score

        if not self._index.is_configured:
            return SearchResult(
                hits=[],
                threshold=threshold,
                message="Semantic search is not configured."
            )

        matches = await self._index.query(query, top_k=self._top_k)
        if not matches:
            return SearchResult(
                hits=[],
                threshold=threshold,
                message=(
                    f"No matching feedback found above {similarity_percent(threshold)}% "
                    "similarity. Try different keywords or a more specific query."
                )
            )

        records = {r.id: r for r in await self._repo.get_many([m.id for m in matches])}

        hits = [
            SearchHit(record=records[m.id], similarity=similarity_percent(m.score), score=m.score)
            for m in matches
            if m.id in records
        ]
        # Hydration order is not the store's order
        hits.sort(key=lambda h: (h.similarity, h.score), reverse=True)

        return SearchResult(hits=hits, threshold=threshold)


class InsightService:
    """Read-side rollups over the current record set."""

    def __init__(self, repository: IFeedbackRepository):
        self._repo = repository

    async def get_insights(self) -> List[CategoryInsight]:
        return aggregate_insights(await self._repo.list_all())

    async def get_stats(self) -> FeedbackStats:
        return compute_stats(await self._repo.list_all())

    async def list_category(
        self,
        category: str,
        status: Optional[str] = None
    ) -> List[FeedbackRecord]:
        """
        List one category's records.

        Raises:
            ValidationException: If ``status`` is not a known status
        """
        if status in (None, "", "all"):
            status = None
        elif status not in VALID_STATUSES:
            raise ValidationException(f"Unknown status filter: {status}")
        return await self._repo.list_by_category(category, status)


class TriageService:
    """
    Triage workflow: status transitions, notes, escalation and bulk actions.

    Single-record status actions are accepted from any state. Moves that
    leave the documented workflow graph are applied but flagged
    (``off_graph``) and logged.
    """

    def __init__(
        self,
        repository: IFeedbackRepository,
        notifier: Optional[INotificationDispatcher] = None,
        escalation_urgency: int = ESCALATION_URGENCY
    ):
        self._repo = repository
        self._notifier = notifier
        self._escalation_urgency = escalation_urgency

    async def get_record(self, record_id: str) -> FeedbackRecord:
        """
        Raises:
            ResourceNotFoundException: If the record does not exist
        """
        record = await self._repo.get_by_id(record_id)
        if record is None:
            raise ResourceNotFoundException("Feedback", record_id)
        return record

    async def _set_status(self, record_id: str, action: str) -> TriageOutcome:
        record = await self.get_record(record_id)
        status = target_status(action)

        off_graph = not is_documented_transition(record.status, status)
        if off_graph:
            logger.warning(
                "Status change outside triage workflow",
                extra={"record_id": record_id, "from_status": record.status, "to_status": status}
            )

        await self._repo.update_status(record_id, status)
        return TriageOutcome(action=action, applied=True, affected=1, off_graph=off_graph)

    async def acknowledge(self, record_id: str) -> TriageOutcome:
        return await self._set_status(record_id, TriageAction.ACKNOWLEDGE)

    async def resolve(self, record_id: str) -> TriageOutcome:
        return await self._set_status(record_id, TriageAction.RESOLVE)

    async def reopen(self, record_id: str) -> TriageOutcome:
        return await self._set_status(record_id, TriageAction.REOPEN)

    async def add_note(self, record_id: str, text: Optional[str]) -> TriageOutcome:
        """Replace the record's notes; status is untouched."""
        await self.get_record(record_id)
        await self._repo.update_notes(record_id, text)
        return TriageOutcome(action=TriageAction.ADD_NOTE, applied=True, affected=1)

    async def apply_action(
        self,
        record_id: str,
        action: str,
        notes: Optional[str] = None
    ) -> TriageOutcome:
        """
        Dispatch a named single-record action.

        Unknown action names are a no-op reported with ``unknown_action``.
        """
        if action not in RECORD_ACTIONS:
            logger.warning(
                "Unknown triage action ignored",
                extra={"record_id": record_id, "action": action}
            )
            return TriageOutcome(
                action=action,
                applied=False,
                unknown_action=True,
                message=f"Unknown action '{action}'"
            )

        if action == TriageAction.ADD_NOTE:
            return await self.add_note(record_id, notes)
        return await self._set_status(record_id, action)

    async def escalate(
        self,
        record_id: str,
        team: str,
        notes: Optional[str] = None
    ) -> EscalationResult:
        """
        Escalate a record to a team.

        Sets status to escalated, assigns the team and forces urgency to the
        escalation policy value. The change is committed before the team is
        notified; notification failure never undoes it.

        Raises:
            ResourceNotFoundException: If the record does not exist
            ValidationException: If ``team`` is not a known team
        """
        record = await self.get_record(record_id)

        if team not in VALID_TEAMS:
            raise ValidationException(f"Unknown team: {team}")

        await self._repo.mark_escalated(record_id, team, self._escalation_urgency, notes)
        await self._repo.commit()

        record.status = FeedbackStatus.ESCALATED
        record.assigned_team = team
        record.urgency_score = self._escalation_urgency
        if notes is not None:
            record.notes = notes

        logger.info(
            "Feedback escalated",
            extra={"record_id": record_id, "team": team}
        )

        notification = await self._notify(record)
        return EscalationResult(record=record, notification=notification)

    async def _notify(self, record: FeedbackRecord) -> Outcome:
        if self._notifier is None:
            return Outcome.skipped("notification channel not configured")

        notice = EscalationNotice(
            record_id=record.id,
            team=record.assigned_team,
            category=record.category,
            source=record.source,
            author=record.author,
            text=record.raw_text,
            notes=record.notes
        )
        try:
            return await self._notifier.notify(notice)
        except Exception as e:
            logger.warning(
                "Escalation notification raised",
                extra={"record_id": record.id, "error": str(e)}
            )
            return Outcome.failed(str(e))

    async def bulk_acknowledge(self, category: str) -> TriageOutcome:
        """Acknowledge every record of ``category`` that is still new."""
        affected = await self._repo.bulk_update_status(
            category, FeedbackStatus.ACKNOWLEDGED, only_from=FeedbackStatus.NEW
        )
        return TriageOutcome(action=TriageAction.ACKNOWLEDGE, applied=True, affected=affected)

    async def bulk_resolve(self, category: str) -> TriageOutcome:
        """Resolve every record of ``category`` whatever its status."""
        affected = await self._repo.bulk_update_status(category, FeedbackStatus.RESOLVED)
        return TriageOutcome(action=TriageAction.RESOLVE, applied=True, affected=affected)

    async def apply_bulk_action(self, action: str, category: str) -> TriageOutcome:
        """Dispatch a named bulk action; unknown names are a reported no-op."""
        if action not in BULK_ACTIONS:
            logger.warning(
                "Unknown bulk action ignored",
                extra={"category": category, "action": action}
            )
            return TriageOutcome(
                action=action,
                applied=False,
                unknown_action=True,
                message=f"Unknown bulk action '{action}'"
            )

        if action == TriageAction.ACKNOWLEDGE:
            return await self.bulk_acknowledge(category)
        return await self.bulk_resolve(category)

    async def clear_all(self) -> int:
        """Delete every record. Vector entries are left in place."""
        deleted = await self._repo.delete_all()
        logger.info("All feedback cleared", extra={"deleted": deleted})
        return deleted
