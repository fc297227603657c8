"""
Feedback Domain Entities
========================

Domain entities for the feedback triage module.

Contains pure Python business objects for classification results,
persisted feedback records, vector matches, derived insights and the
outcome values returned by best-effort enrichment steps.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from src.config import (
    FeedbackCategory, Sentiment, FeedbackStatus, Team,
    KNOWN_CATEGORIES, VALID_SENTIMENTS, VALID_TEAMS,
    DEFAULT_URGENCY, MIN_URGENCY, MAX_URGENCY, CATEGORY_MAX_LENGTH
)


@dataclass(frozen=True)
class CategoryLabel:
    """
    Category assigned by classification.

    Either one of the known categories (canonical spelling) or an
    ``Other``-style free-text label the classifier invented. Free-text
    labels are kept verbatim so they still aggregate under a stable key.
    """
    label: str

    @classmethod
    def parse(cls, value: Any) -> "CategoryLabel":
        """Map raw classifier output onto a category label."""
        if not isinstance(value, str) or not value.strip():
            return cls(FeedbackCategory.OTHER)

        cleaned = " ".join(value.split())
        for known in KNOWN_CATEGORIES:
            if cleaned.lower() == known.lower():
                return cls(known)
        # Free text is capped to the stored column width
        return cls(cleaned[:CATEGORY_MAX_LENGTH].rstrip())

    def __str__(self) -> str:
        return self.label


@dataclass
class FeedbackAnalysis:
    """
    Validated classification of one piece of feedback.

    Always satisfies the field constraints regardless of what the
    inference service produced.
    """
    category: str
    sentiment: str
    urgency: int
    suggested_team: str
    keywords: List[str] = field(default_factory=list)
    # True when the result is the fixed fallback rather than a parsed response
    fallback: bool = field(default=False, compare=False)

    def __post_init__(self):
        """Validate analysis result."""
        if self.sentiment not in VALID_SENTIMENTS:
            raise ValueError(f"Invalid sentiment: {self.sentiment}")
        if not MIN_URGENCY <= self.urgency <= MAX_URGENCY:
            raise ValueError("Urgency must be between 1 and 10")
        if self.suggested_team not in VALID_TEAMS:
            raise ValueError(f"Invalid team: {self.suggested_team}")

    @classmethod
    def default(cls) -> "FeedbackAnalysis":
        """Result used whenever classification fails at any step."""
        return cls(
            category=FeedbackCategory.OTHER,
            sentiment=Sentiment.NEUTRAL,
            urgency=DEFAULT_URGENCY,
            suggested_team=Team.PRODUCT,
            keywords=[],
            fallback=True
        )


@dataclass
class FeedbackItem:
    """A feedback item as delivered by a source channel, before triage."""
    source: str
    source_id: str
    author: str
    text: str
    timestamp: Optional[str] = None


@dataclass
class FeedbackRecord:
    """
    Persisted feedback record, the unit of triage.

    ``id``, ``raw_text`` and ``created_at`` never change after creation.
    """
    id: str
    raw_text: str
    category: str
    sentiment: str
    urgency_score: int
    source: str
    source_id: str
    author: str
    status: str = FeedbackStatus.NEW
    assigned_team: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class VectorMatch:
    """A candidate returned by the similarity index."""
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchHit:
    """A hydrated search result."""
    record: FeedbackRecord
    similarity: int  # percentage, 0-100
    score: float


@dataclass
class SearchResult:
    """
    Result of a similarity search.

    An empty ``hits`` list is not an error; ``message`` explains why nothing
    was returned so callers can tell "not configured" from "nothing relevant".
    """
    hits: List[SearchHit]
    threshold: float
    message: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return len(self.hits) == 0


@dataclass
class SentimentBreakdown:
    positive: int = 0
    negative: int = 0
    neutral: int = 0


@dataclass
class CategoryInsight:
    """Per-category rollup, recomputed on every read."""
    category: str
    total: int
    new_count: int
    avg_urgency: float
    sentiment_breakdown: SentimentBreakdown
    sources: List[str]


@dataclass
class FeedbackStats:
    """Dashboard-level totals across every record."""
    total: int = 0
    new: int = 0
    acknowledged: int = 0
    escalated: int = 0
    resolved: int = 0
    avg_urgency: float = 0.0


# ========== Outcomes ==========

class OutcomeStatus(str):
    """Result kinds for best-effort enrichment steps."""
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """
    Explicit result of a best-effort step (indexing, notification).

    Degraded steps never raise; they report ``skipped`` or ``failed`` here.
    """
    status: str
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "Outcome":
        return cls(OutcomeStatus.OK)

    @classmethod
    def skipped(cls, reason: str) -> "Outcome":
        return cls(OutcomeStatus.SKIPPED, reason)

    @classmethod
    def failed(cls, reason: str) -> "Outcome":
        return cls(OutcomeStatus.FAILED, reason)

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.OK


class ItemDisposition(str):
    """What the ingestion pipeline did with one source item."""
    CREATED = "created"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class IngestedItem:
    """Per-item ingestion report."""
    source: str
    source_id: str
    disposition: str
    record_id: Optional[str] = None
    classification_fallback: bool = False
    index_outcome: Optional[Outcome] = None
    error: Optional[str] = None


@dataclass
class IngestionReport:
    """Summary of one ingestion run."""
    items: List[IngestedItem] = field(default_factory=list)

    def _count(self, disposition: str) -> int:
        return sum(1 for item in self.items if item.disposition == disposition)

    @property
    def processed(self) -> int:
        """Number of newly created records."""
        return self._count(ItemDisposition.CREATED)

    @property
    def skipped(self) -> int:
        return self._count(ItemDisposition.DUPLICATE)

    @property
    def failed(self) -> int:
        return self._count(ItemDisposition.FAILED)


@dataclass
class EscalationResult:
    """Escalated record plus the outcome of the team notification."""
    record: FeedbackRecord
    notification: Outcome


@dataclass
class TriageOutcome:
    """
    Result of a single-record or bulk triage action.

    Unknown actions are reported with ``applied=False`` and
    ``unknown_action=True`` instead of raising.
    """
    action: str
    applied: bool
    affected: int = 0
    unknown_action: bool = False
    off_graph: bool = False
    message: Optional[str] = None


@dataclass
class EscalationNotice:
    """Payload handed to the notification sink on escalation."""
    record_id: str
    team: str
    category: str
    source: str
    author: str
    text: str
    notes: Optional[str] = None
