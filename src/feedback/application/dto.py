"""
Feedback Application DTOs
=========================

Data Transfer Objects for the feedback API layer.

Pydantic models for request/response validation.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Literal
from datetime import datetime

from src.feedback.domain import (
    FeedbackItem, FeedbackRecord, CategoryInsight, FeedbackStats,
    SearchResult, IngestionReport, IngestedItem, TriageOutcome, EscalationResult
)


# ========== Type Aliases for Literals ==========
FeedbackSourceStr = Literal["discord", "github", "twitter", "support", "forum"]
TeamStr = Literal["engineering", "security", "support", "product", "billing"]


# ========== Request DTOs ==========

class FeedbackItemIn(BaseModel):
    """One feedback item as delivered by a source channel."""
    source: FeedbackSourceStr
    id: str = Field(..., min_length=1, max_length=255, description="Identifier unique within the source")
    author: str = Field(default="anonymous", max_length=255)
    text: str = Field(..., min_length=1)
    timestamp: Optional[str] = None

    @field_validator("text")
    @classmethod
    def validate_text_length(cls, v: str) -> str:
        """Ensure text is not too long for the classifier."""
        if len(v) > 10000:
            raise ValueError("Text too long (max 10000 characters)")
        return v

    def to_domain(self) -> FeedbackItem:
        return FeedbackItem(
            source=self.source,
            source_id=self.id,
            author=self.author,
            text=self.text,
            timestamp=self.timestamp
        )


class IngestRequest(BaseModel):
    """Request model for batch ingestion; omit ``items`` to load the sample set."""
    items: Optional[List[FeedbackItemIn]] = None


class EscalateRequest(BaseModel):
    """Request model for escalation. ``team`` is checked by the service."""
    team: str = Field(..., min_length=1)
    notes: Optional[str] = None


class ActionRequest(BaseModel):
    """Request model for a single-record action."""
    action: str
    notes: Optional[str] = None


class BulkActionRequest(BaseModel):
    """Request model for a bulk action over one category."""
    action: str
    category: str = Field(..., min_length=1)


# ========== Response DTOs ==========

class FeedbackRecordOut(BaseModel):
    id: str
    raw_text: str
    category: str
    sentiment: str
    urgency_score: int
    source: str
    source_id: str
    author: str
    status: str
    assigned_team: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, record: FeedbackRecord) -> "FeedbackRecordOut":
        return cls(
            id=record.id,
            raw_text=record.raw_text,
            category=record.category,
            sentiment=record.sentiment,
            urgency_score=record.urgency_score,
            source=record.source,
            source_id=record.source_id,
            author=record.author,
            status=record.status,
            assigned_team=record.assigned_team,
            notes=record.notes,
            created_at=record.created_at
        )


class SearchHitOut(FeedbackRecordOut):
    similarity: int = Field(..., ge=0, le=100, description="Similarity percentage")


class SearchResponse(BaseModel):
    results: List[SearchHitOut]
    message: Optional[str] = None
    threshold: Optional[int] = Field(None, description="Threshold percentage when nothing matched")

    @classmethod
    def from_domain(cls, result: SearchResult) -> "SearchResponse":
        results = [
            SearchHitOut(
                **FeedbackRecordOut.from_domain(hit.record).model_dump(),
                similarity=hit.similarity
            )
            for hit in result.hits
        ]
        if result.is_empty:
            return cls(
                results=[],
                message=result.message,
                threshold=round(result.threshold * 100)
            )
        return cls(results=results)


class IngestedItemOut(BaseModel):
    source: str
    source_id: str
    disposition: str
    record_id: Optional[str] = None
    classification_fallback: bool = False
    index_status: Optional[str] = None
    index_reason: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, item: IngestedItem) -> "IngestedItemOut":
        return cls(
            source=item.source,
            source_id=item.source_id,
            disposition=item.disposition,
            record_id=item.record_id,
            classification_fallback=item.classification_fallback,
            index_status=item.index_outcome.status if item.index_outcome else None,
            index_reason=item.index_outcome.reason if item.index_outcome else None,
            error=item.error
        )


class IngestResponse(BaseModel):
    success: bool = True
    processed: int
    skipped: int
    failed: int
    items: List[IngestedItemOut] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, report: IngestionReport) -> "IngestResponse":
        return cls(
            processed=report.processed,
            skipped=report.skipped,
            failed=report.failed,
            items=[IngestedItemOut.from_domain(i) for i in report.items]
        )


class SentimentBreakdownOut(BaseModel):
    positive: int
    negative: int
    neutral: int


class CategoryInsightOut(BaseModel):
    category: str
    total: int
    new_count: int
    avg_urgency: float
    sentiment_breakdown: SentimentBreakdownOut
    sources: List[str]

    @classmethod
    def from_domain(cls, insight: CategoryInsight) -> "CategoryInsightOut":
        return cls(
            category=insight.category,
            total=insight.total,
            new_count=insight.new_count,
            avg_urgency=insight.avg_urgency,
            sentiment_breakdown=SentimentBreakdownOut(
                positive=insight.sentiment_breakdown.positive,
                negative=insight.sentiment_breakdown.negative,
                neutral=insight.sentiment_breakdown.neutral
            ),
            sources=list(insight.sources)
        )


class InsightsResponse(BaseModel):
    insights: List[CategoryInsightOut]


class StatsResponse(BaseModel):
    total: int
    new: int
    acknowledged: int
    escalated: int
    resolved: int
    avg_urgency: float

    @classmethod
    def from_domain(cls, stats: FeedbackStats) -> "StatsResponse":
        return cls(
            total=stats.total,
            new=stats.new,
            acknowledged=stats.acknowledged,
            escalated=stats.escalated,
            resolved=stats.resolved,
            avg_urgency=stats.avg_urgency
        )


class CategoryItemsResponse(BaseModel):
    items: List[FeedbackRecordOut]


class ActionResponse(BaseModel):
    success: bool = True
    action: str
    applied: bool
    affected: int = 0
    unknown_action: bool = False
    off_graph: bool = False
    message: Optional[str] = None

    @classmethod
    def from_domain(cls, outcome: TriageOutcome) -> "ActionResponse":
        return cls(
            action=outcome.action,
            applied=outcome.applied,
            affected=outcome.affected,
            unknown_action=outcome.unknown_action,
            off_graph=outcome.off_graph,
            message=outcome.message
        )


class EscalateResponse(BaseModel):
    success: bool = True
    record: FeedbackRecordOut
    notification_status: str
    notification_reason: Optional[str] = None

    @classmethod
    def from_domain(cls, result: EscalationResult) -> "EscalateResponse":
        return cls(
            record=FeedbackRecordOut.from_domain(result.record),
            notification_status=result.notification.status,
            notification_reason=result.notification.reason
        )


class ClearResponse(BaseModel):
    success: bool = True
    deleted: int
    message: str = "All data cleared"
