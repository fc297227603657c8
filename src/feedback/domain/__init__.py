"""
Feedback Domain Layer
=====================

Domain layer for the feedback triage module.

Contains:
- Entities: FeedbackRecord, FeedbackAnalysis, CategoryInsight, outcomes
- Classification: response normalization and prompt building
- Workflow: the triage status graph
- Insights: per-category aggregation

This layer is framework-agnostic and contains pure business logic.
"""

from src.feedback.domain.entities import (
    CategoryLabel,
    FeedbackAnalysis,
    FeedbackItem,
    FeedbackRecord,
    VectorMatch,
    SearchHit,
    SearchResult,
    SentimentBreakdown,
    CategoryInsight,
    FeedbackStats,
    OutcomeStatus,
    Outcome,
    ItemDisposition,
    IngestedItem,
    IngestionReport,
    EscalationResult,
    EscalationNotice,
    TriageOutcome,
)
from src.feedback.domain.classification import (
    ClassificationPromptBuilder,
    extract_json_object,
    normalize_analysis,
    parse_analysis,
)
from src.feedback.domain.insights import aggregate_insights, compute_stats
from src.feedback.domain.workflow import (
    TRANSITIONS,
    RECORD_ACTIONS,
    BULK_ACTIONS,
    is_documented_transition,
    target_status,
)

__all__ = [
    "CategoryLabel",
    "FeedbackAnalysis",
    "FeedbackItem",
    "FeedbackRecord",
    "VectorMatch",
    "SearchHit",
    "SearchResult",
    "SentimentBreakdown",
    "CategoryInsight",
    "FeedbackStats",
    "OutcomeStatus",
    "Outcome",
    "ItemDisposition",
    "IngestedItem",
    "IngestionReport",
    "EscalationResult",
    "EscalationNotice",
    "TriageOutcome",
    "ClassificationPromptBuilder",
    "extract_json_object",
    "normalize_analysis",
    "parse_analysis",
    "aggregate_insights",
    "compute_stats",
    "TRANSITIONS",
    "RECORD_ACTIONS",
    "BULK_ACTIONS",
    "is_documented_transition",
    "target_status",
]
