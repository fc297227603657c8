"""
Feedback Application Layer
==========================

Application layer for the feedback triage module.

Contains:
- Services: Business logic orchestration
- DTOs: Data transfer objects for API serialization
"""

from src.feedback.application.dto import (
    FeedbackItemIn,
    IngestRequest,
    EscalateRequest,
    ActionRequest,
    BulkActionRequest,
    FeedbackRecordOut,
    SearchHitOut,
    SearchResponse,
    IngestedItemOut,
    IngestResponse,
    SentimentBreakdownOut,
    CategoryInsightOut,
    InsightsResponse,
    StatsResponse,
    CategoryItemsResponse,
    ActionResponse,
    EscalateResponse,
    ClearResponse
)
from src.feedback.application.services import (
    ClassificationService,
    SimilarityIndexService,
    IngestionService,
    SearchService,
    InsightService,
    TriageService,
    similarity_percent,
    IFeedbackRepository,
    ILLMClient,
    IVectorIndex,
    INotificationDispatcher
)

__all__ = [
    # DTOs
    "FeedbackItemIn",
    "IngestRequest",
    "EscalateRequest",
    "ActionRequest",
    "BulkActionRequest",
    "FeedbackRecordOut",
    "SearchHitOut",
    "SearchResponse",
    "IngestedItemOut",
    "IngestResponse",
    "SentimentBreakdownOut",
    "CategoryInsightOut",
    "InsightsResponse",
    "StatsResponse",
    "CategoryItemsResponse",
    "ActionResponse",
    "EscalateResponse",
    "ClearResponse",
    # Services
    "ClassificationService",
    "SimilarityIndexService",
    "IngestionService",
    "SearchService",
    "InsightService",
    "TriageService",
    "similarity_percent",
    # Interfaces
    "IFeedbackRepository",
    "ILLMClient",
    "IVectorIndex",
    "INotificationDispatcher",
]
