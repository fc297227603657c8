"""
Feedback Controllers (API Routes)
=================================

FastAPI routes for feedback triage endpoints.

Controllers delegate to application services. Long-lived collaborators
(classifier, similarity index, notifier) live on ``app.state``; the
repository is built per request from the request-scoped session.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import get_session
from src.feedback.application import (
    IFeedbackRepository,
    ClassificationService, SimilarityIndexService, IngestionService,
    SearchService, InsightService, TriageService, INotificationDispatcher,
    IngestRequest, IngestResponse, SearchResponse,
    InsightsResponse, CategoryInsightOut, StatsResponse,
    CategoryItemsResponse, FeedbackRecordOut,
    EscalateRequest, EscalateResponse,
    ActionRequest, BulkActionRequest, ActionResponse, ClearResponse
)
from src.feedback.infrastructure import SQLAlchemyFeedbackRepository, sample_feedback
from src.shared.infrastructure.logging import get_logger, log_latency
from src.config import settings

logger = get_logger(__name__)
router = APIRouter(prefix="/feedback", tags=["Feedback Triage"])


# ========== Example payloads for Swagger ==========

INGEST_RESPONSE_EXAMPLE = {
    "success": True,
    "processed": 2,
    "skipped": 1,
    "failed": 0,
    "items": [
        {
            "source": "discord",
            "source_id": "d001",
            "disposition": "created",
            "record_id": "0b7c1c64-93a5-4f4c-9d7e-2f1e8a0c5d11",
            "classification_fallback": False,
            "index_status": "ok",
            "index_reason": None,
            "error": None
        }
    ]
}

INSIGHTS_RESPONSE_EXAMPLE = {
    "insights": [
        {
            "category": "Bug",
            "total": 6,
            "new_count": 5,
            "avg_urgency": 8.2,
            "sentiment_breakdown": {"positive": 0, "negative": 6, "neutral": 0},
            "sources": ["discord", "github", "twitter"]
        }
    ]
}


# ========== Dependencies ==========

def get_repository(db: AsyncSession = Depends(get_session)) -> IFeedbackRepository:
    return SQLAlchemyFeedbackRepository(db)


def get_classifier(request: Request) -> ClassificationService:
    classifier = getattr(request.app.state, "classifier", None)
    return classifier or ClassificationService(None)


def get_similarity_index(request: Request) -> SimilarityIndexService:
    index = getattr(request.app.state, "similarity_index", None)
    return index or SimilarityIndexService(None, None, settings.min_similarity_threshold)


def get_notifier(request: Request) -> Optional[INotificationDispatcher]:
    return getattr(request.app.state, "notifier", None)


def get_ingestion_service(
    repository: IFeedbackRepository = Depends(get_repository),
    classifier: ClassificationService = Depends(get_classifier),
    index: SimilarityIndexService = Depends(get_similarity_index)
) -> IngestionService:
    return IngestionService(repository, classifier, index)


def get_search_service(
    repository: IFeedbackRepository = Depends(get_repository),
    index: SimilarityIndexService = Depends(get_similarity_index)
) -> SearchService:
    return SearchService(repository, index, top_k=settings.search_top_k)


def get_insight_service(
    repository: IFeedbackRepository = Depends(get_repository)
) -> InsightService:
    return InsightService(repository)


def get_triage_service(
    repository: IFeedbackRepository = Depends(get_repository),
    notifier: Optional[INotificationDispatcher] = Depends(get_notifier)
) -> TriageService:
    return TriageService(repository, notifier, settings.escalation_urgency)


# ========== Route Handlers ==========

@router.post(
    "/ingest",
    response_model=IngestResponse,
    summary="Ingest a batch of feedback",
    description="""
    Deduplicate, classify, store and index a batch of feedback items.

    Items already stored under the same `(source, id)` are skipped. When the
    body is omitted the built-in sample set (29 items across discord, github,
    twitter, support and forum) is ingested instead.
    """,
    responses={200: {"content": {"application/json": {"example": INGEST_RESPONSE_EXAMPLE}}}}
)
async def ingest_feedback(
    payload: Optional[IngestRequest] = None,
    service: IngestionService = Depends(get_ingestion_service)
) -> IngestResponse:
    if payload is None or payload.items is None:
        items = sample_feedback()
    else:
        items = [item.to_domain() for item in payload.items]

    with log_latency(logger, "ingest_batch", items=len(items)):
        report = await service.ingest(items)

    return IngestResponse.from_domain(report)


@router.get(
    "/search",
    response_model=SearchResponse,
    response_model_exclude_none=True,
    summary="Semantic search over feedback",
    description="""
    Find feedback similar to a free-text query. Matches below the similarity
    threshold are dropped; an empty result carries a message and the
    threshold as a percentage.
    """
)
async def search_feedback(
    q: str = Query("", description="Free-text query"),
    service: SearchService = Depends(get_search_service)
) -> SearchResponse:
    result = await service.search(q)
    return SearchResponse.from_domain(result)


@router.get(
    "/insights",
    response_model=InsightsResponse,
    summary="Per-category insights",
    description="Categories ordered by untriaged count, then average urgency.",
    responses={200: {"content": {"application/json": {"example": INSIGHTS_RESPONSE_EXAMPLE}}}}
)
async def get_insights(
    service: InsightService = Depends(get_insight_service)
) -> InsightsResponse:
    insights = await service.get_insights()
    return InsightsResponse(insights=[CategoryInsightOut.from_domain(i) for i in insights])


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Dashboard totals"
)
async def get_stats(
    service: InsightService = Depends(get_insight_service)
) -> StatsResponse:
    return StatsResponse.from_domain(await service.get_stats())


@router.get(
    "/category/{category}",
    response_model=CategoryItemsResponse,
    summary="Records in one category",
    description="Most urgent first, then newest. `status=all` or no status means every status."
)
async def list_category(
    category: str,
    status: Optional[str] = Query(None, description="Status filter or 'all'"),
    service: InsightService = Depends(get_insight_service)
) -> CategoryItemsResponse:
    records = await service.list_category(category, status)
    return CategoryItemsResponse(items=[FeedbackRecordOut.from_domain(r) for r in records])


@router.post(
    "/bulk",
    response_model=ActionResponse,
    summary="Apply an action to a whole category",
    description="""
    - `acknowledge`: moves every **new** record of the category to acknowledged
    - `resolve`: moves every record of the category to resolved

    Unknown actions change nothing and are reported with `applied=false`.
    """
)
async def bulk_action(
    payload: BulkActionRequest,
    service: TriageService = Depends(get_triage_service)
) -> ActionResponse:
    outcome = await service.apply_bulk_action(payload.action, payload.category)
    return ActionResponse.from_domain(outcome)


@router.post(
    "/clear",
    response_model=ClearResponse,
    summary="Delete every feedback record"
)
async def clear_feedback(
    service: TriageService = Depends(get_triage_service)
) -> ClearResponse:
    deleted = await service.clear_all()
    return ClearResponse(deleted=deleted)


@router.get(
    "/{record_id}",
    response_model=FeedbackRecordOut,
    summary="Get one feedback record",
    responses={404: {"description": "Feedback not found"}}
)
async def get_feedback(
    record_id: str,
    service: TriageService = Depends(get_triage_service)
) -> FeedbackRecordOut:
    return FeedbackRecordOut.from_domain(await service.get_record(record_id))


@router.post(
    "/{record_id}/escalate",
    response_model=EscalateResponse,
    summary="Escalate feedback to a team",
    description="""
    Marks the record escalated, assigns the team and sets urgency to the
    escalation level. The team's Slack channel is notified afterwards; a
    failed notification is reported but does not undo the escalation.
    """,
    responses={
        400: {"description": "Unknown team"},
        404: {"description": "Feedback not found"}
    }
)
async def escalate_feedback(
    record_id: str,
    payload: EscalateRequest,
    service: TriageService = Depends(get_triage_service)
) -> EscalateResponse:
    result = await service.escalate(record_id, payload.team, payload.notes)
    return EscalateResponse.from_domain(result)


@router.post(
    "/{record_id}/action",
    response_model=ActionResponse,
    summary="Apply a triage action to one record",
    description="""
    Actions: `acknowledge`, `resolve`, `reopen`, `add_note` (uses `notes`).
    Unknown actions change nothing and are reported with `applied=false`.
    """,
    responses={404: {"description": "Feedback not found"}}
)
async def record_action(
    record_id: str,
    payload: ActionRequest,
    service: TriageService = Depends(get_triage_service)
) -> ActionResponse:
    outcome = await service.apply_action(record_id, payload.action, payload.notes)
    return ActionResponse.from_domain(outcome)
