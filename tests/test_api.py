"""Tests for the feedback HTTP API."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.feedback.application import ClassificationService, SimilarityIndexService
from src.infrastructure.database import get_session
from src.main import app
from tests.doubles import RecordingNotifier, ScriptedLLMClient

STATE_KEYS = ("classifier", "similarity_index", "notifier")


@pytest_asyncio.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
    classifier: ClassificationService,
    similarity_index: SimilarityIndexService,
) -> AsyncGenerator[AsyncClient, None]:
    """Create API client with DB dependency override and offline services."""

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.state.classifier = classifier
    app.state.similarity_index = similarity_index
    app.state.notifier = RecordingNotifier()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
    for key in STATE_KEYS:
        if hasattr(app.state, key):
            delattr(app.state, key)


ITEMS = [
    {"source": "discord", "id": "d001", "author": "user123",
     "text": "App keeps crashing when I try to upload photos. Happens every time now."},
    {"source": "github", "id": "g002", "author": "security-bob",
     "text": "XSS vulnerability in profile page via unsanitized user bio field."},
    {"source": "twitter", "id": "t002", "author": "@happyuser",
     "text": "Best update yet! Love the new features"},
]


async def _ingest(client: AsyncClient, items=ITEMS) -> dict:
    response = await client.post("/feedback/ingest", json={"items": items})
    assert response.status_code == 200
    return response.json()


async def _record_id(client: AsyncClient, category: str) -> str:
    response = await client.get(f"/feedback/category/{category}")
    return response.json()["items"][0]["id"]


@pytest.mark.asyncio
async def test_ingest_and_reingest(api_client: AsyncClient) -> None:
    first = await _ingest(api_client)
    second = await _ingest(api_client)

    assert (first["processed"], first["skipped"], first["failed"]) == (3, 0, 0)
    assert (second["processed"], second["skipped"]) == (0, 3)
    assert {i["disposition"] for i in second["items"]} == {"duplicate"}


@pytest.mark.asyncio
async def test_ingest_without_body_loads_sample_set(api_client: AsyncClient) -> None:
    response = await api_client.post("/feedback/ingest")

    assert response.status_code == 200
    assert response.json()["processed"] == 29

    stats = (await api_client.get("/feedback/stats")).json()
    assert stats["total"] == 29
    assert stats["new"] == 29


@pytest.mark.asyncio
async def test_ingest_rejects_unknown_source(api_client: AsyncClient) -> None:
    response = await api_client.post(
        "/feedback/ingest",
        json={"items": [{"source": "email", "id": "e1", "author": "x", "text": "hi"}]},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_ingest_rejects_oversized_identifiers(api_client: AsyncClient) -> None:
    too_long = {"source": "forum", "id": "f" * 256, "author": "x", "text": "hi"}
    long_author = {"source": "forum", "id": "f1", "author": "a" * 256, "text": "hi"}

    for item in (too_long, long_author):
        response = await api_client.post("/feedback/ingest", json={"items": [item]})
        assert response.status_code == 422

    assert (await api_client.get("/feedback/stats")).json()["total"] == 0


@pytest.mark.asyncio
async def test_insights_and_category_drilldown(api_client: AsyncClient) -> None:
    await _ingest(api_client)

    insights = (await api_client.get("/feedback/insights")).json()["insights"]
    by_category = {i["category"]: i for i in insights}
    assert set(by_category) == {"Bug", "Security", "Praise"}
    assert by_category["Security"]["sources"] == ["github"]

    items = (await api_client.get("/feedback/category/Bug")).json()["items"]
    assert [i["source_id"] for i in items] == ["d001"]


@pytest.mark.asyncio
async def test_category_with_unknown_status_filter_is_400(api_client: AsyncClient) -> None:
    response = await api_client.get("/feedback/category/Bug", params={"status": "archived"})
    assert response.status_code == 400
    assert "correlation_id" in response.json()


@pytest.mark.asyncio
async def test_search(api_client: AsyncClient) -> None:
    await _ingest(api_client)

    hits = (await api_client.get(
        "/feedback/search", params={"q": "XSS vulnerability in profile page"}
    )).json()
    assert hits["results"][0]["source_id"] == "g002"
    assert hits["results"][0]["similarity"] >= 50

    empty = (await api_client.get("/feedback/search", params={"q": "quarterly revenue forecast"})).json()
    assert empty["results"] == []
    assert empty["threshold"] == 50
    assert empty["message"]


@pytest.mark.asyncio
async def test_search_empty_query_is_400(api_client: AsyncClient) -> None:
    response = await api_client.get("/feedback/search", params={"q": "  "})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_record_lookup_and_404(api_client: AsyncClient) -> None:
    await _ingest(api_client)
    record_id = await _record_id(api_client, "Bug")

    found = await api_client.get(f"/feedback/{record_id}")
    assert found.status_code == 200
    assert found.json()["status"] == "new"

    missing = await api_client.get("/feedback/00000000-0000-0000-0000-000000000000")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_escalate(api_client: AsyncClient) -> None:
    await _ingest(api_client)
    record_id = await _record_id(api_client, "Security")

    response = await api_client.post(
        f"/feedback/{record_id}/escalate",
        json={"team": "security", "notes": "page the on-call"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["record"]["status"] == "escalated"
    assert body["record"]["urgency_score"] == 10
    assert body["notification_status"] == "ok"
    assert app.state.notifier.notices[0].team == "security"

    stored = (await api_client.get(f"/feedback/{record_id}")).json()
    assert stored["assigned_team"] == "security"
    assert stored["notes"] == "page the on-call"


@pytest.mark.asyncio
async def test_escalate_unknown_team_is_400(api_client: AsyncClient) -> None:
    await _ingest(api_client)
    record_id = await _record_id(api_client, "Bug")

    response = await api_client.post(f"/feedback/{record_id}/escalate", json={"team": "marketing"})

    assert response.status_code == 400
    assert (await api_client.get(f"/feedback/{record_id}")).json()["status"] == "new"


@pytest.mark.asyncio
async def test_record_actions(api_client: AsyncClient) -> None:
    await _ingest(api_client)
    record_id = await _record_id(api_client, "Bug")

    ack = await api_client.post(f"/feedback/{record_id}/action", json={"action": "acknowledge"})
    assert ack.json()["applied"] is True

    note = await api_client.post(
        f"/feedback/{record_id}/action", json={"action": "add_note", "notes": "repro on iOS"}
    )
    assert note.status_code == 200

    unknown = await api_client.post(f"/feedback/{record_id}/action", json={"action": "archive"})
    assert unknown.status_code == 200
    assert unknown.json()["applied"] is False
    assert unknown.json()["unknown_action"] is True

    stored = (await api_client.get(f"/feedback/{record_id}")).json()
    assert stored["status"] == "acknowledged"
    assert stored["notes"] == "repro on iOS"


@pytest.mark.asyncio
async def test_action_on_missing_record_is_404(api_client: AsyncClient) -> None:
    response = await api_client.post(
        "/feedback/00000000-0000-0000-0000-000000000000/action", json={"action": "resolve"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_bulk_and_clear(api_client: AsyncClient) -> None:
    await _ingest(api_client)

    bulk = await api_client.post("/feedback/bulk", json={"action": "resolve", "category": "Bug"})
    assert bulk.json()["affected"] == 1

    stats = (await api_client.get("/feedback/stats")).json()
    assert stats["resolved"] == 1

    cleared = await api_client.post("/feedback/clear")
    assert cleared.json()["deleted"] == 3
    assert (await api_client.get("/feedback/stats")).json()["total"] == 0


@pytest.mark.asyncio
async def test_classifier_outage_still_ingests(api_client: AsyncClient) -> None:
    app.state.classifier = ClassificationService(ScriptedLLMClient(error=ConnectionError("down")))

    body = await _ingest(api_client, ITEMS[:1])

    assert body["processed"] == 1
    assert body["items"][0]["classification_fallback"] is True
    item = (await api_client.get("/feedback/category/Other")).json()["items"][0]
    assert (item["sentiment"], item["urgency_score"]) == ("Neutral", 5)


@pytest.mark.asyncio
async def test_root_and_health(api_client: AsyncClient) -> None:
    root = await api_client.get("/")
    assert root.json()["service"] == "Feedback Triager"

    health = await api_client.get("/health")
    assert health.status_code == 200
    assert set(health.json()["checks"]) == {"database", "llm_client", "vector_store", "slack"}
    assert "X-Correlation-ID" in health.headers
    assert health.headers["X-Response-Time"].endswith("s")
