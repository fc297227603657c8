"""Tests for the similarity index service and vector store backends."""

import pytest

from src.core import VectorStoreException
from src.feedback.application import SimilarityIndexService
from src.feedback.domain import OutcomeStatus, VectorMatch
from src.infrastructure.llm import MockLLMClient
from src.infrastructure.vectorstore import (
    InMemoryVectorStore,
    VectorEntry,
    cosine_similarity,
    create_vector_store,
)
from src.config import Settings
from tests.doubles import ScriptedLLMClient, ScriptedVectorIndex


@pytest.mark.asyncio
async def test_index_stores_metadata_snapshot() -> None:
    vectors = ScriptedVectorIndex()
    service = SimilarityIndexService(ScriptedLLMClient(), vectors)
    text = "x" * 400

    outcome = await service.index("rec-1", text, "Bug", "Negative", 8)

    assert outcome.succeeded
    assert vectors.upserts["rec-1"] == {
        "category": "Bug",
        "sentiment": "Negative",
        "urgency": 8,
        "text": "x" * 300,
    }


@pytest.mark.asyncio
async def test_index_failure_is_reported_not_raised() -> None:
    service = SimilarityIndexService(
        ScriptedLLMClient(),
        ScriptedVectorIndex(error=VectorStoreException("store down")),
    )

    outcome = await service.index("rec-1", "text", "Bug", "Negative", 8)

    assert outcome.status == OutcomeStatus.FAILED
    assert "store down" in outcome.reason


@pytest.mark.asyncio
async def test_index_skipped_when_not_configured() -> None:
    outcome = await SimilarityIndexService(None, None).index("rec-1", "t", "Bug", "Neutral", 5)
    assert outcome.status == OutcomeStatus.SKIPPED


@pytest.mark.asyncio
async def test_query_keeps_matches_at_threshold() -> None:
    vectors = ScriptedVectorIndex(matches=[
        VectorMatch(id="a", score=0.9),
        VectorMatch(id="b", score=0.5),
        VectorMatch(id="c", score=0.49),
    ])
    service = SimilarityIndexService(ScriptedLLMClient(), vectors, min_score=0.5)

    matches = await service.query("upload")

    assert [m.id for m in matches] == ["a", "b"]


@pytest.mark.asyncio
async def test_query_failure_returns_empty() -> None:
    service = SimilarityIndexService(ScriptedLLMClient(error=TimeoutError("slow")), ScriptedVectorIndex())
    assert await service.query("upload") == []


@pytest.mark.asyncio
async def test_in_memory_store_ranks_and_clips_scores() -> None:
    store = InMemoryVectorStore()
    await store.upsert([
        VectorEntry(id="same", embedding=[1.0, 0.0]),
        VectorEntry(id="close", embedding=[1.0, 1.0]),
        VectorEntry(id="opposite", embedding=[-1.0, 0.0]),
    ])

    results = await store.query([1.0, 0.0], top_k=3)

    assert [r.id for r in results] == ["same", "close", "opposite"]
    assert results[0].score == pytest.approx(1.0)
    assert results[2].score == 0.0
    assert await store.count() == 3


@pytest.mark.asyncio
async def test_in_memory_upsert_replaces_by_id() -> None:
    store = InMemoryVectorStore()
    await store.upsert([VectorEntry(id="a", embedding=[1.0, 0.0], metadata={"v": 1})])
    await store.upsert([VectorEntry(id="a", embedding=[0.0, 1.0], metadata={"v": 2})])

    results = await store.query([0.0, 1.0], top_k=5)

    assert len(results) == 1
    assert results[0].metadata == {"v": 2}


def test_cosine_rejects_dimension_mismatch() -> None:
    with pytest.raises(VectorStoreException):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


@pytest.mark.asyncio
async def test_mock_embeddings_are_deterministic_and_normalized() -> None:
    client = MockLLMClient(dimension=64)

    first = await client.generate_embedding("Upload keeps failing")
    second = await client.generate_embedding("Upload keeps failing")

    assert first.embedding == second.embedding
    assert first.dimension == 64
    assert sum(x * x for x in first.embedding) == pytest.approx(1.0)


def test_vector_backend_defaults_to_memory() -> None:
    assert isinstance(create_vector_store(Settings(vector_backend="memory")), InMemoryVectorStore)
