"""Tests for semantic search."""

import pytest

from src.core import ValidationException
from src.feedback.application import (
    IngestionService,
    SearchService,
    SimilarityIndexService,
    similarity_percent,
)
from src.feedback.domain import FeedbackAnalysis, VectorMatch
from tests.doubles import ScriptedLLMClient, ScriptedVectorIndex


async def _store(repository, make_item, source_id: str, text: str) -> str:
    record = await repository.create(make_item(source_id, text), FeedbackAnalysis.default())
    return record.id


@pytest.mark.asyncio
async def test_results_above_threshold_sorted_by_similarity(repository, make_item) -> None:
    low = await _store(repository, make_item, "a", "low")
    high = await _store(repository, make_item, "b", "high")
    edge = await _store(repository, make_item, "c", "edge")
    below = await _store(repository, make_item, "d", "below")

    vectors = ScriptedVectorIndex(matches=[
        VectorMatch(id=low, score=0.62),
        VectorMatch(id=high, score=0.914),
        VectorMatch(id=edge, score=0.5),
        VectorMatch(id=below, score=0.499),
    ])
    service = SearchService(repository, SimilarityIndexService(ScriptedLLMClient(), vectors, min_score=0.5))

    result = await service.search("upload problems")

    assert [(h.record.raw_text, h.similarity) for h in result.hits] == [
        ("high", 91),
        ("low", 62),
        ("edge", 50),
    ]
    assert result.message is None


@pytest.mark.asyncio
async def test_stale_index_entries_are_dropped(repository, make_item) -> None:
    """Entries whose record was deleted are omitted, not errors."""
    kept = await _store(repository, make_item, "a", "kept")
    vectors = ScriptedVectorIndex(matches=[
        VectorMatch(id="00000000-0000-0000-0000-000000000000", score=0.99),
        VectorMatch(id=kept, score=0.8),
    ])
    service = SearchService(repository, SimilarityIndexService(ScriptedLLMClient(), vectors))

    result = await service.search("anything")

    assert [h.record.id for h in result.hits] == [kept]


@pytest.mark.asyncio
async def test_nothing_relevant_returns_message_with_threshold(repository) -> None:
    vectors = ScriptedVectorIndex(matches=[VectorMatch(id="x", score=0.2)])
    service = SearchService(repository, SimilarityIndexService(ScriptedLLMClient(), vectors))

    result = await service.search("quantum blockchain")

    assert result.is_empty
    assert result.threshold == 0.5
    assert "50%" in result.message


@pytest.mark.asyncio
async def test_search_failure_degrades_to_empty(repository) -> None:
    service = SearchService(
        repository,
        SimilarityIndexService(ScriptedLLMClient(error=ConnectionError("down")), ScriptedVectorIndex()),
    )

    result = await service.search("upload")

    assert result.is_empty
    assert result.message


@pytest.mark.asyncio
async def test_unconfigured_index_has_distinct_message(repository) -> None:
    result = await SearchService(repository, SimilarityIndexService(None, None)).search("upload")

    assert result.is_empty
    assert "not configured" in result.message


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   ", None])
async def test_empty_query_is_rejected(repository, query) -> None:
    service = SearchService(repository, SimilarityIndexService(None, None))
    with pytest.raises(ValidationException):
        await service.search(query)


@pytest.mark.asyncio
async def test_end_to_end_with_offline_embeddings(repository, classifier, similarity_index, make_item) -> None:
    """Text sharing most words with the query is found; unrelated text is not."""
    await IngestionService(repository, classifier, similarity_index).ingest([
        make_item("d004", "The upload feature has been broken for 3 days now"),
        make_item("t002", "Best update yet! The new features are exactly what I needed"),
    ])

    result = await SearchService(repository, similarity_index).search("upload feature has been broken")

    assert [h.record.source_id for h in result.hits] == ["d004"]
    assert 50 <= result.hits[0].similarity <= 100


def test_similarity_percent_rounds_half_up() -> None:
    assert similarity_percent(0.914) == 91
    assert similarity_percent(0.625) == 63
    assert similarity_percent(0.5) == 50
    assert similarity_percent(1.0) == 100
