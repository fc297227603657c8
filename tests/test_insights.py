"""Tests for category insights and dashboard totals."""

import pytest

from src.core import ValidationException
from src.feedback.application import InsightService
from src.feedback.domain import (
    FeedbackAnalysis,
    FeedbackRecord,
    aggregate_insights,
    compute_stats,
)
from src.feedback.domain.insights import round_one_decimal


def _record(category: str, urgency: int, status: str = "new", sentiment: str = "Negative",
            source: str = "discord", n: int = 0) -> FeedbackRecord:
    return FeedbackRecord(
        id=f"{category}-{n}",
        raw_text="text",
        category=category,
        sentiment=sentiment,
        urgency_score=urgency,
        source=source,
        source_id=f"{category}-{n}",
        author="someone",
        status=status,
    )


def _many(category: str, count: int, new_count: int, urgency_total: int) -> list:
    """``count`` records, ``new_count`` of them new, urgencies summing to ``urgency_total``."""
    urgencies = [urgency_total // count] * count
    urgencies[0] += urgency_total - sum(urgencies)
    return [
        _record(category, u, "new" if i < new_count else "resolved", n=i)
        for i, u in enumerate(urgencies)
    ]


def test_ordered_by_new_count_then_avg_urgency() -> None:
    records = (
        _many("A", 5, 5, 30)    # avg 6.0
        + _many("B", 5, 5, 40)  # avg 8.0
        + _many("C", 2, 2, 18)  # avg 9.0
    )

    insights = aggregate_insights(records)

    assert [(i.category, i.new_count, i.avg_urgency) for i in insights] == [
        ("B", 5, 8.0),
        ("A", 5, 6.0),
        ("C", 2, 9.0),
    ]


def test_counts_breakdown_and_sources() -> None:
    records = [
        _record("Bug", 8, sentiment="Negative", source="github", n=1),
        _record("Bug", 7, status="acknowledged", sentiment="Neutral", source="discord", n=2),
        _record("Bug", 4, status="resolved", sentiment="Positive", source="github", n=3),
    ]

    (insight,) = aggregate_insights(records)

    assert insight.total == 3
    assert insight.new_count == 1
    assert insight.avg_urgency == 6.3
    assert (insight.sentiment_breakdown.positive,
            insight.sentiment_breakdown.negative,
            insight.sentiment_breakdown.neutral) == (1, 1, 1)
    assert insight.sources == ["discord", "github"]


def test_free_text_category_aggregates_under_its_label() -> None:
    insights = aggregate_insights([_record("Documentation", 3, n=1), _record("Documentation", 5, n=2)])
    assert [(i.category, i.total) for i in insights] == [("Documentation", 2)]


def test_empty_record_set() -> None:
    assert aggregate_insights([]) == []
    stats = compute_stats([])
    assert stats.total == 0
    assert stats.avg_urgency == 0.0


def test_avg_rounds_half_up() -> None:
    assert round_one_decimal(6.25) == 6.3
    assert round_one_decimal(6.35) == 6.4
    assert round_one_decimal(19 / 3) == 6.3


def test_stats_count_statuses() -> None:
    records = [
        _record("Bug", 9, "new", n=1),
        _record("Bug", 10, "escalated", n=2),
        _record("UX", 3, "acknowledged", n=3),
        _record("UX", 2, "resolved", n=4),
    ]

    stats = compute_stats(records)

    assert (stats.total, stats.new, stats.acknowledged, stats.escalated, stats.resolved) == (4, 1, 1, 1, 1)
    assert stats.avg_urgency == 6.0


@pytest.mark.asyncio
async def test_category_listing_orders_by_urgency_then_newest(repository, make_item) -> None:
    analyses = {
        "a": FeedbackAnalysis("Bug", "Negative", 5, "engineering"),
        "b": FeedbackAnalysis("Bug", "Negative", 9, "engineering"),
        "c": FeedbackAnalysis("Bug", "Negative", 5, "engineering"),
        "d": FeedbackAnalysis("UX", "Neutral", 10, "product"),
    }
    for source_id, analysis in analyses.items():
        await repository.create(make_item(source_id, f"text {source_id}"), analysis)

    service = InsightService(repository)
    items = await service.list_category("Bug")

    assert [r.source_id for r in items] == ["b", "c", "a"]


@pytest.mark.asyncio
async def test_category_listing_status_filter(repository, make_item) -> None:
    first = await repository.create(make_item("a"), FeedbackAnalysis("Bug", "Negative", 5, "engineering"))
    await repository.create(make_item("b"), FeedbackAnalysis("Bug", "Negative", 6, "engineering"))
    await repository.update_status(first.id, "resolved")

    service = InsightService(repository)

    assert [r.source_id for r in await service.list_category("Bug", "resolved")] == ["a"]
    assert len(await service.list_category("Bug", "all")) == 2
    with pytest.raises(ValidationException):
        await service.list_category("Bug", "archived")


@pytest.mark.asyncio
async def test_insights_reflect_status_changes(repository, make_item) -> None:
    record = await repository.create(make_item("a"), FeedbackAnalysis("Bug", "Negative", 8, "engineering"))
    service = InsightService(repository)

    assert (await service.get_insights())[0].new_count == 1
    await repository.update_status(record.id, "acknowledged")
    assert (await service.get_insights())[0].new_count == 0
