"""
Feedback Aggregation
====================

Per-category rollups and dashboard totals, computed from the current
record set on every read.
"""

from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List

from src.config import FeedbackStatus, Sentiment
from src.feedback.domain.entities import (
    CategoryInsight, FeedbackRecord, FeedbackStats, SentimentBreakdown
)


def round_one_decimal(value: float) -> float:
    """Round half away from zero to one decimal place."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _mean_urgency(records: List[FeedbackRecord]) -> float:
    if not records:
        return 0.0
    return round_one_decimal(sum(r.urgency_score for r in records) / len(records))


def build_insight(category: str, records: List[FeedbackRecord]) -> CategoryInsight:
    breakdown = SentimentBreakdown()
    for record in records:
        if record.sentiment == Sentiment.POSITIVE:
            breakdown.positive += 1
        elif record.sentiment == Sentiment.NEGATIVE:
            breakdown.negative += 1
        elif record.sentiment == Sentiment.NEUTRAL:
            breakdown.neutral += 1

    return CategoryInsight(
        category=category,
        total=len(records),
        new_count=sum(1 for r in records if r.status == FeedbackStatus.NEW),
        avg_urgency=_mean_urgency(records),
        sentiment_breakdown=breakdown,
        sources=sorted({r.source for r in records}),
    )


def aggregate_insights(records: Iterable[FeedbackRecord]) -> List[CategoryInsight]:
    """
    Build one insight per distinct category.

    Ordered by ``new_count`` descending, then ``avg_urgency`` descending;
    the category name breaks remaining ties so the order is stable.
    """
    grouped: Dict[str, List[FeedbackRecord]] = defaultdict(list)
    for record in records:
        grouped[record.category].append(record)

    insights = [build_insight(category, items) for category, items in grouped.items()]
    insights.sort(key=lambda i: i.category)
    insights.sort(key=lambda i: (i.new_count, i.avg_urgency), reverse=True)
    return insights


def compute_stats(records: Iterable[FeedbackRecord]) -> FeedbackStats:
    records = list(records)
    counts: Dict[str, int] = defaultdict(int)
    for record in records:
        counts[record.status] += 1

    return FeedbackStats(
        total=len(records),
        new=counts[FeedbackStatus.NEW],
        acknowledged=counts[FeedbackStatus.ACKNOWLEDGED],
        escalated=counts[FeedbackStatus.ESCALATED],
        resolved=counts[FeedbackStatus.RESOLVED],
        avg_urgency=_mean_urgency(records),
    )
