"""
Feedback Infrastructure Layer
=============================

Infrastructure implementations for the feedback module.

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Data access implementations
- External: LLM and vector store adapters
- Notifications: Slack escalation delivery
- Sample data: seed batch for first runs
"""

from src.feedback.infrastructure.models import FeedbackModel
from src.feedback.infrastructure.repositories import SQLAlchemyFeedbackRepository
from src.feedback.infrastructure.external import (
    LLMClientAdapter,
    VectorIndexAdapter,
    build_llm_adapter,
    build_vector_adapter,
)
from src.feedback.infrastructure.notifications import (
    TeamInfo,
    TeamDirectory,
    DEFAULT_TEAMS,
    CircuitBreaker,
    CircuitState,
    NotificationConfig,
    SlackNotifier,
    create_notifier,
)
from src.feedback.infrastructure.sample_data import sample_feedback

__all__ = [
    "FeedbackModel",
    "SQLAlchemyFeedbackRepository",
    "LLMClientAdapter",
    "VectorIndexAdapter",
    "build_llm_adapter",
    "build_vector_adapter",
    "TeamInfo",
    "TeamDirectory",
    "DEFAULT_TEAMS",
    "CircuitBreaker",
    "CircuitState",
    "NotificationConfig",
    "SlackNotifier",
    "create_notifier",
    "sample_feedback",
]
