"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="feedback-triager", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/feedback",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for escalation notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )
    slack_max_retries: int = Field(
        default=2,
        description="Delivery attempts per escalation notification",
        ge=1,
        le=5
    )
    teams_config_path: Path = Field(
        default=Path("teams.yaml"),
        description="Optional YAML file overriding team names and Slack channels"
    )

    # ========== LLM Providers ==========
    llm_provider: str = Field(
        default="zai",
        description="Classification/embedding provider (zai or openai)"
    )
    zai_api_key: Optional[str] = Field(
        default=None,
        description="Z.AI API key"
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key"
    )
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses for testing (no API calls)"
    )
    llm_model: str = Field(
        default="glm-4.7",
        description="Model used for feedback classification"
    )
    embedding_model: str = Field(
        default="embedding-2",
        description="Model used for feedback embeddings"
    )
    llm_temperature: float = Field(
        default=0.2,
        description="Temperature for classification calls",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=300,
        description="Max tokens for a classification response",
        ge=1,
        le=8000
    )

    # ========== Vector Store ==========
    vector_backend: str = Field(
        default="memory",
        description="Vector store backend (memory or milvus)"
    )
    zilliz_uri: str = Field(
        default="",
        description="Zilliz Cloud cluster URI"
    )
    zilliz_api_key: str = Field(
        default="",
        description="Zilliz Cloud API key"
    )
    milvus_collection_name: str = Field(
        default="feedback_vectors",
        description="Milvus collection name"
    )
    embedding_dimension: int = Field(
        default=1024,
        description="Embedding vector dimension",
        ge=8
    )

    # ========== Search & Triage Policy ==========
    search_top_k: int = Field(
        default=20,
        description="Candidates requested from the vector store per search",
        ge=1,
        le=100
    )
    min_similarity_threshold: float = Field(
        default=0.5,
        description="Matches scoring below this are discarded",
        ge=0.0,
        le=1.0
    )
    escalation_urgency: int = Field(
        default=10,
        description="Urgency assigned to every escalated record",
        ge=1,
        le=10
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        allowed = {"zai", "openai"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"llm_provider must be one of {allowed}")
        return v

    @field_validator("vector_backend")
    @classmethod
    def validate_vector_backend(cls, v: str) -> str:
        allowed = {"memory", "milvus"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"vector_backend must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class FeedbackCategory(str):
    """Categories the classifier is asked to choose from."""
    BUG = "Bug"
    PERFORMANCE = "Performance"
    SECURITY = "Security"
    UX = "UX"
    FEATURE_REQUEST = "Feature Request"
    BILLING = "Billing"
    PRAISE = "Praise"
    OTHER = "Other"


class Sentiment(str):
    """Feedback sentiment values."""
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"


class FeedbackStatus(str):
    """Triage workflow statuses."""
    NEW = "new"
    ACKNOWLEDGED = "acknowledged"
    ESCALATED = "escalated"
    RESOLVED = "resolved"


class Team(str):
    """Teams that can own escalated feedback."""
    ENGINEERING = "engineering"
    SECURITY = "security"
    SUPPORT = "support"
    PRODUCT = "product"
    BILLING = "billing"


class TriageAction(str):
    """Single-record and bulk triage actions."""
    ACKNOWLEDGE = "acknowledge"
    RESOLVE = "resolve"
    REOPEN = "reopen"
    ADD_NOTE = "add_note"
    ESCALATE = "escalate"


# ========== Policy constants ==========

MIN_SIMILARITY_THRESHOLD = 0.5
SEARCH_TOP_K = 20
ESCALATION_URGENCY = 10
DEFAULT_URGENCY = 5
MIN_URGENCY = 1
MAX_URGENCY = 10
CATEGORY_MAX_LENGTH = 100
VECTOR_METADATA_TEXT_LIMIT = 300
NOTIFICATION_TEXT_LIMIT = 500


# ========== Lists for validation ==========

KNOWN_CATEGORIES = [
    FeedbackCategory.BUG, FeedbackCategory.PERFORMANCE, FeedbackCategory.SECURITY,
    FeedbackCategory.UX, FeedbackCategory.FEATURE_REQUEST, FeedbackCategory.BILLING,
    FeedbackCategory.PRAISE, FeedbackCategory.OTHER
]
VALID_SENTIMENTS = [Sentiment.POSITIVE, Sentiment.NEGATIVE, Sentiment.NEUTRAL]
VALID_STATUSES = [
    FeedbackStatus.NEW, FeedbackStatus.ACKNOWLEDGED,
    FeedbackStatus.ESCALATED, FeedbackStatus.RESOLVED
]
VALID_TEAMS = [
    Team.ENGINEERING, Team.SECURITY, Team.SUPPORT,
    Team.PRODUCT, Team.BILLING
]
