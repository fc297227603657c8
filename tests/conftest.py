"""Pytest configuration and shared fixtures for tests."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.infrastructure.database import Base
from src.infrastructure.llm import MockLLMClient
from src.feedback.application import (
    ClassificationService,
    SimilarityIndexService,
)
from src.feedback.domain import FeedbackItem
from src.feedback.infrastructure import (
    FeedbackModel,
    LLMClientAdapter,
    SQLAlchemyFeedbackRepository,
    VectorIndexAdapter,
)
from src.infrastructure.vectorstore import InMemoryVectorStore


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create sqlite-backed session factory with the feedback table."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=[FeedbackModel.__table__])

    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def repository(session: AsyncSession) -> SQLAlchemyFeedbackRepository:
    return SQLAlchemyFeedbackRepository(session)


@pytest.fixture
def mock_llm() -> LLMClientAdapter:
    """Offline LLM: keyword classification plus hashed embeddings."""
    return LLMClientAdapter(MockLLMClient(dimension=256))


@pytest.fixture
def vector_index() -> VectorIndexAdapter:
    return VectorIndexAdapter(InMemoryVectorStore())


@pytest.fixture
def classifier(mock_llm: LLMClientAdapter) -> ClassificationService:
    return ClassificationService(mock_llm)


@pytest.fixture
def similarity_index(mock_llm: LLMClientAdapter, vector_index: VectorIndexAdapter) -> SimilarityIndexService:
    return SimilarityIndexService(mock_llm, vector_index)


@pytest.fixture
def make_item():
    """Factory for feedback items."""

    def _make(source_id: str = "d001", text: str = "App crashes on upload", source: str = "discord",
              author: str = "user123") -> FeedbackItem:
        return FeedbackItem(source=source, source_id=source_id, author=author, text=text)

    return _make
