"""
Vector Store Infrastructure
============================

Vector store implementations for feedback embeddings.

- ``MilvusVectorStore``: Zilliz Cloud (managed Milvus), COSINE metric
- ``InMemoryVectorStore``: process-local cosine scan for development

Both expose upsert-by-id and top-k query; every entry is keyed by the id
of the feedback record it was built from.
"""

import asyncio
import math
from typing import Dict, List, Optional, Any
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from pymilvus import MilvusClient

from src.config import settings, Settings
from src.core import VectorStoreException
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class VectorEntry:
    """Embedding plus denormalized metadata for one feedback record."""
    id: str
    embedding: List[float]
    metadata: dict = field(default_factory=dict)


@dataclass
class SearchResult:
    """Result from vector search."""
    id: str
    score: float
    metadata: dict = field(default_factory=dict)


class IVectorStore(ABC):
    """
    Interface for vector store operations.

    Following Interface Segregation and Dependency Inversion principles.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the vector store."""

    @abstractmethod
    async def upsert(self, entries: List[VectorEntry]) -> None:
        """Insert or replace entries by id."""

    @abstractmethod
    async def query(self, query_embedding: List[float], top_k: int = 20) -> List[SearchResult]:
        """Return the ``top_k`` nearest entries, best first."""

    @abstractmethod
    async def count(self) -> int:
        """Get number of entries in the store."""


def cosine_similarity(a: List[float], b: List[float]) -> float:
    if len(a) != len(b):
        raise VectorStoreException(
            f"Dimension mismatch: {len(a)} != {len(b)}"
        )
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore(IVectorStore):
    """
    Process-local vector store.

    Scores are cosine similarity clipped to [0, 1]. Contents are lost on
    restart, so it only suits development and tests.
    """

    def __init__(self):
        self._entries: Dict[str, VectorEntry] = {}

    async def initialize(self) -> None:
        return None

    async def upsert(self, entries: List[VectorEntry]) -> None:
        for entry in entries:
            self._entries[entry.id] = entry

    async def query(self, query_embedding: List[float], top_k: int = 20) -> List[SearchResult]:
        scored = [
            SearchResult(
                id=entry.id,
                score=max(0.0, min(1.0, cosine_similarity(query_embedding, entry.embedding))),
                metadata=dict(entry.metadata)
            )
            for entry in self._entries.values()
        ]
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:top_k]

    async def count(self) -> int:
        return len(self._entries)


class MilvusVectorStore(IVectorStore):
    """
    Zilliz Cloud (Managed Milvus) implementation of vector store.

    The collection is created on first use with a string primary key and
    COSINE metric; metadata fields are stored as dynamic fields.
    The pymilvus client is synchronous, so calls run in a worker thread.
    """

    OUTPUT_FIELDS = ["category", "sentiment", "urgency", "text"]

    def __init__(
        self,
        collection_name: Optional[str] = None,
        uri: Optional[str] = None,
        api_key: Optional[str] = None,
        dimension: Optional[int] = None
    ):
        self._collection_name = collection_name or settings.milvus_collection_name
        self._dimension = dimension or settings.embedding_dimension
        self._uri = uri or settings.zilliz_uri
        self._api_key = api_key or settings.zilliz_api_key
        self._client: Optional[MilvusClient] = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize Zilliz Cloud client and collection."""
        if self._initialized:
            return

        if not self._uri or not self._api_key:
            raise VectorStoreException("ZILLIZ_URI / ZILLIZ_API_KEY not configured")

        try:
            self._client = MilvusClient(uri=self._uri, token=self._api_key)

            if not self._client.has_collection(self._collection_name):
                self._client.create_collection(
                    collection_name=self._collection_name,
                    dimension=self._dimension,
                    primary_field_name="id",
                    id_type="string",
                    max_length=64,
                    vector_field_name="vector",
                    metric_type="COSINE",
                    auto_id=False
                )

            self._initialized = True

        except Exception as e:
            raise VectorStoreException(f"Failed to initialize Milvus: {str(e)}")

    async def upsert(self, entries: List[VectorEntry]) -> None:
        """
        Insert or replace entries.

        Raises:
            VectorStoreException: If the upsert fails
        """
        await self.initialize()

        data = [
            {"id": entry.id, "vector": entry.embedding, **entry.metadata}
            for entry in entries
        ]

        try:
            await asyncio.to_thread(
                self._client.upsert,
                collection_name=self._collection_name,
                data=data
            )
        except Exception as e:
            raise VectorStoreException(f"Failed to upsert entries: {str(e)}")

    async def query(self, query_embedding: List[float], top_k: int = 20) -> List[SearchResult]:
        """
        Search for the nearest entries.

        Raises:
            VectorStoreException: If search fails
        """
        await self.initialize()

        try:
            results = await asyncio.to_thread(
                self._client.search,
                collection_name=self._collection_name,
                data=[query_embedding],
                limit=top_k,
                output_fields=self.OUTPUT_FIELDS
            )
        except Exception as e:
            raise VectorStoreException(f"Search failed: {str(e)}")

        formatted_results = []
        if results and len(results) > 0:
            for hit in results[0]:
                entity: Dict[str, Any] = hit.get("entity", {}) or {}
                formatted_results.append(SearchResult(
                    id=str(hit.get("id")),
                    # COSINE distance in Milvus is the similarity itself
                    score=max(0.0, min(1.0, float(hit["distance"]))),
                    metadata={k: entity.get(k) for k in self.OUTPUT_FIELDS if k in entity}
                ))

        return formatted_results

    async def count(self) -> int:
        await self.initialize()

        try:
            stats = await asyncio.to_thread(
                self._client.get_collection_stats,
                collection_name=self._collection_name
            )
            return int(stats.get("row_count", 0))
        except Exception as e:
            logger.warning(f"Could not read vector count: {e}")
            return 0


def create_vector_store(config: Optional[Settings] = None) -> IVectorStore:
    """Build the configured vector store backend."""
    config = config or settings

    if config.vector_backend == "milvus":
        return MilvusVectorStore(
            collection_name=config.milvus_collection_name,
            uri=config.zilliz_uri,
            api_key=config.zilliz_api_key,
            dimension=config.embedding_dimension
        )
    return InMemoryVectorStore()
