"""
Feedback External Service Adapters
==================================

Adapters for external services (LLM, Vector Store) used by the feedback module.

Implements the interfaces defined in the application layer using concrete
external service implementations.
"""

from typing import List, Any, Optional

from src.feedback.application.services import ILLMClient, IVectorIndex
from src.feedback.domain import VectorMatch
from src.infrastructure.llm import ILLMClient as LLMProviderClient, create_llm_client
from src.infrastructure.vectorstore import IVectorStore, VectorEntry, create_vector_store
from src.config import settings, Settings


class LLMClientAdapter(ILLMClient):
    """
    Adapter that wraps the infrastructure LLM client.

    Implements the application layer ILLMClient interface using any
    provider client from ``src.infrastructure.llm``.
    """

    def __init__(self, client: LLMProviderClient):
        self._client = client

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 300,
        operation: str = "chat_completion"
    ) -> Any:
        """Generate chat completion."""
        return await self._client.chat_completion(messages, temperature, max_tokens, operation)

    async def embed(self, text: str) -> List[float]:
        result = await self._client.generate_embedding(text)
        return result.embedding


class VectorIndexAdapter(IVectorIndex):
    """
    Adapter that wraps the infrastructure vector store.

    Implements the application layer IVectorIndex interface on top of
    any ``IVectorStore`` backend.
    """

    def __init__(self, store: IVectorStore):
        self._store = store

    async def initialize(self) -> None:
        await self._store.initialize()

    async def count(self) -> int:
        return await self._store.count()

    async def upsert(self, record_id: str, embedding: List[float], metadata: dict) -> None:
        await self._store.upsert([VectorEntry(id=record_id, embedding=embedding, metadata=metadata)])

    async def query(self, embedding: List[float], top_k: int) -> List[VectorMatch]:
        results = await self._store.query(embedding, top_k)
        return [VectorMatch(id=r.id, score=r.score, metadata=r.metadata) for r in results]


def build_llm_adapter(config: Optional[Settings] = None) -> Optional[LLMClientAdapter]:
    """Adapter for the configured provider, or None when none is configured."""
    client = create_llm_client(config or settings)
    return LLMClientAdapter(client) if client is not None else None


def build_vector_adapter(config: Optional[Settings] = None) -> VectorIndexAdapter:
    return VectorIndexAdapter(create_vector_store(config or settings))
