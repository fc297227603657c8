"""
LLM Client Infrastructure
==========================

Wrapper for LLM providers (Z.AI, OpenAI) providing a clean interface for
the two inference calls feedback triage needs: chat completion for
classification and embedding generation for similarity search.

This module abstracts the LLM client implementation following the
Dependency Inversion Principle - the domain layer depends on abstractions,
not concrete implementations.
"""

import asyncio
import hashlib
import json
import math
import re
import time
from typing import List, Optional
from abc import ABC, abstractmethod

from openai import AsyncOpenAI
from zai import ZaiClient

from src.config import settings, Settings
from src.core import LLMException, ConfigurationException
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class EmbeddingResult:
    """Result of an embedding generation."""

    def __init__(self, embedding: List[float], model: str):
        self.embedding = embedding
        self.model = model
        self.dimension = len(embedding)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for text."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 300,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""


class ZAIILLMClient(ILLMClient):
    """
    Z.AI SDK client implementation.

    The SDK is synchronous, so calls run in a worker thread to keep the
    event loop free.
    """

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key or settings.zai_api_key
        if not self._api_key:
            raise ConfigurationException("Z.AI API key not configured")

        self._client = ZaiClient(api_key=self._api_key)
        self._model = settings.llm_model
        self._embedding_model = settings.embedding_model

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for text using the Z.AI embedding model.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with embedding vector

        Raises:
            LLMException: If embedding generation fails
        """
        try:
            response = await asyncio.to_thread(
                self._client.embeddings.create,
                model=self._embedding_model,
                input=text
            )
            return EmbeddingResult(
                embedding=response.data[0].embedding,
                model=self._embedding_model
            )
        except Exception as e:
            raise LLMException(f"Embedding generation failed: {str(e)}")

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 300,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate
            operation: Operation name for logging (e.g. classification)

        Returns:
            ChatCompletionResult with generated text

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await asyncio.to_thread(
                self._client.chat.completions.create,
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )

            latency_ms = int((time.perf_counter() - start_time) * 1000)
            content = response.choices[0].message.content or ""

            # Z.AI doesn't always return token usage, so we estimate
            usage = getattr(response, "usage", None)
            prompt_tokens = getattr(usage, "prompt_tokens", None) or len(str(messages))
            completion_tokens = getattr(usage, "completion_tokens", None) or len(content)

            logger.debug(
                "LLM call completed",
                extra={"operation": operation, "model": self._model, "latency_ms": latency_ms}
            )

            return ChatCompletionResult(
                content=content,
                model=self._model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                latency_ms=latency_ms
            )

        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}")


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation for GPT models.

    Provides async wrapper around OpenAI SDK operations.
    """

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key or settings.openai_api_key
        if not self._api_key:
            raise ConfigurationException("OpenAI API key not configured")

        self._client = AsyncOpenAI(api_key=self._api_key)
        self._model = settings.llm_model
        self._embedding_model = settings.embedding_model

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for text using OpenAI embedding model.

        Raises:
            LLMException: If embedding generation fails
        """
        try:
            response = await self._client.embeddings.create(
                model=self._embedding_model,
                input=text
            )
            return EmbeddingResult(
                embedding=response.data[0].embedding,
                model=self._embedding_model
            )
        except Exception as e:
            raise LLMException(f"Embedding generation failed: {str(e)}")

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 300,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using OpenAI GPT.

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )

            latency_ms = int((time.perf_counter() - start_time) * 1000)

            content = response.choices[0].message.content or ""
            prompt_tokens = response.usage.prompt_tokens
            completion_tokens = response.usage.completion_tokens

            logger.debug(
                "LLM call completed",
                extra={"operation": operation, "model": self._model, "latency_ms": latency_ms}
            )

            return ChatCompletionResult(
                content=content,
                model=self._model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                latency_ms=latency_ms
            )

        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}")


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs and tests.

    Classifies with simple keyword rules and embeds with feature hashing,
    so texts sharing words land close together without any API calls.
    """

    # First matching rule wins: (keywords, category, sentiment, urgency, team)
    RULES = [
        (("xss", "vulnerab", "injection", "sso", "locked out", "security"),
         "Security", "Negative", 9, "security"),
        (("charged", "refund", "billing", "pricing", "subscription", "invoice"),
         "Billing", "Negative", 7, "billing"),
        (("crash", "broken", "error", "not working", "fail", "bug", "typeerror"),
         "Bug", "Negative", 8, "engineering"),
        (("slow", "memory", "lag", "timeout", "load", "429", "rate limit"),
         "Performance", "Negative", 6, "engineering"),
        (("feature request", "would love", "add ", "support for", "plugin", "need better"),
         "Feature Request", "Neutral", 4, "product"),
        (("confusing", "onboarding", "can't find", "cant find", "dated", "aria", "inconsistent"),
         "UX", "Negative", 4, "product"),
        (("love", "great", "best", "thanks", "awesome"),
         "Praise", "Positive", 1, "product"),
    ]

    _TOKEN = re.compile(r"[a-z0-9]+")

    def __init__(self, dimension: Optional[int] = None):
        self._dimension = dimension or settings.embedding_dimension

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Return a normalized hashed bag-of-words vector."""
        vector = [0.0] * self._dimension
        for token in self._TOKEN.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            index = int.from_bytes(digest[:4], "big") % self._dimension
            vector[index] += 1.0
        norm = math.sqrt(sum(x * x for x in vector))
        if norm:
            vector = [x / norm for x in vector]
        return EmbeddingResult(embedding=vector, model="mock-embedding")

    def _classify(self, text: str) -> dict:
        lowered = text.lower()
        for keywords, category, sentiment, urgency, team in self.RULES:
            matched = [k.strip() for k in keywords if k in lowered]
            if matched:
                return {
                    "category": category,
                    "sentiment": sentiment,
                    "urgency": urgency,
                    "suggestedTeam": team,
                    "keywords": matched[:4],
                }
        return {
            "category": "Other",
            "sentiment": "Neutral",
            "urgency": 3,
            "suggestedTeam": "support",
            "keywords": [],
        }

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 300,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Return a fenced JSON classification for the last user message."""
        user_content = str(messages[-1].get("content", "")) if messages else ""
        content = f"```json\n{json.dumps(self._classify(user_content), indent=2)}\n```"

        return ChatCompletionResult(
            content=content,
            model="mock-model",
            prompt_tokens=len(user_content.split()),
            completion_tokens=len(content.split()),
            latency_ms=0
        )


def create_llm_client(config: Optional[Settings] = None) -> Optional[ILLMClient]:
    """
    Build the configured LLM client.

    Returns None when no provider is configured; callers treat that as an
    unavailable inference service.
    """
    config = config or settings

    if config.mock_llm:
        return MockLLMClient(config.embedding_dimension)

    try:
        if config.llm_provider == "openai":
            return OpenAILLMClient(config.openai_api_key)
        return ZAIILLMClient(config.zai_api_key)
    except ConfigurationException as e:
        logger.warning(f"LLM client not configured: {e}")
        return None
