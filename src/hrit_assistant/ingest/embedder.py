"""Embedding abstractions and deterministic baseline implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sin, sqrt
from typing import TYPE_CHECKING

from hrit_assistant.config import EmbeddingConfig
from hrit_assistant.timeouts import call_with_timeout

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


class Embedder(ABC):
    """Embedder interface shared by both indices and query-time lookups."""

    dimension: int

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Embed one text; must never raise."""

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


def _stable_hash(text: str) -> int:
    digest = blake2b(text.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest[:4], "little") & 0x7FFFFFFF


def fallback_vector(text: str, dimension: int, scale: float = 0.1) -> list[float]:
    """Degraded embedding: `sin(hash * (i + 1)) * scale` for each dimension."""
    seed = _stable_hash(text.lower())
    return [sin(seed * (i + 1)) * scale for i in range(dimension)]


class HashingEmbedder(Embedder):
    """Deterministic bag-of-tokens embedding without external model calls.

    Each whitespace token lands in a blake2b bucket and contributes
    `1 / (position + 1)`, so earlier words weigh more. The result is
    L2-normalized; an empty text yields the zero vector.

    This is a structural stand-in for a semantic model. It is good enough for
    self-retrieval and near-verbatim intent matching, not for paraphrases.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self.dimension = self.config.dimension

    def embed(self, text: str) -> list[float]:
        try:
            return self._primary(text)
        except Exception:
            logger.warning("Primary embedding failed; using fallback vector", exc_info=True)
            return self._fallback(text)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        # One path per batch so vectors inside an index build stay comparable.
        try:
            return [self._primary(text) for text in texts]
        except Exception:
            logger.warning(
                "Primary embedding failed for batch of %d; re-embedding on fallback path",
                len(texts),
                exc_info=True,
            )
            return [self._fallback(text) for text in texts]

    def _primary(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for position, token in enumerate(text.lower().split()):
            bucket = _stable_hash(token) % self.dimension
            vector[bucket] += 1.0 / (position + 1)

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]

    def _fallback(self, text: str) -> list[float]:
        return fallback_vector(text, self.dimension, self.config.fallback_scale)


class ExternalEmbedder(Embedder):
    """Adapter over a LangChain `Embeddings` model with a bounded wait.

    Any timeout, error, or vector of the wrong length is replaced by the
    deterministic fallback vector so callers never see an exception. A batch
    that fails anywhere is embedded entirely on the fallback path.
    """

    def __init__(self, model: "Embeddings", config: EmbeddingConfig | None = None) -> None:
        self.model = model
        self.config = config or EmbeddingConfig()
        self.dimension = self.config.dimension

    def embed(self, text: str) -> list[float]:
        try:
            vector = call_with_timeout(self.model.embed_query, self.config.timeout_seconds, text)
            return self._checked(vector)
        except Exception as exc:
            logger.warning("External embedding failed (%s); using fallback vector", exc)
            return fallback_vector(text, self.dimension, self.config.fallback_scale)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = call_with_timeout(
                self.model.embed_documents, self.config.timeout_seconds, list(texts)
            )
            if len(vectors) != len(texts):
                raise ValueError("embedding model returned a different number of vectors")
            return [self._checked(vector) for vector in vectors]
        except Exception as exc:
            logger.warning(
                "External batch embedding failed (%s); using fallback vectors for %d texts",
                exc,
                len(texts),
            )
            return [
                fallback_vector(text, self.dimension, self.config.fallback_scale) for text in texts
            ]

    def _checked(self, vector: list[float]) -> list[float]:
        if len(vector) != self.dimension:
            raise ValueError(f"expected dimension {self.dimension}, got {len(vector)}")
        return [float(value) for value in vector]
