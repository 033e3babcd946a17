"""Vector store contract and in-memory implementation."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from math import sqrt
from typing import Generic, Protocol, TypeVar

from hrit_assistant.types import SearchHit

T = TypeVar("T")


class VectorStore(Protocol[T]):
    """Minimal nearest-neighbor contract used by both indices."""

    dimension: int

    def search(self, query_embedding: list[float], k: int) -> list[SearchHit[T]]:
        """Return up to `k` entries by ascending cosine distance."""

    def __len__(self) -> int: ...

    def entries(self) -> list[T]: ...


@dataclass(frozen=True, slots=True)
class _StoredVector(Generic[T]):
    entry: T
    embedding: tuple[float, ...]


class InMemoryVectorStore(Generic[T]):
    """Immutable exact-search store; build a new one instead of mutating.

    Entries keep insertion order, and ranking uses a stable sort, so equal
    distances are returned in the order entries were added.
    """

    def __init__(
        self,
        entries: Sequence[T],
        embeddings: Sequence[list[float]],
        *,
        dimension: int,
    ) -> None:
        if len(entries) != len(embeddings):
            raise ValueError("entries and embeddings must have the same length")
        for embedding in embeddings:
            if len(embedding) != dimension:
                raise ValueError(
                    f"embedding dimension {len(embedding)} does not match store dimension {dimension}"
                )
        self.dimension = dimension
        self._records: tuple[_StoredVector[T], ...] = tuple(
            _StoredVector(entry=entry, embedding=tuple(embedding))
            for entry, embedding in zip(entries, embeddings, strict=True)
        )

    def __len__(self) -> int:
        return len(self._records)

    def entries(self) -> list[T]:
        return [record.entry for record in self._records]

    def search(self, query_embedding: list[float], k: int) -> list[SearchHit[T]]:
        if k <= 0 or not self._records:
            return []
        scored = [
            (1.0 - _cosine_similarity(query_embedding, record.embedding), record.entry)
            for record in self._records
        ]
        ranked = sorted(scored, key=lambda item: item[0])
        return [
            SearchHit(entry=entry, distance=distance, rank=i + 1)
            for i, (distance, entry) in enumerate(ranked[:k])
        ]


def _cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
