"""Knowledge and intent indices plus the snapshot that pairs them."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from hrit_assistant.ingest.chunker import SlidingWindowChunker
from hrit_assistant.ingest.embedder import Embedder
from hrit_assistant.retrieval.vector_store import InMemoryVectorStore, VectorStore
from hrit_assistant.types import Document, IntentExample, SearchHit, ServiceDescriptor


class KnowledgeIndex:
    """Chunked document passages searchable by embedding."""

    def __init__(self, store: VectorStore[Document]) -> None:
        self._store = store

    @classmethod
    def build(
        cls,
        documents: list[Document],
        embedder: Embedder,
        chunker: SlidingWindowChunker,
    ) -> "KnowledgeIndex":
        chunks = chunker.split_many(documents)
        embeddings = embedder.embed_batch([chunk.content for chunk in chunks])
        return cls(InMemoryVectorStore(chunks, embeddings, dimension=embedder.dimension))

    @classmethod
    def empty(cls, dimension: int) -> "KnowledgeIndex":
        return cls(InMemoryVectorStore([], [], dimension=dimension))

    @property
    def dimension(self) -> int:
        return self._store.dimension

    def __len__(self) -> int:
        return len(self._store)

    def documents(self) -> list[Document]:
        return self._store.entries()

    def search(self, query_embedding: list[float], k: int) -> list[SearchHit[Document]]:
        return self._store.search(query_embedding, k)


class IntentIndex:
    """Labeled example utterances, one vector each, no chunking."""

    def __init__(self, store: VectorStore[IntentExample]) -> None:
        self._store = store

    @classmethod
    def build(cls, examples: list[IntentExample], embedder: Embedder) -> "IntentIndex":
        embeddings = embedder.embed_batch([example.utterance for example in examples])
        return cls(InMemoryVectorStore(examples, embeddings, dimension=embedder.dimension))

    @classmethod
    def empty(cls, dimension: int) -> "IntentIndex":
        return cls(InMemoryVectorStore([], [], dimension=dimension))

    @property
    def dimension(self) -> int:
        return self._store.dimension

    def __len__(self) -> int:
        return len(self._store)

    def examples(self) -> list[IntentExample]:
        return self._store.entries()

    def search(self, query_embedding: list[float], k: int) -> list[SearchHit[IntentExample]]:
        return self._store.search(query_embedding, k)


@dataclass(frozen=True, slots=True)
class IndexSnapshot:
    """A complete, read-only generation of both indices.

    Readers hold one snapshot for the duration of a query; the registry
    replaces the whole object when a rebuild finishes.
    """

    version: int
    knowledge: KnowledgeIndex
    intents: IntentIndex
    descriptors: Mapping[str, ServiceDescriptor] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if self.knowledge.dimension != self.intents.dimension:
            raise ValueError(
                "knowledge and intent indices must share one embedding dimension "
                f"({self.knowledge.dimension} != {self.intents.dimension})"
            )

    @property
    def services(self) -> tuple[str, ...]:
        return tuple(self.descriptors)

    @classmethod
    def empty(cls, dimension: int) -> "IndexSnapshot":
        return cls(
            version=0,
            knowledge=KnowledgeIndex.empty(dimension),
            intents=IntentIndex.empty(dimension),
        )
