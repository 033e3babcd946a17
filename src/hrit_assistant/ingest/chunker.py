"""Sentence-aware sliding-window chunking for knowledge documents."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from hrit_assistant.config import ChunkingConfig
from hrit_assistant.types import Document

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


@dataclass(slots=True)
class _ChunkState:
    parts: list[str] = field(default_factory=list)

    @property
    def length(self) -> int:
        if not self.parts:
            return 0
        return sum(len(part) for part in self.parts) + len(self.parts) - 1

    def text(self) -> str:
        return " ".join(self.parts).strip()


class SlidingWindowChunker:
    """Splits long documents into overlapping pieces of bounded size.

    Design notes:
    1. A document that already fits in `chunk_size` characters is returned as
       a single chunk with its exact content, so indexing it and searching
       with its own text lands on the same vector.

    2. Longer documents are cut into paragraphs and then sentences. Sentences
       are packed greedily until the next one would overflow the window. When
       a chunk is finalized, its last `chunk_overlap` characters (trimmed to a
       word boundary) seed the next chunk, which keeps cross-chunk context
       retrievable.

    3. A single sentence longer than `chunk_size` is sliced with a fixed
       window (`window=chunk_size`, `stride=chunk_size-chunk_overlap`).

    Every chunk carries a copy of the parent metadata plus `chunk_index`.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def split(self, document: Document) -> list[Document]:
        content = document.content.strip()
        if not content:
            return []
        if len(content) <= self.config.chunk_size:
            return [self._make_chunk(document, document.content, 0)]

        texts: list[str] = []
        state = _ChunkState()
        for segment in self._segments(content):
            if len(segment) > self.config.chunk_size:
                if state.parts:
                    texts.append(state.text())
                    state = _ChunkState()
                texts.extend(self._split_long_segment(segment))
                continue

            if state.length + len(segment) + 1 <= self.config.chunk_size or not state.parts:
                state.parts.append(segment)
                continue

            finalized = state.text()
            texts.append(finalized)
            overlap = self._overlap_tail(finalized, room=self.config.chunk_size - len(segment) - 1)
            state = _ChunkState(parts=[overlap, segment] if overlap else [segment])

        if state.parts:
            texts.append(state.text())

        return [self._make_chunk(document, text, index) for index, text in enumerate(texts)]

    def split_many(self, documents: list[Document]) -> list[Document]:
        chunks: list[Document] = []
        for document in documents:
            chunks.extend(self.split(document))
        return chunks

    def _segments(self, text: str) -> list[str]:
        segments: list[str] = []
        for paragraph in _PARAGRAPH_SPLIT.split(text):
            paragraph = " ".join(paragraph.split())
            if not paragraph:
                continue
            segments.extend(part.strip() for part in _SENTENCE_SPLIT.split(paragraph) if part.strip())
        return segments

    def _split_long_segment(self, segment: str) -> list[str]:
        size = self.config.chunk_size
        stride = size - self.config.chunk_overlap
        windows: list[str] = []
        start = 0
        while start < len(segment):
            window = segment[start : start + size]
            windows.append(window.strip())
            if start + size >= len(segment):
                break
            start += stride
        return [window for window in windows if window]

    def _overlap_tail(self, text: str, *, room: int) -> str:
        limit = min(self.config.chunk_overlap, room)
        if limit <= 0:
            return ""
        tail = text[-limit:]
        if len(tail) < len(text):
            # Drop the partial leading word.
            _, _, tail = tail.partition(" ")
        return tail.strip()

    @staticmethod
    def _make_chunk(parent: Document, text: str, index: int) -> Document:
        return Document(content=text, metadata={**parent.metadata, "chunk_index": index})
