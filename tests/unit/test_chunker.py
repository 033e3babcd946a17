import pytest

from hrit_assistant.config import ChunkingConfig
from hrit_assistant.ingest.chunker import SlidingWindowChunker
from hrit_assistant.types import Document


def test_short_document_is_a_single_exact_chunk() -> None:
    chunker = SlidingWindowChunker(ChunkingConfig(chunk_size=200, chunk_overlap=40))
    doc = Document(content="Passwords expire every 90 days.", metadata={"category": "password"})

    chunks = chunker.split(doc)

    assert len(chunks) == 1
    assert chunks[0].content == doc.content
    assert chunks[0].metadata == {"category": "password", "chunk_index": 0}


def test_blank_document_produces_no_chunks() -> None:
    chunker = SlidingWindowChunker()

    assert chunker.split(Document(content="  \n ", metadata={})) == []


def test_long_document_respects_window_and_keeps_every_sentence() -> None:
    chunker = SlidingWindowChunker(ChunkingConfig(chunk_size=120, chunk_overlap=30))
    sentences = [f"Rule number {i} applies to every employee in the office." for i in range(12)]
    doc = Document(content=" ".join(sentences), metadata={"source_service": "policy"})

    chunks = chunker.split(doc)

    assert len(chunks) > 1
    assert all(len(chunk.content) <= 120 for chunk in chunks)
    assert [chunk.metadata["chunk_index"] for chunk in chunks] == list(range(len(chunks)))
    assert all(chunk.metadata["source_service"] == "policy" for chunk in chunks)
    for sentence in sentences:
        assert any(sentence in chunk.content for chunk in chunks)


def test_oversized_segment_uses_fixed_stride_windows() -> None:
    chunker = SlidingWindowChunker(ChunkingConfig(chunk_size=100, chunk_overlap=20))
    text = "abcdefghij" * 50

    chunks = chunker.split(Document(content=text, metadata={}))

    assert all(len(chunk.content) <= 100 for chunk in chunks)
    assert chunks[0].content == text[:100]
    assert chunks[1].content == text[80:180]
    assert chunks[0].content[80:] == chunks[1].content[:20]


def test_overlap_must_be_smaller_than_chunk_size() -> None:
    with pytest.raises(ValueError):
        ChunkingConfig(chunk_size=100, chunk_overlap=100)
