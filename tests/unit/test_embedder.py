import time
from math import sqrt

from hrit_assistant.config import EmbeddingConfig
from hrit_assistant.ingest.embedder import ExternalEmbedder, HashingEmbedder, fallback_vector


class FakeEmbeddings:
    def __init__(self, dimension: int, delay: float = 0.0) -> None:
        self.dimension = dimension
        self.delay = delay

    def embed_query(self, text: str) -> list[float]:
        time.sleep(self.delay)
        return [float(len(text))] + [0.0] * (self.dimension - 1)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(text) for text in texts]


def test_hashing_embedder_is_deterministic_and_normalized() -> None:
    embedder = HashingEmbedder(EmbeddingConfig(dimension=64))

    first = embedder.embed("How many vacation days do I have?")
    second = HashingEmbedder(EmbeddingConfig(dimension=64)).embed("How many vacation days do I have?")

    assert first == second
    assert len(first) == 64
    assert abs(sqrt(sum(value * value for value in first)) - 1.0) < 1e-9


def test_empty_text_embeds_to_zero_vector() -> None:
    embedder = HashingEmbedder(EmbeddingConfig(dimension=16))

    assert embedder.embed("   ") == [0.0] * 16


def test_primary_failure_uses_fallback_vector(monkeypatch) -> None:
    embedder = HashingEmbedder(EmbeddingConfig(dimension=16))

    def _boom(text: str) -> list[float]:
        raise RuntimeError("model unavailable")

    monkeypatch.setattr(embedder, "_primary", _boom)

    assert embedder.embed("reset my password") == fallback_vector("reset my password", 16, 0.1)


def test_batch_failure_moves_whole_batch_to_fallback(monkeypatch) -> None:
    embedder = HashingEmbedder(EmbeddingConfig(dimension=16))
    original = embedder._primary

    def _fails_on_second(text: str) -> list[float]:
        if text == "second":
            raise RuntimeError("boom")
        return original(text)

    monkeypatch.setattr(embedder, "_primary", _fails_on_second)
    vectors = embedder.embed_batch(["first", "second", "third"])

    assert vectors == [fallback_vector(text, 16, 0.1) for text in ["first", "second", "third"]]


def test_fallback_vector_values_are_bounded_by_scale() -> None:
    vector = fallback_vector("anything", 32, 0.1)

    assert len(vector) == 32
    assert all(abs(value) <= 0.1 for value in vector)
    assert vector == fallback_vector("ANYTHING", 32, 0.1)


def test_external_embedder_checks_dimension() -> None:
    embedder = ExternalEmbedder(FakeEmbeddings(dimension=8), EmbeddingConfig(dimension=16))

    assert embedder.embed("hello") == fallback_vector("hello", 16, 0.1)


def test_external_embedder_times_out_to_fallback() -> None:
    embedder = ExternalEmbedder(
        FakeEmbeddings(dimension=16, delay=0.5),
        EmbeddingConfig(dimension=16, timeout_seconds=0.05),
    )

    assert embedder.embed("slow") == fallback_vector("slow", 16, 0.1)


def test_external_embedder_uses_model_vectors() -> None:
    embedder = ExternalEmbedder(FakeEmbeddings(dimension=16), EmbeddingConfig(dimension=16))

    vectors = embedder.embed_batch(["ab", "abcd"])

    assert vectors[0][0] == 2.0
    assert vectors[1][0] == 4.0
