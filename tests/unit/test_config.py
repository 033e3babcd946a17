import pytest
from pydantic import ValidationError

from hrit_assistant.config import load_settings


def test_defaults_without_environment(monkeypatch) -> None:
    for key in ("HRIT_EMBEDDING_DIMENSION", "HRIT_CHUNK_SIZE", "HRIT_MAX_HISTORY", "HRIT_HISTORY_FILE"):
        monkeypatch.delenv(key, raising=False)

    settings = load_settings(use_dotenv=False)

    assert settings.embedding.dimension == 384
    assert settings.chunking.chunk_size == 1000
    assert settings.chunking.chunk_overlap == 200
    assert settings.retrieval.intent_k == 5
    assert settings.conversation.max_history == 10
    assert settings.conversation.session_timeout_seconds == 1800
    assert settings.conversation.persistence_path is None
    assert settings.generation.timeout_seconds == 30


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("HRIT_EMBEDDING_DIMENSION", "128")
    monkeypatch.setenv("HRIT_MAX_HISTORY", "4")
    monkeypatch.setenv("HRIT_HISTORY_FILE", "/tmp/history.json")

    settings = load_settings(use_dotenv=False)

    assert settings.embedding.dimension == 128
    assert settings.conversation.max_history == 4
    assert settings.conversation.persistence_path == "/tmp/history.json"


def test_invalid_environment_value_fails_fast(monkeypatch) -> None:
    monkeypatch.setenv("HRIT_CHUNK_SIZE", "100")
    monkeypatch.setenv("HRIT_CHUNK_OVERLAP", "150")

    with pytest.raises(ValidationError):
        load_settings(use_dotenv=False)
