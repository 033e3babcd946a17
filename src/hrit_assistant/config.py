"""Configuration models for the HR/IT assistant."""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator


class EmbeddingConfig(BaseModel):
    """Configures the embedding provider shared by both indices."""

    dimension: int = Field(default=384, ge=8)
    fallback_scale: float = Field(default=0.1, gt=0.0)
    timeout_seconds: float = Field(default=10.0, gt=0.0)


class ChunkingConfig(BaseModel):
    """Configures overlapping character windows for knowledge documents."""

    chunk_size: int = Field(default=1000, ge=50)
    chunk_overlap: int = Field(default=200, ge=0)

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")
        return self


class RetrievalConfig(BaseModel):
    """Configures neighbor counts for intent detection and context retrieval."""

    intent_k: int = Field(default=5, ge=1)
    context_k: int = Field(default=5, ge=1)


class ConversationConfig(BaseModel):
    """Configures session history bounds, expiry and the background sweep."""

    max_history: int = Field(default=10, ge=1)
    session_timeout_seconds: float = Field(default=30 * 60, gt=0.0)
    sweep_interval_seconds: float = Field(default=5 * 60, gt=0.0)
    persistence_path: str | None = None


class GenerationConfig(BaseModel):
    """Configures the fallback text-generation backend."""

    timeout_seconds: float = Field(default=30.0, gt=0.0)
    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    history_turns: int = Field(default=3, ge=0)


class AppSettings(BaseModel):
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)


_ENV_FIELDS: dict[str, tuple[str, str]] = {
    "HRIT_EMBEDDING_DIMENSION": ("embedding", "dimension"),
    "HRIT_EMBEDDING_TIMEOUT": ("embedding", "timeout_seconds"),
    "HRIT_CHUNK_SIZE": ("chunking", "chunk_size"),
    "HRIT_CHUNK_OVERLAP": ("chunking", "chunk_overlap"),
    "HRIT_INTENT_K": ("retrieval", "intent_k"),
    "HRIT_CONTEXT_K": ("retrieval", "context_k"),
    "HRIT_MAX_HISTORY": ("conversation", "max_history"),
    "HRIT_SESSION_TIMEOUT": ("conversation", "session_timeout_seconds"),
    "HRIT_SWEEP_INTERVAL": ("conversation", "sweep_interval_seconds"),
    "HRIT_HISTORY_FILE": ("conversation", "persistence_path"),
    "HRIT_GENERATION_TIMEOUT": ("generation", "timeout_seconds"),
    "OPENAI_MODEL": ("generation", "model"),
}


def load_settings(*, use_dotenv: bool = True) -> AppSettings:
    """Build settings from `HRIT_*` environment variables over defaults.

    Values are validated by the pydantic models, so a malformed variable
    raises `pydantic.ValidationError` at startup rather than at query time.
    """

    if use_dotenv:
        load_dotenv()

    sections: dict[str, dict[str, str]] = {}
    for env_key, (section, field_name) in _ENV_FIELDS.items():
        value = os.getenv(env_key)
        if value is None or value == "":
            continue
        sections.setdefault(section, {})[field_name] = value
    return AppSettings.model_validate(sections)
