"""Shared domain models."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

T = TypeVar("T")

GENERAL_INTENT = "general_question"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Document:
    """A knowledge passage contributed by a service (or one chunk of it)."""

    content: str
    metadata: dict[str, Any]

    @property
    def source_service(self) -> str:
        return str(self.metadata.get("source_service") or "unknown")

    @property
    def doc_type(self) -> str:
        return str(self.metadata.get("type") or "policy")


@dataclass(frozen=True, slots=True)
class IntentExample:
    """One labeled utterance; carries its own handler so routing is example-local."""

    utterance: str
    intent: str
    confidence: float
    source_service: str
    handler_name: str | None


@dataclass(slots=True)
class ServiceDescriptor:
    """Registry entry for a plugged-in domain service."""

    name: str
    service: Any
    metadata: dict[str, Any]
    intents: list[IntentExample]
    documents: list[Document]


@dataclass(frozen=True, slots=True)
class SearchHit(Generic[T]):
    """A nearest-neighbor result; distance is `1 - cosine similarity`."""

    entry: T
    distance: float
    rank: int = 0


@dataclass(slots=True)
class Exchange:
    timestamp: datetime
    user_message: str
    bot_response: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PendingAction:
    """Recorded step awaiting a yes/no answer from the user."""

    type: str
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class Session:
    user_id: str
    history: deque[Exchange]
    context: dict[str, Any] = field(default_factory=dict)
    pending_actions: list[PendingAction] = field(default_factory=list)
    last_activity: datetime = field(default_factory=utc_now)
    created: datetime = field(default_factory=utc_now)


@dataclass(frozen=True, slots=True)
class ConfirmationResult:
    is_confirmation: bool
    is_positive: bool
    confidence: float


@dataclass(slots=True)
class IntentResult:
    """Outcome of intent detection; only the top neighbor decides routing."""

    primary: str
    confidence: float
    source_service: str | None = None
    handler_name: str | None = None
    reason: str = ""
    neighbors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary": self.primary,
            "confidence": self.confidence,
            "source_service": self.source_service,
            "handler_name": self.handler_name,
            "reason": self.reason,
            "neighbors": self.neighbors,
        }


@dataclass(slots=True)
class RetrievedDocument:
    content: str
    metadata: dict[str, Any]
    distance: float
    source_service: str


@dataclass(slots=True)
class RetrievedContext:
    context: str = ""
    documents: list[RetrievedDocument] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)


@dataclass(slots=True)
class OrchestrationResult:
    intent: IntentResult
    retrieved_context: RetrievedContext
    answer: str
    service_result: dict[str, Any] | None = None
    handled_by_service: bool = False
    handling_service: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent.to_dict(),
            "context": self.retrieved_context.context,
            "sources": self.retrieved_context.sources,
            "answer": self.answer,
            "service_result": self.service_result,
            "handled_by_service": self.handled_by_service,
            "handling_service": self.handling_service,
            "metadata": self.metadata,
        }
