"""Plugin contract for domain services, validated with Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

REQUIRED_CAPABILITIES = ("list_intent_patterns", "list_documents", "describe_service")

ServiceHandler = Callable[[str, dict[str, Any]], dict[str, Any]]


@runtime_checkable
class DomainService(Protocol):
    """What a service must expose to be plugged into the registry.

    Besides these three providers, a service implements one method per
    `handler_name` it declares, with the signature
    `handler(query: str, context: dict) -> dict` returning at least
    `type` and `message`.
    """

    def list_intent_patterns(self) -> list[dict[str, Any]]: ...

    def list_documents(self) -> list[dict[str, Any]]: ...

    def describe_service(self) -> dict[str, Any]: ...


def missing_capabilities(service: object) -> list[str]:
    return [name for name in REQUIRED_CAPABILITIES if not callable(getattr(service, name, None))]


class IntentPatternSpec(BaseModel):
    """One declared intent with its example utterances."""

    intent: str = Field(min_length=1)
    examples: list[str] = Field(min_length=1)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    handler_name: str | None = None

    @field_validator("examples")
    @classmethod
    def _non_blank_examples(cls, value: list[str]) -> list[str]:
        cleaned = [example.strip() for example in value if example.strip()]
        if not cleaned:
            raise ValueError("at least one non-blank example is required")
        return cleaned


class DocumentMetadataSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = "policy"
    category: str = "general"


class DocumentSpec(BaseModel):
    content: str = Field(min_length=1)
    metadata: DocumentMetadataSpec = Field(default_factory=DocumentMetadataSpec)


class ServiceMetadataSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1)
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)


class PendingActionSpec(BaseModel):
    """A confirmation a handler wants to open for the current user."""

    type: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Handler return value; extra keys are passed through untouched."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(min_length=1)
    message: str
    pending_action: PendingActionSpec | None = None
