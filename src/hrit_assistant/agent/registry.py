"""Service registry: pluggable domain services and the indices built from them."""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from hrit_assistant.agent.contracts import (
    DocumentSpec,
    DomainService,
    IntentPatternSpec,
    ServiceHandler,
    ServiceMetadataSpec,
    missing_capabilities,
)
from hrit_assistant.ingest.chunker import SlidingWindowChunker
from hrit_assistant.ingest.embedder import Embedder
from hrit_assistant.retrieval.indexes import IndexSnapshot, IntentIndex, KnowledgeIndex
from hrit_assistant.types import Document, IntentExample, ServiceDescriptor

logger = logging.getLogger(__name__)

STATIC_SOURCE = "static"


class ServiceRegistry:
    """Stores `ServiceDescriptor`s by name and owns the index snapshot.

    Registration and rebuilds share one writer lock, so rebuilds never
    interleave. Each rebuild assembles a complete `IndexSnapshot` before
    publishing it with a single reference swap; readers that grabbed the
    previous snapshot keep using it until they finish.
    """

    def __init__(
        self,
        embedder: Embedder,
        chunker: SlidingWindowChunker | None = None,
        *,
        base_documents: list[Document] | None = None,
    ) -> None:
        self._embedder = embedder
        self._chunker = chunker or SlidingWindowChunker()
        self._base_documents = [
            Document(
                content=doc.content,
                metadata={"source_service": STATIC_SOURCE, **doc.metadata},
            )
            for doc in base_documents or []
        ]
        self._descriptors: dict[str, ServiceDescriptor] = {}
        self._write_lock = threading.RLock()
        self._snapshot = IndexSnapshot.empty(embedder.dimension)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def register(self, service: Any, name: str) -> bool:
        """Validate and store `service` under `name`; returns False if refused."""
        if not isinstance(service, DomainService) or missing_capabilities(service):
            logger.warning(
                "Service %s is missing required capabilities %s; not registered",
                name,
                ", ".join(missing_capabilities(service)),
            )
            return False

        try:
            descriptor = self._describe(service, name)
        except ValidationError as exc:
            logger.warning(
                "Service %s returned malformed plugin data; not registered: %s", name, exc
            )
            return False
        except Exception:
            logger.warning(
                "Service %s failed while describing itself; not registered", name, exc_info=True
            )
            return False

        with self._write_lock:
            replaced = name in self._descriptors
            self._descriptors[name] = descriptor
            logger.info(
                "%s service %s with %d intent examples and %d documents",
                "Replaced" if replaced else "Registered",
                name,
                len(descriptor.intents),
                len(descriptor.documents),
            )
            if self._initialized:
                self._rebuild_locked()
        return True

    def unregister(self, name: str) -> bool:
        with self._write_lock:
            if self._descriptors.pop(name, None) is None:
                return False
            logger.info("Unregistered service %s", name)
            if self._initialized:
                self._rebuild_locked()
        return True

    def initialize(self) -> IndexSnapshot:
        """Build the indices once; later registrations rebuild automatically."""
        with self._write_lock:
            if not self._initialized:
                self._rebuild_locked()
                self._initialized = True
            return self._snapshot

    def rebuild(self) -> IndexSnapshot:
        with self._write_lock:
            self._rebuild_locked()
            self._initialized = True
            return self._snapshot

    def snapshot(self) -> IndexSnapshot:
        return self._snapshot

    def get(self, name: str) -> ServiceDescriptor | None:
        return self._descriptors.get(name)

    def names(self) -> list[str]:
        return list(self._descriptors)

    def describe(self) -> dict[str, dict[str, Any]]:
        """Per-service summary for diagnostics endpoints."""
        summary: dict[str, dict[str, Any]] = {}
        for name, descriptor in list(self._descriptors.items()):
            intents = list(dict.fromkeys(example.intent for example in descriptor.intents))
            summary[name] = {
                "metadata": descriptor.metadata,
                "intent_count": len(intents),
                "example_count": len(descriptor.intents),
                "document_count": len(descriptor.documents),
                "intents": intents,
            }
        return summary

    def resolve_handler(
        self,
        service_name: str,
        handler_name: str,
        snapshot: IndexSnapshot | None = None,
    ) -> ServiceHandler | None:
        descriptors = snapshot.descriptors if snapshot is not None else self._descriptors
        descriptor = descriptors.get(service_name)
        if descriptor is None or not handler_name or handler_name.startswith("_"):
            return None
        handler = getattr(descriptor.service, handler_name, None)
        return handler if callable(handler) else None

    def _describe(self, service: Any, name: str) -> ServiceDescriptor:
        metadata = ServiceMetadataSpec.model_validate(service.describe_service())
        patterns = [
            IntentPatternSpec.model_validate(raw) for raw in service.list_intent_patterns()
        ]
        documents = [DocumentSpec.model_validate(raw) for raw in service.list_documents()]

        for pattern in patterns:
            if pattern.handler_name and not callable(getattr(service, pattern.handler_name, None)):
                logger.warning(
                    "Service %s declares handler %s for intent %s but does not implement it",
                    name,
                    pattern.handler_name,
                    pattern.intent,
                )

        examples = [
            IntentExample(
                utterance=utterance,
                intent=pattern.intent,
                confidence=pattern.confidence,
                source_service=name,
                handler_name=pattern.handler_name,
            )
            for pattern in patterns
            for utterance in pattern.examples
        ]
        docs = [
            Document(
                content=spec.content,
                metadata={**spec.metadata.model_dump(), "source_service": name},
            )
            for spec in documents
        ]
        return ServiceDescriptor(
            name=name,
            service=service,
            metadata=metadata.model_dump(),
            intents=examples,
            documents=docs,
        )

    def _rebuild_locked(self) -> None:
        descriptors = dict(self._descriptors)
        documents = list(self._base_documents)
        examples: list[IntentExample] = []
        for descriptor in descriptors.values():
            documents.extend(descriptor.documents)
            examples.extend(descriptor.intents)

        knowledge = KnowledgeIndex.build(documents, self._embedder, self._chunker)
        intents = IntentIndex.build(examples, self._embedder)
        snapshot = IndexSnapshot(
            version=self._snapshot.version + 1,
            knowledge=knowledge,
            intents=intents,
            descriptors=MappingProxyType(descriptors),
        )
        self._snapshot = snapshot
        logger.info(
            "Indices rebuilt (v%d): %d knowledge chunks, %d intent examples from %d services",
            snapshot.version,
            len(knowledge),
            len(intents),
            len(descriptors),
        )
