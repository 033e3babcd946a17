"""Query orchestrator: confirmation handling, intent routing, retrieval and fallback."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from hrit_assistant.agent.contracts import ServiceResult
from hrit_assistant.agent.fallback import (
    ExtractiveGenerator,
    TextGenerator,
    build_fallback_prompt,
    build_text_generator,
    generate_with_timeout,
)
from hrit_assistant.agent.registry import ServiceRegistry
from hrit_assistant.config import AppSettings, GenerationConfig, RetrievalConfig, load_settings
from hrit_assistant.conversation.persistence import JsonFileSessionPersistence, SessionPersistence
from hrit_assistant.conversation.store import ConversationStateStore
from hrit_assistant.ingest.chunker import SlidingWindowChunker
from hrit_assistant.ingest.embedder import Embedder, HashingEmbedder
from hrit_assistant.obs.tracing import Timer, TraceStore
from hrit_assistant.retrieval.indexes import IndexSnapshot
from hrit_assistant.services.catalog import default_services
from hrit_assistant.types import (
    GENERAL_INTENT,
    IntentResult,
    OrchestrationResult,
    PendingAction,
    RetrievedContext,
    RetrievedDocument,
)

logger = logging.getLogger(__name__)

CONFIRMATION_INTENT = "confirmation"


class QueryOrchestrator:
    """Main entry point for answering an employee query.

    Each call pins one registry snapshot, so a rebuild finishing mid-query
    never mixes two index generations inside a single answer.
    """

    def __init__(
        self,
        *,
        registry: ServiceRegistry,
        embedder: Embedder,
        conversation_store: ConversationStateStore,
        generator: TextGenerator | None = None,
        trace_store: TraceStore | None = None,
        retrieval_config: RetrievalConfig | None = None,
        generation_config: GenerationConfig | None = None,
    ) -> None:
        self.registry = registry
        self.embedder = embedder
        self.conversation_store = conversation_store
        self.generator = generator or ExtractiveGenerator()
        self.trace_store = trace_store or TraceStore()
        self.retrieval_config = retrieval_config or RetrievalConfig()
        self.generation_config = generation_config or GenerationConfig()

    # -- classification and retrieval ---------------------------------------

    def detect_intent(self, query: str, snapshot: IndexSnapshot | None = None) -> IntentResult:
        snapshot = snapshot or self._snapshot()
        try:
            hits = snapshot.intents.search(
                self.embedder.embed(query), self.retrieval_config.intent_k
            )
        except Exception as exc:
            logger.exception("Intent detection failed")
            return IntentResult(
                primary=GENERAL_INTENT,
                confidence=0.3,
                reason=f"Error in vector search: {type(exc).__name__}",
            )

        if not hits:
            return IntentResult(
                primary=GENERAL_INTENT,
                confidence=0.5,
                reason="No similar examples found",
            )

        best = hits[0]
        confidence = min(1.0, max(0.0, 1.0 - best.distance))
        result = IntentResult(
            primary=best.entry.intent,
            confidence=confidence,
            source_service=best.entry.source_service,
            handler_name=best.entry.handler_name,
            reason=f"Vector similarity match with {best.entry.source_service}",
            neighbors=[
                {
                    "intent": hit.entry.intent,
                    "service": hit.entry.source_service,
                    "distance": hit.distance,
                    "example": hit.entry.utterance,
                }
                for hit in hits
            ],
        )
        logger.debug(
            "Intent %s from %s (confidence %.2f)",
            result.primary,
            result.source_service,
            result.confidence,
        )
        return result

    def get_relevant_context(
        self,
        query: str,
        k: int | None = None,
        snapshot: IndexSnapshot | None = None,
    ) -> RetrievedContext:
        snapshot = snapshot or self._snapshot()
        hits = snapshot.knowledge.search(
            self.embedder.embed(query), k or self.retrieval_config.context_k
        )
        if not hits:
            return RetrievedContext()

        lines = ["Relevant Company Information:", ""]
        documents: list[RetrievedDocument] = []
        sources: list[str] = []
        for index, hit in enumerate(hits, start=1):
            doc = hit.entry
            service = doc.source_service
            lines.append(f"{index}. [{service}] {' '.join(doc.content.split())}")
            documents.append(
                RetrievedDocument(
                    content=doc.content,
                    metadata=dict(doc.metadata),
                    distance=hit.distance,
                    source_service=service,
                )
            )
            label = f"{doc.doc_type} ({service})"
            if label not in sources:
                sources.append(label)
        return RetrievedContext(context="\n".join(lines), documents=documents, sources=sources)

    # -- main entry point ---------------------------------------------------

    def process_query(
        self,
        query: str,
        user_id: str,
        user_context: dict[str, Any] | None = None,
    ) -> OrchestrationResult:
        """Answer one query and record the turn in the conversation store.

        Order of resolution:
        1. An open pending action plus a yes/no reply resolves that action and
           skips intent detection.
        2. Otherwise the nearest intent example picks a service handler.
        3. If no handler produced a valid result, the retrieved context is
           handed to the text generator under a timeout.
        """

        user_context = dict(user_context or {})
        with Timer() as timer:
            result = self._resolve_confirmation(query, user_id, user_context)
            if result is None:
                result = self._route(query, user_id, user_context)

        metadata = result.metadata
        self.conversation_store.add_exchange(
            user_id,
            query,
            result.answer,
            {
                "intent": result.intent.primary,
                "confidence": result.intent.confidence,
                "service": result.handling_service,
                "handled_by_service": result.handled_by_service,
                **({"error": metadata["error"]} if metadata.get("error") else {}),
            },
        )
        record = self.trace_store.create_record(
            user_id=user_id,
            query=query,
            intent=result.intent.primary,
            intent_confidence=result.intent.confidence,
            handled_by_service=result.handled_by_service,
            handling_service=result.handling_service,
            retrieved_doc_count=metadata.get("retrieved_doc_count", 0),
            latency_ms=timer.elapsed_ms,
            error=metadata.get("error"),
        )
        metadata["trace_id"] = record.trace_id
        metadata["latency_ms"] = record.latency_ms
        return result

    # -- steps --------------------------------------------------------------

    def _resolve_confirmation(
        self, query: str, user_id: str, user_context: dict[str, Any]
    ) -> OrchestrationResult | None:
        if not self.conversation_store.get_pending_action_types(user_id):
            return None
        confirmation = self.conversation_store.detect_confirmation(query)
        if not confirmation.is_confirmation:
            return None
        action = self.conversation_store.take_first_pending_action(user_id)
        if action is None:
            return None

        intent = IntentResult(
            primary=CONFIRMATION_INTENT,
            confidence=confirmation.confidence,
            reason=f"{'Confirmed' if confirmation.is_positive else 'Declined'} {action.type}",
        )
        if confirmation.is_positive:
            service_result, service_name = self._execute_follow_up(query, action, user_context)
        else:
            service_result, service_name = (
                {
                    "type": "action_cancelled",
                    "action_type": action.type,
                    "message": "Okay, I have cancelled that request.",
                },
                None,
            )

        return OrchestrationResult(
            intent=intent,
            retrieved_context=RetrievedContext(),
            answer=str(service_result.get("message", "")),
            service_result=service_result,
            handled_by_service=service_name is not None,
            handling_service=service_name,
            metadata={
                "retrieved_doc_count": 0,
                "sources": [],
                "intent_confidence": intent.confidence,
                "resolved_action": action.type,
                "confirmed": confirmation.is_positive,
            },
        )

    def _execute_follow_up(
        self, query: str, action: PendingAction, user_context: dict[str, Any]
    ) -> tuple[dict[str, Any], str | None]:
        service_name = action.data.get("service")
        handler_name = action.data.get("handler")
        if not service_name or not handler_name:
            return {
                "type": "action_confirmed",
                "action_type": action.type,
                "data": action.data,
                "message": "Confirmed.",
            }, None

        handler = self.registry.resolve_handler(service_name, handler_name)
        if handler is None:
            logger.warning(
                "Follow-up handler %s.%s for %s is not available",
                service_name,
                handler_name,
                action.type,
            )
            return self._action_failed(action), None
        try:
            raw = handler(
                query, {**user_context, "pending_action": action.data, "confirmed": True}
            )
            validated = ServiceResult.model_validate(raw)
        except Exception:
            logger.exception("Follow-up %s.%s failed", service_name, handler_name)
            return self._action_failed(action), None
        return validated.model_dump(exclude_none=True), service_name

    @staticmethod
    def _action_failed(action: PendingAction) -> dict[str, Any]:
        return {
            "type": "action_failed",
            "action_type": action.type,
            "message": "Sorry, I could not complete that request. Please try again later.",
        }

    def _route(
        self, query: str, user_id: str, user_context: dict[str, Any]
    ) -> OrchestrationResult:
        snapshot = self._snapshot()
        intent = self.detect_intent(query, snapshot)
        retrieved = self.get_relevant_context(query, snapshot=snapshot)
        metadata: dict[str, Any] = {
            "retrieved_doc_count": len(retrieved.documents),
            "sources": retrieved.sources,
            "intent_confidence": intent.confidence,
        }

        service_result = self._delegate(query, user_id, user_context, intent, retrieved, snapshot)
        if service_result is not None:
            metadata["delegated_handler"] = intent.handler_name
            return OrchestrationResult(
                intent=intent,
                retrieved_context=retrieved,
                answer=str(service_result["message"]),
                service_result=service_result,
                handled_by_service=True,
                handling_service=intent.source_service,
                metadata=metadata,
            )

        prompt = build_fallback_prompt(
            query,
            retrieved,
            intent,
            history=self.conversation_store.format_history(
                user_id, self.generation_config.history_turns
            ),
            user_info=str(user_context.get("user_info", "")),
        )
        answer, error = generate_with_timeout(
            self.generator, prompt, self.generation_config.timeout_seconds
        )
        if error:
            metadata["error"] = error
        return OrchestrationResult(
            intent=intent,
            retrieved_context=retrieved,
            answer=answer,
            metadata=metadata,
        )

    def _delegate(
        self,
        query: str,
        user_id: str,
        user_context: dict[str, Any],
        intent: IntentResult,
        retrieved: RetrievedContext,
        snapshot: IndexSnapshot,
    ) -> dict[str, Any] | None:
        if not intent.source_service or not intent.handler_name:
            return None
        handler = self.registry.resolve_handler(
            intent.source_service, intent.handler_name, snapshot
        )
        if handler is None:
            logger.warning(
                "No handler %s on service %s; using generic fallback",
                intent.handler_name,
                intent.source_service,
            )
            return None

        context = {
            **user_context,
            "user_id": user_id,
            "retrieved_context": retrieved.context,
            "documents": retrieved.documents,
            "sources": retrieved.sources,
            "intent": intent,
        }
        logger.debug("Delegating to %s.%s", intent.source_service, intent.handler_name)
        try:
            validated = ServiceResult.model_validate(handler(query, context))
        except ValidationError as exc:
            logger.warning(
                "Handler %s.%s returned an invalid result: %s",
                intent.source_service,
                intent.handler_name,
                exc,
            )
            return None
        except Exception:
            logger.exception(
                "Service delegation error for %s.%s", intent.source_service, intent.handler_name
            )
            return None

        if validated.pending_action is not None:
            self.conversation_store.set_pending_action(
                user_id, validated.pending_action.type, validated.pending_action.data
            )
        return validated.model_dump(exclude_none=True)

    def _snapshot(self) -> IndexSnapshot:
        if not self.registry.initialized:
            return self.registry.initialize()
        return self.registry.snapshot()


def build_orchestrator(
    settings: AppSettings | None = None,
    services: Mapping[str, Any] | None = None,
    *,
    generator: TextGenerator | None = None,
    embedder: Embedder | None = None,
    persistence: SessionPersistence | None = None,
) -> QueryOrchestrator:
    """Wire the default collaborators and register `services`.

    When `services` is None the built-in HR, IT support and policy services
    are registered. Pass an `ExternalEmbedder` as `embedder` to index with a
    model-backed embedding. The registry is initialized before returning.
    """

    settings = settings or load_settings()
    embedder = embedder or HashingEmbedder(settings.embedding)
    registry = ServiceRegistry(embedder, SlidingWindowChunker(settings.chunking))
    for name, service in (default_services() if services is None else services).items():
        registry.register(service, name)
    registry.initialize()

    if persistence is None and settings.conversation.persistence_path:
        persistence = JsonFileSessionPersistence(
            settings.conversation.persistence_path,
            max_history=settings.conversation.max_history,
        )
    store = ConversationStateStore(settings.conversation, persistence=persistence)
    return QueryOrchestrator(
        registry=registry,
        embedder=embedder,
        conversation_store=store,
        generator=generator or build_text_generator(settings.generation),
        retrieval_config=settings.retrieval,
        generation_config=settings.generation,
    )
