"""FastAPI entrypoint for query, session, service and trace endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from hrit_assistant.agent.orchestrator import QueryOrchestrator, build_orchestrator
from hrit_assistant.obs.logging import configure_logging


class QueryRequest(BaseModel):
    query: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    user_context: dict[str, Any] = Field(default_factory=dict)


def create_app(orchestrator: QueryOrchestrator | None = None) -> FastAPI:
    configure_logging()
    orchestrator = orchestrator or build_orchestrator()
    store = orchestrator.conversation_store
    traces = orchestrator.trace_store

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        store.start_sweeper()
        try:
            yield
        finally:
            store.stop_sweeper()

    app = FastAPI(title="HR/IT Assistant", version="0.1.0", lifespan=lifespan)
    app.state.orchestrator = orchestrator

    @app.get("/health")
    def health() -> dict[str, Any]:
        snapshot = orchestrator.registry.snapshot()
        return {
            "status": "ok",
            "generator": type(orchestrator.generator).__name__,
            "services": list(snapshot.services),
            "index_version": snapshot.version,
            "knowledge_chunks": len(snapshot.knowledge),
            "intent_examples": len(snapshot.intents),
        }

    @app.post("/query")
    def query(request: QueryRequest) -> dict[str, Any]:
        try:
            result = orchestrator.process_query(
                request.query, request.user_id, request.user_context
            )
        except Exception as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return result.to_dict()

    @app.get("/services")
    def services() -> dict[str, Any]:
        return {"items": orchestrator.registry.describe()}

    @app.get("/sessions/{user_id}/history")
    def session_history(user_id: str, limit: int = 5) -> dict[str, Any]:
        history = store.get_history(user_id, limit)
        return {
            "user_id": user_id,
            "items": [
                {**asdict(exchange), "timestamp": exchange.timestamp.isoformat()}
                for exchange in history
            ],
            "pending_actions": store.get_pending_action_types(user_id),
        }

    @app.delete("/sessions/{user_id}")
    def clear_session(user_id: str) -> dict[str, Any]:
        store.clear_session(user_id)
        return {"user_id": user_id, "cleared": True}

    @app.get("/traces")
    def list_traces(limit: int = 20) -> dict[str, Any]:
        return {"items": [asdict(record) for record in traces.list_recent(limit=limit)]}

    @app.get("/traces/{trace_id}")
    def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = traces.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        return {**traces.summary(), "conversations": store.stats()}

    return app


app = create_app()
