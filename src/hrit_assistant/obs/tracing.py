"""Per-turn tracing and routing metrics."""

from __future__ import annotations

import threading
import time
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(slots=True)
class TurnRecord:
    trace_id: str
    timestamp_utc: str
    user_id: str
    query: str
    intent: str
    intent_confidence: float
    handled_by_service: bool
    handling_service: str | None
    retrieved_doc_count: int
    latency_ms: float
    error: str | None = None


class TraceStore:
    """Bounded in-memory trace storage for API-level observability."""

    def __init__(self, *, max_records: int = 1000) -> None:
        self._records: dict[str, TurnRecord] = {}
        self._max_records = max_records
        self._lock = threading.Lock()

    def create_record(
        self,
        *,
        user_id: str,
        query: str,
        intent: str,
        intent_confidence: float,
        handled_by_service: bool,
        handling_service: str | None,
        retrieved_doc_count: int,
        latency_ms: float,
        error: str | None = None,
    ) -> TurnRecord:
        record = TurnRecord(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            user_id=user_id,
            query=query,
            intent=intent,
            intent_confidence=intent_confidence,
            handled_by_service=handled_by_service,
            handling_service=handling_service,
            retrieved_doc_count=retrieved_doc_count,
            latency_ms=latency_ms,
            error=error,
        )
        with self._lock:
            self._records[record.trace_id] = record
            while len(self._records) > self._max_records:
                oldest = next(iter(self._records))
                del self._records[oldest]
        return record

    def get(self, trace_id: str) -> TurnRecord:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[TurnRecord]:
        with self._lock:
            records = list(self._records.values())
        return records[-limit:] if limit > 0 else []

    def summary(self) -> dict[str, object]:
        """Aggregate routing and latency metrics for dashboard display."""
        with self._lock:
            records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_turns": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "service_handled_ratio": 0.0,
                "fallback_errors": 0,
                "intents": {},
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        handled = sum(1 for record in records if record.handled_by_service)
        return {
            "total_turns": total,
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "service_handled_ratio": handled / total,
            "fallback_errors": sum(1 for record in records if record.error),
            "intents": dict(Counter(record.intent for record in records)),
        }


class Timer:
    """Simple context timer used by the orchestrator."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
