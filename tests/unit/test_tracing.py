import pytest

from hrit_assistant.obs.tracing import Timer, TraceStore


def _record(store: TraceStore, **overrides):
    fields = {
        "user_id": "u1",
        "query": "q",
        "intent": "general_question",
        "intent_confidence": 0.5,
        "handled_by_service": False,
        "handling_service": None,
        "retrieved_doc_count": 0,
        "latency_ms": 10.0,
    }
    fields.update(overrides)
    return store.create_record(**fields)


def test_trace_store_lookup_and_eviction() -> None:
    store = TraceStore(max_records=2)
    first = _record(store)
    _record(store)
    third = _record(store)

    assert store.get(third.trace_id) is third
    with pytest.raises(KeyError):
        store.get(first.trace_id)
    assert len(store.list_recent(limit=10)) == 2


def test_summary_aggregates_routing_metrics() -> None:
    store = TraceStore()
    _record(store, intent="vacation_balance", handled_by_service=True, handling_service="hr", latency_ms=20.0)
    _record(store, latency_ms=40.0, error="generation_timeout")

    summary = store.summary()

    assert summary["total_turns"] == 2
    assert summary["avg_latency_ms"] == pytest.approx(30.0)
    assert summary["service_handled_ratio"] == pytest.approx(0.5)
    assert summary["fallback_errors"] == 1
    assert summary["intents"] == {"vacation_balance": 1, "general_question": 1}


def test_empty_summary_and_timer() -> None:
    assert TraceStore().summary()["total_turns"] == 0

    with Timer() as timer:
        sum(range(1000))

    assert timer.elapsed_ms >= 0.0
