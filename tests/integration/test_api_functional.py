from fastapi.testclient import TestClient

from hrit_assistant.agent.fallback import ExtractiveGenerator
from hrit_assistant.agent.orchestrator import build_orchestrator
from hrit_assistant.api.main import create_app
from hrit_assistant.config import AppSettings


def test_api_query_session_trace_metrics() -> None:
    orchestrator = build_orchestrator(AppSettings(), generator=ExtractiveGenerator())

    with TestClient(create_app(orchestrator)) as client:
        health = client.get("/health")
        assert health.status_code == 200
        assert set(health.json()["services"]) == {"hr", "it_support", "policy"}

        query_resp = client.post(
            "/query",
            json={"query": "how many vacation days do I have", "user_id": "alice.martin@company.com"},
        )
        assert query_resp.status_code == 200
        payload = query_resp.json()
        assert payload["handled_by_service"] is True
        assert payload["intent"]["primary"] == "vacation_balance"

        trace_resp = client.get(f"/traces/{payload['metadata']['trace_id']}")
        assert trace_resp.status_code == 200
        assert trace_resp.json()["handling_service"] == "hr"
        assert client.get("/traces/unknown").status_code == 404

        history = client.get("/sessions/alice.martin@company.com/history").json()
        assert [item["user_message"] for item in history["items"]] == [
            "how many vacation days do I have"
        ]

        services = client.get("/services").json()["items"]
        assert "vacation_balance" in services["hr"]["intents"]

        metrics = client.get("/metrics").json()
        assert metrics["total_turns"] == 1
        assert metrics["conversations"]["active_sessions"] == 1

        cleared = client.delete("/sessions/alice.martin@company.com")
        assert cleared.status_code == 200
        assert client.get("/metrics").json()["conversations"]["active_sessions"] == 0


def test_api_rejects_empty_query() -> None:
    orchestrator = build_orchestrator(AppSettings(), generator=ExtractiveGenerator())
    client = TestClient(create_app(orchestrator))

    response = client.post("/query", json={"query": "", "user_id": "u1"})

    assert response.status_code == 422
