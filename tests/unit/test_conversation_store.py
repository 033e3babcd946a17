import json
import threading
from datetime import datetime, timedelta, timezone

from hrit_assistant.config import ConversationConfig
from hrit_assistant.conversation.persistence import JsonFileSessionPersistence
from hrit_assistant.conversation.store import ConversationStateStore


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def test_pending_action_round_trip() -> None:
    store = ConversationStateStore()

    store.set_pending_action("u1", "create_ticket", {"summary": "laptop"})

    assert store.get_pending_action("u1", "create_ticket") == {"summary": "laptop"}
    assert store.get_pending_action_types("u1") == ["create_ticket"]
    assert store.clear_pending_action("u1", "create_ticket") is True
    assert store.get_pending_action("u1", "create_ticket") is None
    assert store.clear_pending_action("u1", "create_ticket") is False


def test_setting_same_action_type_replaces_it() -> None:
    store = ConversationStateStore()

    store.set_pending_action("u1", "create_ticket", {"v": 1})
    store.set_pending_action("u1", "book_room", {"v": 2})
    store.set_pending_action("u1", "create_ticket", {"v": 3})

    assert store.get_pending_action_types("u1") == ["book_room", "create_ticket"]
    assert store.get_pending_action("u1", "create_ticket") == {"v": 3}


def test_take_first_pending_action_pops_oldest() -> None:
    store = ConversationStateStore()
    store.set_pending_action("u1", "first", {})
    store.set_pending_action("u1", "second", {})

    action = store.take_first_pending_action("u1")

    assert action is not None and action.type == "first"
    assert store.get_pending_action_types("u1") == ["second"]
    assert store.take_first_pending_action("u2") is None


def test_history_is_bounded_and_chronological() -> None:
    store = ConversationStateStore(ConversationConfig(max_history=10))

    for i in range(15):
        store.add_exchange("u1", f"question {i}", f"answer {i}")

    history = store.get_history("u1", limit=20)
    assert [exchange.user_message for exchange in history] == [f"question {i}" for i in range(5, 15)]
    assert [exchange.user_message for exchange in store.get_history("u1", limit=2)] == [
        "question 13",
        "question 14",
    ]


def test_expired_session_is_recreated() -> None:
    clock = FakeClock()
    store = ConversationStateStore(ConversationConfig(session_timeout_seconds=60), clock=clock)
    store.add_exchange("u1", "hello", "hi")
    store.set_pending_action("u1", "create_ticket", {})
    created = store.get_or_create_session("u1").created

    clock.advance(seconds=61)
    session = store.get_or_create_session("u1")

    assert session.created > created
    assert list(session.history) == []
    assert session.pending_actions == []


def test_activity_keeps_session_alive() -> None:
    clock = FakeClock()
    store = ConversationStateStore(ConversationConfig(session_timeout_seconds=60), clock=clock)
    store.add_exchange("u1", "hello", "hi")

    for _ in range(3):
        clock.advance(seconds=45)
        store.get_or_create_session("u1")

    assert len(store.get_history("u1")) == 1


def test_purge_expired_removes_idle_sessions() -> None:
    clock = FakeClock()
    store = ConversationStateStore(ConversationConfig(session_timeout_seconds=60), clock=clock)
    store.add_exchange("idle", "q", "a")
    clock.advance(seconds=50)
    store.add_exchange("active", "q", "a")
    clock.advance(seconds=20)

    assert store.purge_expired() == 1
    assert store.stats()["active_sessions"] == 1


def test_context_values() -> None:
    store = ConversationStateStore()

    store.set_context("u1", "language", "fr")
    store.set_context("u1", "department", "finance")
    assert store.get_context("u1", "language") == "fr"
    assert store.get_context("u1", "missing", "default") == "default"

    store.clear_context("u1", "language")
    assert store.get_context("u1", "language") is None
    store.clear_context("u1")
    assert store.get_context("u1", "department") is None


def test_format_history_truncates_long_replies() -> None:
    store = ConversationStateStore()
    store.add_exchange("u1", "tell me everything", "x" * 200, {"intent": "general_question"})

    text = store.format_history("u1")

    assert text.startswith("Previous conversation context:")
    assert "1. User: tell me everything" in text
    assert "x" * 150 + "..." in text
    assert "(Intent: general_question)" in text
    assert store.format_history("nobody") == ""


def test_stats_and_clear_session() -> None:
    store = ConversationStateStore()
    store.add_exchange("u1", "q1", "a1")
    store.add_exchange("u1", "q2", "a2")
    store.add_exchange("u2", "q1", "a1")

    assert store.stats() == {
        "active_sessions": 2,
        "total_exchanges": 3,
        "avg_exchanges_per_session": 1.5,
    }

    store.clear_session("u1")
    assert store.stats()["active_sessions"] == 1


def test_json_persistence_restores_active_sessions(tmp_path) -> None:
    clock = FakeClock()
    path = tmp_path / "history.json"
    config = ConversationConfig(session_timeout_seconds=600)
    store = ConversationStateStore(
        config, persistence=JsonFileSessionPersistence(path), clock=clock
    )
    store.add_exchange("u1", "hello", "hi", {"intent": "general_question"})
    store.set_pending_action("u1", "create_ticket", {"payload": {"description": "vpn"}})
    store.add_exchange("u2", "old", "stale")
    store.clear_session("u2")

    restored = ConversationStateStore(
        config, persistence=JsonFileSessionPersistence(path), clock=clock
    )

    history = restored.get_history("u1")
    assert [exchange.user_message for exchange in history] == ["hello"]
    assert history[0].metadata == {"intent": "general_question"}
    assert restored.get_pending_action("u1", "create_ticket") == {"payload": {"description": "vpn"}}
    assert restored.stats()["active_sessions"] == 1


def test_json_persistence_skips_expired_sessions(tmp_path) -> None:
    clock = FakeClock()
    path = tmp_path / "history.json"
    config = ConversationConfig(session_timeout_seconds=60)
    ConversationStateStore(
        config, persistence=JsonFileSessionPersistence(path), clock=clock
    ).add_exchange("u1", "hello", "hi")

    clock.advance(minutes=5)
    restored = ConversationStateStore(
        config, persistence=JsonFileSessionPersistence(path), clock=clock
    )

    assert restored.stats()["active_sessions"] == 0
    assert json.loads(path.read_text(encoding="utf-8")) == {}


def test_sweeper_starts_and_stops() -> None:
    store = ConversationStateStore(ConversationConfig(sweep_interval_seconds=0.01))

    store.start_sweeper()
    store.stop_sweeper(timeout=1.0)

    assert store.stats()["active_sessions"] == 0


def test_user_locks_are_released_after_use_and_purge() -> None:
    clock = FakeClock()
    store = ConversationStateStore(ConversationConfig(session_timeout_seconds=60), clock=clock)
    for i in range(50):
        store.add_exchange(f"user-{i}", "q", "a")
        store.get_pending_action_types(f"reader-{i}")

    assert store._user_locks == {}

    clock.advance(minutes=5)
    assert store.purge_expired() == 100
    for i in range(10):
        store.clear_session(f"gone-{i}")

    assert store.stats()["active_sessions"] == 0
    assert store._user_locks == {}


def test_purge_deletes_persisted_sessions(tmp_path) -> None:
    clock = FakeClock()
    path = tmp_path / "history.json"
    store = ConversationStateStore(
        ConversationConfig(session_timeout_seconds=60),
        persistence=JsonFileSessionPersistence(path),
        clock=clock,
    )
    for i in range(20):
        store.add_exchange(f"u{i}", "q", "a")

    clock.advance(minutes=5)
    assert store.purge_expired() == 20
    store.add_exchange("fresh", "q", "a")

    assert list(json.loads(path.read_text(encoding="utf-8"))) == ["fresh"]


def test_corrupt_history_file_is_replaced_on_next_write(tmp_path) -> None:
    path = tmp_path / "history.json"
    path.write_text("{not json", encoding="utf-8")

    store = ConversationStateStore(persistence=JsonFileSessionPersistence(path))
    assert store.stats()["active_sessions"] == 0

    store.add_exchange("u1", "hello", "hi")
    store.add_exchange("u2", "hello", "hi")

    assert set(json.loads(path.read_text(encoding="utf-8"))) == {"u1", "u2"}


def test_pending_action_data_is_returned_as_copy() -> None:
    store = ConversationStateStore()
    store.set_pending_action("u1", "create_ticket", {"priority": "High"})

    store.get_pending_action("u1", "create_ticket")["priority"] = "Low"

    assert store.get_pending_action("u1", "create_ticket") == {"priority": "High"}


def test_concurrent_pending_action_updates_for_one_user() -> None:
    store = ConversationStateStore()
    taken: list[int] = []
    duplicates: list[list[str]] = []
    errors: list[BaseException] = []

    def _worker(offset: int) -> None:
        try:
            for i in range(200):
                store.set_pending_action("u1", "create_ticket", {"n": offset + i})
                if i % 3 == 0:
                    store.clear_pending_action("u1", "create_ticket")
                else:
                    action = store.take_first_pending_action("u1")
                    if action is not None:
                        taken.append(action.data["n"])
                types = store.get_pending_action_types("u1")
                if len(types) != len(set(types)):
                    duplicates.append(types)
        except BaseException as exc:
            errors.append(exc)

    threads = [threading.Thread(target=_worker, args=(n * 1000,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert duplicates == []
    assert taken
    assert len(taken) == len(set(taken))
    assert len(store.pending_actions("u1")) <= 1
    assert store._user_locks == {}
