"""Tests for the session state machine persisted in SQLite."""

import pytest

from triage.core.db import get_value, init_db, set_value
from triage.core.schemas import CounterName, Domain, SessionOptions, SessionRecord, Toggles
from triage.pipeline.session_store import SESSION_NAMESPACE, SessionStateError, SessionStore


@pytest.fixture()
def db(tmp_path):  # type: ignore[no-untyped-def]
    return init_db(tmp_path / "session.db")


@pytest.fixture()
def store(db) -> SessionStore:  # type: ignore[no-untyped-def]
    return SessionStore(db)


def _options(**kw: object) -> SessionOptions:
    defaults: dict[str, object] = {
        "mode": Domain.JOBS,
        "target_page_count": 3,
        "start_page": 2,
        "search_locator": "https://www.linkedin.com/jobs/search/?keywords=python",
        "formats": ["xlsx", "csv"],
        "toggles": Toggles(ai_enabled=True),
    }
    defaults.update(kw)
    return SessionOptions(**defaults)  # type: ignore[arg-type]


class TestLifecycle:
    def test_idle_by_default(self, store: SessionStore) -> None:
        assert store.is_active() is False
        record = store.load()
        assert record.active is False
        assert record.buffer == []

    def test_start(self, store: SessionStore) -> None:
        record = store.start(_options())
        assert record.active is True
        assert record.cursor.current_page == 2
        assert record.cursor.start_page == 2
        assert record.cursor.target_page_count == 3
        assert record.formats == ["xlsx", "csv"]
        assert record.toggles.ai_enabled is True
        assert record.page.item_index == 0
        assert store.is_active() is True

    def test_start_while_active_rejected(self, store: SessionStore) -> None:
        store.start(_options())
        store.append_buffer([{"id": "1"}])
        with pytest.raises(SessionStateError, match="already active"):
            store.start(_options(mode=Domain.PEOPLE))
        record = store.load()
        assert record.mode is Domain.JOBS
        assert len(record.buffer) == 1

    def test_start_resets_counters_and_buffer(self, store: SessionStore) -> None:
        store.start(_options())
        store.append_buffer([{"id": "1"}, {"id": "2"}])
        store.increment(Domain.JOBS, CounterName.AI_EVALUATED)
        store.advance_page()
        store.stop()

        record = store.start(_options())
        assert record.buffer == []
        assert record.counters.jobs.ai_evaluated == 0
        assert record.cursor.current_page == 2

    def test_stop_keeps_buffer(self, store: SessionStore) -> None:
        store.start(_options())
        store.append_buffer([{"id": "1"}])
        store.stop()
        assert store.is_active() is False
        assert store.buffer() == [{"id": "1"}]

    def test_clear_removes_everything(self, store: SessionStore, db) -> None:  # type: ignore[no-untyped-def]
        store.start(_options())
        store.append_buffer([{"id": "1"}])
        store.increment(Domain.JOBS, CounterName.RECORDS_PROCESSED)
        store.clear()
        assert store.load() == SessionRecord()
        assert store.buffer_length() == 0
        assert get_value(db, SESSION_NAMESPACE, "active") is None


class TestActiveOnly:
    @pytest.mark.parametrize(
        "call",
        [
            lambda s: s.advance_page(),
            lambda s: s.append_buffer([{"id": "x"}]),
            lambda s: s.increment(Domain.JOBS, CounterName.AI_ACCEPTED),
            lambda s: s.set_page_items(["a"]),
            lambda s: s.set_item_index(1),
        ],
    )
    def test_rejected_while_idle(self, store: SessionStore, call) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(SessionStateError, match="no active session"):
            call(store)

    def test_advance_page_increments_by_one(self, store: SessionStore) -> None:
        store.start(_options())
        store.set_page_items(["a", "b"])
        store.set_item_index(1)
        assert store.advance_page() == 3
        record = store.load()
        assert record.cursor.current_page == 3
        assert record.page.item_index == 0
        assert record.page.item_ids == []

    def test_append_buffer_order(self, store: SessionStore) -> None:
        store.start(_options())
        assert store.append_buffer([{"id": "a"}, {"id": "b"}]) == 2
        assert store.append_buffer([{"id": "c"}]) == 3
        assert [r["id"] for r in store.buffer()] == ["a", "b", "c"]

    def test_unicode_records(self, store: SessionStore) -> None:
        store.start(_options())
        store.append_buffer([{"title": "Engenheiro de Software", "city": "São Paulo"}])
        assert store.buffer()[0]["city"] == "São Paulo"

    def test_increment_per_domain(self, store: SessionStore) -> None:
        store.start(_options())
        assert store.increment(Domain.JOBS, CounterName.AI_EVALUATED) == 1
        assert store.increment(Domain.JOBS, CounterName.AI_EVALUATED) == 2
        store.increment(Domain.PEOPLE, CounterName.AI_ACCEPTED)
        counters = store.load().counters
        assert counters.jobs.ai_evaluated == 2
        assert counters.people.ai_accepted == 1
        assert counters.jobs.ai_accepted == 0

    def test_negative_item_index(self, store: SessionStore) -> None:
        store.start(_options())
        with pytest.raises(ValueError):
            store.set_item_index(-1)


class TestPreferences:
    def test_toggles_any_time(self, store: SessionStore) -> None:
        store.set_toggle("people_ai_enabled", True)
        assert store.load().toggles.people_ai_enabled is True

    def test_unknown_toggle(self, store: SessionStore) -> None:
        with pytest.raises(ValueError, match="Unknown toggle"):
            store.set_toggle("turbo", True)

    def test_formats_deduplicated(self, store: SessionStore) -> None:
        assert store.set_formats(["csv", "csv", "md"]) == ["csv", "md"]
        assert store.load().formats == ["csv", "md"]

    def test_include_viewed(self, store: SessionStore) -> None:
        store.set_include_viewed(False)
        assert store.load().include_viewed is False

    def test_each_mutation_writes_own_key(self, store: SessionStore, db) -> None:  # type: ignore[no-untyped-def]
        store.start(_options())
        before = dict(db.execute(
            "SELECT key, updated_at FROM state WHERE namespace = ?", (SESSION_NAMESPACE,),
        ).fetchall())
        store.set_include_viewed(False)
        after = dict(db.execute(
            "SELECT key, updated_at FROM state WHERE namespace = ?", (SESSION_NAMESPACE,),
        ).fetchall())
        changed = {k for k in after if after[k] != before.get(k)}
        assert changed <= {"include_viewed"}
        assert get_value(db, SESSION_NAMESPACE, "include_viewed") == "false"


class TestCorruption:
    def test_malformed_key_falls_back(self, store: SessionStore, db) -> None:  # type: ignore[no-untyped-def]
        store.start(_options())
        set_value(db, SESSION_NAMESPACE, "formats", "{not json")
        record = store.load()
        assert record.active is True
        assert record.formats == ["xlsx"]

    def test_version_mismatch_resets(self, store: SessionStore, db) -> None:  # type: ignore[no-untyped-def]
        store.start(_options())
        store.append_buffer([{"id": "1"}])
        set_value(db, SESSION_NAMESPACE, "version", "99")
        record = store.load()
        assert record.active is False
        assert store.buffer_length() == 0

    def test_invalid_record_resets(self, store: SessionStore, db) -> None:  # type: ignore[no-untyped-def]
        store.start(_options())
        set_value(db, SESSION_NAMESPACE, "current_page", "1")  # before start_page=2
        record = store.load()
        assert record.active is False
        assert store.is_active() is False

    def test_malformed_buffer_row_skipped(self, store: SessionStore, db) -> None:  # type: ignore[no-untyped-def]
        store.start(_options())
        store.append_buffer([{"id": "a"}])
        db.execute(
            "INSERT INTO buffer (namespace, record, added_at) VALUES (?, ?, ?)",
            (SESSION_NAMESPACE, "{broken", "2026-01-01T00:00:00"),
        )
        db.commit()
        store.append_buffer([{"id": "b"}])
        assert [r["id"] for r in store.buffer()] == ["a", "b"]

    def test_malformed_active_is_idle(self, store: SessionStore, db) -> None:  # type: ignore[no-untyped-def]
        set_value(db, SESSION_NAMESPACE, "active", "tru")
        assert store.is_active() is False
