"""Tests for the database layer: init, namespaced keys, counters, buffer."""

import pytest

from triage.core.db import (
    append_records,
    count_records,
    delete_namespace,
    get_counters,
    get_namespace,
    get_value,
    increment_counter,
    init_db,
    read_records,
    set_value,
)


@pytest.fixture()
def db(tmp_path):  # type: ignore[no-untyped-def]
    """Provide a fresh SQLite connection per test."""
    return init_db(tmp_path / "test.db")


class TestInitDb:
    def test_creates_tables(self, db) -> None:  # type: ignore[no-untyped-def]
        tables = {
            row[0]
            for row in db.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        assert {"state", "counters", "buffer"} <= tables

    def test_idempotent(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        """Calling init_db twice on the same path doesn't error."""
        p = tmp_path / "double.db"
        init_db(p).close()
        conn = init_db(p)
        assert get_namespace(conn, "session") == {}

    def test_creates_parent_dirs(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        p = tmp_path / "nested" / "dir" / "state.db"
        init_db(p).close()
        assert p.exists()


class TestState:
    def test_missing_key_is_none(self, db) -> None:  # type: ignore[no-untyped-def]
        assert get_value(db, "session", "active") is None

    def test_set_then_get(self, db) -> None:  # type: ignore[no-untyped-def]
        set_value(db, "session", "active", "true")
        assert get_value(db, "session", "active") == "true"

    def test_upsert_overwrites(self, db) -> None:  # type: ignore[no-untyped-def]
        set_value(db, "session", "current_page", "1")
        set_value(db, "session", "current_page", "2")
        assert get_value(db, "session", "current_page") == "2"
        assert get_namespace(db, "session") == {"current_page": "2"}

    def test_namespaces_are_isolated(self, db) -> None:  # type: ignore[no-untyped-def]
        set_value(db, "session", "k", "a")
        set_value(db, "catalog", "k", "b")
        assert get_value(db, "session", "k") == "a"
        assert get_value(db, "catalog", "k") == "b"

    def test_delete_namespace_removes_all_tables(self, db) -> None:  # type: ignore[no-untyped-def]
        set_value(db, "session", "active", "true")
        increment_counter(db, "session", "jobs.ai_evaluated")
        append_records(db, "session", ['{"id": 1}'])
        set_value(db, "catalog", "anthropic", "{}")

        delete_namespace(db, "session")

        assert get_namespace(db, "session") == {}
        assert get_counters(db, "session") == {}
        assert count_records(db, "session") == 0
        assert get_value(db, "catalog", "anthropic") == "{}"


class TestCounters:
    def test_first_increment_starts_at_zero(self, db) -> None:  # type: ignore[no-untyped-def]
        assert increment_counter(db, "session", "jobs.records_processed") == 1

    def test_increments_accumulate(self, db) -> None:  # type: ignore[no-untyped-def]
        for _ in range(3):
            value = increment_counter(db, "session", "jobs.ai_accepted")
        assert value == 3
        assert get_counters(db, "session") == {"jobs.ai_accepted": 3}

    def test_custom_delta(self, db) -> None:  # type: ignore[no-untyped-def]
        increment_counter(db, "session", "x", delta=5)
        assert increment_counter(db, "session", "x", delta=2) == 7


class TestBuffer:
    def test_append_returns_length(self, db) -> None:  # type: ignore[no-untyped-def]
        assert append_records(db, "session", ["a", "b"]) == 2
        assert append_records(db, "session", ["c"]) == 3

    def test_preserves_order(self, db) -> None:  # type: ignore[no-untyped-def]
        append_records(db, "session", ["first", "second"])
        append_records(db, "session", ["third"])
        assert read_records(db, "session") == ["first", "second", "third"]

    def test_empty_append_is_noop(self, db) -> None:  # type: ignore[no-untyped-def]
        assert append_records(db, "session", []) == 0
        assert read_records(db, "session") == []
