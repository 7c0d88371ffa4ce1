"""Session state store: the resumable scraping session persisted in SQLite.

Each field lives under its own key in the ``session`` namespace and every
mutation writes only that key, so a crash between two writes leaves the keys
skewed rather than half-written. Counters and the record buffer use their own
tables. ``load()`` reassembles and validates the whole record.
"""

import json
import logging
import sqlite3
from typing import Any

from pydantic import ValidationError

from triage.core.db import (
    append_records,
    count_records,
    delete_namespace,
    get_counters,
    get_namespace,
    get_value,
    increment_counter,
    read_records,
    set_value,
)
from triage.core.schemas import (
    SESSION_SCHEMA_VERSION,
    CounterName,
    Domain,
    SessionOptions,
    SessionRecord,
    Toggles,
)

logger = logging.getLogger(__name__)

SESSION_NAMESPACE = "session"

_CURSOR_KEYS = ("current_page", "start_page", "target_page_count")
_PAGE_KEYS = ("item_index", "item_ids")
_TOGGLE_KEYS = tuple(Toggles.model_fields)
_TOP_KEYS = ("version", "active", "mode", "search_locator", "formats", "include_viewed")
_COUNTER_NAMES = frozenset(c.value for c in CounterName)


class SessionStateError(RuntimeError):
    """An operation that is not allowed in the session's current state."""


class SessionStore:
    """Reads and mutates the persisted session.

    Usage::

        store = SessionStore(conn)
        store.start(SessionOptions(mode=Domain.JOBS, target_page_count=3))
        store.append_buffer([{"title": "..."}])
        store.increment(Domain.JOBS, CounterName.RECORDS_PROCESSED)
        store.advance_page()
    """

    def __init__(self, conn: sqlite3.Connection, namespace: str = SESSION_NAMESPACE) -> None:
        self._conn = conn
        self._ns = namespace

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def load(self) -> SessionRecord:
        """Reassemble the whole session.

        A key holding malformed JSON falls back to its default. A schema
        version mismatch, or a record that fails validation as a whole,
        resets the namespace and returns an idle default session.
        """
        values = self._decoded_values()

        version = values.get("version", SESSION_SCHEMA_VERSION)
        if version != SESSION_SCHEMA_VERSION:
            logger.warning(
                "Session schema version %r != %d, resetting session",
                version, SESSION_SCHEMA_VERSION,
            )
            self.clear()
            return SessionRecord()

        data: dict[str, Any] = {k: values[k] for k in _TOP_KEYS if k in values}
        data["cursor"] = {k: values[k] for k in _CURSOR_KEYS if k in values}
        data["toggles"] = {k: values[k] for k in _TOGGLE_KEYS if k in values}
        data["page"] = {k: values[k] for k in _PAGE_KEYS if k in values}
        data["buffer"] = self.buffer()
        data["counters"] = self._counters()

        try:
            return SessionRecord.model_validate(data)
        except ValidationError as e:
            logger.warning("Stored session failed validation, resetting: %s", e)
            self.clear()
            return SessionRecord()

    def is_active(self) -> bool:
        """Read only the ``active`` key. Anything but a stored true is idle."""
        return self._get("active", default=False) is True

    def buffer(self) -> list[dict[str, Any]]:
        """Buffered records in insertion order. Unreadable rows are skipped."""
        records: list[dict[str, Any]] = []
        for i, raw in enumerate(read_records(self._conn, self._ns)):
            try:
                record = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning("Skipping malformed buffered record #%d: %s", i, e)
                continue
            if isinstance(record, dict):
                records.append(record)
            else:
                logger.warning("Skipping non-object buffered record #%d", i)
        return records

    def buffer_length(self) -> int:
        return count_records(self._conn, self._ns)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, options: SessionOptions) -> SessionRecord:
        """Begin a fresh session: counters zero, buffer empty, page progress reset.

        Raises:
            SessionStateError: If a session is already active.
        """
        if self.is_active():
            msg = "A session is already active; stop or clear it first"
            raise SessionStateError(msg)

        delete_namespace(self._conn, self._ns)
        self._put("version", SESSION_SCHEMA_VERSION)
        self._put("mode", options.mode.value)
        self._put("current_page", options.start_page)
        self._put("start_page", options.start_page)
        self._put("target_page_count", options.target_page_count)
        self._put("search_locator", options.search_locator)
        self._put("formats", options.formats)
        self._put("include_viewed", options.include_viewed)
        for name, value in options.toggles.model_dump().items():
            self._put(name, value)
        self._put("item_index", 0)
        self._put("item_ids", [])
        # Written last: a crash above leaves the store idle.
        self._put("active", True)

        logger.info(
            "Session started: mode=%s pages=%d start_page=%d",
            options.mode.value, options.target_page_count, options.start_page,
        )
        return self.load()

    def stop(self) -> None:
        """Go idle. The buffer is kept so it can still be exported."""
        self._put("active", False)
        logger.info("Session stopped (%d buffered records)", self.buffer_length())

    def clear(self) -> None:
        """Remove every key, counter, and buffered record of the session."""
        delete_namespace(self._conn, self._ns)
        logger.info("Session cleared")

    # ------------------------------------------------------------------
    # Active-only mutations
    # ------------------------------------------------------------------

    def advance_page(self) -> int:
        """Move to the next page and reset page progress. Returns the new page."""
        self._require_active("advance_page")
        current = self._get("current_page", default=1)
        if not isinstance(current, int) or isinstance(current, bool):
            current = self._get("start_page", default=1)
        page = int(current) + 1
        self._put("current_page", page)
        self._put("item_index", 0)
        self._put("item_ids", [])
        logger.info("Advanced to page %d", page)
        return page

    def append_buffer(self, records: list[dict[str, Any]]) -> int:
        """Append records in order. Returns the buffer length afterwards."""
        self._require_active("append_buffer")
        serialized = [json.dumps(r, ensure_ascii=False) for r in records]
        return append_records(self._conn, self._ns, serialized)

    def increment(self, domain: Domain, counter: CounterName) -> int:
        """Add exactly one to a per-domain counter. Returns the new value."""
        self._require_active("increment")
        return increment_counter(self._conn, self._ns, _counter_key(domain, counter))

    def set_page_items(self, item_ids: list[str]) -> None:
        """Record the item ids of the current page and restart at index 0."""
        self._require_active("set_page_items")
        self._put("item_ids", list(item_ids))
        self._put("item_index", 0)

    def set_item_index(self, index: int) -> None:
        self._require_active("set_item_index")
        if index < 0:
            msg = f"item_index must be >= 0, got {index}"
            raise ValueError(msg)
        self._put("item_index", index)

    # ------------------------------------------------------------------
    # Preferences (allowed in any state)
    # ------------------------------------------------------------------

    def set_toggle(self, name: str, enabled: bool) -> None:
        if name not in _TOGGLE_KEYS:
            msg = f"Unknown toggle '{name}'. Available: {', '.join(_TOGGLE_KEYS)}"
            raise ValueError(msg)
        self._put(name, bool(enabled))

    def set_formats(self, formats: list[str]) -> list[str]:
        """Store the output formats, de-duplicated in order. Returns what was stored."""
        cleaned = SessionOptions(formats=formats).formats
        self._put("formats", cleaned)
        return cleaned

    def set_include_viewed(self, include: bool) -> None:
        self._put("include_viewed", bool(include))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_active(self, operation: str) -> None:
        if not self.is_active():
            msg = f"Cannot {operation}: no active session"
            raise SessionStateError(msg)

    def _put(self, key: str, value: Any) -> None:
        set_value(self._conn, self._ns, key, json.dumps(value))

    def _get(self, key: str, default: Any = None) -> Any:
        raw = get_value(self._conn, self._ns, key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Malformed value for session key '%s', using default", key)
            return default

    def _decoded_values(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for key, raw in get_namespace(self._conn, self._ns).items():
            try:
                values[key] = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Malformed value for session key '%s', using default", key)
        return values

    def _counters(self) -> dict[str, dict[str, int]]:
        counters: dict[str, dict[str, int]] = {d.value: {} for d in Domain}
        for key, value in get_counters(self._conn, self._ns).items():
            domain, _, name = key.partition(".")
            if domain in counters and name in _COUNTER_NAMES:
                counters[domain][name] = value
            else:
                logger.debug("Ignoring unknown counter '%s'", key)
        return counters


def _counter_key(domain: Domain, counter: CounterName) -> str:
    return f"{domain.value}.{counter.value}"
