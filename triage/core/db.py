"""SQLite persistence for namespaced state keys, counters, and the record buffer.

Every function commits on its own; there is no multi-key transaction, so
readers must tolerate skew between keys.
"""

import sqlite3
from datetime import datetime
from pathlib import Path

_STATE_TABLE = """
CREATE TABLE IF NOT EXISTS state (
    namespace   TEXT NOT NULL,
    key         TEXT NOT NULL,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    PRIMARY KEY (namespace, key)
);
"""

_COUNTERS_TABLE = """
CREATE TABLE IF NOT EXISTS counters (
    namespace   TEXT    NOT NULL,
    name        TEXT    NOT NULL,
    value       INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (namespace, name)
);
"""

_BUFFER_TABLE = """
CREATE TABLE IF NOT EXISTS buffer (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    namespace   TEXT NOT NULL,
    record      TEXT NOT NULL,
    added_at    TEXT NOT NULL
);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_STATE_TABLE)
    conn.execute(_COUNTERS_TABLE)
    conn.execute(_BUFFER_TABLE)
    conn.commit()
    return conn


# ---------------------------------------------------------------------------
# Key/value state
# ---------------------------------------------------------------------------


def get_value(conn: sqlite3.Connection, namespace: str, key: str) -> str | None:
    """Return the raw stored text for a key, or None when absent."""
    row = conn.execute(
        "SELECT value FROM state WHERE namespace = ? AND key = ?",
        (namespace, key),
    ).fetchone()
    return None if row is None else str(row["value"])


def get_namespace(conn: sqlite3.Connection, namespace: str) -> dict[str, str]:
    """Return every key of a namespace as {key: raw text}."""
    rows = conn.execute(
        "SELECT key, value FROM state WHERE namespace = ?",
        (namespace,),
    ).fetchall()
    return {row["key"]: row["value"] for row in rows}


def set_value(conn: sqlite3.Connection, namespace: str, key: str, value: str) -> None:
    """Insert or replace one key."""
    conn.execute(
        """
        INSERT INTO state (namespace, key, value, updated_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(namespace, key)
        DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """,
        (namespace, key, value, datetime.now().isoformat()),
    )
    conn.commit()


def delete_namespace(conn: sqlite3.Connection, namespace: str) -> None:
    """Remove all keys, counters, and buffered records of a namespace."""
    conn.execute("DELETE FROM state WHERE namespace = ?", (namespace,))
    conn.execute("DELETE FROM counters WHERE namespace = ?", (namespace,))
    conn.execute("DELETE FROM buffer WHERE namespace = ?", (namespace,))
    conn.commit()


# ---------------------------------------------------------------------------
# Counters
# ---------------------------------------------------------------------------


def increment_counter(
    conn: sqlite3.Connection,
    namespace: str,
    name: str,
    delta: int = 1,
) -> int:
    """Atomically add delta to a counter (created at 0). Returns the new value."""
    conn.execute(
        """
        INSERT INTO counters (namespace, name, value)
        VALUES (?, ?, ?)
        ON CONFLICT(namespace, name)
        DO UPDATE SET value = value + excluded.value
        """,
        (namespace, name, delta),
    )
    conn.commit()
    row = conn.execute(
        "SELECT value FROM counters WHERE namespace = ? AND name = ?",
        (namespace, name),
    ).fetchone()
    return int(row["value"])


def get_counters(conn: sqlite3.Connection, namespace: str) -> dict[str, int]:
    rows = conn.execute(
        "SELECT name, value FROM counters WHERE namespace = ?",
        (namespace,),
    ).fetchall()
    return {row["name"]: int(row["value"]) for row in rows}


# ---------------------------------------------------------------------------
# Record buffer
# ---------------------------------------------------------------------------


def append_records(conn: sqlite3.Connection, namespace: str, records: list[str]) -> int:
    """Append serialized records in order. Returns the buffer length afterwards."""
    now = datetime.now().isoformat()
    conn.executemany(
        "INSERT INTO buffer (namespace, record, added_at) VALUES (?, ?, ?)",
        [(namespace, record, now) for record in records],
    )
    conn.commit()
    return count_records(conn, namespace)


def read_records(conn: sqlite3.Connection, namespace: str) -> list[str]:
    """Return serialized records in insertion order."""
    rows = conn.execute(
        "SELECT record FROM buffer WHERE namespace = ? ORDER BY id",
        (namespace,),
    ).fetchall()
    return [row["record"] for row in rows]


def count_records(conn: sqlite3.Connection, namespace: str) -> int:
    row = conn.execute(
        "SELECT COUNT(*) AS n FROM buffer WHERE namespace = ?",
        (namespace,),
    ).fetchone()
    return int(row["n"])
