"""Database schema for the Intern Portal.

Each table stores one kind of document. Ids are opaque hex strings generated by the
application so they can travel inside JWT claims and URLs unchanged.

Timestamps are ISO-8601 TEXT (UTC, with 'Z'); holiday and booking dates are
YYYY-MM-DD TEXT, so lexicographic order is calendar order on both engines.
"""

from __future__ import annotations


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Interns / Auth
-- We use JWTs for stateless auth and store only password hashes.
CREATE TABLE IF NOT EXISTS interns (
    intern_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    last_login_at TEXT
);

CREATE TABLE IF NOT EXISTS bookings (
    booking_id TEXT PRIMARY KEY,
    intern_id TEXT NOT NULL REFERENCES interns (intern_id) ON DELETE CASCADE,
    resource TEXT NOT NULL,
    booking_date TEXT NOT NULL,
    start_time TEXT,
    end_time TEXT,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_bookings_intern_date ON bookings (intern_id, booking_date);

CREATE TABLE IF NOT EXISTS holidays (
    holiday_date TEXT NOT NULL,
    name TEXT NOT NULL,
    country TEXT,
    created_at TEXT NOT NULL,
    PRIMARY KEY (holiday_date, name)
);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Postgres has no pragmas; the remaining DDL is portable.
    lines = [line for line in ddl.splitlines() if not line.strip().upper().startswith("PRAGMA ")]
    return "\n".join(lines)


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
