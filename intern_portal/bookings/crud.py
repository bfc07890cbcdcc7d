from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from intern_portal.util.time import utcnow_iso


# Columns a caller may set through create/update.
_EDITABLE = ("resource", "booking_date", "start_time", "end_time", "notes")


def _check_date(value: str) -> str:
    s = (value or "").strip()
    try:
        date.fromisoformat(s)
    except ValueError:
        raise ValueError("invalid_date")
    return s


def get_booking(conn: Any, *, booking_id: str, intern_id: str) -> Optional[Dict[str, Any]]:
    """Return a booking only if it belongs to `intern_id`."""
    row = conn.execute(
        "SELECT * FROM bookings WHERE booking_id=? AND intern_id=?",
        (str(booking_id), str(intern_id)),
    ).fetchone()
    return dict(row) if row is not None else None


def list_bookings(conn: Any, *, intern_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT * FROM bookings WHERE intern_id=? ORDER BY booking_date, start_time, created_at",
        (str(intern_id),),
    ).fetchall()
    return [dict(r) for r in rows]


def create_booking(
    conn: Any,
    *,
    intern_id: str,
    resource: str,
    booking_date: str,
    start_time: str | None = None,
    end_time: str | None = None,
    notes: str | None = None,
) -> Dict[str, Any]:
    res = (resource or "").strip()
    if not res:
        raise ValueError("resource_blank")
    d = _check_date(booking_date)

    # Tokens outlive accounts; don't let a stale one hit the FK constraint.
    owner = conn.execute("SELECT 1 FROM interns WHERE intern_id=?", (str(intern_id),)).fetchone()
    if owner is None:
        raise ValueError("intern_not_found")

    booking_id = uuid.uuid4().hex
    now = utcnow_iso()
    conn.execute(
        """
        INSERT INTO bookings (booking_id, intern_id, resource, booking_date, start_time, end_time, notes, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?,?)
        """,
        (booking_id, str(intern_id), res, d, start_time, end_time, notes, now, now),
    )
    row = get_booking(conn, booking_id=booking_id, intern_id=intern_id)
    assert row is not None
    return row


def update_booking(
    conn: Any,
    *,
    booking_id: str,
    intern_id: str,
    changes: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    """Apply a partial update. Returns None when the booking isn't the caller's."""
    if get_booking(conn, booking_id=booking_id, intern_id=intern_id) is None:
        return None

    # Build dynamic SQL so we only touch provided fields.
    fields: list[tuple[str, Any]] = []
    for col in _EDITABLE:
        if col not in changes:
            continue
        value = changes[col]
        if col == "resource":
            value = (value or "").strip()
            if not value:
                raise ValueError("resource_blank")
        elif col == "booking_date":
            value = _check_date(value)
        fields.append((col, value))

    if fields:
        fields.append(("updated_at", utcnow_iso()))
        sets = ", ".join([f"{k}=?" for k, _ in fields])
        params = [v for _, v in fields] + [str(booking_id), str(intern_id)]
        conn.execute(
            f"UPDATE bookings SET {sets} WHERE booking_id=? AND intern_id=?",
            params,
        )

    return get_booking(conn, booking_id=booking_id, intern_id=intern_id)


def delete_booking(conn: Any, *, booking_id: str, intern_id: str) -> bool:
    cur = conn.execute(
        "DELETE FROM bookings WHERE booking_id=? AND intern_id=?",
        (str(booking_id), str(intern_id)),
    )
    return int(cur.rowcount or 0) > 0
