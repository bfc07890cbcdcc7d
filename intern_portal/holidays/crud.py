from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from intern_portal.util.time import utcnow_iso


def upsert_holiday(conn: Any, *, holiday_date: str, name: str, country: str | None = None) -> None:
    d = date.fromisoformat((holiday_date or "").strip()).isoformat()
    n = (name or "").strip()
    if not n:
        raise ValueError("name_blank")
    conn.execute(
        """
        INSERT INTO holidays (holiday_date, name, country, created_at) VALUES (?, ?, ?, ?)
        ON CONFLICT(holiday_date, name) DO UPDATE SET country=excluded.country
        """,
        (d, n, country, utcnow_iso()),
    )


def list_holidays(conn: Any, *, year: Optional[int] = None) -> List[Dict[str, Any]]:
    if year is None:
        rows = conn.execute("SELECT holiday_date, name, country FROM holidays ORDER BY holiday_date, name").fetchall()
    else:
        rows = conn.execute(
            """
            SELECT holiday_date, name, country FROM holidays
            WHERE holiday_date >= ? AND holiday_date < ?
            ORDER BY holiday_date, name
            """,
            (f"{int(year):04d}-01-01", f"{int(year) + 1:04d}-01-01"),
        ).fetchall()
    return [dict(r) for r in rows]
