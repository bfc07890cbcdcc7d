from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from intern_portal.util.time import utcnow_iso

from .security import hash_password, verify_password


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_intern(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d.pop("password_hash", None)
    return d


def get_intern_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM interns WHERE email=?",
        (e,),
    ).fetchone()


def get_intern_by_id(conn: Any, intern_id: str) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM interns WHERE intern_id=?",
        (str(intern_id),),
    ).fetchone()


def list_interns(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM interns ORDER BY name, email").fetchall()
    return [public_intern(r) for r in rows]


def verify_intern_credentials(conn: Any, email: str, password: str) -> Optional[Any]:
    row = get_intern_by_email(conn, email)
    if row is None:
        return None
    if not verify_password(password, str(row["password_hash"])):
        return None
    return row


def create_intern(
    conn: Any,
    *,
    name: str,
    email: str,
    password: str,
) -> Dict[str, Any]:
    n = (name or "").strip()
    e = normalize_email(email)
    if not n:
        raise ValueError("name_blank")
    if not e or "@" not in e:
        raise ValueError("email_invalid")

    existing = conn.execute("SELECT 1 FROM interns WHERE email=?", (e,)).fetchone()
    if existing is not None:
        raise ValueError("email_exists")

    intern_id = uuid.uuid4().hex
    now = utcnow_iso()
    conn.execute(
        """
        INSERT INTO interns (intern_id, name, email, password_hash, created_at, updated_at)
        VALUES (?,?,?,?,?,?)
        """,
        (intern_id, n, e, hash_password(password), now, now),
    )
    row = get_intern_by_id(conn, intern_id)
    assert row is not None
    return public_intern(row)


def touch_last_login(conn: Any, intern_id: str) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE interns SET last_login_at=?, updated_at=? WHERE intern_id=?",
        (now, now, str(intern_id)),
    )
