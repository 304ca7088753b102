"""Persistence helpers for the identity mirror."""
from __future__ import annotations

from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .models import Role, UserRecord, row_dict
from .sqlite import get_conn, now_iso


class UserPayload(BaseModel):
    user_id: str = Field(default_factory=lambda: uuid4().hex)
    email: str
    name: str = ""
    role: Role = "CANDIDATE"
    is_profile_complete: bool = False


def insert_user(**data: Any) -> str:
    """Insert a user row and return its id."""

    payload = UserPayload(**data)
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO users (user_id, email, name, role, is_profile_complete, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                payload.user_id,
                payload.email,
                payload.name,
                payload.role,
                int(payload.is_profile_complete),
                now_iso(),
            ),
        )
    return payload.user_id


def get_user(user_id: str) -> Optional[UserRecord]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,)).fetchone()
    return UserRecord.model_validate(row_dict(row)) if row else None


def set_profile_complete(user_id: str, complete: bool = True) -> None:
    with get_conn() as conn:
        conn.execute("UPDATE users SET is_profile_complete = ? WHERE user_id = ?", (int(complete), user_id))


def get_user_by_email(email: str) -> Optional[UserRecord]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
    return UserRecord.model_validate(row_dict(row)) if row else None
