"""Persistence helpers for company notifications."""
from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel

from .models import Notification, row_dict
from .sqlite import get_conn, now_iso


class NotificationPayload(BaseModel):
    company_id: str
    title: str
    message: str


def insert_notification(**data: Any) -> int:
    payload = NotificationPayload(**data)
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(
            "INSERT INTO notifications (company_id, title, message, created_at) VALUES (?, ?, ?, ?)",
            (payload.company_id, payload.title, payload.message, now_iso()),
        )
        return int(cur.lastrowid)


def list_notifications(company_id: str) -> List[Notification]:
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM notifications WHERE company_id = ? ORDER BY notification_id",
            (company_id,),
        ).fetchall()
    return [Notification.model_validate(row_dict(row)) for row in rows]
