from __future__ import annotations  # External collaborators of the session engine

import logging
from typing import Optional, Protocol

from observability import log_event
from storage.notifications import insert_notification
from storage.users import get_user


logger = logging.getLogger(__name__)


class ProfileGate(Protocol):  # Decides whether a user may start interviews
    def is_profile_complete(self, user_id: str) -> bool: ...


class Notifier(Protocol):  # Delivers company-facing notifications
    def notify(self, company_id: str, title: str, message: str, *, session_id: Optional[str] = None) -> None: ...


class StoredProfileGate:  # Profile flag read from the users table
    def is_profile_complete(self, user_id: str) -> bool:
        user = get_user(user_id)
        return bool(user and user.is_profile_complete)


class StoredNotifier:  # Structured event plus a notifications row
    def notify(self, company_id: str, title: str, message: str, *, session_id: Optional[str] = None) -> None:
        log_event("company_notification", session_id or "-", company_id=company_id, title=title)
        insert_notification(company_id=company_id, title=title, message=message)


__all__ = ["Notifier", "ProfileGate", "StoredNotifier", "StoredProfileGate"]
