from __future__ import annotations  # Domain errors raised by the session engine


class InterviewError(RuntimeError):  # Base engine error
    pass


class NotFoundError(InterviewError):  # Unknown token, session, job or candidate
    pass


class ForbiddenError(InterviewError):  # Operation refused; ``reason`` is machine readable
    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class ConcurrentUpdateError(InterviewError):  # Row changed since it was read
    pass


TOO_EARLY = "too_early"
WINDOW_EXPIRED = "window_expired"
ALREADY_COMPLETED = "already_completed"
PAUSED_FOR_MALPRACTICE = "paused_for_malpractice"
INVITATION_NOT_ACCEPTED = "invitation_not_accepted"
PROFILE_INCOMPLETE = "profile_incomplete"
FLAGGED_REQUIRES_COMPANY = "flagged_requires_company"
NOT_SESSION_OWNER = "not_session_owner"
NOT_ONGOING = "not_ongoing"


__all__ = [
    "ALREADY_COMPLETED",
    "ConcurrentUpdateError",
    "FLAGGED_REQUIRES_COMPANY",
    "ForbiddenError",
    "INVITATION_NOT_ACCEPTED",
    "InterviewError",
    "NOT_ONGOING",
    "NOT_SESSION_OWNER",
    "NotFoundError",
    "PAUSED_FOR_MALPRACTICE",
    "PROFILE_INCOMPLETE",
    "TOO_EARLY",
    "WINDOW_EXPIRED",
]
