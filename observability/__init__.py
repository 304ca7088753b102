"""Lifecycle logging, timing spans and the admin CLI for interview sessions."""
from .logger import configure_logging, log_event
from .tracing import span

__all__ = ["configure_logging", "log_event", "span"]
