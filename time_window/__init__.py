from __future__ import annotations  # Re-export time_window public API

from .time_window import REINTERVIEW_EXTENSION, TimeWindow, as_utc, calculate_time_window, utcnow

__all__ = ["REINTERVIEW_EXTENSION", "TimeWindow", "as_utc", "calculate_time_window", "utcnow"]
