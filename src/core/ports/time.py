"""
Time Adapter Interface (P3).

All timestamps are timezone-aware UTC. Intent deadlines and ledger
timestamps are computed from this port so tests can freeze time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TimePort(Protocol):
    """Source of the current UTC time."""

    def now_utc(self) -> datetime:
        """Get current UTC time (timezone-aware)."""
        ...

    def is_past_or_now(self, utc_dt: datetime) -> bool:
        """Check if a UTC datetime is at or before now."""
        ...
