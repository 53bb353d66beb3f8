"""
cooldowns.py

Per-table, per-request-type cooldowns.

Nothing here is persisted: the tracker is rebuilt from the newest request of
each type whenever a table page (or its websocket) loads, and is then kept
current by calling ``tick()`` once a second while any entry is still blocked.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional

from .exceptions import CooldownActive
from .request_types import OPTIONS_BY_TYPE, get_cooldown_durations

logger = logging.getLogger(__name__)

ZERO = timedelta(0)


@dataclass(frozen=True)
class CooldownEntry:
    blocked_until: Optional[datetime] = None
    remaining: timedelta = ZERO

    @property
    def active(self) -> bool:
        return self.blocked_until is not None

    @property
    def time_left(self) -> str:
        return format_remaining(self.remaining) if self.active else ""


IDLE = CooldownEntry()


def remaining_seconds(remaining: timedelta) -> int:
    """Whole seconds left, rounding partial seconds up."""
    return max(int(-(-remaining.total_seconds() // 1)), 0)


def format_remaining(remaining: timedelta) -> str:
    """Render a countdown as ``M:SS``."""
    minutes, seconds = divmod(remaining_seconds(remaining), 60)
    return f"{minutes}:{seconds:02d}"


class CooldownTracker:
    """Soonest resubmission time for every request type of one table."""

    def __init__(self, durations: Optional[Mapping[str, timedelta]] = None):
        self.durations = dict(durations if durations is not None else get_cooldown_durations())
        self._blocked_until: Dict[str, datetime] = {}
        self.entries: Dict[str, CooldownEntry] = {t: IDLE for t in self.durations}

    @classmethod
    def from_latest(cls, latest_by_type, now, durations=None):
        tracker = cls(durations)
        tracker.load(latest_by_type, now)
        return tracker

    # ------------------------------------------------------------------
    # Recomputation
    # ------------------------------------------------------------------
    def load(self, latest_by_type: Mapping[str, datetime], now: datetime):
        """Replace all state with windows derived from the latest request per type."""
        self._blocked_until = {}
        for request_type, created_at in latest_by_type.items():
            if created_at is None or request_type not in self.durations:
                continue
            self._blocked_until[request_type] = created_at + self.durations[request_type]
        return self.tick(now)

    def tick(self, now: datetime) -> Dict[str, CooldownEntry]:
        """Recompute every entry against ``now``; expired windows are dropped."""
        entries = {}
        for request_type in self.durations:
            until = self._blocked_until.get(request_type)
            if until is not None and now >= until:
                del self._blocked_until[request_type]
                until = None
            entries[request_type] = IDLE if until is None else CooldownEntry(until, until - now)
        self.entries = entries
        return entries

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def is_blocked(self, request_type, now) -> bool:
        until = self._blocked_until.get(request_type)
        return until is not None and now < until

    def check(self, request_type, now):
        """Raise ``CooldownActive`` if ``request_type`` may not be submitted yet."""
        if not self.is_blocked(request_type, now):
            return
        remaining = self._blocked_until[request_type] - now
        option = OPTIONS_BY_TYPE.get(request_type)
        label = option.label if option else request_type
        raise CooldownActive(
            request_type,
            remaining,
            f"⏳ Please wait {format_remaining(remaining)} before requesting '{label}' again.",
        )

    def record(self, request_type, submitted_at):
        """Open a new window right after a successful submission."""
        duration = self.durations.get(request_type)
        if duration is None:
            return
        self._blocked_until[request_type] = submitted_at + duration
        self.entries[request_type] = CooldownEntry(self._blocked_until[request_type], duration)
        logger.debug(f"Cooldown for {request_type} opened until {self._blocked_until[request_type]}")

    @property
    def has_active(self) -> bool:
        return bool(self._blocked_until)

    def as_dict(self, now=None):
        entries = self.tick(now) if now is not None else self.entries
        return {
            request_type: {
                "blocked_until": entry.blocked_until.isoformat() if entry.active else None,
                "remaining_seconds": remaining_seconds(entry.remaining),
                "time_left": entry.time_left,
            }
            for request_type, entry in entries.items()
        }
