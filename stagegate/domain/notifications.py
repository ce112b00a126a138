"""Appointment reminder urgency and notification deduplication.

calculate_urgency: pure function of the appointment time and `now`.
NotificationDeduplicator: a caller-owned, bounded, time-limited cache of
notifications already sent. Each caller keeps its own instance; nothing here
is shared across the process. Not thread-safe.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import StrEnum

from stagegate.core.config import get_settings
from stagegate.domain.stages import as_utc


class Urgency(StrEnum):
    """How soon an appointment starts, from the reminder's point of view."""

    CRITICAL = "critical"
    ALERT = "alert"
    REMINDER = "reminder"
    NORMAL = "normal"


@dataclass(frozen=True)
class UrgencyWindows:
    """Lead times (before the appointment) at which each urgency starts."""

    critical: timedelta = timedelta(minutes=30)
    alert: timedelta = timedelta(hours=2)
    reminder: timedelta = timedelta(hours=24)

    @classmethod
    def from_settings(cls) -> "UrgencyWindows":
        settings = get_settings()
        return cls(
            critical=timedelta(minutes=settings.urgency_critical_minutes),
            alert=timedelta(minutes=settings.urgency_alert_minutes),
            reminder=timedelta(minutes=settings.urgency_reminder_minutes),
        )


def calculate_urgency(
    scheduled_at: datetime,
    now: datetime | None = None,
    windows: UrgencyWindows | None = None,
) -> Urgency:
    """Classify how urgent a reminder for an appointment is.

    Args:
        scheduled_at: Appointment start time
        now: Current time (injectable for testing, defaults to datetime.now(timezone.utc))
        windows: Urgency lead times (defaults to configured windows)

    Returns:
        Urgency; appointments already in the past are NORMAL
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if windows is None:
        windows = UrgencyWindows.from_settings()

    remaining = as_utc(scheduled_at) - as_utc(now)
    if remaining < timedelta(0):
        return Urgency.NORMAL
    if remaining <= windows.critical:
        return Urgency.CRITICAL
    if remaining <= windows.alert:
        return Urgency.ALERT
    if remaining <= windows.reminder:
        return Urgency.REMINDER
    return Urgency.NORMAL


class NotificationDeduplicator:
    """Remembers (appointment, urgency) pairs already notified.

    Entries expire after `ttl` and the oldest entry is evicted once
    `max_entries` is reached.
    """

    def __init__(self, max_entries: int | None = None, ttl: timedelta | None = None):
        settings = get_settings()
        self.max_entries = max_entries if max_entries is not None else settings.notification_dedup_max_entries
        self.ttl = ttl if ttl is not None else timedelta(seconds=settings.notification_dedup_ttl_seconds)
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._seen: OrderedDict[str, datetime] = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def _expire(self, now: datetime) -> None:
        # Insertion order is also expiry order
        while self._seen:
            key, seen_at = next(iter(self._seen.items()))
            if now - seen_at < self.ttl:
                break
            del self._seen[key]

    def should_notify(self, appointment_id: str, urgency: Urgency, now: datetime | None = None) -> bool:
        """Return True the first time a (appointment, urgency) pair needs a notification.

        NORMAL urgency never notifies. A pair already notified within the TTL
        returns False.
        """
        if urgency == Urgency.NORMAL:
            return False
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)

        self._expire(now)
        key = f"{appointment_id}-{urgency}"
        if key in self._seen:
            return False

        if len(self._seen) >= self.max_entries:
            self._seen.popitem(last=False)
        self._seen[key] = now
        return True

    def clear(self) -> None:
        self._seen.clear()
