"""In-memory tracking store: per-day fixes, attendance and live positions.

Mirrors the document layout the tracker reads:
    drivers/{driver_id}/attendance/{day}/locations/*
    drivers/{driver_id}/attendance/{day}            (check-in/check-out)
    drivers/{driver_id}/live/current                 (preferred live)
    drivers/{driver_id}/attendance/{day}/live/current (fallback live)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from trip_analyze.models import GpsFix, optional_epoch_ms

logger = logging.getLogger(__name__)

FixListener = Callable[[list[GpsFix]], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True, slots=True)
class AttendanceRecord:
    """Check-in/check-out checkpoints of one driver day (epoch ms)."""

    check_in_ms: int | None = None
    check_out_ms: int | None = None

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> AttendanceRecord:
        return cls(
            check_in_ms=optional_epoch_ms(data.get("checkInMs")),
            check_out_ms=optional_epoch_ms(data.get("checkOutMs")),
        )


@dataclass(frozen=True, slots=True)
class LivePosition:
    """Latest position of a driver and which document it came from."""

    fix: GpsFix
    source: str  # "driver" or "day"


def _sort_key(fix: GpsFix) -> tuple[int, int]:
    if fix.captured_at_ms is None:
        return (1, 0)
    return (0, fix.captured_at_ms)


class InMemoryTrackingStore:
    """Thread-safe in-memory stand-in for the location document store."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._fixes: dict[tuple[str, str], list[GpsFix]] = {}
        self._attendance: dict[tuple[str, str], AttendanceRecord] = {}
        self._live_driver: dict[str, GpsFix] = {}
        self._live_day: dict[tuple[str, str], GpsFix] = {}
        self._listeners: dict[tuple[str, str], list[FixListener]] = {}
        self._delivery: dict[tuple[str, str], threading.RLock] = {}

    # ---- fixes ----
    def add_fix(self, driver_id: str, day: str, fix: GpsFix) -> None:
        self.add_fixes(driver_id, day, [fix])

    def add_fixes(self, driver_id: str, day: str, fixes: Iterable[GpsFix]) -> None:
        """Append fixes and notify subscribers once with the new ordered list."""

        key = (driver_id, day)
        with self._delivery_lock(key):
            with self._lock:
                bucket = self._fixes.setdefault(key, [])
                bucket.extend(fixes)
                bucket.sort(key=_sort_key)
                snapshot = list(bucket)
                listeners = list(self._listeners.get(key, ()))
            for listener in listeners:
                listener(snapshot)

    def fixes(self, driver_id: str, day: str) -> list[GpsFix]:
        """All fixes of a day, ascending by capture time."""

        with self._lock:
            return list(self._fixes.get((driver_id, day), ()))

    def subscribe_fixes(self, driver_id: str, day: str, listener: FixListener) -> Unsubscribe:
        """Register a listener for a day's fixes.

        The listener is called at once with the current list, then after every
        change. Deliveries for one driver day are serialized, so a listener
        never sees an older list after a newer one. The returned callable
        removes the listener and may be called repeatedly.
        """

        key = (driver_id, day)
        released = False

        def unsubscribe() -> None:
            nonlocal released
            with self._lock:
                if released:
                    return
                released = True
                bucket = self._listeners.get(key, [])
                if listener in bucket:
                    bucket.remove(listener)
            logger.debug("unsubscribed from drivers/%s/attendance/%s/locations", driver_id, day)

        with self._delivery_lock(key):
            with self._lock:
                self._listeners.setdefault(key, []).append(listener)
                snapshot = list(self._fixes.get(key, ()))
            logger.debug("subscribed to drivers/%s/attendance/%s/locations", driver_id, day)
            try:
                listener(snapshot)
            except BaseException:
                unsubscribe()
                raise
        return unsubscribe

    def _delivery_lock(self, key: tuple[str, str]) -> threading.RLock:
        with self._lock:
            return self._delivery.setdefault(key, threading.RLock())

    def listener_count(self, driver_id: str, day: str) -> int:
        with self._lock:
            return len(self._listeners.get((driver_id, day), ()))

    # ---- attendance ----
    def set_attendance(self, driver_id: str, day: str, record: AttendanceRecord) -> None:
        with self._lock:
            self._attendance[(driver_id, day)] = record

    def attendance(self, driver_id: str, day: str) -> AttendanceRecord:
        with self._lock:
            return self._attendance.get((driver_id, day), AttendanceRecord())

    # ---- live ----
    def set_live(self, driver_id: str, fix: GpsFix, day: str | None = None) -> None:
        """Store a live position at driver level, or at day level if ``day`` is given."""

        with self._lock:
            if day is None:
                self._live_driver[driver_id] = fix
            else:
                self._live_day[(driver_id, day)] = fix

    def live(self, driver_id: str, day: str) -> LivePosition | None:
        """Driver-level live position, falling back to the day-level one."""

        with self._lock:
            fix = self._live_driver.get(driver_id)
            if fix is not None and fix.is_valid:
                return LivePosition(fix=fix, source="driver")
            fix = self._live_day.get((driver_id, day))
            if fix is not None and fix.is_valid:
                return LivePosition(fix=fix, source="day")
        return None
