"""Tracker session state and live (subscription-driven) tracking."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from types import TracebackType
from typing import Callable, Final, Sequence

from trip_analyze.models import DayReport, GpsFix
from trip_analyze.report import AnalysisConfig, analyze_day
from trip_analyze.store import InMemoryTrackingStore, LivePosition, Unsubscribe

logger = logging.getLogger(__name__)

ONLINE_WINDOW_MS: Final[int] = 3 * 60 * 1000


def is_online(captured_at_ms: int | None, now_ms: int, window_ms: int = ONLINE_WINDOW_MS) -> bool:
    """A live position counts as online if it is at most ``window_ms`` old."""

    if not captured_at_ms:
        return False
    return now_ms - captured_at_ms <= window_ms


def clamp_cursor(index: int, length: int) -> int:
    if length <= 0:
        return 0
    return max(0, min(index, length - 1))


@dataclass(frozen=True, slots=True)
class TrackerSession:
    """Everything the tracker view shows for one (driver, day) selection.

    Instances are immutable; :meth:`recompute` and the cursor helpers return
    new sessions.
    """

    driver_id: str
    day: str
    raw_fixes: tuple[GpsFix, ...] = ()
    fixes: tuple[GpsFix, ...] = ()
    report: DayReport = field(default_factory=DayReport)
    cursor: int = 0
    check_in_ms: int | None = None
    check_out_ms: int | None = None
    used_raw_fallback: bool = False
    config: AnalysisConfig = field(default_factory=AnalysisConfig)

    @classmethod
    def build(
        cls,
        driver_id: str,
        day: str,
        raw_fixes: Sequence[GpsFix] = (),
        *,
        check_in_ms: int | None = None,
        check_out_ms: int | None = None,
        config: AnalysisConfig | None = None,
    ) -> TrackerSession:
        session = cls(
            driver_id=driver_id,
            day=day,
            check_in_ms=check_in_ms,
            check_out_ms=check_out_ms,
            config=config or AnalysisConfig(),
        )
        return session.recompute(raw_fixes)

    def recompute(self, raw_fixes: Sequence[GpsFix]) -> TrackerSession:
        """Rebuild the derived state from a (new) raw fix list."""

        analysis = analyze_day(raw_fixes, self.check_in_ms, self.check_out_ms, self.config)
        return replace(
            self,
            raw_fixes=tuple(raw_fixes),
            fixes=analysis.fixes,
            report=analysis.report,
            used_raw_fallback=analysis.used_raw_fallback,
            cursor=clamp_cursor(self.cursor, len(analysis.fixes)),
        )

    def with_attendance(self, check_in_ms: int | None, check_out_ms: int | None) -> TrackerSession:
        updated = replace(self, check_in_ms=check_in_ms, check_out_ms=check_out_ms)
        return updated.recompute(self.raw_fixes)

    def with_cursor(self, index: int) -> TrackerSession:
        return replace(self, cursor=clamp_cursor(index, len(self.fixes)))

    def advance(self) -> TrackerSession:
        """Playback step: move the cursor forward, staying on the last fix."""

        return self.with_cursor(self.cursor + 1)

    @property
    def at_end(self) -> bool:
        return not self.fixes or self.cursor >= len(self.fixes) - 1

    @property
    def cursor_fix(self) -> GpsFix | None:
        return self.fixes[self.cursor] if self.fixes else None

    @property
    def start_fix(self) -> GpsFix | None:
        return self.fixes[0] if self.fixes else None

    @property
    def end_fix(self) -> GpsFix | None:
        return self.fixes[-1] if self.fixes else None

    @property
    def progress_label(self) -> str:
        if not self.fixes:
            return "0/0"
        return f"{self.cursor + 1}/{len(self.fixes)}"


class LiveTracker:
    """Keeps a :class:`TrackerSession` current while fixes keep arriving.

    Use as a context manager (or call :meth:`start` / :meth:`stop`); the store
    subscription is always released on exit.
    """

    def __init__(
        self,
        store: InMemoryTrackingStore,
        driver_id: str,
        day: str,
        config: AnalysisConfig | None = None,
        on_update: Callable[[TrackerSession], None] | None = None,
    ) -> None:
        self._store = store
        self._on_update = on_update
        self._lock = threading.Lock()
        self._unsubscribe: Unsubscribe | None = None
        self._session = TrackerSession(driver_id=driver_id, day=day, config=config or AnalysisConfig())

    @property
    def session(self) -> TrackerSession:
        with self._lock:
            return self._session

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> LiveTracker:
        if self._unsubscribe is not None:
            return self
        s = self._session
        att = self._store.attendance(s.driver_id, s.day)
        with self._lock:
            self._session = replace(s, check_in_ms=att.check_in_ms, check_out_ms=att.check_out_ms)
        self._unsubscribe = self._store.subscribe_fixes(s.driver_id, s.day, self._handle_fixes)
        return self

    def stop(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def seek(self, index: int) -> TrackerSession:
        with self._lock:
            self._session = self._session.with_cursor(index)
            return self._session

    def live_position(self) -> LivePosition | None:
        s = self._session
        return self._store.live(s.driver_id, s.day)

    def _handle_fixes(self, fixes: list[GpsFix]) -> None:
        with self._lock:
            self._session = self._session.recompute(fixes)
            session = self._session
        logger.debug(
            "recomputed %s/%s: %s raw -> %s clean",
            session.driver_id,
            session.day,
            len(session.raw_fixes),
            len(session.fixes),
        )
        if self._on_update is not None:
            self._on_update(session)

    def __enter__(self) -> LiveTracker:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()
