"""
Tracker session and live tracking tests.

Tests:
- cursor clamping, playback stepping, labels
- recompute on new fixes
- LiveTracker subscription lifecycle (always released)
- online status window
"""

import pytest

from conftest import HOUR_MS, MINUTE_MS, T0_MS, make_fix
from trip_analyze.models import DayReport
from trip_analyze.session import LiveTracker, TrackerSession, clamp_cursor, is_online
from trip_analyze.store import AttendanceRecord, InMemoryTrackingStore

DRIVER = "driver-7"
DAY = "2025-01-06"


def _moving(n, start=T0_MS):
    return [make_fix(start + i * 10_000, i * 20) for i in range(n)]


# ---------------------------------------------------------------------------
# TrackerSession
# ---------------------------------------------------------------------------

class TestTrackerSession:

    def test_empty_session(self):
        s = TrackerSession.build(DRIVER, DAY)
        assert s.fixes == ()
        assert s.report == DayReport()
        assert s.cursor == 0
        assert s.cursor_fix is None
        assert s.progress_label == "0/0"
        assert s.at_end

    @pytest.mark.parametrize("index,expected", [(-3, 0), (0, 0), (2, 2), (99, 4)])
    def test_cursor_clamped(self, index, expected):
        s = TrackerSession.build(DRIVER, DAY, _moving(5)).with_cursor(index)
        assert s.cursor == expected

    def test_advance_stops_at_end(self):
        s = TrackerSession.build(DRIVER, DAY, _moving(3))
        s = s.advance().advance().advance()
        assert s.cursor == 2
        assert s.at_end
        assert s.progress_label == "3/3"
        assert s.cursor_fix == s.end_fix

    def test_recompute_keeps_cursor_in_range(self):
        s = TrackerSession.build(DRIVER, DAY, _moving(6)).with_cursor(5)
        shorter = s.recompute(_moving(2))
        assert shorter.cursor == 1
        longer = shorter.recompute(_moving(10))
        assert longer.cursor == 1
        assert len(longer.raw_fixes) == 10

    def test_recompute_is_pure(self):
        s = TrackerSession.build(DRIVER, DAY, _moving(4))
        s2 = s.recompute(_moving(8))
        assert len(s.fixes) == 4
        assert len(s2.fixes) == 8

    def test_with_attendance_recomputes_gaps(self):
        s = TrackerSession.build(DRIVER, DAY, _moving(4))
        assert s.report.offline.total_ms == 0
        s = s.with_attendance(T0_MS, T0_MS + HOUR_MS)
        assert s.report.offline.total_ms > 0

    def test_start_and_end(self):
        fixes = _moving(4)
        s = TrackerSession.build(DRIVER, DAY, fixes)
        assert s.start_fix.captured_at_ms == fixes[0].captured_at_ms
        assert s.end_fix.captured_at_ms == fixes[-1].captured_at_ms


def test_clamp_cursor_empty():
    assert clamp_cursor(5, 0) == 0


# ---------------------------------------------------------------------------
# LiveTracker
# ---------------------------------------------------------------------------

class TestLiveTracker:

    def test_recomputes_on_every_arrival(self):
        store = InMemoryTrackingStore()
        store.set_attendance(DRIVER, DAY, AttendanceRecord(T0_MS, T0_MS + HOUR_MS))
        updates = []
        with LiveTracker(store, DRIVER, DAY, on_update=updates.append) as tracker:
            assert tracker.session.fixes == ()
            for f in _moving(5):
                store.add_fix(DRIVER, DAY, f)
            assert len(tracker.session.raw_fixes) == 5
            assert tracker.session.check_in_ms == T0_MS
            assert tracker.session.report.offline.total_ms > 0
        # initial snapshot + five arrivals
        assert len(updates) == 6

    def test_subscription_released_on_exit(self):
        store = InMemoryTrackingStore()
        with LiveTracker(store, DRIVER, DAY):
            assert store.listener_count(DRIVER, DAY) == 1
        assert store.listener_count(DRIVER, DAY) == 0

    def test_subscription_released_on_error(self):
        store = InMemoryTrackingStore()
        with pytest.raises(RuntimeError):
            with LiveTracker(store, DRIVER, DAY):
                raise RuntimeError("boom")
        assert store.listener_count(DRIVER, DAY) == 0

    def test_stop_is_idempotent(self):
        store = InMemoryTrackingStore()
        tracker = LiveTracker(store, DRIVER, DAY).start()
        assert tracker.active
        tracker.stop()
        tracker.stop()
        assert not tracker.active
        store.add_fix(DRIVER, DAY, make_fix(T0_MS, 0))
        assert tracker.session.raw_fixes == ()

    def test_seek_clamps(self):
        store = InMemoryTrackingStore()
        store.add_fixes(DRIVER, DAY, _moving(4))
        with LiveTracker(store, DRIVER, DAY) as tracker:
            assert tracker.seek(50).cursor == 3

    def test_live_position_fallback(self):
        store = InMemoryTrackingStore()
        store.set_live(DRIVER, make_fix(T0_MS, 0), day=DAY)
        with LiveTracker(store, DRIVER, DAY) as tracker:
            assert tracker.live_position().source == "day"


class TestOnline:

    def test_recent_is_online(self):
        assert is_online(T0_MS, T0_MS + 3 * MINUTE_MS)

    def test_stale_is_offline(self):
        assert not is_online(T0_MS, T0_MS + 3 * MINUTE_MS + 1)

    def test_missing_timestamp_is_offline(self):
        assert not is_online(None, T0_MS)
