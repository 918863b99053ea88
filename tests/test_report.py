"""
Pipeline tests: analyze_day end to end, determinism, degenerate input.
"""

import pytest

from conftest import HOUR_MS, MINUTE_MS, T0_MS, make_fix
from trip_analyze.models import DayReport
from trip_analyze.report import AnalysisConfig, analyze_day, build_day_report
from trip_analyze.sanitize import SanitizeParams


def _busy_day():
    """Dwell, drive ~1.7 km north, dwell again.

    Dwell jitter (16 m) exceeds the collapse distance so dwells keep their
    duration; drive steps (28 m every 5 s) stay within the jump limit once
    smoothed.
    """
    fixes = []
    t = T0_MS
    for i in range(20):
        fixes.append(make_fix(t, (i % 2) * 16))
        t += 30_000
    for i in range(1, 61):
        fixes.append(make_fix(t, i * 28))
        t += 5_000
    for i in range(20):
        fixes.append(make_fix(t, 1680 + (i % 2) * 16))
        t += 30_000
    return fixes


class TestAnalyzeDay:

    def test_end_to_end_scenario(self):
        check_in, check_out = T0_MS, T0_MS + 8 * HOUR_MS
        fixes = [
            make_fix(T0_MS, 0),
            make_fix(T0_MS + 60_000, 1.2),
            make_fix(T0_MS + 4_000_000, 50),
        ]
        analysis = analyze_day(fixes, check_in, check_out)
        report = analysis.report

        # first two fixes collapse; the 50 m fix is kept and smoothed
        assert len(analysis.fixes) == 2
        assert analysis.used_raw_fallback is False
        # the only pair spans more than 45 minutes
        assert report.moving_ms == 0
        assert report.distance_m == 0.0
        assert len(report.stops) == 1
        assert report.stops[0].start_ms == T0_MS + 60_000
        # interior gap plus the long trailing gap
        assert report.offline.total_ms == 3_940_000 + (8 * HOUR_MS - 4_000_000)
        assert max(g.duration_ms for g in report.offline.gaps) == 8 * HOUR_MS - 4_000_000

    def test_busy_day(self):
        analysis = analyze_day(_busy_day(), T0_MS, T0_MS + 2 * HOUR_MS)
        report = analysis.report
        assert report.distance_m > 1000
        assert report.moving_ms > 0
        assert len(report.stops) == 2
        assert report.offline.gaps[-1].end_ms == T0_MS + 2 * HOUR_MS

    def test_deterministic(self):
        fixes = _busy_day()
        a = analyze_day(fixes, T0_MS, T0_MS + 2 * HOUR_MS)
        b = analyze_day(fixes, T0_MS, T0_MS + 2 * HOUR_MS)
        assert a == b
        assert a.report.to_dict() == b.report.to_dict()

    @pytest.mark.parametrize("n", [0, 1])
    def test_degenerate_input_is_zero(self, n):
        fixes = [make_fix(T0_MS, 0)][:n]
        analysis = analyze_day(fixes)
        assert analysis.report == DayReport()
        assert analysis.raw_count == n

    def test_raw_fallback_feeds_all_stages(self):
        # strict accuracy removes everything, so raw fixes are analyzed
        fixes = [make_fix(T0_MS, 0, accuracy=80.0), make_fix(T0_MS + 5 * MINUTE_MS, 10, accuracy=80.0)]
        cfg = AnalysisConfig(sanitize=SanitizeParams(max_accuracy_m=10))
        analysis = analyze_day(fixes, config=cfg)
        assert analysis.used_raw_fallback is True
        assert analysis.fixes == tuple(fixes)
        assert analysis.report.idle_ms == 5 * MINUTE_MS
        assert len(analysis.report.stops) == 1

    def test_without_attendance_no_gaps(self):
        report = analyze_day(_busy_day()).report
        assert report.offline.total_ms == 0
        assert report.offline.gaps == ()


class TestDayReport:

    def test_to_dict_shape(self):
        fixes = [make_fix(T0_MS, 0), make_fix(T0_MS + 4 * MINUTE_MS, 5)]
        d = build_day_report(fixes, T0_MS, T0_MS + HOUR_MS).to_dict()
        assert set(d) == {"distanceM", "movingMs", "idleMs", "stops", "offline"}
        assert set(d["offline"]) == {"totalMs", "gaps"}
        stop = d["stops"][0]
        assert stop["durationMs"] == stop["endMs"] - stop["startMs"]
        assert set(stop["center"]) == {"lat", "lng"}

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            AnalysisConfig(offline_threshold_ms=-1)
