"""
Offline gap analyzer tests.
"""

import pytest

from conftest import HOUR_MS, MINUTE_MS, T0_MS, make_fix
from trip_analyze.models import OfflineGap, OfflineSummary
from trip_analyze.offline import compute_offline_gaps

CHECK_IN = T0_MS
CHECK_OUT = T0_MS + 8 * HOUR_MS
THRESHOLD = 10 * MINUTE_MS


class TestPreconditions:

    @pytest.mark.parametrize(
        "check_in,check_out",
        [(None, CHECK_OUT), (CHECK_IN, None), (0, CHECK_OUT), (CHECK_OUT, CHECK_IN), (CHECK_IN, CHECK_IN)],
    )
    def test_missing_or_inverted_window(self, check_in, check_out):
        fixes = [make_fix(CHECK_IN + MINUTE_MS, 0)]
        assert compute_offline_gaps(fixes, check_in, check_out, THRESHOLD) == OfflineSummary()


class TestGaps:

    def test_single_in_window_fix_whole_window(self):
        fixes = [make_fix(CHECK_IN + 2 * HOUR_MS, 0)]
        res = compute_offline_gaps(fixes, CHECK_IN, CHECK_OUT, THRESHOLD)
        assert res.gaps == (OfflineGap(CHECK_IN, CHECK_OUT),)
        assert res.total_ms == 8 * HOUR_MS

    def test_no_fixes_whole_window(self):
        res = compute_offline_gaps([], CHECK_IN, CHECK_OUT, THRESHOLD)
        assert res.total_ms == 8 * HOUR_MS

    def test_fixes_outside_window_ignored(self):
        fixes = [make_fix(CHECK_IN - HOUR_MS, 0), make_fix(CHECK_OUT + HOUR_MS, 0)]
        res = compute_offline_gaps(fixes, CHECK_IN, CHECK_OUT, THRESHOLD)
        assert res.gaps == (OfflineGap(CHECK_IN, CHECK_OUT),)

    def test_leading_interior_trailing(self):
        times = [CHECK_IN + 30 * MINUTE_MS, CHECK_IN + 35 * MINUTE_MS, CHECK_IN + 2 * HOUR_MS, CHECK_OUT - 5 * MINUTE_MS]
        res = compute_offline_gaps([make_fix(t, 0) for t in times], CHECK_IN, CHECK_OUT, THRESHOLD)
        assert res.gaps == (
            OfflineGap(CHECK_IN, times[0]),
            OfflineGap(times[1], times[2]),
            OfflineGap(times[2], times[3]),
        )
        assert res.total_ms == (30 + 85 + 355) * MINUTE_MS

    def test_gap_equal_to_threshold_excluded(self):
        times = [CHECK_IN, CHECK_IN + THRESHOLD, CHECK_OUT]
        res = compute_offline_gaps([make_fix(t, 0) for t in times], CHECK_IN, CHECK_OUT, THRESHOLD)
        assert res.gaps == (OfflineGap(times[1], CHECK_OUT),)

    def test_fully_covered_window(self):
        times = range(CHECK_IN, CHECK_OUT + 1, 5 * MINUTE_MS)
        res = compute_offline_gaps([make_fix(t, 0) for t in times], CHECK_IN, CHECK_OUT, THRESHOLD)
        assert res == OfflineSummary()

    def test_gaps_stay_inside_window(self):
        times = [CHECK_IN + k * 47 * MINUTE_MS for k in range(1, 10)]
        res = compute_offline_gaps([make_fix(t, 0) for t in times], CHECK_IN, CHECK_OUT, THRESHOLD)
        assert res.total_ms <= CHECK_OUT - CHECK_IN
        assert res.total_ms == sum(g.duration_ms for g in res.gaps)
        for g in res.gaps:
            assert CHECK_IN <= g.start_ms <= g.end_ms <= CHECK_OUT
