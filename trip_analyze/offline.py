"""Offline gaps inside an attendance (check-in/check-out) window."""

from __future__ import annotations

from typing import Final, Sequence

from trip_analyze.models import GpsFix, OfflineGap, OfflineSummary

DEFAULT_OFFLINE_THRESHOLD_MS: Final[int] = 10 * 60 * 1000


def compute_offline_gaps(
    fixes: Sequence[GpsFix],
    check_in_ms: int | None,
    check_out_ms: int | None,
    threshold_ms: int = DEFAULT_OFFLINE_THRESHOLD_MS,
) -> OfflineSummary:
    """Find parts of the session window not covered by any fix.

    Args:
        fixes: Time-ordered fixes.
        check_in_ms: Session start (epoch ms). Missing/zero means no session.
        check_out_ms: Session end (epoch ms). Missing/zero means no session.
        threshold_ms: Only gaps strictly longer than this are reported.

    Returns:
        OfflineSummary. With fewer than two fixes inside the window, the whole
        window is reported as a single gap.
    """

    if not check_in_ms or not check_out_ms or check_out_ms <= check_in_ms:
        return OfflineSummary()

    times = [
        f.captured_at_ms
        for f in fixes
        if f.captured_at_ms is not None and check_in_ms <= f.captured_at_ms <= check_out_ms
    ]
    if len(times) < 2:
        gap = OfflineGap(start_ms=check_in_ms, end_ms=check_out_ms)
        return OfflineSummary(total_ms=gap.duration_ms, gaps=(gap,))

    candidates = [OfflineGap(start_ms=check_in_ms, end_ms=times[0])]
    candidates.extend(OfflineGap(start_ms=a, end_ms=b) for a, b in zip(times, times[1:]))
    candidates.append(OfflineGap(start_ms=times[-1], end_ms=check_out_ms))

    gaps = tuple(g for g in candidates if g.duration_ms > threshold_ms)
    return OfflineSummary(total_ms=sum(g.duration_ms for g in gaps), gaps=gaps)
