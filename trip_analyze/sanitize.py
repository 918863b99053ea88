"""Point sanitizer: drop bad fixes, collapse stationary jitter, smooth with an EMA."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Sequence

from trip_analyze.geo import fix_distance_m
from trip_analyze.models import GpsFix

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SanitizeParams:
    """Parameters controlling fix cleaning."""

    # Fixes reporting a worse horizontal accuracy are skipped. Use 40 for stricter.
    max_accuracy_m: float = 60.0
    # A fix further than this from the last kept fix is a GPS spike.
    max_jump_m: float = 120.0
    # Near-duplicates closer than this are collapsed when the implied speed is slow.
    collapse_within_m: float = 12.0
    slow_speed_mps: float = 1.2
    ema_alpha: float = 0.25

    def __post_init__(self) -> None:
        if not (0.0 < self.ema_alpha <= 1.0):
            raise ValueError(f"ema_alpha must be in (0, 1], got {self.ema_alpha!r}")
        for name in ("max_accuracy_m", "max_jump_m", "collapse_within_m", "slow_speed_mps"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")


@dataclass(frozen=True, slots=True)
class SanitizeStats:
    """Counters describing what the sanitizer did with its input."""

    received: int = 0
    kept: int = 0
    dropped_invalid: int = 0
    dropped_inaccurate: int = 0
    dropped_jump: int = 0
    collapsed: int = 0


def _implied_speed_mps(distance_m: float, prev: GpsFix, cur: GpsFix) -> float:
    if prev.captured_at_ms is None or cur.captured_at_ms is None:
        return 0.0
    dt_ms = cur.captured_at_ms - prev.captured_at_ms
    if dt_ms <= 0:
        return 0.0
    return distance_m / (dt_ms / 1000.0)


def sanitize_with_stats(
    fixes: Sequence[GpsFix],
    params: SanitizeParams | None = None,
) -> tuple[list[GpsFix], SanitizeStats]:
    """Clean and smooth a time-ordered fix stream in a single forward pass.

    Steps per fix:
      1. skip non-finite coordinates;
      2. skip fixes whose accuracy exceeds ``max_accuracy_m``;
      3. compared with the last kept fix: skip spikes beyond ``max_jump_m``;
         if closer than ``collapse_within_m`` and slower than ``slow_speed_mps``,
         the fix replaces the last kept one (newer timestamp, nothing appended);
      4. otherwise advance the EMA position and append the fix with smoothed
         coordinates.

    Args:
        fixes: Fixes in non-decreasing ``captured_at_ms`` order. Not sorted here.
        params: Cleaning parameters (defaults if None).

    Returns:
        (sanitized fixes, stats)
    """

    p = params or SanitizeParams()
    out: list[GpsFix] = []
    ema_lat = 0.0
    ema_lng = 0.0
    seeded = False
    invalid = inaccurate = jumps = collapsed = 0

    for fix in fixes:
        if not fix.is_valid:
            invalid += 1
            continue

        if fix.accuracy is not None and math.isfinite(fix.accuracy) and fix.accuracy > p.max_accuracy_m:
            inaccurate += 1
            continue

        if out:
            last = out[-1]
            d = fix_distance_m(last, fix)
            if d > p.max_jump_m:
                jumps += 1
                continue
            if d < p.collapse_within_m and _implied_speed_mps(d, last, fix) < p.slow_speed_mps:
                out[-1] = fix
                collapsed += 1
                continue

        if not seeded:
            ema_lat, ema_lng = fix.lat, fix.lng
            seeded = True
        else:
            ema_lat = ema_lat + p.ema_alpha * (fix.lat - ema_lat)
            ema_lng = ema_lng + p.ema_alpha * (fix.lng - ema_lng)

        out.append(replace(fix, lat=ema_lat, lng=ema_lng))

    stats = SanitizeStats(
        received=len(fixes),
        kept=len(out),
        dropped_invalid=invalid,
        dropped_inaccurate=inaccurate,
        dropped_jump=jumps,
        collapsed=collapsed,
    )
    logger.debug(
        "sanitized %s -> %s fixes (invalid=%s inaccurate=%s jump=%s collapsed=%s)",
        stats.received,
        stats.kept,
        invalid,
        inaccurate,
        jumps,
        collapsed,
    )
    return out, stats


def sanitize_fixes(fixes: Sequence[GpsFix], params: SanitizeParams | None = None) -> list[GpsFix]:
    """Same as :func:`sanitize_with_stats` without the counters."""

    cleaned, _ = sanitize_with_stats(fixes, params)
    return cleaned


def analysis_stream(raw: Sequence[GpsFix], sanitized: Sequence[GpsFix]) -> tuple[list[GpsFix], bool]:
    """Pick the stream downstream stages should consume.

    A sanitized stream with fewer than two fixes cannot support distance, stop
    or gap analysis; in that case the valid raw fixes are used instead.

    Returns:
        (fixes, used_raw_fallback)
    """

    if len(sanitized) >= 2:
        return list(sanitized), False
    return [f for f in raw if f.is_valid], True
