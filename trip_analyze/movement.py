"""Distance and moving/idle time of a day's path."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from trip_analyze.geo import fix_distance_m
from trip_analyze.models import GpsFix, MovementSummary


@dataclass(frozen=True, slots=True)
class MovementParams:
    """Parameters controlling movement classification."""

    # Brisk-walk speed; segments at or above it count as moving.
    move_threshold_mps: float = 1.2
    # Consecutive fixes further apart than this (phone asleep, app killed) are ignored.
    max_gap_ms: int = 45 * 60 * 1000

    def __post_init__(self) -> None:
        if self.move_threshold_mps < 0:
            raise ValueError("move_threshold_mps must be non-negative")
        if self.max_gap_ms <= 0:
            raise ValueError("max_gap_ms must be positive")


def summarize_movement(fixes: Sequence[GpsFix], params: MovementParams | None = None) -> MovementSummary:
    """Accumulate distance and split elapsed time into moving vs idle.

    Pairs with a non-positive or too-large time delta (or a missing timestamp)
    contribute to none of the totals.
    """

    p = params or MovementParams()
    if len(fixes) < 2:
        return MovementSummary()

    distance = 0.0
    moving = 0
    idle = 0
    for prev, cur in zip(fixes, fixes[1:]):
        if prev.captured_at_ms is None or cur.captured_at_ms is None:
            continue
        dt = cur.captured_at_ms - prev.captured_at_ms
        if dt <= 0 or dt > p.max_gap_ms:
            continue
        d = fix_distance_m(prev, cur)
        distance += d
        if d / (dt / 1000.0) >= p.move_threshold_mps:
            moving += dt
        else:
            idle += dt
    return MovementSummary(distance_m=distance, moving_ms=moving, idle_ms=idle)
