"""Stop (dwell) detection over a sanitized path."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from trip_analyze.geo import is_within_m, mean_center
from trip_analyze.models import GpsFix, Stop


@dataclass(frozen=True, slots=True)
class StopParams:
    """Parameters controlling stop clustering."""

    radius_m: float = 25.0
    min_duration_ms: int = 3 * 60 * 1000

    def __post_init__(self) -> None:
        if self.radius_m < 0:
            raise ValueError("radius_m must be non-negative")
        if self.min_duration_ms < 0:
            raise ValueError("min_duration_ms must be non-negative")


def _close_cluster(cluster: list[GpsFix], min_duration_ms: int) -> Stop | None:
    if len(cluster) < 2:
        return None
    start_ms = cluster[0].captured_at_ms
    end_ms = cluster[-1].captured_at_ms
    if start_ms is None or end_ms is None:
        return None
    if end_ms - start_ms < min_duration_ms:
        return None
    center = mean_center(cluster)
    if center is None:
        return None
    return Stop(
        start_ms=start_ms,
        end_ms=end_ms,
        center_lat=center[0],
        center_lng=center[1],
        points=len(cluster),
    )


def detect_stops(fixes: Sequence[GpsFix], params: StopParams | None = None) -> list[Stop]:
    """Cluster consecutive fixes into stops.

    A fix joins the current cluster when it lies within ``radius_m`` of the
    last fix added to that cluster (not the centroid), so a slow drift keeps
    extending one stop. A cluster becomes a stop if it has at least two fixes
    and spans ``min_duration_ms`` or more.

    Args:
        fixes: Time-ordered fixes. Fixes without a timestamp are ignored.
        params: Clustering parameters (defaults if None).

    Returns:
        Stops in time order.
    """

    p = params or StopParams()
    timed = [f for f in fixes if f.captured_at_ms is not None]
    if not timed:
        return []

    stops: list[Stop] = []
    cluster = [timed[0]]
    for fix in timed[1:]:
        if is_within_m(cluster[-1], fix, p.radius_m):
            cluster.append(fix)
            continue
        stop = _close_cluster(cluster, p.min_duration_ms)
        if stop is not None:
            stops.append(stop)
        cluster = [fix]

    stop = _close_cluster(cluster, p.min_duration_ms)
    if stop is not None:
        stops.append(stop)
    return stops
