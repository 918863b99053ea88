"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from trip_analyze.models import GpsFix

EARTH_RADIUS_M = 6_371_000.0
# Map center used when there is no path to fit (India).
DEFAULT_MAP_CENTER = (20.5937, 78.9629)


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def fix_distance_m(a: GpsFix, b: GpsFix) -> float:
    """Haversine distance between two fixes."""

    return haversine_m(a.lat, a.lng, b.lat, b.lng)


def is_within_m(a: GpsFix, b: GpsFix, radius_m: float) -> bool:
    """Check whether two fixes are at most ``radius_m`` apart."""

    return fix_distance_m(a, b) <= radius_m


def mean_center(fixes: Iterable[GpsFix]) -> tuple[float, float] | None:
    """Arithmetic mean of finite coordinates, or None if there are none."""

    lat_sum = 0.0
    lng_sum = 0.0
    n = 0
    for f in fixes:
        if not f.is_valid:
            continue
        lat_sum += f.lat
        lng_sum += f.lng
        n += 1
    if n == 0:
        return None
    return lat_sum / n, lng_sum / n


@dataclass(frozen=True, slots=True)
class Bounds:
    """Bounding box of a path (degrees)."""

    south: float
    west: float
    north: float
    east: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.south + self.north) / 2.0, (self.west + self.east) / 2.0


def path_bounds(fixes: Sequence[GpsFix]) -> Bounds | None:
    """Bounding box used to fit a map view to a path."""

    pts = [f for f in fixes if f.is_valid]
    if not pts:
        return None
    lats = [f.lat for f in pts]
    lngs = [f.lng for f in pts]
    return Bounds(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))


def mps_to_kmph(mps: float) -> float:
    return mps * 3.6
