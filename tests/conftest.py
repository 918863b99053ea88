"""
Shared fixtures for the trip_analyze test suite.

Provides:
- fix factory placing fixes by meters north/east of a base point
- a fixed reference instant (2025-01-06 09:00 Asia/Kolkata)
- a small CSV writer for loader / CLI tests
"""

import csv
import math
from pathlib import Path

import pytest

from trip_analyze.geo import EARTH_RADIUS_M
from trip_analyze.models import GpsFix

BASE_LAT = 12.9716
BASE_LNG = 77.5946
# Meters per degree of latitude on the haversine sphere: a pure northward
# offset of d meters is exactly d meters of haversine distance.
M_PER_DEG_LAT = math.pi * EARTH_RADIUS_M / 180.0

# 2025-01-06 09:00:00 +05:30
T0_MS = 1_736_134_200_000
HOUR_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000


def offset(north_m: float = 0.0, east_m: float = 0.0) -> tuple[float, float]:
    lat = BASE_LAT + north_m / M_PER_DEG_LAT
    lng = BASE_LNG + east_m / (M_PER_DEG_LAT * math.cos(math.radians(BASE_LAT)))
    return lat, lng


_counter = {"n": 0}


def make_fix(
    t_ms: int | None,
    north_m: float = 0.0,
    east_m: float = 0.0,
    **kwargs,
) -> GpsFix:
    """Build a fix ``north_m``/``east_m`` meters from the base point."""
    _counter["n"] += 1
    lat, lng = offset(north_m, east_m)
    return GpsFix(
        id=kwargs.pop("id", f"fix-{_counter['n']}"),
        lat=kwargs.pop("lat", lat),
        lng=kwargs.pop("lng", lng),
        captured_at_ms=t_ms,
        **kwargs,
    )


@pytest.fixture
def fix():
    """Factory fixture: fix(t_ms, north_m=0, east_m=0, **fields) -> GpsFix."""
    return make_fix


@pytest.fixture
def write_fixes_csv(tmp_path):
    """Write rows (dicts) to a fixes CSV and return its path."""

    def _write(rows, name="fixes.csv", fieldnames=None) -> Path:
        path = tmp_path / name
        cols = fieldnames or ["id", "lat", "lng", "accuracy", "speed", "heading", "capturedAtMs"]
        with path.open("w", encoding="utf-8", newline="") as f:
            w = csv.DictWriter(f, fieldnames=cols)
            w.writeheader()
            for row in rows:
                w.writerow(row)
        return path

    return _write
