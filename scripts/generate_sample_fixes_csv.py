from __future__ import annotations

import argparse
import csv
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Final

from zoneinfo import ZoneInfo


TZ: Final[str] = "Asia/Kolkata"
# meters per degree of latitude (approximate)
M_PER_DEG: Final[float] = 111_320.0


@dataclass(frozen=True, slots=True)
class Place:
    name: str
    lat: float
    lng: float


def _offset(lat: float, lng: float, north_m: float, east_m: float) -> tuple[float, float]:
    return (
        lat + north_m / M_PER_DEG,
        lng + east_m / (M_PER_DEG * math.cos(math.radians(lat))),
    )


def generate_day(
    *,
    seed: int,
    start_local: datetime,
    places: list[Place],
    sample_seconds: float = 30.0,
) -> list[dict[str, str]]:
    """Generate one driver day: dwell at each place, drive to the next.

    Adds a few low-accuracy fixes, a GPS spike and a long offline stretch so
    every sanitizer branch and the offline-gap report have something to show.
    """

    rng = random.Random(seed)
    cur = start_local.replace(tzinfo=ZoneInfo(TZ))
    out: list[dict[str, str]] = []
    n = 0

    def emit(lat: float, lng: float, speed: float, accuracy: float) -> None:
        nonlocal n
        n += 1
        out.append(
            {
                "id": f"fix-{n:05d}",
                "lat": f"{lat:.7f}",
                "lng": f"{lng:.7f}",
                "accuracy": f"{accuracy:.1f}",
                "speed": f"{speed:.2f}",
                "heading": f"{rng.uniform(0, 360):.1f}",
                "capturedAtMs": str(int(cur.timestamp() * 1000)),
            }
        )

    for i, place in enumerate(places):
        # dwell 10-40 minutes with small jitter
        dwell_end = cur + timedelta(minutes=rng.uniform(10, 40))
        while cur < dwell_end:
            lat, lng = _offset(place.lat, place.lng, rng.uniform(-6, 6), rng.uniform(-6, 6))
            emit(lat, lng, speed=rng.uniform(0.0, 0.3), accuracy=rng.choice([5.0, 8.0, 12.0, 20.0, 90.0]))
            cur += timedelta(seconds=sample_seconds)

        if i == len(places) - 1:
            break

        # phone goes quiet for a while after the second place
        if i == 1:
            cur += timedelta(minutes=rng.uniform(25, 50))

        nxt = places[i + 1]
        steps = rng.randint(20, 40)
        for s in range(1, steps + 1):
            t = s / steps
            lat = place.lat + (nxt.lat - place.lat) * t
            lng = place.lng + (nxt.lng - place.lng) * t
            if s == steps // 2:
                spike_lat, spike_lng = _offset(lat, lng, 2500.0, -1800.0)
                emit(spike_lat, spike_lng, speed=8.0, accuracy=10.0)
            emit(lat, lng, speed=rng.uniform(5.0, 12.0), accuracy=rng.choice([5.0, 8.0, 12.0]))
            cur += timedelta(seconds=sample_seconds)

    return out


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake fixes CSV for demo/testing (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/fixes.csv", help="Output CSV path")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument(
        "--start",
        type=str,
        default="2025-01-06 09:05:00",
        help="Start local time in Asia/Kolkata, e.g. '2025-01-06 09:05:00'",
    )
    args = p.parse_args()

    places = [
        Place("branch_office", 12.9716000, 77.5946000),
        Place("warehouse", 12.9352000, 77.6245000),
        Place("hospital_delivery", 12.9569000, 77.7011000),
        Place("customer_home", 12.9784000, 77.6408000),
        Place("branch_office_return", 12.9716500, 77.5946500),
    ]
    rows = generate_day(seed=args.seed, start_local=datetime.fromisoformat(args.start), places=places)

    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["id", "lat", "lng", "accuracy", "speed", "heading", "capturedAtMs"])
        w.writeheader()
        w.writerows(rows)

    print(f"Generated: {out_path} (rows={len(rows)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
