"""CSV input/output: exported location fixes in, stop/gap reports out."""

from __future__ import annotations

import csv
import logging
import math
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Mapping, Sequence

from trip_analyze.geocode import coord_key
from trip_analyze.models import GpsFix, OfflineGap, Stop
from trip_analyze.timeutils import day_bounds_ms, dt_from_epoch_ms, format_hhmmss

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("lat", "lng", "capturedAtMs")


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _parse_optional_float(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    return float(value.strip())


def _parse_optional_int(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    out = float(value.strip())
    if not math.isfinite(out):
        raise ValueError(f"non-finite timestamp {value!r}")
    return int(out)


def _parse_row(row: Mapping[str, str], line_no: int) -> GpsFix | None:
    lat = float(row["lat"].strip())
    lng = float(row["lng"].strip())
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    return GpsFix(
        id=(row.get("id") or "").strip() or f"row-{line_no}",
        lat=lat,
        lng=lng,
        captured_at_ms=_parse_optional_int(row["capturedAtMs"]),
        accuracy=_parse_optional_float(row.get("accuracy")),
        speed=_parse_optional_float(row.get("speed")),
        heading=_parse_optional_float(row.get("heading")),
    )


def load_fixes(csv_path: str | Path) -> tuple[list[GpsFix], CsvSummary]:
    """Load fixes from an exported locations CSV.

    Columns: id, lat, lng, accuracy, speed, heading, capturedAtMs. Optional
    columns may be blank. Rows that cannot be parsed, or whose coordinates are
    not finite, are skipped.

    Args:
        csv_path: Path to the CSV.

    Returns:
        (fixes ordered by capture time, summary). Fixes without a timestamp
        are placed last.

    Raises:
        KeyError: If a required column is missing.
    """

    p = Path(csv_path)
    rows_total = 0
    parsed: list[GpsFix] = []

    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = tuple(reader.fieldnames or ())
        missing = [c for c in REQUIRED_COLUMNS if c not in fieldnames]
        if fieldnames and missing:
            raise KeyError(f"CSV is missing required columns {missing}. Found: {list(fieldnames)}")
        for row in reader:
            rows_total += 1
            try:
                fix = _parse_row(row, reader.line_num)
            except (AttributeError, ValueError, TypeError):
                continue
            if fix is not None:
                parsed.append(fix)

    parsed.sort(key=lambda x: (x.captured_at_ms is None, x.captured_at_ms or 0))
    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("skipped %s unparsable CSV rows in %s", summary.rows_skipped, p)
    return parsed, summary


def fixes_for_day(fixes: Sequence[GpsFix], day: date, tz_name: str) -> list[GpsFix]:
    """Keep fixes captured during a local calendar day."""

    start_ms, end_ms = day_bounds_ms(day, tz_name)
    return [f for f in fixes if f.captured_at_ms is not None and start_ms <= f.captured_at_ms < end_ms]


def write_stops_csv(
    stops: Sequence[Stop],
    out_path: str | Path,
    tz_name: str,
    place_names: Mapping[str, str] | None = None,
) -> None:
    """Write stops to CSV.

    Args:
        stops: Detected stops.
        out_path: Output path.
        tz_name: Time zone for the readable time columns.
        place_names: Optional coord_key (6 decimals) -> place name.
    """

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=[
                "stop_id",
                "start_time",
                "end_time",
                "duration_seconds",
                "duration_hhmmss",
                "center_lat",
                "center_lng",
                "points",
                "place_name",
                "start_epoch_ms",
                "end_epoch_ms",
            ],
        )
        w.writeheader()
        for i, s in enumerate(stops, start=1):
            place = ""
            if place_names is not None:
                place = place_names.get(coord_key(s.center_lat, s.center_lng), "")
            w.writerow(
                {
                    "stop_id": i,
                    "start_time": dt_from_epoch_ms(s.start_ms, tz_name).isoformat(sep=" "),
                    "end_time": dt_from_epoch_ms(s.end_ms, tz_name).isoformat(sep=" "),
                    "duration_seconds": f"{s.duration_ms / 1000.0:.3f}",
                    "duration_hhmmss": format_hhmmss(s.duration_ms / 1000.0),
                    "center_lat": f"{s.center_lat:.6f}",
                    "center_lng": f"{s.center_lng:.6f}",
                    "points": s.points,
                    "place_name": place,
                    "start_epoch_ms": s.start_ms,
                    "end_epoch_ms": s.end_ms,
                }
            )


def write_gaps_csv(gaps: Sequence[OfflineGap], out_path: str | Path, tz_name: str) -> None:
    """Write offline gaps to CSV."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=[
                "gap_id",
                "start_time",
                "end_time",
                "duration_seconds",
                "duration_hhmmss",
                "start_epoch_ms",
                "end_epoch_ms",
            ],
        )
        w.writeheader()
        for i, g in enumerate(gaps, start=1):
            w.writerow(
                {
                    "gap_id": i,
                    "start_time": dt_from_epoch_ms(g.start_ms, tz_name).isoformat(sep=" "),
                    "end_time": dt_from_epoch_ms(g.end_ms, tz_name).isoformat(sep=" "),
                    "duration_seconds": f"{g.duration_ms / 1000.0:.3f}",
                    "duration_hhmmss": format_hhmmss(g.duration_ms / 1000.0),
                    "start_epoch_ms": g.start_ms,
                    "end_epoch_ms": g.end_ms,
                }
            )
