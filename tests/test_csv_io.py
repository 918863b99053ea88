"""
CSV loader and report writer tests.
"""

import csv
from datetime import date

import pytest

from conftest import HOUR_MS, T0_MS
from trip_analyze.csv_io import fixes_for_day, load_fixes, write_gaps_csv, write_stops_csv
from trip_analyze.geocode import coord_key
from trip_analyze.models import OfflineGap, Stop


def _row(t, lat="12.97", lng="77.59", **kw):
    return {"id": kw.get("id", ""), "lat": lat, "lng": lng, "accuracy": kw.get("accuracy", ""),
            "speed": kw.get("speed", ""), "heading": "", "capturedAtMs": t}


class TestLoadFixes:

    def test_parses_and_orders(self, write_fixes_csv):
        path = write_fixes_csv([
            _row(str(T0_MS + 1000), id="b", accuracy="7.5"),
            _row(str(T0_MS), id="a", speed="1.25"),
        ])
        fixes, summary = load_fixes(path)
        assert [f.id for f in fixes] == ["a", "b"]
        assert fixes[0].speed == 1.25
        assert fixes[0].accuracy is None
        assert fixes[1].accuracy == 7.5
        assert summary.rows_parsed == 2
        assert summary.rows_skipped == 0

    def test_bad_rows_skipped(self, write_fixes_csv):
        path = write_fixes_csv([
            _row(str(T0_MS)),
            _row(str(T0_MS + 1), lat="abc"),
            _row(str(T0_MS + 2), lng="nan"),
            _row("not-a-time"),
        ])
        fixes, summary = load_fixes(path)
        assert len(fixes) == 1
        assert summary.rows_total == 4
        assert summary.rows_skipped == 3

    def test_non_finite_timestamp_rows_skipped(self, write_fixes_csv):
        path = write_fixes_csv([_row(str(T0_MS)), _row("inf"), _row("-inf"), _row("nan")])
        fixes, summary = load_fixes(path)
        assert [f.captured_at_ms for f in fixes] == [T0_MS]
        assert summary.rows_skipped == 3

    def test_blank_timestamp_is_none_and_last(self, write_fixes_csv):
        path = write_fixes_csv([_row(""), _row(str(T0_MS))])
        fixes, _ = load_fixes(path)
        assert fixes[0].captured_at_ms == T0_MS
        assert fixes[1].captured_at_ms is None

    def test_missing_id_gets_row_id(self, write_fixes_csv):
        fixes, _ = load_fixes(write_fixes_csv([_row(str(T0_MS))]))
        assert fixes[0].id.startswith("row-")

    def test_missing_column(self, write_fixes_csv):
        path = write_fixes_csv([{"lat": "1", "lng": "2"}], fieldnames=["lat", "lng"])
        with pytest.raises(KeyError):
            load_fixes(path)


def test_fixes_for_day(write_fixes_csv):
    path = write_fixes_csv([
        _row(str(T0_MS - 10 * HOUR_MS)),  # previous local day
        _row(str(T0_MS)),
        _row(str(T0_MS + 14 * HOUR_MS)),  # 23:00 local
        _row(str(T0_MS + 15 * HOUR_MS)),  # next local day
    ])
    fixes, _ = load_fixes(path)
    day = fixes_for_day(fixes, date(2025, 1, 6), "Asia/Kolkata")
    assert [f.captured_at_ms for f in day] == [T0_MS, T0_MS + 14 * HOUR_MS]


class TestWriters:

    def test_write_stops(self, tmp_path):
        stop = Stop(start_ms=T0_MS, end_ms=T0_MS + 300_000, center_lat=12.9716, center_lng=77.5946, points=4)
        out = tmp_path / "stops.csv"
        write_stops_csv([stop], out, "Asia/Kolkata", place_names={coord_key(12.9716, 77.5946): "Depot"})
        rows = list(csv.DictReader(out.open(encoding="utf-8")))
        assert rows[0]["start_time"] == "2025-01-06 09:00:00+05:30"
        assert rows[0]["duration_hhmmss"] == "00:05:00"
        assert rows[0]["place_name"] == "Depot"
        assert rows[0]["points"] == "4"

    def test_write_gaps(self, tmp_path):
        out = tmp_path / "gaps.csv"
        write_gaps_csv([OfflineGap(T0_MS, T0_MS + HOUR_MS)], out, "Asia/Kolkata")
        rows = list(csv.DictReader(out.open(encoding="utf-8")))
        assert rows[0]["duration_seconds"] == "3600.000"
        assert rows[0]["end_time"] == "2025-01-06 10:00:00+05:30"
