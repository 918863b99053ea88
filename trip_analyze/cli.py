"""Command-line interface for trip_analyze.

Run:
    python -m trip_analyze inspect --csv fixes.csv
    python -m trip_analyze report --csv fixes.csv --date 2025-01-06 \
        --check-in "2025-01-06 09:00" --check-out "2025-01-06 17:00"
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

from trip_analyze.csv_io import fixes_for_day, load_fixes, write_gaps_csv, write_stops_csv
from trip_analyze.geo import mps_to_kmph
from trip_analyze.geocode import NominatimConfig, PlaceCache, StopGeocoder, coord_key
from trip_analyze.models import DEFAULT_TZ
from trip_analyze.movement import MovementParams
from trip_analyze.offline import DEFAULT_OFFLINE_THRESHOLD_MS
from trip_analyze.report import AnalysisConfig, analyze_day
from trip_analyze.sanitize import SanitizeParams, sanitize_with_stats
from trip_analyze.stops import StopParams
from trip_analyze.timeutils import (
    delta_stats,
    dt_from_epoch_ms,
    epoch_ms_from_dt,
    format_duration,
    parse_day,
    parse_dt,
)

_MINUTE_MS = 60 * 1000


def _config_from_args(args: argparse.Namespace) -> AnalysisConfig:
    return AnalysisConfig(
        sanitize=SanitizeParams(
            max_accuracy_m=args.max_accuracy_m,
            max_jump_m=args.max_jump_m,
            collapse_within_m=args.collapse_within_m,
            slow_speed_mps=args.slow_speed_mps,
            ema_alpha=args.ema_alpha,
        ),
        movement=MovementParams(
            move_threshold_mps=args.move_threshold_mps,
            max_gap_ms=int(args.max_gap_minutes * _MINUTE_MS),
        ),
        stops=StopParams(
            radius_m=args.stop_radius_m,
            min_duration_ms=int(args.stop_min_minutes * _MINUTE_MS),
        ),
        offline_threshold_ms=int(args.offline_threshold_minutes * _MINUTE_MS),
    )


def _load_day(args: argparse.Namespace):
    fixes, summary = load_fixes(args.csv)
    if args.date:
        fixes = fixes_for_day(fixes, parse_day(args.date), args.tz)
    return fixes, summary


def _cmd_inspect(args: argparse.Namespace) -> int:
    fixes, summary = _load_day(args)

    print("### CSV columns")
    print(", ".join(summary.fieldnames))
    print()

    print("### Rows")
    print(f"total_rows={summary.rows_total}, parsed={summary.rows_parsed}, skipped={summary.rows_skipped}")
    print(f"selected={len(fixes)}")
    print()

    times = [f.captured_at_ms for f in fixes if f.captured_at_ms is not None]
    if times:
        print("### Time range (local)")
        start = dt_from_epoch_ms(times[0], args.tz)
        end = dt_from_epoch_ms(times[-1], args.tz)
        print(f"start={start.isoformat(sep=' ')}, end={end.isoformat(sep=' ')}")
        print()

    delta = delta_stats(times)
    if delta is not None:
        print("### Sampling interval (seconds)")
        print(
            f"count={delta.count}, min={delta.min_s:.3f}, median={delta.median_s:.3f}, "
            f"p95={delta.p95_s:.3f}, max={delta.max_s:.3f}"
        )
        print()

    _, stats = sanitize_with_stats(fixes, _config_from_args(args).sanitize)
    print("### Sanitizer")
    print(f"{stats.received} raw -> {stats.kept} clean")
    print(
        f"invalid={stats.dropped_invalid}, inaccurate={stats.dropped_inaccurate}, "
        f"jump={stats.dropped_jump}, collapsed={stats.collapsed}"
    )

    if args.json:
        payload = {
            "rows_total": summary.rows_total,
            "rows_parsed": summary.rows_parsed,
            "rows_skipped": summary.rows_skipped,
            "fieldnames": list(summary.fieldnames),
            "delta": asdict(delta) if delta is not None else None,
            "sanitize": asdict(stats),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _cmd_report(args: argparse.Namespace) -> int:
    fixes, _ = _load_day(args)
    check_in_ms = epoch_ms_from_dt(parse_dt(args.check_in, args.tz)) if args.check_in else None
    check_out_ms = epoch_ms_from_dt(parse_dt(args.check_out, args.tz)) if args.check_out else None

    analysis = analyze_day(fixes, check_in_ms, check_out_ms, _config_from_args(args))
    report = analysis.report

    place_names: dict[str, str] | None = None
    if args.geocode and report.stops:
        cfg = NominatimConfig(
            accept_language=args.geocode_lang,
            min_interval_seconds=args.geocode_min_interval,
            user_agent=args.geocode_user_agent,
        )
        with StopGeocoder(cfg, cache=PlaceCache(args.geocode_cache)) as geocoder:
            futures = geocoder.describe_stops(report.stops)
            print(f"Reverse geocoding {len(futures)} stops ...", file=sys.stderr, flush=True)
            for fut in futures:
                fut.result()
            place_names = geocoder.place_names()

    if args.json:
        payload = report.to_dict() | {
            "rawCount": analysis.raw_count,
            "cleanCount": len(analysis.fixes),
            "usedRawFallback": analysis.used_raw_fallback,
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        if not fixes:
            print("No location data for this selection.")
        print(f"Points: {analysis.raw_count} raw -> {len(analysis.fixes)} clean", end="")
        print(" (sanitized stream too short, using raw)" if analysis.used_raw_fallback and fixes else "")
        print(
            f"Distance: {report.distance_m / 1000.0:.2f} km | "
            f"Moving: {format_duration(report.moving_ms)} | "
            f"Idle: {format_duration(report.idle_ms)}"
        )
        if analysis.fixes and analysis.fixes[-1].speed is not None:
            print(f"Last reported speed: {mps_to_kmph(analysis.fixes[-1].speed):.1f} km/h")
        print()

        print(f"### Stops ({len(report.stops)})")
        for i, s in enumerate(report.stops, start=1):
            start = dt_from_epoch_ms(s.start_ms, args.tz).strftime("%H:%M:%S")
            end = dt_from_epoch_ms(s.end_ms, args.tz).strftime("%H:%M:%S")
            line = f"{i}. {start} - {end} ({format_duration(s.duration_ms)}) @ {s.center_lat:.6f}, {s.center_lng:.6f}"
            if place_names:
                name = place_names.get(coord_key(s.center_lat, s.center_lng), "")
                if name:
                    line += f" | {name}"
            print(line)
        print()

        print(f"### Offline ({format_duration(report.offline.total_ms)})")
        if check_in_ms is None or check_out_ms is None:
            print("check-in/check-out not given; offline gaps not computed")
        for i, g in enumerate(report.offline.gaps, start=1):
            start = dt_from_epoch_ms(g.start_ms, args.tz).strftime("%H:%M:%S")
            end = dt_from_epoch_ms(g.end_ms, args.tz).strftime("%H:%M:%S")
            print(f"{i}. {start} - {end} ({format_duration(g.duration_ms)})")

    if args.stops_out:
        write_stops_csv(report.stops, args.stops_out, args.tz, place_names=place_names)
        print(f"Exported: {args.stops_out}", file=sys.stderr)
    if args.gaps_out:
        write_gaps_csv(report.offline.gaps, args.gaps_out, args.tz)
        print(f"Exported: {args.gaps_out}", file=sys.stderr)
    return 0


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--csv", type=str, default="fixes.csv", help="Input fixes CSV")
    p.add_argument("--tz", type=str, default=DEFAULT_TZ, help="Time zone (IANA)")
    p.add_argument("--date", type=str, default=None, help="Only use fixes of this local day (YYYY-MM-DD)")
    p.add_argument("--json", action="store_true", help="Print JSON output")

    g = p.add_argument_group("analysis parameters")
    sp = SanitizeParams()
    mp = MovementParams()
    st = StopParams()
    g.add_argument("--max-accuracy-m", type=float, default=sp.max_accuracy_m, help="Skip fixes less accurate than this")
    g.add_argument("--max-jump-m", type=float, default=sp.max_jump_m, help="Drop jumps longer than this from the last kept fix")
    g.add_argument("--collapse-within-m", type=float, default=sp.collapse_within_m, help="Collapse slow near-duplicates within this distance")
    g.add_argument("--slow-speed-mps", type=float, default=sp.slow_speed_mps, help="Implied speed below which near-duplicates collapse")
    g.add_argument("--ema-alpha", type=float, default=sp.ema_alpha, help="EMA smoothing factor in (0, 1]")
    g.add_argument("--move-threshold-mps", type=float, default=mp.move_threshold_mps, help="Speed counted as moving")
    g.add_argument(
        "--max-gap-minutes",
        type=float,
        default=mp.max_gap_ms / _MINUTE_MS,
        help="Ignore segments whose fixes are further apart than this",
    )
    g.add_argument("--stop-radius-m", type=float, default=st.radius_m, help="Stop cluster radius")
    g.add_argument("--stop-min-minutes", type=float, default=st.min_duration_ms / _MINUTE_MS, help="Minimum stop duration")
    g.add_argument(
        "--offline-threshold-minutes",
        type=float,
        default=DEFAULT_OFFLINE_THRESHOLD_MS / _MINUTE_MS,
        help="Report offline gaps longer than this",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="trip_analyze")
    p.add_argument("--log-level", type=str, default="WARNING", help="Logging level (DEBUG, INFO, ...)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ins = sub.add_parser("inspect", help="Inspect a fixes CSV: rows, time range, sampling, sanitizer counts")
    _add_common_args(p_ins)
    p_ins.set_defaults(func=_cmd_inspect)

    p_rep = sub.add_parser("report", help="Distance, moving/idle time, stops and offline gaps of a day")
    _add_common_args(p_rep)
    p_rep.add_argument("--check-in", type=str, default=None, help="Check-in time, e.g. '2025-01-06 09:00'")
    p_rep.add_argument("--check-out", type=str, default=None, help="Check-out time, e.g. '2025-01-06 17:00'")
    p_rep.add_argument("--stops-out", type=str, default=None, help="Write stops to this CSV")
    p_rep.add_argument("--gaps-out", type=str, default=None, help="Write offline gaps to this CSV")
    p_rep.add_argument("--geocode", action="store_true", help="Reverse geocode stop centers")
    p_rep.add_argument("--geocode-cache", type=str, default="geocode_cache.json", help="Reverse geocoding cache file")
    p_rep.add_argument("--geocode-lang", type=str, default="en", help="Reverse geocoding language")
    p_rep.add_argument("--geocode-min-interval", type=float, default=1.0, help="Minimum seconds between requests")
    p_rep.add_argument(
        "--geocode-user-agent",
        type=str,
        default="trip-analyze/0.1.0 (stop-geocode; set your own UA)",
        help="HTTP User-Agent sent to the geocoding service",
    )
    p_rep.set_defaults(func=_cmd_report)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
