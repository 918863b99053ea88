from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path

import streamlit as st

from trip_analyze.csv_io import fixes_for_day, load_fixes
from trip_analyze.geo import DEFAULT_MAP_CENTER, mps_to_kmph, path_bounds
from trip_analyze.geocode import PlaceCache, StopGeocoder, coord_key
from trip_analyze.models import DEFAULT_TZ, GpsFix
from trip_analyze.movement import MovementParams
from trip_analyze.offline import DEFAULT_OFFLINE_THRESHOLD_MS
from trip_analyze.report import AnalysisConfig
from trip_analyze.sanitize import SanitizeParams
from trip_analyze.session import TrackerSession
from trip_analyze.stops import StopParams
from trip_analyze.timeutils import dt_from_epoch_ms, format_duration, tzinfo_from_name

_MINUTE_MS = 60 * 1000


def _epoch_ms(day: date, t: time, tz_name: str) -> int:
    dt = datetime.combine(day, t).replace(tzinfo=tzinfo_from_name(tz_name))
    return int(dt.timestamp() * 1000)


@st.cache_data(show_spinner=False)
def _load_fixes(csv_path: str, mtime: float) -> list[GpsFix]:
    _ = mtime  # part of cache key so updated files reload automatically
    fixes, _summary = load_fixes(csv_path)
    return fixes


@st.cache_resource(show_spinner=False)
def _geocoder(cache_path: str) -> StopGeocoder:
    return StopGeocoder(cache=PlaceCache(cache_path))


def _clock(epoch_ms: int, tz_name: str) -> str:
    return dt_from_epoch_ms(epoch_ms, tz_name).strftime("%H:%M:%S")


def main() -> None:
    st.set_page_config(page_title="Driver tracker: day report", layout="wide")
    st.title("Driver tracker: path, stops and offline gaps")

    with st.sidebar:
        st.subheader("Data")
        tz_name = st.text_input("Time zone (IANA)", value=DEFAULT_TZ)
        csv_path = st.text_input("Fixes CSV path", value="sample_data/fixes.csv")
        day = st.date_input("Date", value=datetime.now(tzinfo_from_name(tz_name)).date())

        st.subheader("Attendance")
        use_attendance = st.checkbox("Compute offline gaps", value=True)
        check_in_t = st.time_input("Check-in", value=time(9, 0))
        check_out_t = st.time_input("Check-out", value=time(17, 0))

        with st.expander("Advanced parameters", expanded=False):
            sp, mp, sd = SanitizeParams(), MovementParams(), StopParams()
            max_accuracy_m = st.number_input("max_accuracy_m", value=sp.max_accuracy_m, step=5.0)
            max_jump_m = st.number_input("max_jump_m", value=sp.max_jump_m, step=10.0)
            collapse_within_m = st.number_input("collapse_within_m", value=sp.collapse_within_m, step=1.0)
            slow_speed_mps = st.number_input("slow_speed_mps", value=sp.slow_speed_mps, step=0.1)
            ema_alpha = st.slider("ema_alpha", min_value=0.05, max_value=1.0, value=sp.ema_alpha)
            move_threshold_mps = st.number_input("move_threshold_mps", value=mp.move_threshold_mps, step=0.1)
            max_gap_min = st.number_input("max_gap (minutes)", value=mp.max_gap_ms / _MINUTE_MS, step=5.0)
            stop_radius_m = st.number_input("stop radius_m", value=sd.radius_m, step=5.0)
            stop_min_min = st.number_input("stop min duration (minutes)", value=sd.min_duration_ms / _MINUTE_MS, step=1.0)
            offline_min = st.number_input(
                "offline threshold (minutes)", value=DEFAULT_OFFLINE_THRESHOLD_MS / _MINUTE_MS, step=1.0
            )

        geocode = st.checkbox("Name stops (reverse geocode)", value=False)

    p = Path(csv_path)
    if not p.exists():
        st.error(f"File not found: {csv_path!r}. Generate one with scripts/generate_sample_fixes_csv.py")
        return

    try:
        config = AnalysisConfig(
            sanitize=SanitizeParams(
                max_accuracy_m=float(max_accuracy_m),
                max_jump_m=float(max_jump_m),
                collapse_within_m=float(collapse_within_m),
                slow_speed_mps=float(slow_speed_mps),
                ema_alpha=float(ema_alpha),
            ),
            movement=MovementParams(
                move_threshold_mps=float(move_threshold_mps),
                max_gap_ms=int(max_gap_min * _MINUTE_MS),
            ),
            stops=StopParams(radius_m=float(stop_radius_m), min_duration_ms=int(stop_min_min * _MINUTE_MS)),
            offline_threshold_ms=int(offline_min * _MINUTE_MS),
        )
        raw = fixes_for_day(_load_fixes(csv_path, p.stat().st_mtime), day, tz_name)
    except (KeyError, ValueError) as exc:
        st.exception(exc)
        return

    check_in_ms = _epoch_ms(day, check_in_t, tz_name) if use_attendance else None
    check_out_ms = _epoch_ms(day, check_out_t, tz_name) if use_attendance else None
    session = TrackerSession.build(
        p.stem,
        day.isoformat(),
        raw,
        check_in_ms=check_in_ms,
        check_out_ms=check_out_ms,
        config=config,
    )
    report = session.report

    if not session.fixes:
        st.info("No location data for this day.")
        return

    st.caption(
        f"Points: {len(session.raw_fixes)} raw -> {len(session.fixes)} clean"
        + (" (sanitized stream too short, showing raw)" if session.used_raw_fallback else "")
    )
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Distance", f"{report.distance_m / 1000.0:.2f} km")
    c2.metric("Moving", format_duration(report.moving_ms))
    c3.metric("Idle", format_duration(report.idle_ms))
    c4.metric("Offline", format_duration(report.offline.total_ms))

    st.subheader("Playback")
    if len(session.fixes) > 1:
        cursor = st.slider("Cursor", min_value=0, max_value=len(session.fixes) - 1, value=0)
        session = session.with_cursor(int(cursor))
    fix = session.cursor_fix
    if fix is not None:
        parts = [session.progress_label, f"{fix.lat:.6f}, {fix.lng:.6f}"]
        if fix.captured_at_ms is not None:
            parts.append(dt_from_epoch_ms(fix.captured_at_ms, tz_name).isoformat(sep=" "))
        if fix.speed is not None:
            parts.append(f"{mps_to_kmph(fix.speed):.1f} km/h")
        if fix.accuracy is not None:
            parts.append(f"±{round(fix.accuracy)} m")
        st.write(" | ".join(parts))

    bounds = path_bounds(session.fixes)
    center = bounds.center if bounds is not None else DEFAULT_MAP_CENTER
    st.map(
        {"lat": [f.lat for f in session.fixes], "lon": [f.lng for f in session.fixes]},
        latitude=center[0],
        longitude=center[1],
        zoom=14,
    )

    place_names: dict[str, str] = {}
    if geocode and report.stops:
        geocoder = _geocoder("geocode_cache.json")
        with st.spinner("Reverse geocoding stops ..."):
            for fut in geocoder.describe_stops(report.stops):
                fut.result()
        geocoder.flush()
        place_names = geocoder.place_names()

    st.subheader(f"Stops ({len(report.stops)})")
    st.dataframe(
        [
            {
                "start": _clock(s.start_ms, tz_name),
                "end": _clock(s.end_ms, tz_name),
                "duration": format_duration(s.duration_ms),
                "lat": round(s.center_lat, 6),
                "lng": round(s.center_lng, 6),
                "points": s.points,
                "place": place_names.get(coord_key(s.center_lat, s.center_lng), ""),
            }
            for s in report.stops
        ],
        use_container_width=True,
    )

    st.subheader(f"Offline gaps ({len(report.offline.gaps)})")
    st.dataframe(
        [
            {
                "start": _clock(g.start_ms, tz_name),
                "end": _clock(g.end_ms, tz_name),
                "duration": format_duration(g.duration_ms),
            }
            for g in report.offline.gaps
        ],
        use_container_width=True,
    )


if __name__ == "__main__":
    main()
