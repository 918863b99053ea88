"""Day analysis pipeline: sanitize, then movement / stops / offline gaps."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from trip_analyze.models import DayReport, GpsFix
from trip_analyze.movement import MovementParams, summarize_movement
from trip_analyze.offline import DEFAULT_OFFLINE_THRESHOLD_MS, compute_offline_gaps
from trip_analyze.sanitize import SanitizeParams, SanitizeStats, analysis_stream, sanitize_with_stats
from trip_analyze.stops import StopParams, detect_stops

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AnalysisConfig:
    """All parameters of one pipeline run."""

    sanitize: SanitizeParams = field(default_factory=SanitizeParams)
    movement: MovementParams = field(default_factory=MovementParams)
    stops: StopParams = field(default_factory=StopParams)
    offline_threshold_ms: int = DEFAULT_OFFLINE_THRESHOLD_MS

    def __post_init__(self) -> None:
        if self.offline_threshold_ms < 0:
            raise ValueError("offline_threshold_ms must be non-negative")


@dataclass(frozen=True, slots=True)
class DayAnalysis:
    """Result of :func:`analyze_day`.

    Attributes:
        raw_count: Number of fixes received.
        fixes: The stream every stage consumed (sanitized, or raw on fallback).
        used_raw_fallback: True if sanitization left fewer than two fixes.
        sanitize_stats: Sanitizer counters.
        report: Derived day report.
    """

    raw_count: int
    fixes: tuple[GpsFix, ...]
    used_raw_fallback: bool
    sanitize_stats: SanitizeStats
    report: DayReport


def build_day_report(
    fixes: Sequence[GpsFix],
    check_in_ms: int | None = None,
    check_out_ms: int | None = None,
    config: AnalysisConfig | None = None,
) -> DayReport:
    """Run the classifier, stop detector and gap analyzer over one stream."""

    cfg = config or AnalysisConfig()
    movement = summarize_movement(fixes, cfg.movement)
    return DayReport(
        distance_m=movement.distance_m,
        moving_ms=movement.moving_ms,
        idle_ms=movement.idle_ms,
        stops=tuple(detect_stops(fixes, cfg.stops)),
        offline=compute_offline_gaps(fixes, check_in_ms, check_out_ms, cfg.offline_threshold_ms),
    )


def analyze_day(
    raw_fixes: Sequence[GpsFix],
    check_in_ms: int | None = None,
    check_out_ms: int | None = None,
    config: AnalysisConfig | None = None,
) -> DayAnalysis:
    """Full pipeline for one driver and one day.

    Args:
        raw_fixes: Fixes in non-decreasing capture-time order.
        check_in_ms: Optional attendance check-in (epoch ms).
        check_out_ms: Optional attendance check-out (epoch ms).
        config: Analysis parameters (defaults if None).

    Returns:
        DayAnalysis. Deterministic for a given input; empty input gives a
        zero-valued report.
    """

    cfg = config or AnalysisConfig()
    sanitized, stats = sanitize_with_stats(raw_fixes, cfg.sanitize)
    fixes, fallback = analysis_stream(raw_fixes, sanitized)
    if fallback and raw_fixes:
        logger.debug("sanitized stream has %s fixes; using %s raw fixes", len(sanitized), len(fixes))
    report = build_day_report(fixes, check_in_ms, check_out_ms, cfg)
    return DayAnalysis(
        raw_count=len(raw_fixes),
        fixes=tuple(fixes),
        used_raw_fallback=fallback,
        sanitize_stats=stats,
        report=report,
    )
