"""Data models for GPS fixes and derived day-report entities."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Final, Mapping


DEFAULT_TZ: Final[str] = "Asia/Kolkata"


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def optional_epoch_ms(value: Any) -> int | None:
    """Epoch milliseconds from a document field, or None if missing or not finite."""

    if value is None:
        return None
    if isinstance(value, int):
        return value
    out = _optional_float(value)
    return int(out) if out is not None else None


@dataclass(frozen=True, slots=True)
class GpsFix:
    """A single location sample reported by a driver's device.

    After sanitization the same type carries the smoothed (EMA) position in
    ``lat``/``lng``; every other field is the device's original value.

    Attributes:
        id: Opaque identifier assigned by the location store.
        lat: Latitude in decimal degrees.
        lng: Longitude in decimal degrees.
        captured_at_ms: Unix epoch milliseconds, or None if the device did not
            report a usable timestamp.
        accuracy: Horizontal accuracy in meters (None = unknown).
        speed: Device-reported speed in meters/second.
        heading: Device-reported heading in degrees.
    """

    id: str
    lat: float
    lng: float
    captured_at_ms: int | None
    accuracy: float | None = None
    speed: float | None = None
    heading: float | None = None

    @property
    def is_valid(self) -> bool:
        """True if both coordinates are finite numbers."""

        return math.isfinite(self.lat) and math.isfinite(self.lng)

    @property
    def is_timed(self) -> bool:
        return self.captured_at_ms is not None

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> GpsFix | None:
        """Build a fix from a location document.

        Documents use the field names ``lat``, ``lng``, ``accuracy``, ``speed``,
        ``heading`` and ``capturedAtMs``.

        Returns:
            The fix, or None when the coordinates are missing or not finite.
        """

        lat = _optional_float(data.get("lat"))
        lng = _optional_float(data.get("lng"))
        if lat is None or lng is None:
            return None
        return cls(
            id=str(doc_id),
            lat=lat,
            lng=lng,
            captured_at_ms=optional_epoch_ms(data.get("capturedAtMs")),
            accuracy=_optional_float(data.get("accuracy")),
            speed=_optional_float(data.get("speed")),
            heading=_optional_float(data.get("heading")),
        )


@dataclass(frozen=True, slots=True)
class Stop:
    """A dwell location: consecutive fixes that stayed close together."""

    start_ms: int
    end_ms: int
    center_lat: float
    center_lng: float
    points: int

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "startMs": self.start_ms,
            "endMs": self.end_ms,
            "durationMs": self.duration_ms,
            "center": {"lat": self.center_lat, "lng": self.center_lng},
            "points": self.points,
        }


@dataclass(frozen=True, slots=True)
class OfflineGap:
    """A part of the attendance window without any location coverage."""

    start_ms: int
    end_ms: int

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def to_dict(self) -> dict[str, Any]:
        return {"startMs": self.start_ms, "endMs": self.end_ms, "durationMs": self.duration_ms}


@dataclass(frozen=True, slots=True)
class OfflineSummary:
    """Offline gaps found inside one check-in/check-out window."""

    total_ms: int = 0
    gaps: tuple[OfflineGap, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"totalMs": self.total_ms, "gaps": [g.to_dict() for g in self.gaps]}


@dataclass(frozen=True, slots=True)
class MovementSummary:
    """Total distance and moving/idle split of a day."""

    distance_m: float = 0.0
    moving_ms: int = 0
    idle_ms: int = 0


@dataclass(frozen=True, slots=True)
class DayReport:
    """Aggregate analytics for one driver on one calendar day.

    Note:
        Built fresh on each pipeline run and never updated in place.
    """

    distance_m: float = 0.0
    moving_ms: int = 0
    idle_ms: int = 0
    stops: tuple[Stop, ...] = ()
    offline: OfflineSummary = field(default_factory=OfflineSummary)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the camelCase keys the tracker UI reads."""

        return {
            "distanceM": self.distance_m,
            "movingMs": self.moving_ms,
            "idleMs": self.idle_ms,
            "stops": [s.to_dict() for s in self.stops],
            "offline": self.offline.to_dict(),
        }
