"""Reverse geocoding of stop locations (lat/lng -> place name).

Uses only the Python standard library. Lookups run on a small thread pool and
are memoized by rounded coordinates, so each distinct stop is resolved once.

Important:
    Public reverse-geocoding services are rate-limited. For Nominatim
    (OpenStreetMap), respect the usage policy: keep a request interval of at
    least one second and send a descriptive User-Agent.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.parse
import urllib.request
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, Iterable

from trip_analyze.models import Stop

logger = logging.getLogger(__name__)

ReverseFn = Callable[[float, float], "dict[str, Any] | None"]


def coord_key(lat: float, lng: float, precision: int = 6) -> str:
    """Build a stable cache key by rounding coordinates ("lat,lng")."""

    return f"{round(lat, precision):.{precision}f},{round(lng, precision):.{precision}f}"


class PlaceCache:
    """JSON file cache of coord_key -> place dict."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, dict[str, Any]] = {}
        self._loaded = False
        self._lock = threading.Lock()

    def load(self) -> None:
        """Load the cache from disk (no-op if the file does not exist)."""

        with self._lock:
            if self._loaded:
                return
            self._loaded = True
            if not self._path.exists():
                return
            text = self._path.read_text(encoding="utf-8").strip()
            if not text:
                return
            try:
                self._data = json.loads(text)
            except json.JSONDecodeError:
                backup = self._path.with_suffix(self._path.suffix + ".broken")
                backup.write_text(text, encoding="utf-8")
                logger.warning("geocode cache %s is corrupt; moved to %s", self._path, backup)
                self._data = {}

    def get(self, key: str) -> dict[str, Any] | None:
        self.load()
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: dict[str, Any]) -> None:
        self.load()
        with self._lock:
            self._data[key] = value

    def flush(self) -> None:
        """Persist the cache to disk (write to a temp file, then replace)."""

        self.load()
        with self._lock:
            payload = json.dumps(self._data, ensure_ascii=False, indent=2)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(self._path)


@dataclass(frozen=True, slots=True)
class NominatimConfig:
    """Configuration for Nominatim reverse API."""

    base_url: str = "https://nominatim.openstreetmap.org/reverse"
    accept_language: str = "en"
    zoom: int = 18
    timeout_seconds: float = 20.0
    min_interval_seconds: float = 1.0
    user_agent: str = "trip-analyze/0.1.0 (stop-geocode; please set your own UA)"


def nominatim_reverse_raw(lat: float, lng: float, cfg: NominatimConfig) -> dict[str, Any] | None:
    """Call Nominatim reverse API and return the raw JSON dict, or None on failure."""

    params = {
        "format": "jsonv2",
        "lat": f"{lat:.8f}",
        "lon": f"{lng:.8f}",
        "zoom": str(cfg.zoom),
        "accept-language": cfg.accept_language,
    }
    url = f"{cfg.base_url}?{urllib.parse.urlencode(params)}"
    req = urllib.request.Request(
        url,
        headers={"User-Agent": cfg.user_agent, "Accept": "application/json"},
        method="GET",
    )
    try:
        with urllib.request.urlopen(req, timeout=cfg.timeout_seconds) as resp:  # noqa: S310
            body = resp.read().decode("utf-8", errors="replace")
        raw: dict[str, Any] = json.loads(body)
    except (OSError, ValueError) as exc:
        logger.warning("reverse geocode failed for %.6f,%.6f: %s", lat, lng, exc)
        return None
    return raw


class StopGeocoder:
    """Asynchronous, memoizing reverse geocoder for stop centers."""

    def __init__(
        self,
        config: NominatimConfig | None = None,
        cache: PlaceCache | None = None,
        reverse_fn: ReverseFn | None = None,
        max_workers: int = 2,
    ) -> None:
        self._cfg = config or NominatimConfig()
        self._cache = cache
        self._reverse = reverse_fn or (lambda lat, lng: nominatim_reverse_raw(lat, lng, self._cfg))
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="geocode")
        self._pending: dict[str, Future[str]] = {}
        self._lock = threading.Lock()
        self._throttle = threading.Lock()
        self._last_request_at = 0.0

    def lookup(self, lat: float, lng: float) -> Future[str]:
        """Resolve a place name.

        Failures resolve to an empty string and are not memoized, so a later
        lookup of the same place tries again.
        """

        key = coord_key(lat, lng)
        with self._lock:
            fut = self._pending.get(key)
            if fut is not None:
                return fut
            cached = self._cache.get(key) if self._cache is not None else None
            if cached is not None:
                fut = Future()
                fut.set_result(str(cached.get("place_name", "") or ""))
            else:
                fut = self._executor.submit(self._resolve, key, lat, lng)
            self._pending[key] = fut
            return fut

    def describe_stops(self, stops: Iterable[Stop]) -> list[Future[str]]:
        """One place-name future per stop, in order."""

        return [self.lookup(s.center_lat, s.center_lng) for s in stops]

    def place_names(self) -> dict[str, str]:
        """coord_key -> place name for every lookup that has finished."""

        with self._lock:
            items = list(self._pending.items())
        return {k: f.result() for k, f in items if f.done() and not f.cancelled()}

    def flush(self) -> None:
        """Persist resolved places (no-op without a cache)."""

        if self._cache is not None:
            self._cache.flush()

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self.flush()

    def _resolve(self, key: str, lat: float, lng: float) -> str:
        self._sleep_if_needed()
        try:
            raw = self._reverse(lat, lng)
        except Exception:
            logger.warning("reverse geocode raised for %s", key, exc_info=True)
            raw = None
        if raw is None:
            with self._lock:
                self._pending.pop(key, None)
            return ""
        place = str(raw.get("display_name", "") or "")
        if self._cache is not None:
            self._cache.set(key, {"place_name": place, **raw})
        return place

    def _sleep_if_needed(self) -> None:
        with self._throttle:
            wait = self._cfg.min_interval_seconds - (time.monotonic() - self._last_request_at)
            if wait > 0:
                time.sleep(wait)
            self._last_request_at = time.monotonic()

    def __enter__(self) -> StopGeocoder:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
