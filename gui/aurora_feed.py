"""NOAA SWPC OVATION aurora forecast download and parsing."""
from __future__ import annotations

import datetime as dt
import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import numpy as np
import requests
from requests import exceptions as requests_exceptions

from globe.common import AuroraSnapshot, wrap_longitude

OVATION_URL = "https://services.swpc.noaa.gov/json/ovation_aurora_latest.json"
CACHE_FILE = "ovation_aurora_latest.json"

LOGGER = logging.getLogger(__name__)


@dataclass
class AuroraFeedResult:
    snapshot: AuroraSnapshot
    from_cache: bool
    cache_path: Optional[Path]
    fetched_at: dt.datetime


def parse_ovation(payload: Mapping[str, Any]) -> AuroraSnapshot:
    """Turn the feed JSON into a snapshot with longitudes wrapped to [-180, 180).

    Rows that are too short or carry non-finite numbers are dropped; a
    payload without a ``coordinates`` list raises ``ValueError``.
    """
    rows = payload.get("coordinates")
    if not isinstance(rows, list):
        raise ValueError("OVATION payload has no 'coordinates' list")
    kept = []
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 3:
            continue
        try:
            lon, lat, value = float(row[0]), float(row[1]), float(row[2])
        except (TypeError, ValueError):
            continue
        kept.append((lon, lat, value))
    coords = np.asarray(kept, dtype=np.float64).reshape(-1, 3)
    finite = np.isfinite(coords).all(axis=1) & (np.abs(coords[:, 1]) <= 90.0)
    dropped = len(rows) - int(finite.sum())
    if dropped:
        LOGGER.debug("Dropped %d malformed OVATION rows", dropped)
    coords = coords[finite]
    coords[:, 0] = wrap_longitude(coords[:, 0])
    return AuroraSnapshot(
        coordinates=coords,
        observation_time=str(payload.get("Observation Time") or ""),
        forecast_time=str(payload.get("Forecast Time") or ""),
    )


def format_metadata(snapshot: AuroraSnapshot | None, rendered_at: dt.datetime | None = None) -> str:
    rendered_at = rendered_at or dt.datetime.now(dt.timezone.utc)
    observation = snapshot.observation_time if snapshot is not None and snapshot.observation_time else "?"
    forecast = snapshot.forecast_time if snapshot is not None and snapshot.forecast_time else "?"
    lines = [
        "Aurora Forecast Map",
        "Orthographic projection",
        f"Observation Time: {observation}",
        f"Forecast Time: {forecast}",
        f"Render Time: {rendered_at.isoformat()}",
    ]
    return "\n".join(lines)


class AuroraFeedController:
    """Fetches the forecast on a worker thread; the UI thread polls for results.

    A successful download is written to the cache directory. When the
    network fails the last cached copy is served instead, if there is one.
    """

    def __init__(
        self,
        *,
        url: str = OVATION_URL,
        cache_root: Optional[Path] = None,
        on_done: Optional[Callable[[], None]] = None,
    ) -> None:
        fallback_root = Path(__file__).resolve().parents[1] / "data"
        self.url = url
        self.cache_root = (cache_root if cache_root is not None else fallback_root).resolve()
        self._on_done = on_done
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="aurora-fetch")
        self._future: Optional[Future[AuroraFeedResult]] = None
        self._pending: bool = False
        self.status: str = "Idle"
        self.status_detail: str = "No forecast requested yet."

    @property
    def busy(self) -> bool:
        return self._future is not None

    def request(self, *, force: bool = False) -> None:
        if self._future is not None:
            if force:
                self._pending = True
                self.status = "Queued"
                self.status_detail = "A reload is queued behind the running download."
            return
        self._start_download()

    def poll(self) -> Optional[AuroraFeedResult]:
        if self._future is None or not self._future.done():
            return None
        future = self._future
        self._future = None
        result: Optional[AuroraFeedResult] = None
        try:
            result = future.result()
        except RuntimeError as exc:
            LOGGER.warning("Aurora forecast unavailable: %s", exc)
            self.status = "Error"
            self.status_detail = str(exc)
        else:
            origin = "cache" if result.from_cache else "network"
            self.status = "Ready"
            self.status_detail = (
                f"{len(result.snapshot)} samples, forecast {result.snapshot.forecast_time or '?'} [{origin}]"
            )
        if self._pending:
            self._pending = False
            self._start_download()
        return result

    def shutdown(self) -> None:
        if self._future is not None and not self._future.done():
            self._future.cancel()
        self._future = None
        self._pending = False
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _start_download(self) -> None:
        self.status = "Loading"
        self.status_detail = self.url
        self._future = self._executor.submit(self._download)
        if self._on_done is not None:
            self._future.add_done_callback(lambda _future: self._on_done())

    def _download(self) -> AuroraFeedResult:
        cache_path = self.cache_root / CACHE_FILE
        try:
            response = requests.get(self.url, timeout=(5, 30))
            response.raise_for_status()
            payload = response.json()
        except (requests_exceptions.RequestException, ValueError) as exc:
            LOGGER.warning("OVATION request failed: %s", exc)
            if cache_path.exists():
                return self._read_cache(cache_path)
            raise RuntimeError(f"OVATION request failed: {exc}") from exc
        try:
            snapshot = parse_ovation(payload)
        except (ValueError, AttributeError) as exc:
            raise RuntimeError(f"OVATION payload unreadable: {exc}") from exc
        try:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
            cache_path.write_bytes(response.content)
        except OSError as exc:
            LOGGER.warning("Could not cache forecast at %s: %s", cache_path, exc)
        return AuroraFeedResult(
            snapshot=snapshot,
            from_cache=False,
            cache_path=cache_path,
            fetched_at=dt.datetime.now(dt.timezone.utc),
        )

    @staticmethod
    def _read_cache(cache_path: Path) -> AuroraFeedResult:
        try:
            payload = json.loads(cache_path.read_text(encoding="utf-8"))
            snapshot = parse_ovation(payload)
        except (OSError, ValueError, AttributeError) as exc:
            raise RuntimeError(f"Cached forecast unreadable: {exc}") from exc
        fetched_at = dt.datetime.fromtimestamp(cache_path.stat().st_mtime, dt.timezone.utc)
        return AuroraFeedResult(snapshot=snapshot, from_cache=True, cache_path=cache_path, fetched_at=fetched_at)
