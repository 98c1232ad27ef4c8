from __future__ import annotations

import datetime as dt
import json
import time

import numpy as np
import pytest
import requests

from globe.common import AuroraSnapshot
from gui.aurora_feed import CACHE_FILE, AuroraFeedController, format_metadata, parse_ovation

PAYLOAD = {
    "Observation Time": "2024-05-10T20:37:00Z",
    "Forecast Time": "2024-05-10T21:27:00Z",
    "Data Format": "[Longitude, Latitude, Aurora]",
    "coordinates": [
        [0, 60, 5],
        [359, 65, 42],
        [180, -70, 12],
        ["bad"],
        [10, 100, 4],
        [20, 50, None],
    ],
}


class _Resp:
    def __init__(self, payload, status: int = 200) -> None:
        self._payload = payload
        self.content = json.dumps(payload).encode("utf-8")
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


def _serve(monkeypatch, payload=PAYLOAD, status=200):
    calls = []

    def fake_get(url, timeout=None):  # noqa: ARG001
        calls.append(url)
        return _Resp(payload, status)

    monkeypatch.setattr(requests, "get", fake_get)
    return calls


def _fetch(controller: AuroraFeedController):
    controller.request()
    result = None
    deadline = time.monotonic() + 5.0
    while controller.busy and time.monotonic() < deadline:
        result = controller.poll()
        time.sleep(0.01)
    return result


def _offline(monkeypatch):
    def fake_get(url, timeout=None):  # noqa: ARG001
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(requests, "get", fake_get)


def test_parse_wraps_longitudes_and_drops_bad_rows():
    snapshot = parse_ovation(PAYLOAD)
    assert len(snapshot) == 3
    assert np.allclose(
        snapshot.coordinates,
        [[0.0, 60.0, 5.0], [-1.0, 65.0, 42.0], [-180.0, -70.0, 12.0]],
    )
    assert snapshot.observation_time == "2024-05-10T20:37:00Z"
    assert snapshot.forecast_time == "2024-05-10T21:27:00Z"
    assert snapshot.peak_intensity == 42.0


def test_snapshot_coordinates_are_read_only():
    snapshot = parse_ovation(PAYLOAD)
    with pytest.raises(ValueError):
        snapshot.coordinates[0, 2] = 99.0


def test_parse_requires_coordinates():
    with pytest.raises(ValueError):
        parse_ovation({"Forecast Time": "x"})


def test_metadata_lists_times():
    snapshot = parse_ovation(PAYLOAD)
    rendered = dt.datetime(2024, 5, 10, 21, 0, tzinfo=dt.timezone.utc)
    text = format_metadata(snapshot, rendered)
    assert text.splitlines() == [
        "Aurora Forecast Map",
        "Orthographic projection",
        "Observation Time: 2024-05-10T20:37:00Z",
        "Forecast Time: 2024-05-10T21:27:00Z",
        "Render Time: 2024-05-10T21:00:00+00:00",
    ]


def test_metadata_without_snapshot_uses_placeholders():
    text = format_metadata(AuroraSnapshot.empty())
    assert "Observation Time: ?" in text
    assert "Forecast Time: ?" in text


def test_fetch_writes_cache(tmp_path, monkeypatch):
    calls = _serve(monkeypatch)
    controller = AuroraFeedController(url="https://example.test/ovation.json", cache_root=tmp_path)
    try:
        result = _fetch(controller)
    finally:
        controller.shutdown()
    assert calls == ["https://example.test/ovation.json"]
    assert result is not None
    assert not result.from_cache
    assert len(result.snapshot) == 3
    assert (tmp_path / CACHE_FILE).exists()


def test_offline_falls_back_to_cache(tmp_path, monkeypatch):
    (tmp_path / CACHE_FILE).write_text(json.dumps(PAYLOAD), encoding="utf-8")
    _offline(monkeypatch)
    controller = AuroraFeedController(cache_root=tmp_path)
    try:
        result = _fetch(controller)
    finally:
        controller.shutdown()
    assert result is not None
    assert result.from_cache
    assert result.snapshot.forecast_time == "2024-05-10T21:27:00Z"


def test_offline_without_cache_gives_nothing(tmp_path, monkeypatch):
    _offline(monkeypatch)
    controller = AuroraFeedController(cache_root=tmp_path)
    try:
        assert _fetch(controller) is None
    finally:
        controller.shutdown()


def test_worker_result_is_picked_up_by_poll(tmp_path, monkeypatch):
    _serve(monkeypatch)
    woken = []
    controller = AuroraFeedController(cache_root=tmp_path, on_done=lambda: woken.append(True))
    try:
        controller.request()
        assert controller.status == "Loading"
        result = None
        deadline = time.monotonic() + 5.0
        while (result is None or not woken) and time.monotonic() < deadline:
            if result is None:
                result = controller.poll()
            time.sleep(0.01)
    finally:
        controller.shutdown()
    assert result is not None
    assert controller.status == "Ready"
    assert "3 samples" in controller.status_detail
    assert woken == [True]


def test_worker_failure_is_reported_in_status(tmp_path, monkeypatch):
    _serve(monkeypatch, status=500)
    controller = AuroraFeedController(cache_root=tmp_path)
    try:
        controller.request()
        deadline = time.monotonic() + 5.0
        while controller.busy and time.monotonic() < deadline:
            controller.poll()
            time.sleep(0.01)
    finally:
        controller.shutdown()
    assert controller.status == "Error"
    assert "OVATION" in controller.status_detail
