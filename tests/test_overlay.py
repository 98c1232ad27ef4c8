from __future__ import annotations

import numpy as np
import pytest

from globe.common import AuroraSample, AuroraSnapshot, GeoPoint, ViewState
from globe.overlay import ColorMap, colorbar_image, marker_radius, visible_samples
from globe.projection import rotation_for_center


def _view(rotation=(0.0, 0.0, 0.0)) -> ViewState:
    return ViewState(rotation=rotation, scale=300.0, translate=(400.0, 400.0))


def _snapshot(rows) -> AuroraSnapshot:
    return AuroraSnapshot(coordinates=np.asarray(rows, dtype=np.float64))


def test_plasma_end_stops():
    cmap = ColorMap.plasma()
    assert tuple(cmap.rgb255(np.array([0.0]))[0]) == (13, 8, 135)
    assert tuple(cmap.rgb255(np.array([1.0]))[0]) == (240, 249, 33)
    assert tuple(cmap.rgb255(np.array([0.5]))[0]) == (204, 71, 120)


def test_colour_lookup_clamps_out_of_range():
    cmap = ColorMap.plasma()
    assert cmap.get_color(-1.0) == cmap.get_color(0.0)
    assert cmap.get_color(2.0) == cmap.get_color(1.0)


def test_front_samples_with_intensity_become_markers():
    snapshot = _snapshot([
        [0.0, 0.0, 100.0],
        [180.0, 0.0, 50.0],
        [10.0, 10.0, 0.0],
        [-20.0, 30.0, 50.0],
    ])
    markers = list(visible_samples(snapshot, _view(), (800, 800)))
    assert len(markers) == 2

    first = markers[0]
    assert first.screen.x == pytest.approx(400.0)
    assert first.screen.y == pytest.approx(400.0)
    assert first.color == (240, 249, 33)
    assert first.alpha == pytest.approx(1.0)
    assert first.radius == pytest.approx(8.0)

    second = markers[1]
    assert second.alpha == pytest.approx(0.5)
    assert second.color == (204, 71, 120)


def test_samples_past_ninety_degrees_from_centre_are_culled():
    samples = [
        AuroraSample(GeoPoint(95.0, 0.0), 80.0),
        AuroraSample(GeoPoint(85.0, 0.0), 80.0),
        AuroraSample(GeoPoint(0.0, -89.0), 80.0),
    ]
    markers = list(visible_samples(samples, _view(), (800, 800)))
    assert len(markers) == 2


def test_culling_follows_rotation():
    snapshot = _snapshot([[0.0, 0.0, 60.0], [180.0, 0.0, 60.0]])
    markers = list(visible_samples(snapshot, _view(rotation_for_center(180.0, 0.0)), (800, 800)))
    assert len(markers) == 1
    assert markers[0].screen.x == pytest.approx(400.0)


def test_intensity_above_scale_is_clamped():
    snapshot = _snapshot([[0.0, 0.0, 250.0]])
    (marker,) = visible_samples(snapshot, _view(), (800, 600))
    assert marker.alpha == 1.0
    assert marker.color == (240, 249, 33)
    assert marker.radius == pytest.approx(6.0)


def test_empty_input_yields_nothing():
    assert list(visible_samples(AuroraSnapshot.empty(), _view(), (800, 800))) == []
    assert list(visible_samples([], _view(), (800, 800))) == []


def test_marker_radius_follows_short_side():
    assert marker_radius((1920, 1080)) == pytest.approx(10.8)


def test_colorbar_runs_from_max_at_top_to_min_at_bottom():
    image = colorbar_image(width=20, height=200)
    assert image.size == (20, 200)
    assert image.mode == "RGB"
    assert image.getpixel((10, 0)) == (240, 249, 33)
    assert image.getpixel((10, 199)) == (13, 8, 135)
