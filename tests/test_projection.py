from __future__ import annotations

import math

import numpy as np
import pytest

from globe.common import GeoPoint, ScreenPoint, ViewState
from globe.projection import (
    graticule_lines,
    project,
    project_ring,
    rotation_for_center,
    unproject,
    view_center,
)


def _view(rotation=(0.0, 0.0, 0.0), scale=300.0) -> ViewState:
    return ViewState(rotation=rotation, scale=scale, translate=(400.0, 400.0))


def test_center_of_unrotated_globe_lands_on_translate():
    point = project(GeoPoint(0.0, 0.0), _view())
    assert point is not None
    assert point.x == pytest.approx(400.0)
    assert point.y == pytest.approx(400.0)


def test_limb_and_far_side_are_not_drawable():
    view = _view()
    assert project(GeoPoint(90.0, 0.0), view) is None
    assert project(GeoPoint(180.0, 0.0), view) is None
    assert project(GeoPoint(0.0, 90.0), view) is None


def test_north_is_up_and_east_is_right():
    view = _view()
    east = project(GeoPoint(30.0, 0.0), view)
    north = project(GeoPoint(0.0, 30.0), view)
    assert east.x == pytest.approx(400.0 + 300.0 * math.sin(math.radians(30.0)))
    assert east.y == pytest.approx(400.0)
    assert north.x == pytest.approx(400.0)
    assert north.y == pytest.approx(400.0 - 300.0 * math.sin(math.radians(30.0)))


@pytest.mark.parametrize(
    "rotation, lon, lat",
    [
        ((0.0, 0.0, 0.0), 12.5, -33.0),
        ((-30.0, -50.0, 0.0), 45.0, 60.0),
        ((120.0, 20.0, 15.0), -100.0, 10.0),
    ],
)
def test_unproject_inverts_project_on_visible_side(rotation, lon, lat):
    view = _view(rotation)
    screen = project(GeoPoint(lon, lat), view)
    assert screen is not None
    back = unproject(screen, view)
    assert back is not None
    assert back.lon == pytest.approx(lon, abs=1e-6)
    assert back.lat == pytest.approx(lat, abs=1e-6)


def test_unproject_outside_silhouette_is_none():
    view = _view()
    assert unproject(ScreenPoint(400.0 + 301.0, 400.0), view) is None
    assert unproject(ScreenPoint(0.0, 0.0), view) is None


def test_rotation_for_center_brings_point_to_middle():
    view = _view(rotation_for_center(30.52, 50.45))
    center = view_center(view)
    assert center.lon == pytest.approx(30.52, abs=1e-9)
    assert center.lat == pytest.approx(50.45, abs=1e-9)
    screen = project(GeoPoint(30.52, 50.45), view)
    assert screen.x == pytest.approx(400.0)
    assert screen.y == pytest.approx(400.0)


def test_for_surface_fits_globe_with_margin_and_clamps():
    view = ViewState.for_surface(800, 600)
    assert view.scale == pytest.approx(290.0)
    assert view.translate == (400.0, 300.0)
    assert ViewState.for_surface(150, 150).scale == 100.0
    with pytest.raises(ValueError):
        ViewState.for_surface(0, 100)


def test_view_center_rejects_degenerate_scale():
    with pytest.raises(ValueError):
        view_center(ViewState(scale=0.0, translate=(10.0, 10.0)))


def test_open_path_is_cut_at_the_horizon():
    lons = np.arange(0.0, 181.0, 10.0)
    path = np.column_stack((lons, np.zeros_like(lons)))
    runs = project_ring(path, _view(), closed=False)
    assert len(runs) == 1
    run = runs[0]
    # 0..80 are visible, plus the crossing point on the silhouette
    assert len(run) == 10
    last = run[-1]
    assert math.hypot(last[0] - 400.0, last[1] - 400.0) == pytest.approx(300.0)


def test_open_path_on_far_side_is_dropped():
    lons = np.array([-60.0, -30.0, 0.0, 30.0, 60.0])
    path = np.column_stack((lons, np.zeros_like(lons)))
    assert project_ring(path, _view(rotation_for_center(180.0, 0.0)), closed=False) == []


def test_open_path_dipping_behind_splits_into_two_runs():
    lons = np.array([60.0, 120.0, 180.0, -120.0, -60.0])
    path = np.column_stack((lons, np.zeros_like(lons)))
    runs = project_ring(path, _view(), closed=False)
    assert len(runs) == 2
    assert runs[0][-1][0] == pytest.approx(700.0)
    assert runs[1][0][0] == pytest.approx(100.0)


def test_closed_ring_keeps_every_vertex_when_visible():
    ring = np.array([[-10.0, -10.0], [10.0, -10.0], [10.0, 10.0], [-10.0, 10.0], [-10.0, -10.0]])
    polygons = project_ring(ring, _view(), closed=True)
    assert len(polygons) == 1
    assert polygons[0].shape == (5, 2)


def test_closed_ring_straddling_horizon_stays_inside_disk():
    ring = np.array([[60.0, -20.0], [120.0, -20.0], [120.0, 20.0], [60.0, 20.0], [60.0, -20.0]])
    polygons = project_ring(ring, _view(), closed=True)
    assert len(polygons) == 1
    radii = np.hypot(polygons[0][:, 0] - 400.0, polygons[0][:, 1] - 400.0)
    assert np.all(radii <= 300.0 + 1e-6)


def test_hidden_ring_projects_to_nothing():
    ring = np.array([[170.0, -5.0], [-170.0, -5.0], [-170.0, 5.0], [170.0, 5.0], [170.0, -5.0]])
    assert project_ring(ring, _view(), closed=True) == []


def test_graticule_has_meridians_every_45_and_three_parallels():
    lines = graticule_lines(90.0, 45.0)
    assert len(lines) == 8 + 3
    meridian_extents = sorted({(float(line[0, 1]), float(line[-1, 1])) for line in lines[:8]})
    assert meridian_extents == [(-90.0, 90.0), (-80.0, 80.0)]
