from __future__ import annotations

import numpy as np
import pytest

from globe.common import AuroraSnapshot, BoundaryGeometry, GeoPoint
from globe.renderer import GlobeRenderer


def _drain(renderer: GlobeRenderer) -> int:
    frames = 0
    for _ in range(10):
        if renderer.tick() is not None:
            frames += 1
        if not renderer.scheduler.running:
            break
    return frames


def test_new_renderer_fits_surface_and_schedules_first_frame():
    renderer = GlobeRenderer(800, 600)
    assert renderer.view.scale == pytest.approx(290.0)
    assert renderer.view.translate == (400.0, 300.0)
    assert renderer.scheduler.running
    frame = renderer.tick()
    assert frame is not None
    assert frame.size == (800, 600)
    assert renderer.last_frame is frame
    assert renderer.tick() is None
    assert not renderer.scheduler.running


def test_invalid_scale_range_is_rejected():
    with pytest.raises(ValueError):
        GlobeRenderer(100, 100, min_scale=500.0, max_scale=100.0)


def test_frame_request_callback_fires_on_wake():
    calls = []
    renderer = GlobeRenderer(400, 400, on_frame_request=lambda: calls.append(1))
    assert calls == [1]
    _drain(renderer)
    renderer.load_aurora(AuroraSnapshot(coordinates=np.array([[0.0, 60.0, 40.0]])))
    assert calls == [1, 1]


def test_setting_location_centres_globe_on_it():
    renderer = GlobeRenderer(400, 400)
    _drain(renderer)
    renderer.set_user_location(GeoPoint(30.0, 50.0))
    assert renderer.view.rotation == (-30.0, -50.0, 0.0)
    assert _drain(renderer) == 1


def test_location_without_centring_keeps_rotation():
    renderer = GlobeRenderer(400, 400)
    renderer.set_user_location(GeoPoint(30.0, 50.0), center=False)
    assert renderer.view.rotation == (0.0, 0.0, 0.0)
    assert renderer.context.user_location == GeoPoint(30.0, 50.0)


def test_reset_view_prefers_user_location():
    renderer = GlobeRenderer(400, 400)
    renderer.context.view = renderer.view.with_rotation((12.0, 3.0, 0.0))
    renderer.reset_view()
    assert renderer.view.rotation == (0.0, 0.0, 0.0)
    renderer.set_user_location(GeoPoint(-70.0, 45.0), center=False)
    renderer.reset_view()
    assert renderer.view.rotation == (70.0, -45.0, 0.0)


def test_resize_keeps_rotation_and_refits():
    renderer = GlobeRenderer(800, 800)
    renderer.center_on(GeoPoint(10.0, 20.0))
    renderer.resize(400, 300)
    assert renderer.view.rotation == (-10.0, -20.0, 0.0)
    assert renderer.view.scale == pytest.approx(140.0)
    assert renderer.context.surface_size == (400, 300)
    assert renderer.tick().size == (400, 300)


def test_unchanged_toggle_does_not_schedule_a_frame():
    renderer = GlobeRenderer(400, 400)
    _drain(renderer)
    renderer.set_show_aurora(True)
    assert not renderer.scheduler.running
    renderer.set_show_aurora(False)
    assert renderer.scheduler.running
    assert renderer.context.show_aurora is False


def test_loading_data_swaps_snapshots_whole():
    renderer = GlobeRenderer(400, 400)
    first = AuroraSnapshot(coordinates=np.array([[0.0, 60.0, 40.0]]))
    second = AuroraSnapshot(coordinates=np.array([[10.0, 65.0, 80.0], [20.0, 70.0, 90.0]]))
    renderer.load_aurora(first)
    renderer.load_aurora(second)
    assert renderer.context.aurora is second
    renderer.load_boundaries(BoundaryGeometry.empty())
    assert renderer.context.boundaries.is_empty()
    assert _drain(renderer) == 1


def test_drag_through_renderer_produces_frames_then_goes_idle():
    renderer = GlobeRenderer(400, 400)
    _drain(renderer)
    gestures = renderer.gestures
    gestures.on_pointer_down([(200.0, 200.0)])
    gestures.on_pointer_move([(230.0, 200.0)])
    assert renderer.tick() is not None
    gestures.on_pointer_move([(260.0, 190.0)])
    gestures.on_pointer_up([])
    assert renderer.tick() is not None
    assert not renderer.scheduler.running
    assert renderer.view.rotation[0] > 0.0


def test_drags_are_composed_by_the_renderer_rotation_model(monkeypatch):
    renderer = GlobeRenderer(400, 400)
    _drain(renderer)
    composed = []
    original = renderer.rotation.compose_from_pointer_delta

    def recording(anchor_vector, new_vector, anchor_rotation=None):
        rotation = original(anchor_vector, new_vector, anchor_rotation)
        composed.append(rotation)
        return rotation

    monkeypatch.setattr(renderer.rotation, "compose_from_pointer_delta", recording)
    renderer.gestures.on_pointer_down([(200.0, 200.0)])
    renderer.gestures.on_pointer_move([(230.0, 200.0)])
    assert len(composed) == 1
    assert renderer.view.rotation == composed[0]
    assert renderer.rotation.current_rotation() == composed[0]


def test_render_now_does_not_touch_the_loop():
    renderer = GlobeRenderer(300, 200)
    _drain(renderer)
    image = renderer.render_now()
    assert image.size == (300, 200)
    assert not renderer.scheduler.running
