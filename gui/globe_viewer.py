"""Interactive aurora forecast globe.

The globe itself is composited on the CPU by ``globe.GlobeRenderer``; this
module hosts it in a glfw window, uploads each finished frame to a
moderngl texture and blits it with a fullscreen quad. Nothing is redrawn
while the view is unchanged: the loop blocks in ``glfw.wait_events``
until input arrives or a background download finishes.

Run with:
    python -m gui.globe_viewer --geolocate
"""
from __future__ import annotations

import argparse
import datetime as dt
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

import glfw
import moderngl
import numpy as np
from PIL import Image

from globe import (
    MAX_SCALE,
    MIN_SCALE,
    BoundaryGeometry,
    GeoPoint,
    GlobeRenderer,
    colorbar_image,
)
from gui.aurora_feed import OVATION_URL, AuroraFeedController, format_metadata
from gui.geodata import WORLD_ATLAS_URL, default_cache_dir, load_boundaries
from gui.geolocation import resolve_location

LOGGER = logging.getLogger(__name__)

# Qt needs its events pumped even while the globe is idle.
IDLE_WAIT_SECONDS = 0.05


@dataclass
class ViewerConfig:
    width: int = 1024
    height: int = 768
    title: str = "Aurora Forecast Globe"
    min_scale: float = MIN_SCALE
    max_scale: float = MAX_SCALE
    aurora_url: str = OVATION_URL
    boundaries_url: str = WORLD_ATLAS_URL
    cache_dir: Path | None = None
    location: str | None = None  # "LON,LAT"
    geolocate: bool = False
    show_controls: bool = True
    export_dir: Path | None = None


class GlobeViewer:
    def __init__(self, config: ViewerConfig | None = None) -> None:
        self.cfg = config or ViewerConfig()
        self._ensure_glfw()
        self.window = self._create_window()

        self.ctx = moderngl.create_context()
        self._texture: moderngl.Texture | None = None
        self._compile_programs()

        fb_width, fb_height = glfw.get_framebuffer_size(self.window)
        self.renderer = GlobeRenderer(
            fb_width,
            fb_height,
            min_scale=self.cfg.min_scale,
            max_scale=self.cfg.max_scale,
            on_frame_request=glfw.post_empty_event,
        )
        self.ctx.viewport = (0, 0, max(1, fb_width), max(1, fb_height))

        cache_dir = self.cfg.cache_dir or default_cache_dir()
        self._feed = AuroraFeedController(
            url=self.cfg.aurora_url,
            cache_root=cache_dir,
            on_done=glfw.post_empty_event,
        )
        self._loader = ThreadPoolExecutor(max_workers=1, thread_name_prefix="globe-loader")
        self._location_future: Optional[Future[Optional[GeoPoint]]] = None
        if self.cfg.location or self.cfg.geolocate:
            self._location_future = self._loader.submit(
                resolve_location, self.cfg.location, geolocate=self.cfg.geolocate
            )
            self._location_future.add_done_callback(lambda _f: glfw.post_empty_event())
        self._boundaries_future: Optional[Future[BoundaryGeometry]] = self._loader.submit(
            load_boundaries, cache_dir, url=self.cfg.boundaries_url
        )
        self._boundaries_future.add_done_callback(lambda _f: glfw.post_empty_event())

        self._controls = None
        if self.cfg.show_controls:
            from gui.qt_controls import AuroraControlPanel

            self._controls = AuroraControlPanel(has_location=False)
            self._controls.set_colorbar(colorbar_image(self.renderer.compositor.colormap))

        self._dragging = False
        self._init_callbacks()
        self._feed.request()

    @staticmethod
    def _ensure_glfw() -> None:
        if not glfw.init():
            raise RuntimeError("Unable to initialise GLFW")

    def _create_window(self) -> glfw._GLFWwindow:
        glfw.window_hint(glfw.CONTEXT_VERSION_MAJOR, 3)
        glfw.window_hint(glfw.CONTEXT_VERSION_MINOR, 3)
        glfw.window_hint(glfw.OPENGL_PROFILE, glfw.OPENGL_CORE_PROFILE)
        glfw.window_hint(glfw.OPENGL_FORWARD_COMPAT, glfw.TRUE)
        window = glfw.create_window(self.cfg.width, self.cfg.height, self.cfg.title, None, None)
        if not window:
            glfw.terminate()
            raise RuntimeError("Failed to create GLFW window")
        glfw.make_context_current(window)
        glfw.swap_interval(1)
        return window

    def _init_callbacks(self) -> None:
        glfw.set_framebuffer_size_callback(self.window, self._on_framebuffer_resize)
        glfw.set_window_refresh_callback(self.window, self._on_window_refresh)
        glfw.set_window_focus_callback(self.window, self._on_focus)
        glfw.set_cursor_pos_callback(self.window, self._on_cursor_move)
        glfw.set_mouse_button_callback(self.window, self._on_mouse_button)
        glfw.set_scroll_callback(self.window, self._on_scroll)
        glfw.set_key_callback(self.window, self._on_key_press)

    def _compile_programs(self) -> None:
        self.blit_prog = self.ctx.program(
            vertex_shader="""
                #version 330
                in vec2 in_position;
                in vec2 in_uv;
                out vec2 v_uv;
                void main() {
                    v_uv = in_uv;
                    gl_Position = vec4(in_position, 0.0, 1.0);
                }
            """,
            fragment_shader="""
                #version 330
                uniform sampler2D frame_tex;
                in vec2 v_uv;
                out vec4 f_color;
                void main() {
                    f_color = vec4(texture(frame_tex, v_uv).rgb, 1.0);
                }
            """,
        )
        self.blit_prog["frame_tex"].value = 0
        # image rows run top-down, so v is flipped relative to clip space
        quad = np.array(
            [
                -1.0, -1.0, 0.0, 1.0,
                1.0, -1.0, 1.0, 1.0,
                -1.0, 1.0, 0.0, 0.0,
                1.0, 1.0, 1.0, 0.0,
            ],
            dtype="f4",
        )
        self._quad_vbo = self.ctx.buffer(quad.tobytes())
        self._quad_vao = self.ctx.vertex_array(
            self.blit_prog,
            [(self._quad_vbo, "2f 2f", "in_position", "in_uv")],
        )

    def run(self) -> None:
        try:
            while not glfw.window_should_close(self.window):
                if self._controls is not None and not self._controls.poll():
                    glfw.set_window_should_close(self.window, True)
                    break

                if self.renderer.scheduler.running:
                    glfw.poll_events()
                elif self._controls is not None:
                    glfw.wait_events_timeout(IDLE_WAIT_SECONDS)
                else:
                    glfw.wait_events()

                self._apply_panel()
                self._process_loaders()

                frame = self.renderer.tick()
                if frame is not None:
                    self._present(frame)
                    if self._controls is not None:
                        self._controls.set_frame_count(self.renderer.scheduler.frames_drawn)
        finally:
            self._cleanup()

    def _present(self, frame: Image.Image) -> None:
        if frame.mode != "RGB":
            frame = frame.convert("RGB")
        if self._texture is None or self._texture.size != frame.size:
            if self._texture is not None:
                self._texture.release()
            self._texture = self.ctx.texture(frame.size, 3, frame.tobytes())
            self._texture.filter = (moderngl.LINEAR, moderngl.LINEAR)
        else:
            self._texture.write(frame.tobytes())
        self.ctx.clear(0.0, 0.0, 0.0, 1.0)
        self._texture.use(location=0)
        self._quad_vao.render(moderngl.TRIANGLE_STRIP)
        glfw.swap_buffers(self.window)

    def _apply_panel(self) -> None:
        if self._controls is None:
            return
        changed, state = self._controls.consume_changes()
        if changed:
            self.renderer.set_show_location(state.show_location)
            self.renderer.set_show_aurora(state.show_aurora)
        pending = self._controls.pop_requests()
        if pending.reload_forecast:
            self._feed.request(force=True)
        if pending.center_on_location and self.renderer.context.user_location is not None:
            self.renderer.center_on(self.renderer.context.user_location)
        if pending.reset_view:
            self.renderer.reset_view()
        self._controls.update_status(self._feed.status, self._feed.status_detail)

    def _process_loaders(self) -> None:
        result = self._feed.poll()
        if result is not None:
            self.renderer.load_aurora(result.snapshot)
            if self._controls is not None:
                self._controls.set_metadata(format_metadata(result.snapshot))

        future = self._boundaries_future
        if future is not None and future.done():
            self._boundaries_future = None
            self.renderer.load_boundaries(future.result())

        future = self._location_future
        if future is not None and future.done():
            self._location_future = None
            location = future.result()
            if location is not None:
                self.renderer.set_user_location(location)
                if self._controls is not None:
                    self._controls.set_has_location(True)

    def export_frame(self) -> Path:
        export_dir = self.cfg.export_dir or Path.cwd()
        export_dir.mkdir(parents=True, exist_ok=True)
        timestamp = dt.datetime.now().strftime("%Y%m%d_%H%M%S")
        path = export_dir / f"aurora_globe_{timestamp}.png"
        self.renderer.render_now().save(path)
        LOGGER.info("Globe image exported to %s", path)
        return path

    def _cursor(self, xpos: float, ypos: float) -> Tuple[float, float]:
        # cursor is reported in window units, the surface is in framebuffer pixels
        win_w, win_h = glfw.get_window_size(self.window)
        fb_w, fb_h = glfw.get_framebuffer_size(self.window)
        sx = fb_w / win_w if win_w else 1.0
        sy = fb_h / win_h if win_h else 1.0
        return (xpos * sx, ypos * sy)

    def _on_framebuffer_resize(self, _window: glfw._GLFWwindow, width: int, height: int) -> None:
        width = max(1, width)
        height = max(1, height)
        self.ctx.viewport = (0, 0, width, height)
        self.renderer.resize(width, height)

    def _on_window_refresh(self, _window: glfw._GLFWwindow) -> None:
        self.renderer.scheduler.request_render()

    def _on_focus(self, _window: glfw._GLFWwindow, focused: int) -> None:
        if not focused and self._dragging:
            self._dragging = False
            self.renderer.gestures.on_cancel()

    def _on_mouse_button(self, window: glfw._GLFWwindow, button: int, action: int, _mods: int) -> None:
        if button != glfw.MOUSE_BUTTON_LEFT:
            return
        if action == glfw.PRESS:
            self._dragging = True
            self.renderer.gestures.on_pointer_down([self._cursor(*glfw.get_cursor_pos(window))])
        elif action == glfw.RELEASE and self._dragging:
            self._dragging = False
            self.renderer.gestures.on_pointer_up([])

    def _on_cursor_move(self, _window: glfw._GLFWwindow, xpos: float, ypos: float) -> None:
        if not self._dragging:
            return
        self.renderer.gestures.on_pointer_move([self._cursor(xpos, ypos)])

    def _on_scroll(self, _window: glfw._GLFWwindow, _xoffset: float, yoffset: float) -> None:
        self.renderer.gestures.on_wheel(yoffset)

    def _on_key_press(self, window: glfw._GLFWwindow, key: int, scancode: int, action: int, mods: int) -> None:
        if action != glfw.PRESS:
            return
        if key == glfw.KEY_ESCAPE:
            glfw.set_window_should_close(window, True)
        elif key == glfw.KEY_E:
            self.export_frame()
        elif key == glfw.KEY_L:
            self.renderer.set_show_location(not self.renderer.context.show_location)
        elif key == glfw.KEY_A:
            self.renderer.set_show_aurora(not self.renderer.context.show_aurora)
        elif key == glfw.KEY_R:
            self.renderer.reset_view()
        elif key == glfw.KEY_F5:
            self._feed.request(force=True)

    def _cleanup(self) -> None:
        self._feed.shutdown()
        self._loader.shutdown(wait=False, cancel_futures=True)
        if self._controls is not None:
            self._controls.destroy()

        glfw.set_framebuffer_size_callback(self.window, None)
        glfw.set_window_refresh_callback(self.window, None)
        glfw.set_window_focus_callback(self.window, None)
        glfw.set_cursor_pos_callback(self.window, None)
        glfw.set_mouse_button_callback(self.window, None)
        glfw.set_scroll_callback(self.window, None)
        glfw.set_key_callback(self.window, None)

        if self._texture is not None:
            self._texture.release()
        self._quad_vao.release()
        self._quad_vbo.release()
        self.blit_prog.release()
        glfw.destroy_window(self.window)
        glfw.terminate()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Interactive orthographic aurora forecast globe.")
    parser.add_argument("--width", type=int, default=ViewerConfig.width)
    parser.add_argument("--height", type=int, default=ViewerConfig.height)
    parser.add_argument("--location", metavar="LON,LAT", help="viewer position to mark and centre on")
    parser.add_argument("--geolocate", action="store_true", help="look up the viewer position from the IP address")
    parser.add_argument("--no-controls", action="store_true", help="do not open the Qt control panel")
    parser.add_argument("--cache-dir", type=Path, help="where downloaded data is kept")
    parser.add_argument("--export-dir", type=Path, help="where E saves PNG frames")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def config_from_args(args: argparse.Namespace) -> ViewerConfig:
    return ViewerConfig(
        width=max(1, args.width),
        height=max(1, args.height),
        location=args.location,
        geolocate=args.geolocate,
        show_controls=not args.no_controls,
        cache_dir=args.cache_dir,
        export_dir=args.export_dir,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    viewer = GlobeViewer(config_from_args(args))
    viewer.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
