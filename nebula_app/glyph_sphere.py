"""glyph_sphere.py

Nebula visualization (VisPy / Gloo) - Glyph Sphere

Goal
----
- A dense sphere of point sprites, each one showing a glyph of the source text.
- Poles are denser, smaller and tinted with the top/bottom colors.
- Particles wiggle and the whole sphere breathes; the group spins slowly.
- Double click on a glyph sprite calls `on_interact` (the host switches to the
  expanded view, where the sphere eases down to a smaller scale). Clicks on
  the empty background are ignored.

Notes
-----
- Atlas and particle buffers are built outside the frame timer, through
  SphereResourceCache; the timer only advances FrameState.
- Camera is fixed: perspective projection looking at the origin from +Z.
- If the first generation fails the widget shows a label, and swaps it for
  the canvas as soon as a later config change produces resources.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from PyQt6.QtCore import Qt, QSize
from PyQt6.QtWidgets import QLabel, QVBoxLayout, QWidget

from .animation import FrameState, model_matrix, update
from .config import SphereSettings, apply_default_sphere_config, sphere_parameters
from .errors import GenerationError
from .field_cache import SphereResourceCache, SphereResources
from .visualization_api import BaseVisualization, PluginParameter

logger = logging.getLogger(__name__)

DEFAULT_FPS = 60


# ---------------------------------------------------------------------
# Optional VisPy dependency
# ---------------------------------------------------------------------
try:
    from vispy import app, gloo  # type: ignore
    from vispy.util.transforms import perspective, translate  # type: ignore

    from .shader_program import ParticleShaderProgram, displace_positions, sprite_hit

    HAVE_VISPY = True
except Exception:
    HAVE_VISPY = False


# ---------------------------------------------------------------------
# VisPy canvas
# ---------------------------------------------------------------------
if HAVE_VISPY:

    class _GlyphSphereCanvas(app.Canvas):
        """Single-pass point-sprite renderer."""

        def __init__(
            self,
            settings: SphereSettings,
            resources: SphereResources,
            on_interact: Optional[Callable[[], None]] = None,
        ) -> None:
            super().__init__(keys=None, size=(640, 360), show=False)

            self._settings = settings
            # Created after the canvas so GL objects belong to its context
            self._program = ParticleShaderProgram(point_size=settings.point_size)
            self._on_interact = on_interact
            self._state = FrameState()
            self._expanded = False

            self._resources: Optional[SphereResources] = None
            self.set_resources(resources)
            self._apply_settings(settings)

            gloo.set_state(clear_color="black")

            # Fixed cadence redraw timer; timer.elapsed restarts with every
            # new timer, so the animation clock keeps its own offset
            self._fps = DEFAULT_FPS
            self._time_offset = 0.0
            self._timer: Optional[app.Timer] = None
            self._timer_running = False
            self._start_redraw_timer()

            self.events.close.connect(self._on_canvas_close)

        # -----------------------------
        # Host interaction
        # -----------------------------
        def set_expanded(self, expanded: bool) -> None:
            self._expanded = bool(expanded)

        def set_on_interact(self, callback: Optional[Callable[[], None]]) -> None:
            self._on_interact = callback

        def set_resources(self, resources: SphereResources) -> None:
            """Swap to a fully built resource bundle (never a partial one)."""
            if resources is self._resources:
                return
            self._program.bind(resources.field, resources.atlas)
            self._resources = resources
            self.update()

        def set_settings(self, settings: SphereSettings) -> None:
            self._settings = settings
            self._apply_settings(settings)
            self.update()

        def _apply_settings(self, settings: SphereSettings) -> None:
            self._program.set_point_size(settings.point_size)
            self._program.set_colors(settings.color_top, settings.color_bottom)

        def set_running(self, running: bool) -> None:
            if running and not self._timer_running:
                self._start_redraw_timer()
            elif not running and self._timer_running:
                self._stop_redraw_timer()

        def set_frame_rate(self, fps: int) -> None:
            self._fps = max(1, int(fps))
            if self._timer_running:
                self._stop_redraw_timer()
                self._start_redraw_timer()

        # -----------------------------
        # Timer
        # -----------------------------
        def _start_redraw_timer(self) -> None:
            self._timer = app.Timer(interval=1.0 / float(self._fps), connect=self._tick, start=True)
            self._timer_running = True

        def _stop_redraw_timer(self) -> None:
            if self._timer is None:
                return
            self._timer.stop()
            self._timer_running = False
            self._timer = None
            self._time_offset = self._state.time

        def _tick(self, event) -> None:
            if not self._timer_running:
                return
            s = self._settings
            self._state = update(
                self._state,
                elapsed_time=self._time_offset + float(event.elapsed),
                frame_delta=float(event.dt),
                is_expanded=self._expanded,
                rotation_speed=s.rotation_speed,
                expanded_scale=s.expanded_scale,
                scale_rate=s.scale_rate,
            )
            self.update()

        def _on_canvas_close(self, event=None) -> None:
            self._stop_redraw_timer()

        # -----------------------------
        # Camera
        # -----------------------------
        def _pixel_ratio(self) -> float:
            ratio = float(getattr(self, "pixel_scale", 1.0) or 1.0)
            return max(1.0, min(2.0, ratio))

        def _view(self) -> np.ndarray:
            return translate((0.0, 0.0, -self._settings.camera_distance))

        def _projection(self, width: int, height: int) -> np.ndarray:
            aspect = float(max(1, width)) / float(max(1, height))
            return perspective(self._settings.fov_degrees, aspect, 0.1, 100.0)

        def hits_particle(self, pos: Tuple[float, float]) -> bool:
            """True when the logical pixel `pos` lies on a rendered glyph sprite."""
            if self._resources is None or len(self._resources.field) == 0:
                return False
            field = self._resources.field
            w, h = self.size
            positions = displace_positions(field.positions, field.randoms, self._state.time)
            return sprite_hit(
                pos,
                positions,
                field.scales,
                model=model_matrix(self._state),
                view=self._view(),
                projection=self._projection(w, h),
                width=w,
                height=h,
                base_size=self._settings.point_size,
            )

        # -----------------------------
        # VisPy callbacks
        # -----------------------------
        def on_resize(self, event) -> None:  # type: ignore[override]
            gloo.set_viewport(0, 0, *event.physical_size)
            self._program.set_pixel_ratio(self._pixel_ratio())
            self.update()

        def on_mouse_double_click(self, event) -> None:  # type: ignore[override]
            if self._on_interact is None:
                return
            if self.hits_particle(event.pos):
                self._on_interact()

        def on_draw(self, event) -> None:  # type: ignore[override]
            w, h = self.physical_size
            gloo.set_viewport(0, 0, max(1, int(w)), max(1, int(h)))
            gloo.clear(color=True, depth=True)

            self._program.set_frame(
                time_s=self._state.time,
                model=model_matrix(self._state),
                view=self._view(),
                projection=self._projection(w, h),
            )
            self._program.draw()


def _create_canvas(
    settings: SphereSettings,
    resources: SphereResources,
    on_interact: Optional[Callable[[], None]] = None,
):
    app.use_app("pyqt6")  # type: ignore[arg-type]
    return _GlyphSphereCanvas(  # type: ignore[name-defined]
        settings=settings,
        resources=resources,
        on_interact=on_interact,
    )


class _GlyphSphereWidget(QWidget):
    """Qt widget embedding the VisPy canvas (or a label explaining why not)."""

    def __init__(
        self,
        settings: SphereSettings,
        resources: Optional[SphereResources],
        on_interact: Optional[Callable[[], None]] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._canvas = None
        self._label: Optional[QLabel] = None
        self._on_interact = on_interact
        self._expanded = False
        self._running = True
        self._fps = DEFAULT_FPS

        self._layout = QVBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)

        if not HAVE_VISPY:
            self._show_label("VisPy is not available.\nPlease install 'vispy' to enable this visualization.")
        elif resources is None:
            self._show_label("The particle field could not be generated.\nSee the log for details.")
        else:
            self._build_canvas(settings, resources)

    def _show_label(self, reason: str) -> None:
        self._label = QLabel(f"Glyph Sphere is disabled.\n{reason}", self)
        self._label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._layout.addWidget(self._label)

    def _build_canvas(self, settings: SphereSettings, resources: SphereResources) -> None:
        if self._label is not None:
            self._layout.removeWidget(self._label)
            self._label.setParent(None)
            self._label.deleteLater()
            self._label = None

        self._canvas = _create_canvas(settings, resources, self._on_interact)
        self._canvas.native.setParent(self)
        self._layout.addWidget(self._canvas.native)

        # Replay host state set while only the label existed
        self._canvas.set_expanded(self._expanded)
        if self._fps != DEFAULT_FPS:
            self._canvas.set_frame_rate(self._fps)
        if not self._running:
            self._canvas.set_running(False)

    def sizeHint(self) -> QSize:  # type: ignore[override]
        return QSize(960, 540)

    @property
    def canvas(self):
        return self._canvas

    def set_expanded(self, expanded: bool) -> None:
        self._expanded = bool(expanded)
        if self._canvas is not None:
            self._canvas.set_expanded(self._expanded)

    def set_on_interact(self, callback: Optional[Callable[[], None]]) -> None:
        self._on_interact = callback
        if self._canvas is not None:
            self._canvas.set_on_interact(callback)

    def set_running(self, running: bool) -> None:
        self._running = bool(running)
        if self._canvas is not None:
            self._canvas.set_running(self._running)

    def set_frame_rate(self, fps: int) -> None:
        self._fps = max(1, int(fps))
        if self._canvas is not None:
            self._canvas.set_frame_rate(self._fps)

    def apply(self, settings: SphereSettings, resources: SphereResources) -> None:
        if self._canvas is None:
            if HAVE_VISPY:
                logger.info("Resources available again, creating the sphere canvas")
                self._build_canvas(settings, resources)
            return
        self._canvas.set_resources(resources)
        self._canvas.set_settings(settings)


# ---------------------------------------------------------------------
# Visualization class
# ---------------------------------------------------------------------
class GlyphSphereVisualization(BaseVisualization):
    plugin_id = "glyph_sphere"
    plugin_name = "Glyph Sphere"
    plugin_description = (
        "A breathing sphere of glyph particles: every distinct character of the "
        "source text becomes a point sprite, denser and smaller toward the poles."
    )
    plugin_author = "Nebula"
    plugin_version = "0.3.0"

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        on_interact: Optional[Callable[[], None]] = None,
        cache: Optional[SphereResourceCache] = None,
    ) -> None:
        super().__init__(config=config)
        apply_default_sphere_config(self.config)
        self._on_interact = on_interact
        self._cache = cache or SphereResourceCache()
        self._widget: Optional[_GlyphSphereWidget] = None
        self._expanded = False

    @classmethod
    def parameters(cls) -> Dict[str, PluginParameter]:
        return sphere_parameters()

    @property
    def settings(self) -> SphereSettings:
        return SphereSettings.from_config(self.config)

    @property
    def expanded(self) -> bool:
        return self._expanded

    def set_expanded(self, expanded: bool) -> None:
        self._expanded = bool(expanded)
        if self._widget is not None:
            self._widget.set_expanded(self._expanded)

    def set_on_interact(self, callback: Optional[Callable[[], None]]) -> None:
        self._on_interact = callback
        if self._widget is not None:
            self._widget.set_on_interact(callback)

    def _build_resources(self, settings: SphereSettings) -> Optional[SphereResources]:
        try:
            return self._cache.get(settings)
        except GenerationError:
            logger.exception("Particle generation failed, keeping previous resources")
            return self._cache.current

    def create_widget(self, parent: Optional[QWidget] = None) -> QWidget:
        settings = self.settings
        resources = self._build_resources(settings)
        self._widget = _GlyphSphereWidget(
            settings=settings,
            resources=resources,
            on_interact=self._on_interact,
            parent=parent,
        )
        self._widget.set_expanded(self._expanded)
        return self._widget

    def on_config_changed(self) -> None:
        """Regenerate (through the cache) and push the new bundle to the canvas."""
        settings = self.settings
        resources = self._build_resources(settings)
        if self._widget is not None and resources is not None:
            self._widget.apply(settings, resources)

    def on_activate(self) -> None:
        if self._widget is not None:
            self._widget.set_running(True)

    def on_deactivate(self) -> None:
        if self._widget is not None:
            self._widget.set_running(False)

    def apply_preview_settings(self, width: int, height: int, fps: int) -> None:
        if self._widget is None:
            return
        self._widget.setMinimumSize(min(int(width), 320), min(int(height), 180))
        self._widget.resize(int(width), int(height))
        self._widget.set_frame_rate(fps)
