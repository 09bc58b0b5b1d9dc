"""
Configuration for the glyph sphere.

The host stores visualization settings as a plain, JSON-friendly dict. This
module centralizes:
  * the default values (apply_default_sphere_config),
  * the PluginParameter schema used to build UI controls,
  * SphereSettings, the validated snapshot the generators consume.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .atlas import ATLAS_SIZE
from .colors import _clamp, parse_color
from .visualization_api import PluginParameter

POEM_TEXT = """床前明月光，疑是地上霜，
举头望明月，低头思故乡。"""

DEFAULT_COUNT = 5600
DEFAULT_RADIUS = 3.0
DEFAULT_COLOR_TOP = "#FFB800"
DEFAULT_COLOR_BOTTOM = "#FFFFFF"
DEFAULT_POINT_SIZE = 95.0


def _safe_float(x: Any, default: float = 0.0) -> float:
    try:
        return float(x)
    except Exception:
        return float(default)


def _safe_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return int(default)


def _safe_color(x: Any, default: str) -> str:
    """Keep a color value only if it parses, otherwise fall back to default."""
    try:
        parse_color(x)
    except ValueError:
        return default
    return x


def apply_default_sphere_config(config: Dict[str, Any]) -> None:
    """
    Ensure that `config` contains every key the sphere reads.

    Existing values are never overwritten, so partially filled or older
    saved states keep working.
    """
    # Generation
    config.setdefault("count", DEFAULT_COUNT)
    config.setdefault("radius", DEFAULT_RADIUS)
    config.setdefault("color_top", DEFAULT_COLOR_TOP)
    config.setdefault("color_bottom", DEFAULT_COLOR_BOTTOM)
    config.setdefault("source_text", POEM_TEXT)
    config.setdefault("seed", None)  # None = new random field every regeneration

    # Atlas
    config.setdefault("atlas_size", ATLAS_SIZE)
    config.setdefault("font_bold", True)

    # Rendering
    config.setdefault("point_size", DEFAULT_POINT_SIZE)
    config.setdefault("camera_distance", 7.5)
    config.setdefault("fov_degrees", 40.0)

    # Animation
    config.setdefault("rotation_speed", 0.05)
    config.setdefault("expanded_scale", 0.8)
    config.setdefault("scale_rate", 4.0)


def sphere_parameters() -> Dict[str, PluginParameter]:
    return {
        "count": PluginParameter(
            name="count",
            label="Particles",
            type="int",
            default=DEFAULT_COUNT,
            minimum=1,
            maximum=50000,
            step=100,
            description="Exact number of glyph particles on the sphere.",
        ),
        "radius": PluginParameter(
            name="radius",
            label="Radius",
            type="float",
            default=DEFAULT_RADIUS,
            minimum=0.5,
            maximum=10.0,
            step=0.1,
            description="Sphere radius in world units (particles jitter by +/-5%).",
        ),
        "color_top": PluginParameter(
            name="color_top",
            label="North pole color",
            type="color",
            default=DEFAULT_COLOR_TOP,
        ),
        "color_bottom": PluginParameter(
            name="color_bottom",
            label="South pole color",
            type="color",
            default=DEFAULT_COLOR_BOTTOM,
        ),
        "source_text": PluginParameter(
            name="source_text",
            label="Source text",
            type="text",
            default=POEM_TEXT,
            description="Every distinct character (punctuation and whitespace removed) becomes a glyph.",
        ),
        "font_bold": PluginParameter(
            name="font_bold",
            label="Bold glyphs",
            type="bool",
            default=True,
            description="Rasterize the atlas with a bold font (rebuilds the atlas).",
        ),
        "point_size": PluginParameter(
            name="point_size",
            label="Glyph size",
            type="float",
            default=DEFAULT_POINT_SIZE,
            minimum=10.0,
            maximum=300.0,
            step=1.0,
            description="Base point size before per-particle scale and perspective.",
        ),
        "rotation_speed": PluginParameter(
            name="rotation_speed",
            label="Rotation speed (rad/s)",
            type="float",
            default=0.05,
            minimum=-1.0,
            maximum=1.0,
            step=0.01,
        ),
        "expanded_scale": PluginParameter(
            name="expanded_scale",
            label="Expanded view scale",
            type="float",
            default=0.8,
            minimum=0.2,
            maximum=1.5,
            step=0.05,
            description="Scale the sphere eases to after a double click.",
        ),
    }


@dataclass(frozen=True)
class SphereSettings:
    """Validated, hashable snapshot of the sphere configuration."""

    count: int = DEFAULT_COUNT
    radius: float = DEFAULT_RADIUS
    color_top: Any = DEFAULT_COLOR_TOP
    color_bottom: Any = DEFAULT_COLOR_BOTTOM
    source_text: str = POEM_TEXT
    seed: Optional[int] = None
    atlas_size: int = ATLAS_SIZE
    font_bold: bool = True
    point_size: float = DEFAULT_POINT_SIZE
    camera_distance: float = 7.5
    fov_degrees: float = 40.0
    rotation_speed: float = 0.05
    expanded_scale: float = 0.8
    scale_rate: float = 4.0

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SphereSettings":
        """
        Build settings from a loosely typed config dict.

        Values are clamped to sane ranges; unparsable values fall back to the
        defaults instead of raising, as configs may come from older saves.
        """
        cfg = dict(config)
        apply_default_sphere_config(cfg)

        seed = cfg.get("seed")
        return cls(
            count=max(1, _safe_int(cfg.get("count"), DEFAULT_COUNT)),
            radius=_clamp(_safe_float(cfg.get("radius"), DEFAULT_RADIUS), 0.01, 1000.0),
            color_top=_freeze_color(_safe_color(cfg.get("color_top"), DEFAULT_COLOR_TOP)),
            color_bottom=_freeze_color(_safe_color(cfg.get("color_bottom"), DEFAULT_COLOR_BOTTOM)),
            source_text=str(cfg.get("source_text") or ""),
            seed=None if seed is None else _safe_int(seed, 0),
            atlas_size=int(_clamp(_safe_int(cfg.get("atlas_size"), ATLAS_SIZE), 16, 8192)),
            font_bold=bool(cfg.get("font_bold", True)),
            point_size=_clamp(_safe_float(cfg.get("point_size"), DEFAULT_POINT_SIZE), 1.0, 1000.0),
            camera_distance=_clamp(_safe_float(cfg.get("camera_distance"), 7.5), 0.5, 100.0),
            fov_degrees=_clamp(_safe_float(cfg.get("fov_degrees"), 40.0), 10.0, 120.0),
            rotation_speed=_safe_float(cfg.get("rotation_speed"), 0.05),
            expanded_scale=_clamp(_safe_float(cfg.get("expanded_scale"), 0.8), 0.05, 5.0),
            scale_rate=_clamp(_safe_float(cfg.get("scale_rate"), 4.0), 0.0, 100.0),
        )


def _freeze_color(value: Any) -> Any:
    # Lists from JSON become tuples so settings stay hashable
    if isinstance(value, list):
        return tuple(value)
    return value
