"""
Point-sprite shader program for the glyph sphere.

Vertex stage
------------
- organic per-axis wiggle driven by time, position and the particle seeds,
- a global "breathing" offset along the sphere normal,
- perspective point-size attenuation.

Fragment stage
--------------
- maps gl_PointCoord into the glyph's atlas cell,
- discards texels with alpha < 0.3 so each sprite is cropped to its glyph,
- outputs the particle color with the sampled alpha (additive blending,
  no depth writes).

The CPU producer (particle_field) and the GPU consumer (this program) share
BUFFER_LAYOUT. The layout is checked against the vertex shader source when the
program is built, and against the field arrays whenever a field is packed.

u_color_top / u_color_bottom are part of the uniform set the host fills in,
but the per-particle a_color already carries the gradient, so neither stage
reads them. The GLSL compiler strips them and VisPy reports them as inactive
uniforms at info level; that is expected.

The numpy functions at the bottom mirror the GLSL math so it can be checked
without a GL context. project_to_screen / sprite_hit reuse that math on the
CPU to decide whether a double click landed on a glyph sprite.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
from vispy import gloo

from .atlas import AtlasTexture
from .colors import parse_color
from .errors import ShaderLayoutError
from .particle_field import ParticleField

logger = logging.getLogger(__name__)

DEFAULT_POINT_SIZE = 95.0
ALPHA_CUTOFF = 0.3

WIGGLE_SPEED = 0.3
WIGGLE_FREQUENCY = 1.5
WIGGLE_AMPLITUDE = 0.05
BREATH_SPEED = 0.5
BREATH_AMPLITUDE = 0.08


# ---------------------------------------------------------------------------
# Buffer layout
# ---------------------------------------------------------------------------

_GLSL_TYPES = {1: "float", 2: "vec2", 3: "vec3", 4: "vec4"}


@dataclass(frozen=True)
class AttributeSpec:
    """One interleaved float32 attribute: shader name, field name, width, byte offset."""

    name: str
    field: str
    components: int
    offset: int

    @property
    def glsl_type(self) -> str:
        return _GLSL_TYPES[self.components]

    @property
    def nbytes(self) -> int:
        return 4 * self.components


@dataclass(frozen=True)
class BufferLayout:
    """Versioned, interleaved attribute layout shared by producer and shader."""

    version: int
    attributes: Tuple[AttributeSpec, ...]

    @property
    def stride(self) -> int:
        return sum(a.nbytes for a in self.attributes)

    @property
    def dtype(self) -> np.dtype:
        fields = []
        for a in self.attributes:
            if a.components == 1:
                fields.append((a.name, np.float32))
            else:
                fields.append((a.name, np.float32, (a.components,)))
        return np.dtype(fields)

    def check(self) -> None:
        """Offsets must be contiguous and match the packed numpy dtype."""
        dtype = self.dtype
        expected = 0
        for a in self.attributes:
            if a.offset != expected:
                raise ShaderLayoutError(
                    f"layout v{self.version}: {a.name} at offset {a.offset}, expected {expected}"
                )
            if dtype.fields[a.name][1] != a.offset:
                raise ShaderLayoutError(f"layout v{self.version}: dtype offset mismatch for {a.name}")
            expected += a.nbytes
        if dtype.itemsize != self.stride:
            raise ShaderLayoutError(
                f"layout v{self.version}: stride {self.stride} != dtype itemsize {dtype.itemsize}"
            )

    def validate_source(self, vertex_source: str) -> None:
        """
        Check that the vertex shader declares exactly the layout attributes,
        with matching GLSL types.
        """
        declared: Dict[str, str] = {
            name: gtype
            for gtype, name in re.findall(r"^\s*attribute\s+(\w+)\s+(\w+)\s*;", vertex_source, re.MULTILINE)
        }
        for a in self.attributes:
            gtype = declared.pop(a.name, None)
            if gtype is None:
                raise ShaderLayoutError(f"vertex shader does not declare attribute {a.name}")
            if gtype != a.glsl_type:
                raise ShaderLayoutError(
                    f"attribute {a.name} is {gtype} in the shader, layout expects {a.glsl_type}"
                )
        if declared:
            raise ShaderLayoutError(
                f"vertex shader declares attributes missing from layout v{self.version}: "
                + ", ".join(sorted(declared))
            )

    def pack(self, particle_field: ParticleField) -> np.ndarray:
        """Interleave a ParticleField into one structured array for upload."""
        n = len(particle_field)
        data = np.zeros(n, dtype=self.dtype)
        for a in self.attributes:
            arr = np.asarray(getattr(particle_field, a.field))
            want = (n,) if a.components == 1 else (n, a.components)
            if arr.shape != want:
                raise ShaderLayoutError(f"{a.field} has shape {arr.shape}, layout expects {want}")
            if arr.dtype != np.float32:
                raise ShaderLayoutError(f"{a.field} is {arr.dtype}, layout expects float32")
            data[a.name] = arr
        return data


BUFFER_LAYOUT = BufferLayout(
    version=1,
    attributes=(
        AttributeSpec("a_position", "positions", 3, 0),
        AttributeSpec("a_color", "colors", 3, 12),
        AttributeSpec("a_random", "randoms", 3, 24),
        AttributeSpec("a_scale", "scales", 1, 36),
        AttributeSpec("a_glyph_index", "glyph_indices", 1, 40),
    ),
)


# ---------------------------------------------------------------------------
# GLSL
# ---------------------------------------------------------------------------

VERTEX_SHADER = """
uniform float u_time;
uniform float u_pixel_ratio;
uniform float u_size;
uniform mat4 u_model;
uniform mat4 u_view;
uniform mat4 u_projection;

// Host-side reference colors; per-particle colors already carry the gradient
uniform vec3 u_color_top;
uniform vec3 u_color_bottom;

attribute vec3 a_position;
attribute vec3 a_color;
attribute vec3 a_random;
attribute float a_scale;
attribute float a_glyph_index;

varying vec3 v_color;
varying float v_glyph_index;

void main() {
    v_color = a_color;
    v_glyph_index = a_glyph_index;

    vec3 pos = a_position;
    float phase = u_time * 0.3;

    // Independent wiggling (each axis reads the already displaced components)
    pos.x += sin(phase + pos.y * 1.5 + a_random.x) * 0.05;
    pos.y += cos(phase + pos.x * 1.5 + a_random.y) * 0.05;
    pos.z += sin(phase + pos.z * 1.5 + a_random.z) * 0.05;

    // Breathing along the sphere normal
    vec3 normal = vec3(0.0);
    if (length(a_position) > 0.0) {
        normal = normalize(a_position);
    }
    pos += normal * (sin(phase * 0.5) * 0.08);

    vec4 mv_position = u_view * u_model * vec4(pos, 1.0);
    gl_Position = u_projection * mv_position;

    // Size attenuation
    gl_PointSize = u_size * a_scale * u_pixel_ratio * (1.0 / -mv_position.z);
}
"""

FRAGMENT_SHADER = """
uniform sampler2D u_texture;
uniform vec2 u_atlas_grid; // (cols, rows)

varying vec3 v_color;
varying float v_glyph_index;

void main() {
    // Point coords are top-left based
    vec2 uv = gl_PointCoord;
    uv.y = 1.0 - uv.y;

    float cols = u_atlas_grid.x;
    float rows = u_atlas_grid.y;

    float index = floor(v_glyph_index + 0.5);
    float col_index = mod(index, cols);
    float row_index = floor(index / cols);

    vec2 atlas_uv = vec2(
        (col_index + uv.x) / cols,
        1.0 - (row_index + 1.0 - uv.y) / rows
    );

    vec4 tex = texture2D(u_texture, atlas_uv);
    if (tex.a < 0.3) discard;

    gl_FragColor = vec4(v_color, tex.a);
}
"""


# ---------------------------------------------------------------------------
# Program wrapper
# ---------------------------------------------------------------------------


def texture_pixels(atlas: AtlasTexture) -> np.ndarray:
    """Atlas pixels in upload order: GL samples row 0 at v = 0, so the image is
    flipped and v = 1 becomes the top row of the atlas."""
    return np.ascontiguousarray(atlas.image[::-1])



class ParticleShaderProgram:
    """
    Owns the gloo.Program, the vertex buffer and the atlas texture.

    Built explicitly and handed to the canvas that draws it. Buffers are only
    replaced through bind(), never patched.
    """

    def __init__(
        self,
        layout: BufferLayout = BUFFER_LAYOUT,
        vertex_shader: str = VERTEX_SHADER,
        fragment_shader: str = FRAGMENT_SHADER,
        point_size: float = DEFAULT_POINT_SIZE,
        pixel_ratio: float = 1.0,
    ) -> None:
        layout.check()
        layout.validate_source(vertex_shader)

        self.layout = layout
        self._program = gloo.Program(vertex_shader, fragment_shader)
        self._vertex_buffer: Optional[gloo.VertexBuffer] = None
        self._texture: Optional[gloo.Texture2D] = None
        self._atlas: Optional[AtlasTexture] = None
        self._count = 0

        identity = np.eye(4, dtype=np.float32)
        self._program["u_time"] = 0.0
        self._program["u_size"] = float(point_size)
        self._program["u_model"] = identity
        self._program["u_view"] = identity
        self._program["u_projection"] = identity
        self.set_pixel_ratio(pixel_ratio)

    def bind(self, particle_field: ParticleField, atlas: AtlasTexture) -> None:
        """Upload a new field (always) and the atlas (when it changed)."""
        data = self.layout.pack(particle_field)
        vertex_buffer = gloo.VertexBuffer(data)

        if atlas is not self._atlas or atlas.needs_upload:
            pixels = texture_pixels(atlas)
            texture = gloo.Texture2D(pixels, interpolation="linear", wrapping="clamp_to_edge")
            self._texture = texture
            self._atlas = atlas
            atlas.mark_uploaded()
            logger.debug("Uploaded %dx%d atlas texture", pixels.shape[1], pixels.shape[0])

        self._program.bind(vertex_buffer)
        self._program["u_texture"] = self._texture
        self._program["u_atlas_grid"] = (float(atlas.cols), float(atlas.rows))
        if self._vertex_buffer is not None:
            self._vertex_buffer.delete()
        self._vertex_buffer = vertex_buffer
        self._count = len(particle_field)

    def set_colors(self, color_top: Any, color_bottom: Any) -> None:
        self._program["u_color_top"] = parse_color(color_top)
        self._program["u_color_bottom"] = parse_color(color_bottom)

    def set_pixel_ratio(self, pixel_ratio: float) -> None:
        self._program["u_pixel_ratio"] = max(1.0, float(pixel_ratio))

    def set_point_size(self, point_size: float) -> None:
        self._program["u_size"] = float(point_size)

    def set_frame(self, time_s: float, model: np.ndarray, view: np.ndarray, projection: np.ndarray) -> None:
        self._program["u_time"] = max(0.0, float(time_s))
        self._program["u_model"] = np.asarray(model, dtype=np.float32)
        self._program["u_view"] = np.asarray(view, dtype=np.float32)
        self._program["u_projection"] = np.asarray(projection, dtype=np.float32)

    def draw(self) -> None:
        if self._count == 0:
            return
        gloo.set_state(
            blend=True,
            blend_func=("src_alpha", "one"),
            depth_test=True,
            depth_mask=False,
            cull_face=False,
        )
        self._program.draw("points")


# ---------------------------------------------------------------------------
# CPU mirrors of the shader math
# ---------------------------------------------------------------------------


def displace_positions(positions: np.ndarray, randoms: np.ndarray, time_s: float) -> np.ndarray:
    """Vertex-stage displacement (wiggle + breathing) for an (N, 3) array."""
    p = np.array(positions, dtype=np.float64, copy=True)
    rnd = np.asarray(randoms, dtype=np.float64)
    base = np.asarray(positions, dtype=np.float64)
    phase = float(time_s) * WIGGLE_SPEED

    p[:, 0] += np.sin(phase + p[:, 1] * WIGGLE_FREQUENCY + rnd[:, 0]) * WIGGLE_AMPLITUDE
    p[:, 1] += np.cos(phase + p[:, 0] * WIGGLE_FREQUENCY + rnd[:, 1]) * WIGGLE_AMPLITUDE
    p[:, 2] += np.sin(phase + p[:, 2] * WIGGLE_FREQUENCY + rnd[:, 2]) * WIGGLE_AMPLITUDE

    length = np.linalg.norm(base, axis=1, keepdims=True)
    normal = np.divide(base, length, out=np.zeros_like(base), where=length > 0.0)
    p += normal * (np.sin(phase * BREATH_SPEED) * BREATH_AMPLITUDE)
    return p


def point_sizes(scales: np.ndarray, view_depth: np.ndarray, base_size: float = DEFAULT_POINT_SIZE, pixel_ratio: float = 1.0) -> np.ndarray:
    """gl_PointSize for view-space depths (negative in front of the camera)."""
    return base_size * np.asarray(scales) * pixel_ratio / -np.asarray(view_depth)


def atlas_uv(point_uv: np.ndarray, glyph_index: np.ndarray, cols: int, rows: int) -> np.ndarray:
    """
    Fragment-stage UV mapping.

    `point_uv` is gl_PointCoord (origin top-left, (..., 2)), the result is
    the texture coordinate with v = 1 at the top row of the atlas.
    """
    uv = np.asarray(point_uv, dtype=np.float64)
    u = uv[..., 0]
    v = 1.0 - uv[..., 1]
    index = np.floor(np.asarray(glyph_index, dtype=np.float64) + 0.5)
    col_index = np.mod(index, cols)
    row_index = np.floor(index / cols)
    return np.stack(
        [(col_index + u) / cols, 1.0 - (row_index + 1.0 - v) / rows],
        axis=-1,
    )


def fragment_visible(alpha: np.ndarray) -> np.ndarray:
    """Alpha test of the fragment stage: False where the texel is discarded."""
    return np.asarray(alpha) >= ALPHA_CUTOFF


def project_to_screen(
    positions: np.ndarray,
    model: np.ndarray,
    view: np.ndarray,
    projection: np.ndarray,
    width: float,
    height: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Window coordinates (origin top-left) and view-space depth of (N, 3)
    positions, with the row-vector matrices handed to the program.
    """
    p = np.asarray(positions, dtype=np.float64)
    homo = np.concatenate([p, np.ones((p.shape[0], 1))], axis=1)
    eye = homo @ np.asarray(model, dtype=np.float64) @ np.asarray(view, dtype=np.float64)
    clip = eye @ np.asarray(projection, dtype=np.float64)

    w = clip[:, 3:4]
    ndc = np.divide(clip[:, :2], w, out=np.zeros_like(clip[:, :2]), where=w != 0.0)
    screen = np.empty_like(ndc)
    screen[:, 0] = (ndc[:, 0] + 1.0) * 0.5 * float(width)
    screen[:, 1] = (1.0 - ndc[:, 1]) * 0.5 * float(height)
    return screen, eye[:, 2]


def sprite_hit(
    point: Tuple[float, float],
    positions: np.ndarray,
    scales: np.ndarray,
    model: np.ndarray,
    view: np.ndarray,
    projection: np.ndarray,
    width: float,
    height: float,
    base_size: float = DEFAULT_POINT_SIZE,
) -> bool:
    """
    True when `point` (window pixels, origin top-left) falls inside the square
    sprite of at least one particle in front of the camera.

    Sizes are in the same pixel unit as `width` / `height`, so callers working
    in logical pixels leave the pixel ratio out.
    """
    if len(positions) == 0:
        return False
    screen, depth = project_to_screen(positions, model, view, projection, width, height)
    in_front = depth < 0.0
    if not in_front.any():
        return False

    scales = np.asarray(scales, dtype=np.float64)[in_front]
    half = 0.5 * point_sizes(scales, depth[in_front], base_size, 1.0)
    dx = np.abs(screen[in_front, 0] - float(point[0]))
    dy = np.abs(screen[in_front, 1] - float(point[1]))
    return bool(np.any((dx <= half) & (dy <= half)))
