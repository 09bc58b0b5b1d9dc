"""
Glyph texture atlas.

All glyphs of a GlyphSet are rasterized into ONE square RGBA image laid out
as a grid:

    cols = ceil(sqrt(N)), rows = ceil(N / cols)

Glyph `i` lives in cell (i mod cols, i // cols), row 0 at the top of the
image. Each glyph is drawn white on a transparent background, centered in its
cell, with a font size starting at 75% of the cell height and shrunk so the
glyph never exceeds 90% of the cell width.

Rasterization uses Qt (QImage + QPainter + QFontMetricsF). Without a
QGuiApplication there is no usable text surface; in that case an empty 1x1
texture with a 1x1 grid is returned and the sphere renders without glyphs.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Sequence, Tuple

import numpy as np

try:
    from PyQt6.QtCore import QRectF, Qt
    from PyQt6.QtGui import QColor, QFont, QFontMetricsF, QGuiApplication, QImage, QPainter

    HAVE_QT = True
except Exception:
    HAVE_QT = False

logger = logging.getLogger(__name__)

ATLAS_SIZE = 2048

# Initial font size relative to the cell height, and max glyph width relative
# to the cell width.
FONT_HEIGHT_RATIO = 0.75
MAX_WIDTH_RATIO = 0.9

# CJK-capable families first, then generic fallbacks.
DEFAULT_FONT_FAMILIES: Tuple[str, ...] = (
    "Microsoft YaHei",
    "PingFang SC",
    "Heiti SC",
    "SimHei",
    "Noto Sans CJK SC",
    "Arial",
    "sans-serif",
)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AtlasLayout:
    """Grid geometry for packing `glyph_count` glyphs into a square image."""

    glyph_count: int
    cols: int
    rows: int
    size: int = ATLAS_SIZE

    @property
    def cell_width(self) -> float:
        return self.size / self.cols

    @property
    def cell_height(self) -> float:
        return self.size / self.rows

    def cell_of(self, index: int) -> Tuple[int, int]:
        """Return (col, row) of glyph `index`; row 0 is the top row."""
        if not 0 <= index < max(1, self.glyph_count):
            raise IndexError(f"glyph index {index} outside [0, {self.glyph_count})")
        return index % self.cols, index // self.cols

    def cell_rect(self, index: int) -> Tuple[float, float, float, float]:
        """Pixel rectangle (x0, y0, x1, y1) of glyph `index`, y growing downwards."""
        col, row = self.cell_of(index)
        x0 = col * self.cell_width
        y0 = row * self.cell_height
        return x0, y0, x0 + self.cell_width, y0 + self.cell_height

    def cell_center(self, index: int) -> Tuple[float, float]:
        x0, y0, x1, y1 = self.cell_rect(index)
        return (x0 + x1) * 0.5, (y0 + y1) * 0.5


def compute_layout(glyph_count: int, size: int = ATLAS_SIZE) -> AtlasLayout:
    """
    Compute the atlas grid for `glyph_count` glyphs.

    An empty glyph set still gets a valid 1x1 grid so that shader uniforms
    never divide by zero.
    """
    if glyph_count < 0:
        raise ValueError("glyph_count must be >= 0")
    if size < 1:
        raise ValueError("atlas size must be >= 1")
    if glyph_count == 0:
        return AtlasLayout(glyph_count=0, cols=1, rows=1, size=size)

    cols = math.isqrt(glyph_count)
    if cols * cols < glyph_count:
        cols += 1
    rows = -(-glyph_count // cols)
    return AtlasLayout(glyph_count=glyph_count, cols=cols, rows=rows, size=size)


def fit_font_size(
    glyph: str,
    cell_width: float,
    cell_height: float,
    measure: Callable[[str, float], float],
) -> float:
    """
    Return the pixel font size for `glyph` inside one cell.

    `measure(glyph, font_size)` returns the rendered width in pixels. The
    size starts at 75% of the cell height and is scaled down uniformly when
    the glyph would be wider than 90% of the cell width.
    """
    font_size = cell_height * FONT_HEIGHT_RATIO
    width = measure(glyph, font_size)
    max_width = cell_width * MAX_WIDTH_RATIO
    if width > max_width:
        font_size = font_size * (max_width / width)
    return font_size


# ---------------------------------------------------------------------------
# Texture
# ---------------------------------------------------------------------------


@dataclass
class AtlasTexture:
    """
    Rasterized atlas ready for upload.

    `image` is a (H, W, 4) uint8 array, row 0 = top of the atlas, straight
    (non-premultiplied) alpha. `needs_upload` is set by the builder and
    cleared by the program once the pixels reached the GPU.
    """

    image: np.ndarray
    cols: int
    rows: int
    needs_upload: bool = True
    glyphs: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def size(self) -> int:
        return int(self.image.shape[0])

    @property
    def is_empty(self) -> bool:
        return len(self.glyphs) == 0

    def mark_uploaded(self) -> None:
        self.needs_upload = False


def empty_atlas() -> AtlasTexture:
    """A valid but empty 1x1 transparent texture with a 1x1 grid."""
    return AtlasTexture(image=np.zeros((1, 1, 4), dtype=np.uint8), cols=1, rows=1)


def drawing_surface_available() -> bool:
    """True when Qt can rasterize text (a QGuiApplication exists)."""
    if not HAVE_QT:
        return False
    return QGuiApplication.instance() is not None


def build_glyph_font(families: Sequence[str], pixel_size: float, bold: bool = True) -> "QFont":
    """
    Build the QFont used for one glyph.

    Sizes are pixel sizes (not points) so the result does not depend on the
    device DPI of the offscreen image.
    """
    font = QFont()
    font.setFamilies(list(families))
    font.setPixelSize(max(1, int(round(pixel_size))))
    font.setBold(bool(bold))
    return font


def build_word_atlas(
    glyphs: Sequence[str],
    size: int = ATLAS_SIZE,
    font_families: Sequence[str] = DEFAULT_FONT_FAMILIES,
    bold: bool = True,
) -> AtlasTexture:
    """
    Rasterize `glyphs` into a new AtlasTexture.

    No caching happens here: every call draws a fresh image. Callers build
    one atlas per distinct glyph set (see field_cache).
    """
    glyphs = tuple(glyphs)
    layout = compute_layout(len(glyphs), size)

    if layout.glyph_count == 0:
        logger.debug("Empty glyph set, returning an empty atlas")
        return empty_atlas()

    if not drawing_surface_available():
        logger.warning(
            "No text drawing surface available (QGuiApplication missing); "
            "using an empty 1x1 atlas for %d glyphs",
            layout.glyph_count,
        )
        return empty_atlas()

    def measure(glyph: str, font_size: float) -> float:
        return QFontMetricsF(build_glyph_font(font_families, font_size, bold)).horizontalAdvance(glyph)

    image = QImage(size, size, QImage.Format.Format_ARGB32_Premultiplied)
    image.fill(Qt.GlobalColor.transparent)

    painter = QPainter(image)
    try:
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.setRenderHint(QPainter.RenderHint.TextAntialiasing, True)
        painter.setPen(QColor(255, 255, 255))

        for i, glyph in enumerate(glyphs):
            font_size = fit_font_size(glyph, layout.cell_width, layout.cell_height, measure)
            painter.setFont(build_glyph_font(font_families, font_size, bold))
            x0, y0, x1, y1 = layout.cell_rect(i)
            painter.drawText(QRectF(x0, y0, x1 - x0, y1 - y0), Qt.AlignmentFlag.AlignCenter, glyph)
    finally:
        painter.end()

    pixels = _qimage_to_rgba(image)
    logger.info(
        "Built %dx%d glyph atlas: %d glyphs in a %dx%d grid",
        size, size, layout.glyph_count, layout.cols, layout.rows,
    )
    return AtlasTexture(image=pixels, cols=layout.cols, rows=layout.rows, glyphs=glyphs)


def _qimage_to_rgba(image: "QImage") -> np.ndarray:
    """Copy a QImage into a (H, W, 4) uint8 array with straight alpha."""
    rgba = image.convertToFormat(QImage.Format.Format_RGBA8888)
    w = rgba.width()
    h = rgba.height()

    buf = rgba.constBits()
    buf.setsize(rgba.sizeInBytes())
    bpl = rgba.bytesPerLine()
    raw = np.frombuffer(buf, dtype=np.uint8).reshape((h, bpl))
    return raw[:, : w * 4].reshape((h, w, 4)).copy()
