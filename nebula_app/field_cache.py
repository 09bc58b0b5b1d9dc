"""
Cached sphere resources.

Atlas and particle field are derived data: they only change when the count,
radius, colors or glyph set change. The cache keys them by a structural hash
of those inputs, regenerates on a miss, and publishes the result as ONE
immutable SphereResources object so a frame never sees a half-updated set.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .atlas import AtlasTexture, build_word_atlas
from .colors import parse_color
from .config import SphereSettings
from .glyph_set import extract_glyphs
from .particle_field import ParticleField, generate_particle_field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SphereResources:
    key: str
    glyphs: Tuple[str, ...]
    atlas: AtlasTexture
    field: ParticleField


def _digest(payload: object) -> str:
    text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def atlas_key(glyphs: Tuple[str, ...], settings: SphereSettings) -> str:
    return _digest(["atlas", list(glyphs), settings.atlas_size, settings.font_bold])


def resource_key(settings: SphereSettings) -> str:
    """Structural hash of (count, radius, color_top, color_bottom, glyph set, seed, atlas)."""
    glyphs = extract_glyphs(settings.source_text)
    return _digest(
        [
            "field",
            settings.count,
            round(settings.radius, 9),
            list(parse_color(settings.color_top)),
            list(parse_color(settings.color_bottom)),
            glyphs,
            settings.seed,
            settings.atlas_size,
            settings.font_bold,
        ]
    )


class SphereResourceCache:
    """
    Holds the current SphereResources and rebuilds them on a key change.

    The atlas is cached separately (keyed by glyphs + atlas options) so that
    changing only the count or colors does not rasterize the glyphs again.
    """

    def __init__(
        self,
        atlas_builder: Callable[..., AtlasTexture] = build_word_atlas,
        field_generator: Callable[..., ParticleField] = generate_particle_field,
    ) -> None:
        self._atlas_builder = atlas_builder
        self._field_generator = field_generator
        self._current: Optional[SphereResources] = None
        self._atlas_key: Optional[str] = None
        self._atlas: Optional[AtlasTexture] = None

    @property
    def current(self) -> Optional[SphereResources]:
        return self._current

    def get(self, settings: SphereSettings) -> SphereResources:
        """
        Return resources for `settings`, regenerating only on a cache miss.

        If generation fails the previous resources stay current and the
        error propagates to the caller.
        """
        key = resource_key(settings)
        current = self._current
        if current is not None and current.key == key:
            return current

        glyphs = tuple(extract_glyphs(settings.source_text))

        a_key = atlas_key(glyphs, settings)
        # A fallback (empty) atlas is retried, a drawing surface may exist now
        reusable = self._atlas is not None and not (self._atlas.is_empty and glyphs)
        if reusable and self._atlas_key == a_key:
            atlas = self._atlas
        else:
            atlas = self._atlas_builder(glyphs, size=settings.atlas_size, bold=settings.font_bold)

        field = self._field_generator(
            settings.count,
            settings.radius,
            settings.color_top,
            settings.color_bottom,
            len(glyphs),
            rng=settings.seed,
        )

        resources = SphereResources(key=key, glyphs=glyphs, atlas=atlas, field=field)
        # Single reference swap; readers see either the old or the new bundle
        self._atlas_key = a_key
        self._atlas = atlas
        self._current = resources
        logger.info(
            "Regenerated sphere: %d particles, %d glyphs (%dx%d atlas grid)",
            len(field), len(glyphs), atlas.cols, atlas.rows,
        )
        return resources

    def clear(self) -> None:
        self._current = None
        self._atlas = None
        self._atlas_key = None
