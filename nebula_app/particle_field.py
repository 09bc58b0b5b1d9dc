"""
Particle field generation.

Particles are sampled on a sphere of radius R (with a +/-5% radial jitter)
and thinned by rejection sampling so that the poles are denser than the
equator:

    density_val = |y / R|                      0 at the equator, 1 at the poles
    p_accept    = 0.25 + 0.75 * density_val^2.5

Each accepted particle also gets:
  * a color interpolated from the bottom color (south pole) to the top color
    (north pole) along the signed height,
  * three animation seeds in [0, 1),
  * a scale factor (larger at the equator, smaller at the poles, jittered),
  * a glyph index into the atlas.

Random draws happen in a fixed order per candidate so that a seeded
`random.Random` reproduces the exact same field:

    u, v, radial jitter, acceptance, [seed x, seed y, seed z, scale jitter, glyph]
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import numpy as np

from .colors import _clamp, lerp_color, parse_color
from .errors import GenerationError

logger = logging.getLogger(__name__)

# Hard cap on candidate iterations, as a multiple of the requested count.
MAX_ITERATIONS_FACTOR = 50

MIN_DENSITY = 0.25
DENSITY_EXPONENT = 2.5

RandomSource = Union[None, int, random.Random]

# Largest float32 below 1.0; seeds must stay in [0, 1) after the float32 cast.
_MAX_SEED = float(np.nextafter(np.float32(1.0), np.float32(0.0)))


def pole_density(density_val: float) -> float:
    """Acceptance probability: 0.25 at the equator, 1.0 at the poles."""
    return MIN_DENSITY + (1.0 - MIN_DENSITY) * density_val ** DENSITY_EXPONENT


def base_scale(density_val: float) -> float:
    """Scale before jitter: 2.5 at the equator, 1.0 at the poles."""
    return 2.5 - 1.5 * density_val


@dataclass(frozen=True)
class ParticleField:
    """
    Five parallel float32 arrays of the same length.

    positions     (C, 3)
    colors        (C, 3)  in [0, 1]
    randoms       (C, 3)  in [0, 1)
    scales        (C,)
    glyph_indices (C,)    non-negative integer values
    """

    positions: np.ndarray
    colors: np.ndarray
    randoms: np.ndarray
    scales: np.ndarray
    glyph_indices: np.ndarray

    def __len__(self) -> int:
        return int(self.positions.shape[0])

    @property
    def count(self) -> int:
        return len(self)


def _as_rng(rng: RandomSource) -> random.Random:
    if rng is None:
        return random.Random()
    if isinstance(rng, random.Random):
        return rng
    return random.Random(rng)


def generate_particle_field(
    count: int,
    radius: float,
    color_top: Any,
    color_bottom: Any,
    glyph_count: int,
    rng: RandomSource = None,
    max_iterations: Optional[int] = None,
    density: Callable[[float], float] = pole_density,
) -> ParticleField:
    """
    Generate exactly `count` particles on a sphere of `radius`.

    `rng` may be None (fresh unseeded generator), an int seed, or a
    random.Random instance. `density` maps density_val to an acceptance
    probability and is only overridden by tests / experiments.

    Raises:
        ValueError: invalid count, radius, glyph_count or colors.
        GenerationError: the iteration cap was hit before `count` particles
            were accepted. No partial field is ever returned.
    """
    count = int(count)
    radius = float(radius)
    glyph_count = int(glyph_count)
    if count < 1:
        raise ValueError(f"count must be a positive integer, got {count}")
    if not radius > 0.0 or not math.isfinite(radius):
        raise ValueError(f"radius must be a positive real, got {radius}")
    if glyph_count < 0:
        raise ValueError(f"glyph_count must be >= 0, got {glyph_count}")

    top = parse_color(color_top)
    bottom = parse_color(color_bottom)
    rnd = _as_rng(rng)

    limit = MAX_ITERATIONS_FACTOR * count if max_iterations is None else int(max_iterations)

    positions = np.empty((count, 3), dtype=np.float32)
    colors = np.empty((count, 3), dtype=np.float32)
    randoms = np.empty((count, 3), dtype=np.float32)
    scales = np.empty(count, dtype=np.float32)
    glyph_indices = np.zeros(count, dtype=np.float32)

    two_pi = 2.0 * math.pi
    accepted = 0
    iterations = 0

    while accepted < count:
        if iterations >= limit:
            raise GenerationError(
                f"Rejection sampling accepted {accepted}/{count} particles "
                f"within the {limit} iteration cap"
            )
        iterations += 1

        # 1. Uniform point on the sphere, y is the polar axis
        u = rnd.random()
        v = rnd.random()
        theta = two_pi * u
        phi = math.acos(2.0 * v - 1.0)
        r = radius * (0.95 + 0.1 * rnd.random())

        sin_phi = math.sin(phi)
        x = r * sin_phi * math.cos(theta)
        y = r * math.cos(phi)
        z = r * sin_phi * math.sin(theta)

        # 2. Pole-biased thinning
        normalized_y = y / radius
        density_val = abs(normalized_y)
        if rnd.random() > density(density_val):
            continue

        i = accepted
        positions[i] = (x, y, z)

        # 3. Bottom color at the south pole, top color at the north pole
        t = _clamp((normalized_y + 1.0) * 0.5, 0.0, 1.0)
        colors[i] = lerp_color(bottom, top, t)

        # 4. Animation seeds
        randoms[i] = (
            min(rnd.random(), _MAX_SEED),
            min(rnd.random(), _MAX_SEED),
            min(rnd.random(), _MAX_SEED),
        )

        # 5. Sparse equator -> larger, dense poles -> smaller
        scales[i] = base_scale(density_val) * (0.8 + 0.5 * rnd.random())

        # 6. Glyph index
        if glyph_count > 0:
            glyph_indices[i] = min(int(rnd.random() * glyph_count), glyph_count - 1)

        accepted += 1

    logger.debug(
        "Generated %d particles (R=%.3f) in %d iterations, acceptance %.3f",
        count, radius, iterations, count / float(iterations),
    )

    for arr in (positions, colors, randoms, scales, glyph_indices):
        arr.flags.writeable = False

    return ParticleField(
        positions=positions,
        colors=colors,
        randoms=randoms,
        scales=scales,
        glyph_indices=glyph_indices,
    )
