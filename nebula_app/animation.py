"""
Per-frame animation state.

The frame callback never mutates captured handles: it feeds the previous
FrameState plus the clock into update() and gets a new FrameState back.
update() is O(1) and never touches particle buffers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from vispy.util.transforms import rotate, scale as scale_matrix

from .colors import _clamp

# Constant spin of the particle group (rad/s)
ROTATION_SPEED = 0.05

# Group scale in the expanded view, and how fast the scale follows its target
EXPANDED_SCALE = 0.8
SCALE_RATE = 4.0


@dataclass(frozen=True)
class FrameState:
    time: float = 0.0
    rotation_y: float = 0.0
    scale: float = 1.0


def update(
    state: FrameState,
    elapsed_time: float,
    frame_delta: float,
    is_expanded: bool,
    rotation_speed: float = ROTATION_SPEED,
    expanded_scale: float = EXPANDED_SCALE,
    scale_rate: float = SCALE_RATE,
) -> FrameState:
    """
    Advance one frame.

    - time follows the host clock (never negative),
    - the group spins by rotation_speed * frame_delta,
    - the scale eases toward expanded_scale (expanded) or 1.0, with a step of
      min(1, frame_delta * scale_rate) so it never overshoots.
    """
    delta = max(0.0, float(frame_delta))
    target = expanded_scale if is_expanded else 1.0
    step = _clamp(delta * scale_rate, 0.0, 1.0)

    rotation = (state.rotation_y + delta * rotation_speed) % (2.0 * math.pi)
    return FrameState(
        time=max(0.0, float(elapsed_time)),
        rotation_y=rotation,
        scale=state.scale + (target - state.scale) * step,
    )


def model_matrix(state: FrameState) -> np.ndarray:
    """Group transform (uniform scale, then spin around +Y), vispy row-vector convention."""
    s = state.scale
    m = np.dot(scale_matrix((s, s, s)), rotate(math.degrees(state.rotation_y), (0.0, 1.0, 0.0)))
    return m.astype(np.float32)
