from __future__ import annotations

from typing import Any, Sequence, Tuple

RGB = Tuple[float, float, float]


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def parse_color(value: Any) -> RGB:
    """
    Normalize a color to an (r, g, b) tuple of floats in [0, 1].

    Accepted forms:
      * "#RRGGBB" or "#RGB" hex strings (the leading '#' is optional),
      * a sequence of three ints, read as 0..255 channels,
      * a sequence of three floats, read as 0..1 channels.

    Raises ValueError for anything else.
    """
    if isinstance(value, str):
        return _parse_hex(value)

    if isinstance(value, Sequence) and len(value) == 3:
        channels = list(value)
        if all(isinstance(c, int) and not isinstance(c, bool) for c in channels):
            return tuple(_clamp(c / 255.0, 0.0, 1.0) for c in channels)  # type: ignore[return-value]
        try:
            return tuple(_clamp(float(c), 0.0, 1.0) for c in channels)  # type: ignore[return-value]
        except (TypeError, ValueError):
            pass

    raise ValueError(f"Unsupported color value: {value!r}")


def _parse_hex(text: str) -> RGB:
    digits = text.strip().lstrip("#")
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) != 6:
        raise ValueError(f"Invalid hex color: {text!r}")
    try:
        r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        raise ValueError(f"Invalid hex color: {text!r}") from None
    return (r / 255.0, g / 255.0, b / 255.0)


def lerp_color(bottom: RGB, top: RGB, t: float) -> RGB:
    """Per-channel linear interpolation, t = 0 gives bottom, t = 1 gives top."""
    return (
        _lerp(bottom[0], top[0], t),
        _lerp(bottom[1], top[1], t),
        _lerp(bottom[2], top[2], t),
    )
