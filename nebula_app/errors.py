from __future__ import annotations


class NebulaError(Exception):
    """Base class for errors raised by the nebula package."""


class GenerationError(NebulaError):
    """Rejection sampling could not reach the requested particle count."""


class ShaderLayoutError(NebulaError):
    """Attribute buffers and the shader program disagree on the layout."""
