"""
Nebula - a glyph particle sphere rendered with VisPy.

The package is split leaf-first:

  * glyph_set       - ordered, deduplicated glyphs from a source text
  * atlas           - packs the glyphs into one square RGBA texture
  * particle_field  - rejection-sampled particles on a sphere
  * shader_program  - buffer layout + GLSL point-sprite program
  * animation       - pure per-frame state update
  * field_cache     - cached, atomically swapped GPU-side resources
"""

__version__ = "0.3.0"
