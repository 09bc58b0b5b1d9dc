import logging

import numpy as np
import pytest

from nebula_app import atlas as atlas_module
from nebula_app.atlas import build_word_atlas, compute_layout, empty_atlas


def test_empty_glyph_set_gives_empty_texture():
    tex = build_word_atlas([])
    assert tex.image.shape == (1, 1, 4)
    assert (tex.cols, tex.rows) == (1, 1)
    assert tex.is_empty
    assert not tex.image.any()


def test_missing_drawing_surface_falls_back(monkeypatch, caplog):
    monkeypatch.setattr(atlas_module, "drawing_surface_available", lambda: False)
    with caplog.at_level(logging.WARNING, logger="nebula_app.atlas"):
        tex = build_word_atlas(["a", "b"])
    assert tex.image.shape == (1, 1, 4)
    assert (tex.cols, tex.rows) == (1, 1)
    assert "No text drawing surface" in caplog.text


def test_upload_flag():
    tex = empty_atlas()
    assert tex.needs_upload
    tex.mark_uploaded()
    assert not tex.needs_upload


def test_glyphs_are_drawn_in_their_cells(qt_app):
    glyphs = ["A", "B", "C"]
    tex = build_word_atlas(glyphs, size=64)
    assert tex.image.shape == (64, 64, 4)
    assert tex.image.dtype == np.uint8
    assert (tex.cols, tex.rows) == (2, 2)
    assert tex.glyphs == tuple(glyphs)

    alpha = tex.image[..., 3]
    if not alpha.any():
        pytest.skip("no font available to the offscreen platform")

    layout = compute_layout(len(glyphs), 64)
    for i in range(len(glyphs)):
        x0, y0, x1, y1 = (int(v) for v in layout.cell_rect(i))
        assert alpha[y0:y1, x0:x1].any(), f"glyph {i} missing from its cell"

    # Fourth cell of the 2x2 grid is unused
    assert not alpha[32:64, 32:64].any()

    # Glyphs are white
    opaque = alpha == 255
    assert (tex.image[opaque][:, :3] == 255).all()
