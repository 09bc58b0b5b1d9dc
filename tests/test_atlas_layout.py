import math

import pytest

from nebula_app.atlas import compute_layout, fit_font_size


@pytest.mark.parametrize(
    "n, cols, rows",
    [(0, 1, 1), (1, 1, 1), (2, 2, 1), (4, 2, 2), (5, 3, 2), (16, 4, 4), (17, 5, 4), (18, 5, 4)],
)
def test_grid_dimensions(n, cols, rows):
    layout = compute_layout(n, 2048)
    assert (layout.cols, layout.rows) == (cols, rows)


def test_grid_always_fits():
    for n in range(1, 300):
        layout = compute_layout(n)
        assert layout.cols == math.ceil(math.sqrt(n))
        assert layout.cols * layout.rows >= n
        assert layout.cols * (layout.rows - 1) < n


def test_invalid_layout_arguments():
    with pytest.raises(ValueError):
        compute_layout(-1)
    with pytest.raises(ValueError):
        compute_layout(3, size=0)


def test_cells_are_row_major_from_the_top():
    layout = compute_layout(18, 2048)
    assert layout.cell_of(0) == (0, 0)
    assert layout.cell_of(4) == (4, 0)
    assert layout.cell_of(7) == (2, 1)
    with pytest.raises(IndexError):
        layout.cell_of(18)

    square = compute_layout(16, 2048)
    assert square.cell_rect(5) == (512.0, 512.0, 1024.0, 1024.0)
    assert square.cell_center(0) == (256.0, 256.0)


def test_font_size_starts_at_cell_height_ratio():
    size = fit_font_size("a", 100.0, 100.0, lambda glyph, s: s * 0.5)
    assert size == pytest.approx(75.0)


def test_wide_glyph_is_shrunk_to_cell_width():
    measure = lambda glyph, s: s * 2.0
    size = fit_font_size("W", 100.0, 100.0, measure)
    assert size == pytest.approx(45.0)
    assert measure("W", size) == pytest.approx(90.0)
