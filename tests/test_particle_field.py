import random

import numpy as np
import pytest

from nebula_app.errors import GenerationError
from nebula_app.particle_field import base_scale, generate_particle_field, pole_density

RADIUS = 3.0


@pytest.fixture(scope="module")
def field():
    return generate_particle_field(2000, RADIUS, "#FF0000", "#0000FF", 7, rng=1234)


def test_exact_count_and_dtypes(field):
    assert len(field) == 2000
    assert field.count == 2000
    assert field.positions.shape == (2000, 3)
    assert field.colors.shape == (2000, 3)
    assert field.randoms.shape == (2000, 3)
    assert field.scales.shape == (2000,)
    assert field.glyph_indices.shape == (2000,)
    for arr in (field.positions, field.colors, field.randoms, field.scales, field.glyph_indices):
        assert arr.dtype == np.float32


def test_radial_jitter_bounds(field):
    norms = np.linalg.norm(field.positions.astype(np.float64), axis=1)
    assert norms.min() >= 0.95 * RADIUS - 1e-4
    assert norms.max() <= 1.05 * RADIUS + 1e-4


def test_colors_follow_height(field):
    # bottom (blue) at the south pole, top (red) at the north pole
    t = np.clip((field.positions[:, 1].astype(np.float64) / RADIUS + 1.0) * 0.5, 0.0, 1.0)
    expected = np.stack([t, np.zeros_like(t), 1.0 - t], axis=1)
    np.testing.assert_allclose(field.colors, expected, atol=1e-5)

    north = field.positions[:, 1].argmax()
    south = field.positions[:, 1].argmin()
    assert field.colors[north, 0] > 0.95
    assert field.colors[south, 2] > 0.95
    assert field.colors.min() >= 0.0
    assert field.colors.max() <= 1.0


def test_seeds_in_unit_interval(field):
    assert field.randoms.min() >= 0.0
    assert field.randoms.max() < 1.0


def test_glyph_indices_in_range(field):
    idx = field.glyph_indices
    assert idx.min() >= 0
    assert idx.max() <= 6
    np.testing.assert_array_equal(idx, np.floor(idx))
    # every glyph gets used with 2000 particles
    assert set(np.unique(idx).astype(int)) == set(range(7))


def test_no_glyphs_gives_zero_indices():
    f = generate_particle_field(50, 1.0, "#FFFFFF", "#000000", 0, rng=3)
    assert not f.glyph_indices.any()


def test_scales_shrink_toward_the_poles(field):
    density_val = np.abs(field.positions[:, 1].astype(np.float64)) / RADIUS
    base = base_scale(density_val)
    assert (field.scales >= base * 0.8 - 1e-5).all()
    assert (field.scales <= base * 1.3 + 1e-5).all()


def test_poles_are_denser_than_the_equator(field):
    h = np.abs(field.positions[:, 1]) / RADIUS
    equator = np.count_nonzero(h < 0.2)
    poles = np.count_nonzero(h > 0.8)
    assert poles > 2 * equator


def test_density_curve():
    assert pole_density(0.0) == pytest.approx(0.25)
    assert pole_density(1.0) == pytest.approx(1.0)
    assert base_scale(0.0) == pytest.approx(2.5)
    assert base_scale(1.0) == pytest.approx(1.0)


def test_seeded_generation_is_reproducible():
    a = generate_particle_field(300, 2.0, "#FFB800", "#FFFFFF", 5, rng=42)
    b = generate_particle_field(300, 2.0, "#FFB800", "#FFFFFF", 5, rng=random.Random(42))
    for name in ("positions", "colors", "randoms", "scales", "glyph_indices"):
        np.testing.assert_array_equal(getattr(a, name), getattr(b, name))

    c = generate_particle_field(300, 2.0, "#FFB800", "#FFFFFF", 5, rng=43)
    assert not np.array_equal(a.positions, c.positions)


def test_arrays_are_read_only(field):
    with pytest.raises(ValueError):
        field.positions[0, 0] = 0.0


def test_iteration_cap_raises():
    with pytest.raises(GenerationError):
        generate_particle_field(10, 1.0, "#FFFFFF", "#000000", 1, rng=0, density=lambda d: 0.0)
    with pytest.raises(GenerationError):
        generate_particle_field(1000, 1.0, "#FFFFFF", "#000000", 1, rng=0, max_iterations=10)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"count": 0},
        {"count": -5},
        {"radius": 0.0},
        {"radius": -1.0},
        {"radius": float("nan")},
        {"glyph_count": -1},
        {"color_top": "not a color"},
    ],
)
def test_invalid_arguments(kwargs):
    args = {
        "count": 10,
        "radius": 1.0,
        "color_top": "#FFFFFF",
        "color_bottom": "#000000",
        "glyph_count": 3,
    }
    args.update(kwargs)
    with pytest.raises(ValueError):
        generate_particle_field(**args)


def test_two_glyph_scenario():
    from nebula_app.atlas import compute_layout
    from nebula_app.glyph_set import extract_glyphs

    glyphs = extract_glyphs("aab")
    assert glyphs == ["a", "b"]
    layout = compute_layout(len(glyphs))
    assert (layout.cols, layout.rows) == (2, 1)

    f = generate_particle_field(1000, 2.5, (255, 0, 0), (0, 0, 255), len(glyphs), rng=77)
    assert len(f) == 1000
    upper = f.positions[:, 1] > 0
    lower = f.positions[:, 1] < 0
    assert (f.colors[upper, 0] > f.colors[upper, 2]).all()
    assert (f.colors[lower, 2] > f.colors[lower, 0]).all()
    assert f.glyph_indices.max() <= 1
