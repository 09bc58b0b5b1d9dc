import pytest

pytest.importorskip("PyQt6.QtWidgets")

from PyQt6.QtWidgets import QCheckBox, QLineEdit

from nebula_app.atlas import empty_atlas
from nebula_app.controls_panel import ParameterControls
from nebula_app.field_cache import SphereResourceCache
from nebula_app.glyph_sphere import GlyphSphereVisualization


@pytest.fixture
def visualization():
    cache = SphereResourceCache(atlas_builder=lambda glyphs, size, bold: empty_atlas())
    return GlyphSphereVisualization(config={"count": 100, "seed": 3, "source_text": "abc"}, cache=cache)


@pytest.fixture
def controls(qt_app, visualization):
    return ParameterControls(visualization)


def test_one_control_per_parameter(controls, visualization):
    for name in visualization.parameters():
        assert controls.widget_for(name) is not None
    assert isinstance(controls.widget_for("font_bold"), QCheckBox)
    assert isinstance(controls.widget_for("color_top"), QLineEdit)


def test_controls_start_from_the_config(controls):
    count = controls.widget_for("count")
    assert count._slider.value() == 100
    assert count._value_label.text() == "100"
    assert controls.widget_for("color_top").text() == "#FFB800"
    assert controls.widget_for("source_text")._editor.toPlainText() == "abc"


def test_int_slider_writes_config_and_regenerates(controls, visualization):
    controls.widget_for("count")._slider.setValue(300)
    assert visualization.config["count"] == 300
    assert controls.apply_pending

    controls.apply_now()
    assert not controls.apply_pending
    assert len(visualization._cache.current.field) == 300


def test_float_slider_maps_steps_to_values(controls, visualization):
    radius = controls.widget_for("radius")
    # minimum 0.5, step 0.1
    radius._slider.setValue(15)
    assert visualization.config["radius"] == pytest.approx(2.0)
    assert radius._value_label.text() == "2"


def test_checkbox_writes_bool(controls, visualization):
    controls.widget_for("font_bold").setChecked(False)
    assert visualization.config["font_bold"] is False


def test_color_edit_accepts_valid_and_rejects_invalid(controls, visualization):
    edit = controls.widget_for("color_top")
    edit.setText("#00FF00")
    edit.editingFinished.emit()
    assert visualization.config["color_top"] == "#00FF00"

    edit.setText("#nope")
    edit.editingFinished.emit()
    assert visualization.config["color_top"] == "#00FF00"
    assert edit.styleSheet() != ""


def test_text_is_applied_at_once(controls, visualization):
    container = controls.widget_for("source_text")
    container._editor.setPlainText("xyzw")
    container._apply_button.click()
    assert visualization.config["source_text"] == "xyzw"
    assert not controls.apply_pending
    assert visualization._cache.current.glyphs == ("x", "y", "z", "w")
