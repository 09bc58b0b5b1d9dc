"""
Parameter controls for a visualization.

Builds one control per PluginParameter the plugin declares:

  int / float -> slider + value label
  bool        -> checkbox
  enum        -> combo box
  color       -> line edit (hex), rejected in place when it does not parse
  text        -> multi-line editor + "Apply" button

Every edit is written straight into `visualization.config`. Regeneration
(on_config_changed) is debounced so dragging a slider does not rebuild the
particle field for every intermediate value; the text editor applies at once.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from PyQt6.QtCore import Qt, QTimer
from PyQt6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPlainTextEdit,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from .colors import parse_color
from .visualization_api import BaseVisualization, PluginParameter

logger = logging.getLogger(__name__)

APPLY_DELAY_MS = 250


class ParameterControls(QWidget):
    def __init__(self, visualization: BaseVisualization, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._visualization = visualization
        self._widgets: Dict[str, QWidget] = {}

        self._apply_timer = QTimer(self)
        self._apply_timer.setSingleShot(True)
        self._apply_timer.setInterval(APPLY_DELAY_MS)
        self._apply_timer.timeout.connect(self.apply_now)

        self._form = QFormLayout(self)
        self._build()

    # ------------------------------------------------------------------ #
    # Public
    # ------------------------------------------------------------------ #

    def widget_for(self, name: str) -> QWidget:
        return self._widgets[name]

    @property
    def apply_pending(self) -> bool:
        return self._apply_timer.isActive()

    def apply_now(self) -> None:
        """Push pending config edits to the visualization."""
        self._apply_timer.stop()
        self._visualization.on_config_changed()

    # ------------------------------------------------------------------ #
    # Building
    # ------------------------------------------------------------------ #

    def _build(self) -> None:
        params = self._visualization.parameters()
        if not params:
            self._form.addRow(QLabel("This visualization has no configurable parameters.", self))
            return

        config = self._visualization.config
        for name, param in params.items():
            widget = self._create_widget_for_parameter(param, config.get(name, param.default))
            if param.description:
                widget.setToolTip(param.description)
            self._widgets[name] = widget
            self._form.addRow(QLabel(param.label or name, self), widget)
            self._connect_parameter_widget(name, param, widget)

    def _create_widget_for_parameter(self, param: PluginParameter, current_value: Any) -> QWidget:
        if param.type == "bool":
            w = QCheckBox(self)
            w.setChecked(bool(current_value))
            return w

        if param.type == "enum" and param.choices:
            w = QComboBox(self)
            for choice in param.choices:
                w.addItem(str(choice), choice)
            index = w.findData(current_value)
            w.setCurrentIndex(max(0, index))
            return w

        if param.type == "color":
            w = QLineEdit(self)
            w.setText(current_value if isinstance(current_value, str) else str(param.default))
            w.setMaxLength(7)
            return w

        if param.type == "text":
            container = QWidget(self)
            layout = QVBoxLayout(container)
            layout.setContentsMargins(0, 0, 0, 0)
            editor = QPlainTextEdit(container)
            editor.setPlainText(str(current_value or ""))
            editor.setMaximumHeight(90)
            button = QPushButton("Apply text", container)
            layout.addWidget(editor)
            layout.addWidget(button)
            setattr(container, "_editor", editor)
            setattr(container, "_apply_button", button)
            return container

        if param.type in ("int", "float"):
            return self._create_slider(param, current_value)

        return QLabel(f"(Unsupported parameter type: {param.type})", self)

    def _create_slider(self, param: PluginParameter, current_value: Any) -> QWidget:
        container = QWidget(self)
        layout = QHBoxLayout(container)
        layout.setContentsMargins(0, 0, 0, 0)

        slider = QSlider(Qt.Orientation.Horizontal, container)
        value_label = QLabel(container)
        value_label.setMinimumWidth(60)
        setattr(container, "_slider", slider)
        setattr(container, "_value_label", value_label)
        setattr(container, "_param_type", param.type)

        if param.type == "int":
            min_v = int(param.minimum if param.minimum is not None else 0)
            max_v = max(min_v, int(param.maximum if param.maximum is not None else 100))
            step = max(1, int(param.step or 1))
            slider.setRange(min_v, max_v)
            slider.setSingleStep(step)
            slider.setPageStep(step * 10)
            try:
                value = int(current_value)
            except (TypeError, ValueError):
                value = int(param.default)
            value = max(min_v, min(max_v, value))
            slider.setValue(value)
            value_label.setText(str(value))
        else:
            # Integer slider indexing discrete float steps
            min_v = float(param.minimum if param.minimum is not None else 0.0)
            max_v = float(param.maximum if param.maximum is not None else 1.0)
            if max_v <= min_v:
                max_v = min_v + 1.0
            step = float(param.step) if param.step else (max_v - min_v) / 100.0
            num_steps = max(1, int(round((max_v - min_v) / step)))
            slider.setRange(0, num_steps)
            try:
                value = float(current_value)
            except (TypeError, ValueError):
                value = float(param.default)
            value = max(min_v, min(max_v, value))
            slider.setValue(int(round((value - min_v) / step)))
            value_label.setText(f"{value:.3g}")
            setattr(container, "_min", min_v)
            setattr(container, "_step", step)

        layout.addWidget(slider, stretch=1)
        layout.addWidget(value_label)
        return container

    # ------------------------------------------------------------------ #
    # Signals
    # ------------------------------------------------------------------ #

    def _connect_parameter_widget(self, name: str, param: PluginParameter, widget: QWidget) -> None:
        if isinstance(widget, QCheckBox):
            widget.toggled.connect(lambda checked, n=name: self._on_parameter_changed(n, bool(checked)))
            return

        if isinstance(widget, QComboBox):
            widget.currentIndexChanged.connect(
                lambda index, n=name, combo=widget: self._on_parameter_changed(n, combo.itemData(index))
            )
            return

        if isinstance(widget, QLineEdit):
            widget.editingFinished.connect(lambda n=name, edit=widget: self._on_color_edited(n, edit))
            return

        editor = getattr(widget, "_editor", None)
        if isinstance(editor, QPlainTextEdit):
            button: QPushButton = getattr(widget, "_apply_button")
            button.clicked.connect(lambda _checked=False, n=name, e=editor: self._on_text_applied(n, e))
            return

        slider = getattr(widget, "_slider", None)
        if isinstance(slider, QSlider):
            slider.valueChanged.connect(lambda idx, n=name, w=widget: self._on_slider_moved(n, w, idx))

    def _on_slider_moved(self, name: str, container: QWidget, index: int) -> None:
        value_label: QLabel = getattr(container, "_value_label")
        if getattr(container, "_param_type") == "int":
            value: Any = int(index)
            value_label.setText(str(value))
        else:
            value = float(getattr(container, "_min")) + index * float(getattr(container, "_step"))
            value_label.setText(f"{value:.3g}")
        self._on_parameter_changed(name, value)

    def _on_color_edited(self, name: str, edit: QLineEdit) -> None:
        text = edit.text().strip()
        try:
            parse_color(text)
        except ValueError:
            logger.warning("Ignoring invalid color %r for %s", text, name)
            edit.setStyleSheet("border: 1px solid #c0392b;")
            return
        edit.setStyleSheet("")
        self._on_parameter_changed(name, text)

    def _on_text_applied(self, name: str, editor: QPlainTextEdit) -> None:
        self._visualization.config[name] = editor.toPlainText()
        self.apply_now()

    def _on_parameter_changed(self, name: str, value: Any) -> None:
        if self._visualization.config.get(name) == value:
            return
        self._visualization.config[name] = value
        self._apply_timer.start()
