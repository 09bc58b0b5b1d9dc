"""
Desktop entry point: one window hosting the Glyph Sphere.

Double click on a glyph of the sphere switches to the expanded view (the
sphere eases down in scale), Escape returns to the normal view. A dock on the
right holds the plugin's parameter controls. The animation pauses while the
window is minimized.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from PyQt6.QtCore import QEvent, Qt
from PyQt6.QtGui import QFontDatabase, QKeySequence, QShortcut
from PyQt6.QtWidgets import QApplication, QDockWidget, QMainWindow, QScrollArea

from .controls_panel import ParameterControls
from .glyph_sphere import DEFAULT_FPS, GlyphSphereVisualization
from .logging_config import resolve_level, setup_logging

logger = logging.getLogger(__name__)

DEFAULT_SIZE = (960, 600)


class MainWindow(QMainWindow):
    def __init__(
        self,
        visualization: GlyphSphereVisualization,
        preview_size: Tuple[int, int] = DEFAULT_SIZE,
        fps: int = DEFAULT_FPS,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Nebula Core")
        self._visualization = visualization
        self._visualization.set_on_interact(self._expand)
        self.setCentralWidget(self._visualization.create_widget(self))

        self._controls = ParameterControls(self._visualization)
        scroll = QScrollArea(self)
        scroll.setWidgetResizable(True)
        scroll.setWidget(self._controls)
        dock = QDockWidget("Parameters", self)
        dock.setObjectName("parameters_dock")
        dock.setWidget(scroll)
        self.addDockWidget(Qt.DockWidgetArea.RightDockWidgetArea, dock)

        width, height = preview_size
        self._visualization.apply_preview_settings(width, height, fps)
        self.resize(width + 320, height)

        # Window-wide: the GL canvas keeps keyboard focus
        self._escape = QShortcut(QKeySequence(Qt.Key.Key_Escape), self)
        self._escape.setContext(Qt.ShortcutContext.WindowShortcut)
        self._escape.activated.connect(self._collapse)

        self._visualization.on_activate()

    @property
    def controls(self) -> ParameterControls:
        return self._controls

    def _expand(self) -> None:
        if not self._visualization.expanded:
            logger.debug("Expanded view on")
            self._visualization.set_expanded(True)

    def _collapse(self) -> None:
        if self._visualization.expanded:
            logger.debug("Expanded view off")
            self._visualization.set_expanded(False)

    def changeEvent(self, event) -> None:  # type: ignore[override]
        if event.type() == QEvent.Type.WindowStateChange:
            if self.isMinimized():
                self._visualization.on_deactivate()
            else:
                self._visualization.on_activate()
        super().changeEvent(event)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._visualization.on_deactivate()
        super().closeEvent(event)


def load_custom_fonts(fonts_dir: Optional[Path] = None) -> int:
    """
    Register every .ttf / .otf file of `fonts_dir` (default: <project_root>/fonts)
    with QFontDatabase, so glyphs missing from system fonts can still be
    rasterized into the atlas. Returns the number of fonts loaded.
    """
    if fonts_dir is None:
        fonts_dir = Path(__file__).resolve().parent.parent / "fonts"
    if not fonts_dir.is_dir():
        return 0

    loaded = 0
    for pattern in ("*.ttf", "*.otf"):
        for font_path in sorted(fonts_dir.glob(pattern)):
            if QFontDatabase.addApplicationFont(str(font_path)) < 0:
                logger.warning("Could not load font %s", font_path)
                continue
            loaded += 1
    logger.info("Loaded %d custom fonts from %s", loaded, fonts_dir)
    return loaded


def _parse_size(text: str) -> Tuple[int, int]:
    try:
        width, height = (int(part) for part in text.lower().split("x"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {text!r}") from None
    if width < 1 or height < 1:
        raise argparse.ArgumentTypeError(f"size must be positive, got {text!r}")
    return width, height


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="nebula", description="Glyph particle sphere")
    parser.add_argument("--count", type=int, default=None, help="number of particles")
    parser.add_argument("--radius", type=float, default=None, help="sphere radius")
    parser.add_argument("--text", default=None, help="source text (default: built-in poem)")
    parser.add_argument("--seed", type=int, default=None, help="seed for a reproducible field")
    parser.add_argument("--fps", type=int, default=DEFAULT_FPS, help="animation frame rate")
    parser.add_argument("--size", type=_parse_size, default=DEFAULT_SIZE, metavar="WxH", help="sphere view size")
    parser.add_argument("--fonts-dir", type=Path, default=None, help="extra .ttf/.otf fonts for the atlas")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    parser.add_argument("--log-file", default=None, help="also write logs to this file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    setup_logging(resolve_level(args.debug), args.log_file)

    config = {}
    if args.count is not None:
        config["count"] = args.count
    if args.radius is not None:
        config["radius"] = args.radius
    if args.text is not None:
        config["source_text"] = args.text
    if args.seed is not None:
        config["seed"] = args.seed

    qt_app = QApplication(sys.argv[:1])

    # Fonts must be registered before the atlas is rasterized
    load_custom_fonts(args.fonts_dir)

    window = MainWindow(GlyphSphereVisualization(config=config), preview_size=args.size, fps=args.fps)
    window.show()
    return qt_app.exec()


if __name__ == "__main__":
    sys.exit(main())
