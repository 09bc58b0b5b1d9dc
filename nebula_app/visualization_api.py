from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from PyQt6.QtWidgets import QWidget


@dataclass
class PluginParameter:
    """
    Description of a single configurable parameter of a visualization.

    For numeric parameters (type == "int" or "float"), the optional `step`
    value controls the increment used by slider widgets in the UI.
    """
    name: str
    label: str
    type: str  # "int", "float", "bool", "enum", "color", "text"
    default: Any
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    choices: Optional[List[Any]] = None
    step: Optional[float] = None
    description: str = ""


class BaseVisualization(ABC):
    """
    Base class for visualizations hosted by the Nebula window.

    A visualization owns a config dict (JSON-friendly values only) and builds
    the QWidget that renders it. The host drives activation and can snapshot
    or restore the configuration.
    """

    plugin_id: str = "base_visualization"
    plugin_name: str = "Base visualization"
    plugin_description: str = ""
    plugin_author: str = "Unknown"
    plugin_version: str = "0.1.0"

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        self.config: Dict[str, Any] = config or {}

    @classmethod
    def parameters(cls) -> Dict[str, PluginParameter]:
        """
        Return a dictionary of parameter specifications for this visualization.

        Keys must be parameter names, values PluginParameter instances.
        """
        return {}

    @abstractmethod
    def create_widget(self, parent: Optional[QWidget] = None) -> QWidget:
        """
        Return the QWidget that will render the visualization.
        """
        raise NotImplementedError

    def on_activate(self) -> None:
        """Called when the visualization is shown by the host."""
        pass

    def on_deactivate(self) -> None:
        """Called when the visualization is hidden or removed."""
        pass

    def on_config_changed(self) -> None:
        """Called by the host after it modified `self.config` in place."""
        pass

    def apply_preview_settings(self, width: int, height: int, fps: int) -> None:
        """
        Optional hook telling the visualization the preview size and the
        nominal frame rate. The default implementation does nothing.
        """
        return

    def save_state(self) -> Dict[str, Any]:
        """Return a JSON-serializable snapshot of the configuration."""
        return dict(self.config)

    def load_state(self, state: Dict[str, Any]) -> None:
        """Restore configuration from a previously saved state."""
        self.config.update(state)
        self.on_config_changed()
