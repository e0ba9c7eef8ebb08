"""
Configuration service for the XRay Annotator.

Handles loading, saving, and accessing engine settings. Configuration is
stored as JSON in ~/.config/xray_annotator/config.json following the XDG
Base Directory Specification.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

from xray_annotator.services.logging_service import get_logger, resolve_level

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "xray_annotator"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    "log_level": "INFO",
    # Screen-space hit radius, divided by zoom before hit testing
    "hit_radius_px": 15.0,
    # Extra image-space allowance around marker glyphs
    "marker_hit_allowance": 8.0,
    "draft_opacity": 0.7,
    "selection_padding_px": 5.0,
    "zoom_step": 1.2,
    # Fraction of the fitted size used when an image is loaded
    "fit_padding": 0.85,
    "annotation_colors": {
        "marker": "#f43f5e",
        "box": "#22c55e",
        "circle": "#3b82f6",
        "ellipse": "#ec4899",
        "line": "#f59e0b",
        "freehand": "#ef4444",
        "ruler": "#8b5cf6",
        "angle": "#06b6d4",
        "text": "#a855f7",
    },
}


class ConfigService:
    """
    Service for managing application configuration.

    Provides sensible defaults when the config file is missing or corrupted.
    """

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """
        Initialize the ConfigService.

        Args:
            config_path: Optional path to config file. Defaults to
                        ~/.config/xray_annotator/config.json
        """
        self._logger = get_logger(__name__)
        self._config_path = config_path or DEFAULT_CONFIG_FILE
        self._config: Dict[str, Any] = {}

        self._load()

    def _load(self) -> None:
        """Load configuration from file, using defaults if needed."""
        self._config = copy.deepcopy(DEFAULT_CONFIG)

        if not self._config_path.exists():
            self._logger.info(
                f"Config file not found at {self._config_path}. Using defaults."
            )
            self._save_to_file()
            return

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                loaded_config = json.load(f)

            if isinstance(loaded_config, dict):
                self._deep_merge(self._config, loaded_config)
                self._logger.info(f"Configuration loaded from {self._config_path}")
                # Persist any new default keys
                self._save_to_file()
            else:
                raise ValueError("Config file does not contain a valid JSON object")

        except (json.JSONDecodeError, ValueError) as e:
            self._logger.warning(
                f"Config file corrupted or invalid: {e}. Recreating with defaults."
            )
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            self._save_to_file()

        except (OSError, PermissionError) as e:
            self._logger.warning(
                f"Could not read config file: {e}. Using defaults."
            )

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override dict into base dict."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save_to_file(self) -> None:
        """Save current configuration to file."""
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self._config_path, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2)

            self._logger.debug(f"Configuration saved to {self._config_path}")

        except (OSError, PermissionError) as e:
            self._logger.error(f"Could not save config file: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: The configuration key to retrieve.
            default: Default value if key doesn't exist.
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value (in memory only).

        Note:
            Call save() to persist changes to disk.
        """
        self._config[key] = value
        self._logger.debug(f"Config key '{key}' set to '{value}'")

    def save(self) -> None:
        """Persist current configuration to disk."""
        self._save_to_file()

    # ─── Logging ──────────────────────────────────────────────────────────

    @property
    def log_level(self) -> int:
        """Get the configured log level as a logging constant."""
        return resolve_level(self.get("log_level", "INFO"))

    # ─── Hit Testing ──────────────────────────────────────────────────────

    @property
    def hit_radius_px(self) -> float:
        """Screen-space hit radius in pixels."""
        return float(self.get("hit_radius_px", DEFAULT_CONFIG["hit_radius_px"]))

    @property
    def marker_hit_allowance(self) -> float:
        return float(self.get("marker_hit_allowance", DEFAULT_CONFIG["marker_hit_allowance"]))

    # ─── Rendering ────────────────────────────────────────────────────────

    @property
    def draft_opacity(self) -> float:
        return float(self.get("draft_opacity", DEFAULT_CONFIG["draft_opacity"]))

    @property
    def selection_padding_px(self) -> float:
        return float(self.get("selection_padding_px", DEFAULT_CONFIG["selection_padding_px"]))

    @property
    def annotation_colors(self) -> Dict[str, str]:
        """Get per-kind display colors, falling back to defaults per key."""
        colors = dict(DEFAULT_CONFIG["annotation_colors"])
        colors.update(self.get("annotation_colors", {}))
        return colors

    # ─── Viewport ─────────────────────────────────────────────────────────

    @property
    def zoom_step(self) -> float:
        return float(self.get("zoom_step", DEFAULT_CONFIG["zoom_step"]))

    @property
    def fit_padding(self) -> float:
        return float(self.get("fit_padding", DEFAULT_CONFIG["fit_padding"]))
