"""Scenario preset loader.

Loads conservative / base / optimistic overlays from JSON files and
merges them onto an AssumptionSet. Presets only name the fields they
change; everything else keeps the caller's values.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from bess_finance.models.project import AssumptionSet

logger = logging.getLogger(__name__)

_DEFAULT_PRESET_DIR = Path(__file__).resolve().parent.parent / "resources" / "presets"

_METADATA_KEYS = ("name", "description", "scenario_label")


class ScenarioPresetLibrary:
    """Manages loading and applying scenario presets.

    Scans a directory for JSON preset files. Each file holds a ``name``,
    optional ``description`` and ``scenario_label``, and one object per
    AssumptionSet section with the fields to override.

    Args:
        preset_dir: Directory containing preset JSON files. Defaults to
            the presets shipped with the package.
    """

    def __init__(self, preset_dir: Optional[str] = None):
        self.preset_dir = Path(preset_dir) if preset_dir else _DEFAULT_PRESET_DIR
        self._presets: Dict[str, dict] = {}
        self._load_all()

    def _load_all(self) -> None:
        """Load all JSON files from the preset directory."""
        if not self.preset_dir.exists():
            logger.warning("Preset directory %s does not exist", self.preset_dir)
            return
        for path in sorted(self.preset_dir.glob("*.json")):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Skipping preset file %s: %s", path.name, exc)
                continue
            key = data.get("name", path.stem)
            self._presets[key] = data

    def get_preset_names(self) -> List[str]:
        """Return sorted list of available preset names."""
        return sorted(self._presets.keys())

    def get_preset_metadata(self, name: str) -> Dict[str, str]:
        """Return description and scenario label for a preset."""
        preset = self._get(name)
        return {
            "description": preset.get("description", ""),
            "scenario_label": preset.get("scenario_label", name),
        }

    def get_overrides(self, name: str) -> Dict[str, object]:
        """Return a preset as flat ``section.field`` overrides."""
        preset = self._get(name)
        overrides = {}
        for section, values in preset.items():
            if section in _METADATA_KEYS or not isinstance(values, dict):
                continue
            for field_name, value in values.items():
                overrides[f"{section}.{field_name}"] = value
        return overrides

    def apply_preset(self, assumptions: AssumptionSet, name: str) -> AssumptionSet:
        """Merge a preset onto an assumption set.

        Args:
            assumptions: Base assumptions; left unchanged.
            name: Preset name as returned by get_preset_names().

        Returns:
            A new AssumptionSet with the preset's fields applied.

        Raises:
            KeyError: If name is not found.
        """
        overrides = self.get_overrides(name)
        logger.info("Applying preset %r (%d fields)", name, len(overrides))
        return assumptions.with_overrides(overrides)

    def _get(self, name: str) -> dict:
        if name not in self._presets:
            raise KeyError(f"Preset '{name}' not found. Available: {self.get_preset_names()}")
        return self._presets[name]
