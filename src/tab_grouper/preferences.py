import json
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError
from rich.markup import escape

from tab_grouper.errors import PreferenceLoadError
from tab_grouper.types.preferences import Preferences
from tab_grouper.utils.config_dir import get_config_dir
from tab_grouper.utils.logger import logger

PREFERENCES_FILE_NAME = "preferences.json"


def default_preferences_path() -> Path:
    return get_config_dir() / PREFERENCES_FILE_NAME


def read_preferences(path: Path) -> Preferences:
    """Read preferences from disk.

    Raises:
        PreferenceLoadError: If the file exists but cannot be read or validated
    """
    if not path.exists():
        return Preferences()
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise PreferenceLoadError(f"Expected a JSON object in {path}")
        return Preferences.from_partial(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise PreferenceLoadError(f"Could not read preferences from {path}: {e}") from e


class PreferenceStore:
    """User preferences persisted as JSON in the user config directory."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path or default_preferences_path()

    def load(self) -> Preferences:
        """Load preferences, falling back to the defaults on any failure."""
        try:
            prefs = read_preferences(self.path)
            logger.debug(f"Loaded preferences from {self.path}")
            return prefs
        except PreferenceLoadError as e:
            logger.error(escape(str(e)))
            return Preferences()

    def save(self, prefs: Preferences) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(prefs.model_dump(mode="json"), f, indent=2)
            logger.debug(f"Saved preferences to {self.path}")
            return True
        except OSError as e:
            logger.error(f"Error saving preferences: {e}")
            return False

    def update(self, key: str, value: Any) -> Optional[Preferences]:
        """Change a single preference and persist it.

        Returns:
            The updated preferences, or None if the key is unknown, the value
            is invalid or the save failed (the stored value is left unchanged)
        """
        prefs = self.load()
        if key not in Preferences.model_fields:
            logger.warning(f"Unknown preference: {key}")
            return None

        try:
            updated = Preferences.model_validate({**prefs.model_dump(), key: value})
        except ValidationError as e:
            logger.warning(f"Invalid value for preference {key}: {escape(str(e))}")
            return None

        if not self.save(updated):
            return None
        return updated

    def clear(self) -> bool:
        try:
            if self.path.exists():
                self.path.unlink()
            logger.debug("Cleared stored preferences")
            return True
        except OSError as e:
            logger.error(f"Error clearing preferences: {e}")
            return False
