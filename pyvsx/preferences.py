import json
import logging
import os

PREFERENCES_FILENAME = "pyvsx-prefs.json"
INPUT_VISIBILITIES = "inputVisibilities"


class PreferencesStore:
    """Per-input user preferences kept in a JSON file, read and written wholesale."""

    def __init__(self, storage_path: str):
        self._logger = logging.getLogger(__name__)
        self._filename = os.path.join(storage_path, PREFERENCES_FILENAME)

    @property
    def filename(self) -> str:
        return self._filename

    def _load(self) -> dict:
        try:
            with open(self._filename, "r", encoding="utf-8") as f:
                preferences = json.load(f)
        except (OSError, ValueError):
            return {INPUT_VISIBILITIES: {}}
        self._logger.debug(f"Read preferences: {preferences}")
        return preferences

    def _save(self, preferences: dict):
        self._logger.info(f"Saving preferences {preferences} to {self._filename}")
        with open(self._filename, "w", encoding="utf-8") as f:
            json.dump(preferences, f)

    def is_input_hidden(self, input_id: str) -> bool:
        """Whether the user hid this input. Unknown inputs are hidden."""
        preferences = self._load()
        visibilities = preferences.get(INPUT_VISIBILITIES) if isinstance(preferences, dict) else None
        if not isinstance(visibilities, dict):
            return True
        return bool(visibilities.get(input_id, True))

    def set_input_hidden(self, input_id: str, hidden: bool):
        preferences = self._load()
        if not isinstance(preferences, dict) or not isinstance(preferences.get(INPUT_VISIBILITIES), dict):
            self._logger.warning(f"Invalid preferences in {self._filename}, cannot save")
            return
        preferences[INPUT_VISIBILITIES][input_id] = hidden
        self._save(preferences)
