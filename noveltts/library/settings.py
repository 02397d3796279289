import json

from .preferences import PreferencesStore

DARK_MODE_KEY = "dark_mode"


class Settings:
    """User-facing display settings stored alongside the catalog."""

    def __init__(self, prefs: PreferencesStore, default_dark_mode: bool = False):
        self._prefs = prefs
        self._default_dark_mode = default_dark_mode

    @property
    def dark_mode(self) -> bool:
        raw = self._prefs.get(DARK_MODE_KEY)
        if raw is None:
            return self._default_dark_mode
        try:
            return bool(json.loads(raw))
        except ValueError:
            return self._default_dark_mode

    @dark_mode.setter
    def dark_mode(self, value: bool) -> None:
        self._prefs.set(DARK_MODE_KEY, json.dumps(bool(value)))

    def reset(self) -> None:
        self._prefs.remove(DARK_MODE_KEY)

    def to_dict(self) -> dict:
        return {"dark_mode": self.dark_mode}
