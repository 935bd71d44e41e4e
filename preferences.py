"""
Process-wide locale and theme preferences.

One `Preferences` instance is created at startup and handed to whatever needs
it. Values live in a plain dict, optionally mirrored to a JSON file so they
survive restarts. Changing the locale notifies subscribers instead of forcing
a reload.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

LANGUAGE_KEY = "preferred-language"
THEME_KEY = "theme"

DEFAULTS = {LANGUAGE_KEY: "en", THEME_KEY: "light"}
ALLOWED = {LANGUAGE_KEY: ("en", "ta"), THEME_KEY: ("light", "dark")}

TAMIL_SUFFIX = "_tamil"

Listener = Callable[[str, str], None]


class Preferences:
    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._values: Dict[str, str] = dict(DEFAULTS)
        self._listeners: List[Listener] = []
        self._load()

    def _load(self):
        if not self.path or not self.path.exists():
            return
        try:
            saved = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Error reading preferences from %s: %s", self.path, e)
            return
        for key, value in saved.items():
            if value in ALLOWED.get(key, ()):
                self._values[key] = value

    def _save(self):
        if self.path:
            self.path.write_text(json.dumps(self._values), encoding="utf-8")

    def get(self, key: str) -> str:
        return self._values.get(key, DEFAULTS.get(key))

    def set(self, key: str, value: str):
        if key not in ALLOWED:
            raise KeyError(key)
        if value not in ALLOWED[key]:
            raise ValueError(f"{value!r} is not a valid {key}")
        if self._values.get(key) == value:
            return
        self._values[key] = value
        self._save()
        for listener in list(self._listeners):
            listener(key, value)

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    @property
    def language(self) -> str:
        return self.get(LANGUAGE_KEY)


def localize(entity: Dict[str, Any], lang: str) -> Dict[str, Any]:
    """Pick the Tamil side of every `<field>` / `<field>_tamil` pair for `ta`.

    English is the fallback when the Tamil value is empty.
    """
    out = dict(entity)
    if lang != "ta":
        return out
    for key, value in entity.items():
        if key.endswith(TAMIL_SUFFIX):
            base = key[: -len(TAMIL_SUFFIX)]
            if base in out and value:
                out[base] = value
    return out


preferences = Preferences(os.getenv("PREFERENCES_PATH"))
