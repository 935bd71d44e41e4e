import json

import pytest

from preferences import LANGUAGE_KEY, THEME_KEY, Preferences, localize


def test_defaults():
    prefs = Preferences()
    assert prefs.language == "en"
    assert prefs.get(THEME_KEY) == "light"


def test_set_notifies_and_persists(tmp_path):
    path = tmp_path / "prefs.json"
    prefs = Preferences(str(path))
    seen = []
    prefs.subscribe(lambda key, value: seen.append((key, value)))

    prefs.set(LANGUAGE_KEY, "ta")

    assert seen == [(LANGUAGE_KEY, "ta")]
    assert json.loads(path.read_text(encoding="utf-8"))[LANGUAGE_KEY] == "ta"
    assert Preferences(str(path)).language == "ta"


def test_setting_same_value_is_silent():
    prefs = Preferences()
    seen = []
    prefs.subscribe(lambda key, value: seen.append(value))
    prefs.set(THEME_KEY, "light")
    assert seen == []


def test_unsubscribe_stops_notifications():
    prefs = Preferences()
    seen = []
    unsubscribe = prefs.subscribe(lambda key, value: seen.append(value))
    unsubscribe()
    unsubscribe()
    prefs.set(THEME_KEY, "dark")
    assert seen == []


def test_rejects_unknown_keys_and_values():
    prefs = Preferences()
    with pytest.raises(KeyError):
        prefs.set("font", "serif")
    with pytest.raises(ValueError):
        prefs.set(LANGUAGE_KEY, "fr")
    assert prefs.language == "en"


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")
    assert Preferences(str(path)).as_dict() == {LANGUAGE_KEY: "en", THEME_KEY: "light"}


def test_localize_prefers_tamil_with_english_fallback():
    book = {"title": "Justice", "title_tamil": "நீதி", "excerpt": "Short", "excerpt_tamil": ""}

    tamil = localize(book, "ta")
    assert tamil["title"] == "நீதி"
    assert tamil["excerpt"] == "Short"
    assert localize(book, "en") == book
