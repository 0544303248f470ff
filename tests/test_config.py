"""Tests for taleweaver.config."""

import pytest
from pydantic import ValidationError

from taleweaver.config import (
    API_KEY_ENV,
    ART_STYLE_PROMPTS,
    ConnectionSettings,
    JsonConfigStore,
    MemoryConfigStore,
    art_style_prompt,
    get_api_key,
    load_settings,
    set_api_key,
    update_settings,
)


class TestSettings:
    def test_defaults(self) -> None:
        settings = load_settings(MemoryConfigStore())
        assert settings.art_style == "ghibli"
        assert settings.segments_per_turn == 2
        assert settings.auto_save is True

    def test_partial_update_ignores_unknown(self) -> None:
        store = MemoryConfigStore()
        settings = update_settings(store, {"gender": "female", "theme": "dark"})
        assert settings.gender == "female"
        assert "theme" not in store.get("settings")
        assert load_settings(store).gender == "female"

    def test_stored_unknown_keys_ignored(self) -> None:
        store = MemoryConfigStore({"settings": {"art_style": "comic", "volume": 3}})
        assert load_settings(store).art_style == "comic"

    def test_invalid_stored_values_fall_back(self) -> None:
        store = MemoryConfigStore(
            {"settings": {"segments_per_turn": 7, "art_style": "crayon", "gender": "female"}}
        )
        settings = load_settings(store)
        assert settings.segments_per_turn == 2
        assert settings.art_style == "ghibli"
        assert settings.gender == "female"

    def test_invalid_update_rejected_and_not_stored(self) -> None:
        store = MemoryConfigStore()
        update_settings(store, {"gender": "female"})
        with pytest.raises(ValidationError):
            update_settings(store, {"segments_per_turn": 7})
        assert store.get("settings")["segments_per_turn"] == 2

    def test_art_style_fallback(self) -> None:
        assert art_style_prompt("nonsense") == ART_STYLE_PROMPTS["ghibli"]


class TestApiKey:
    def test_env_wins(self, monkeypatch) -> None:
        monkeypatch.setenv(API_KEY_ENV, "from-env")
        store = MemoryConfigStore({"api_key": "stored"})
        assert get_api_key(store) == "from-env"

    def test_blank_clears(self, monkeypatch) -> None:
        monkeypatch.delenv(API_KEY_ENV, raising=False)
        store = MemoryConfigStore()
        set_api_key(store, "  secret ")
        assert get_api_key(store) == "secret"
        set_api_key(store, "")
        assert get_api_key(store) == ""


class TestJsonConfigStore:
    def test_persists_across_instances(self, tmp_path) -> None:
        path = tmp_path / "settings.json"
        JsonConfigStore(path).set("api_key", "k")
        assert JsonConfigStore(path).get("api_key") == "k"

    def test_missing_file_gives_default(self, tmp_path) -> None:
        assert JsonConfigStore(tmp_path / "none.json").get("x", 5) == 5

    def test_clear(self, tmp_path) -> None:
        store = JsonConfigStore(tmp_path / "settings.json")
        store.set("a", 1)
        store.clear("a")
        assert store.get("a") is None


class TestConnectionSettings:
    def test_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("TALEWEAVER_PROVIDER_URL", "http://llm:8080")
        monkeypatch.setenv("TALEWEAVER_PROVIDER_FORMAT", "koboldcpp")
        monkeypatch.setenv("TALEWEAVER_TIMEOUT", "30")
        conn = ConnectionSettings.from_env()
        assert conn.provider_url == "http://llm:8080"
        assert conn.provider_format == "koboldcpp"
        assert conn.timeout == 30.0
