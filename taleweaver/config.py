"""Settings and API-key storage behind an injected ConfigStore.

Nothing reads ambient global state: the orchestrator, the generator
adapters and the app receive a ConfigStore (get/set/clear) and read
settings through it. JsonConfigStore persists to a flat JSON file;
MemoryConfigStore is for tests and throwaway sessions.

Game settings are a flat object. Unknown keys are ignored, missing keys
take the defaults in GameSettings. Connection settings (provider URLs,
model names) come from the environment / .env instead.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"
API_KEY_KEY = "api_key"
API_KEY_ENV = "TALEWEAVER_API_KEY"

ArtStyle = Literal["ghibli", "dark-fantasy", "watercolor", "realistic", "pixel-art", "comic"]

ART_STYLE_PROMPTS: dict[str, str] = {
    "ghibli": "in a vibrant, detailed digital painting style with a hint of Ghibli-inspired fantasy, maintaining consistent character designs throughout.",
    "dark-fantasy": "in a dark, atmospheric fantasy art style with dramatic lighting, deep shadows, and rich textures.",
    "watercolor": "in a traditional watercolor painting style with soft edges, flowing colors, and delicate brushstrokes.",
    "realistic": "in a photorealistic digital art style with cinematic lighting, high detail, and realistic textures.",
    "pixel-art": "in a detailed pixel art style with vibrant colors, reminiscent of classic 16-bit RPG games.",
    "comic": "in a detailed manga/comic book art style with bold linework, dynamic compositions, and expressive characters.",
}


def art_style_prompt(style: str) -> str:
    return ART_STYLE_PROMPTS.get(style, ART_STYLE_PROMPTS["ghibli"])


class GameSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    art_style: ArtStyle = "ghibli"
    image_size: Literal["1K", "2K", "4K"] = "1K"
    segments_per_turn: Literal[2, 3] = 2
    gender: Literal["male", "female"] = "male"
    auto_save: bool = True


class ConnectionSettings(BaseModel):
    """Where the story and image models live. Read from the environment."""

    provider_url: str = "http://localhost:5001"
    provider_format: Literal["openai", "koboldcpp"] = "openai"
    story_model: str = ""
    image_url: str = ""
    image_model: str = ""
    timeout: float = 120.0

    @classmethod
    def from_env(cls) -> ConnectionSettings:
        fields: dict[str, Any] = {}
        for name, env in (
            ("provider_url", "TALEWEAVER_PROVIDER_URL"),
            ("provider_format", "TALEWEAVER_PROVIDER_FORMAT"),
            ("story_model", "TALEWEAVER_STORY_MODEL"),
            ("image_url", "TALEWEAVER_IMAGE_URL"),
            ("image_model", "TALEWEAVER_IMAGE_MODEL"),
            ("timeout", "TALEWEAVER_TIMEOUT"),
        ):
            value = os.getenv(env)
            if value:
                fields[name] = value
        return cls.model_validate(fields)


# ---------------------------------------------------------------------------
# ConfigStore
# ---------------------------------------------------------------------------

class ConfigStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def clear(self, key: str) -> None: ...


class MemoryConfigStore:
    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def clear(self, key: str) -> None:
        self._values.pop(key, None)


class JsonConfigStore:
    """Flat key/value store persisted as one JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def _load(self) -> dict[str, Any]:
        if not self._path.is_file():
            return {}
        return json.loads(self._path.read_text())

    def _dump(self, values: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(values, indent=2))

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        values = self._load()
        values[key] = value
        self._dump(values)

    def clear(self, key: str) -> None:
        values = self._load()
        if key in values:
            del values[key]
            self._dump(values)


# ---------------------------------------------------------------------------
# Settings helpers
# ---------------------------------------------------------------------------

def load_settings(store: ConfigStore) -> GameSettings:
    """Stored settings merged over the defaults. Invalid stored values fall back to defaults."""
    stored = store.get(SETTINGS_KEY) or {}
    if not isinstance(stored, dict):
        logger.warning("Stored settings are not an object; using defaults")
        return GameSettings()
    try:
        return GameSettings.model_validate(stored)
    except ValidationError as e:
        bad = {err["loc"][0] for err in e.errors() if err["loc"]}
        logger.warning("Ignoring invalid stored settings: %s", ", ".join(sorted(map(str, bad))))
        return GameSettings.model_validate({k: v for k, v in stored.items() if k not in bad})


def save_settings(store: ConfigStore, settings: GameSettings) -> None:
    store.set(SETTINGS_KEY, settings.model_dump())


def update_settings(store: ConfigStore, fields: dict[str, Any]) -> GameSettings:
    """Merge recognised fields into the stored settings and persist. Returns the result."""
    merged = load_settings(store).model_dump()
    merged.update({k: v for k, v in fields.items() if k in GameSettings.model_fields})
    settings = GameSettings.model_validate(merged)
    save_settings(store, settings)
    return settings


def get_api_key(store: ConfigStore) -> str:
    """Environment variable first, then the stored key."""
    return os.getenv(API_KEY_ENV, "") or store.get(API_KEY_KEY, "") or ""


def set_api_key(store: ConfigStore, key: str) -> None:
    """Store a key; a blank key clears it."""
    if key.strip():
        store.set(API_KEY_KEY, key.strip())
    else:
        store.clear(API_KEY_KEY)

