"""Story generator contract.

The orchestrator consumes a StoryGenerator: given a TurnRequest it returns
an async stream of tagged events.

    StoryReady(update, raw)       text, choices and state deltas are known
    ImageReady(segment, image)    one illustration finished (any order)
    AllImagesReady()              nothing else will arrive for this turn

StoryReady always comes first. A non-streaming generator yields StoryReady
with finished images followed directly by AllImagesReady.

IllustratedStoryGenerator is the production implementation. It composes two
narrower injected callables:

    StoryModel  async (request) -> str              raw JSON text
    ImageModel  async (prompt, *, aspect, references) -> (bytes, mime)

The raw text is validated into a GameStateUpdate before it is yielded;
anything that fails to parse is a GeneratorError, never a partial update.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol

from pydantic import ValidationError

from taleweaver import images
from taleweaver.characters import portraits_for
from taleweaver.config import GameSettings, art_style_prompt
from taleweaver.models import CharacterPortrait, GameStateUpdate, HistoryEntry
from taleweaver.prompts import SCENE_IMAGE_PROMPT, render_prompt

logger = logging.getLogger(__name__)


class GeneratorError(RuntimeError):
    """The story generator failed or returned something unusable."""


@dataclass(frozen=True)
class TurnRequest:
    history: list[HistoryEntry]
    action: str
    settings: GameSettings
    character_visual_identity: str = ""
    location_visual_identity: str = ""
    known_characters: list[CharacterPortrait] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StoryReady:
    update: GameStateUpdate
    raw: str


@dataclass(frozen=True)
class ImageReady:
    segment_index: int
    image: str  # data URL, or "" when the illustration failed


@dataclass(frozen=True)
class AllImagesReady:
    pass


TurnEvent = StoryReady | ImageReady | AllImagesReady


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class StoryGenerator(Protocol):
    def stream_turn(self, request: TurnRequest) -> AsyncIterator[TurnEvent]: ...


class StoryModel(Protocol):
    async def __call__(self, request: TurnRequest) -> str: ...


class ImageModel(Protocol):
    async def __call__(
        self, prompt: str, *, aspect: str, references: list[str]
    ) -> tuple[bytes, str]: ...


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_game_state(text: str) -> GameStateUpdate:
    """Validate the story model's raw reply. Raises GeneratorError."""
    if not text or not text.strip():
        raise GeneratorError("Story model returned an empty response")
    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GeneratorError(f"Story model returned invalid JSON: {e}") from e
    try:
        return GameStateUpdate.model_validate(data)
    except ValidationError as e:
        raise GeneratorError(f"Story model returned an invalid game state: {e}") from e


# ---------------------------------------------------------------------------
# IllustratedStoryGenerator
# ---------------------------------------------------------------------------

class IllustratedStoryGenerator:
    """Story text first, then one illustration per segment, concurrently."""

    def __init__(self, story_model: StoryModel, image_model: ImageModel) -> None:
        self._story = story_model
        self._images = image_model

    @property
    def image_model(self) -> ImageModel:
        return self._images

    async def stream_turn(self, request: TurnRequest) -> AsyncIterator[TurnEvent]:
        raw = await self._story(request)
        update = parse_game_state(raw)
        yield StoryReady(update=update, raw=raw)

        references = portraits_for(update.visible_character_names, request.known_characters)
        style = art_style_prompt(request.settings.art_style)
        tasks = [
            asyncio.create_task(self._illustrate(i, segment.image_prompt, update, style, references))
            for i, segment in enumerate(update.story_segments)
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                index, image = await next_done
                yield ImageReady(segment_index=index, image=image)
        finally:
            for task in tasks:
                task.cancel()
        yield AllImagesReady()

    async def _illustrate(
        self,
        index: int,
        action: str,
        update: GameStateUpdate,
        style: str,
        references: list[str],
    ) -> tuple[int, str]:
        prompt = render_prompt(SCENE_IMAGE_PROMPT, {
            "scene": update.scene_visual_context,
            "character": update.character_visual_identity,
            "location": update.location_visual_identity,
            "action": action,
            "style": style,
        })
        try:
            data, mime = await self._images(prompt, aspect="16:9", references=references)
        except Exception:
            logger.warning("Image generation failed for segment %d", index, exc_info=True)
            return index, ""
        return index, images.to_data_url(data, mime)
