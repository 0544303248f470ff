import asyncio
import json
import logging
import struct
import zlib
from typing import Any

import pytest

from taleweaver import images
from taleweaver.config import MemoryConfigStore
from taleweaver.generator import AllImagesReady, ImageReady, StoryReady, TurnRequest
from taleweaver.models import GameStateUpdate
from taleweaver.storage import SaveStore


def _png(width: int, height: int, rgb: tuple[int, int, int]) -> bytes:
    """Smallest valid solid-colour PNG."""

    def chunk(tag: bytes, data: bytes) -> bytes:
        body = tag + data
        return struct.pack(">I", len(data)) + body + struct.pack(">I", zlib.crc32(body))

    row = b"\x00" + bytes(rgb) * width
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0))
        + chunk(b"IDAT", zlib.compress(row * height))
        + chunk(b"IEND", b"")
    )


RED_PNG = _png(10, 10, (255, 0, 0))


def segment_image(index: int) -> str:
    """The image ScriptedGenerator sends for segment `index`."""
    return images.to_data_url(f"segment-{index}".encode())


def story_update(**overrides: Any) -> dict:
    """A valid raw story-model reply, as a dict."""
    update: dict[str, Any] = {
        "scene_visual_context": "A misty pine forest at dawn",
        "character_visual_identity": "A young ranger in a green cloak",
        "location_visual_identity": "Old pine forest",
        "story_segments": [
            {"text": "You wake beneath a fallen pine.", "image_prompt": "ranger waking"},
            {"text": "A narrow path leads north.", "image_prompt": "forest path"},
        ],
        "choices": [{"text": "Follow the path"}, {"text": "Climb a tree"}, {"text": "Shout"}],
        "inventory_updates": {"add": [], "remove": []},
        "quests": [],
    }
    update.update(overrides)
    return update


class ScriptedGenerator:
    """StoryGenerator stub that plays back queued replies.

    Each queued item is a story_update() dict, or an exception to raise
    before StoryReady. Images are emitted in `image_order` (default: reverse
    segment order). `story_gate` / `image_gate` hold the stream until set.
    """

    def __init__(self, *script: dict | Exception, image_order: list[int] | None = None) -> None:
        self.script = list(script)
        self.image_order = image_order
        self.requests: list[TurnRequest] = []
        self.story_gate: asyncio.Event | None = None
        self.image_gate: asyncio.Event | None = None

    async def stream_turn(self, request: TurnRequest):
        self.requests.append(request)
        if self.story_gate is not None:
            await self.story_gate.wait()
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        update = GameStateUpdate.model_validate(item)
        yield StoryReady(update=update, raw=json.dumps(item))
        if self.image_gate is not None:
            await self.image_gate.wait()
        order = self.image_order
        if order is None:
            order = list(reversed(range(len(update.story_segments))))
        for index in order:
            yield ImageReady(segment_index=index, image=segment_image(index))
        yield AllImagesReady()


@pytest.fixture(autouse=True)
def quiet_http_logs():
    """Keep httpx request logging out of captured test output."""
    logging.getLogger("httpx").setLevel(logging.WARNING)


@pytest.fixture
def store(tmp_path) -> SaveStore:
    return SaveStore(tmp_path / "data")


@pytest.fixture
def config() -> MemoryConfigStore:
    return MemoryConfigStore()


@pytest.fixture
def red_png() -> bytes:
    return RED_PNG
