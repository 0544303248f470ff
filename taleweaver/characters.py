"""Character registry — portraits for visual continuity across turns.

Characters are keyed by exact, case-sensitive name: "Mira" and "mira" are
two characters. Portrait generation is best-effort; a failed portrait
leaves that character out of the registry and is not retried this turn.

Display order: highlighted character first, then main characters, then
everyone else in registry order (a stable 2-key sort).
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from taleweaver import images
from taleweaver.models import CharacterCandidate, CharacterPortrait
from taleweaver.prompts import PORTRAIT_PROMPT, render_prompt

logger = logging.getLogger(__name__)


def resolve_new_characters(
    candidates: list[CharacterCandidate], known: list[str]
) -> list[CharacterCandidate]:
    """Drop candidates whose name is already known (or repeated in this batch)."""
    seen = set(known)
    fresh: list[CharacterCandidate] = []
    for candidate in candidates:
        if candidate.name in seen:
            continue
        seen.add(candidate.name)
        fresh.append(candidate)
    return fresh


async def _request_portrait(
    candidate: CharacterCandidate, image_model, style: str
) -> CharacterPortrait | None:
    prompt = render_prompt(PORTRAIT_PROMPT, {
        "name": candidate.name,
        "role": candidate.role,
        "description": candidate.visual_description,
        "style": style,
    })
    try:
        data, mime = await image_model(prompt, aspect="1:1", references=[])
    except Exception:
        logger.warning("Portrait generation failed for %s", candidate.name, exc_info=True)
        return None
    return CharacterPortrait(
        id=uuid.uuid4().hex,
        name=candidate.name,
        role=candidate.role,
        visual_description=candidate.visual_description,
        portrait_image=images.to_data_url(data, mime),
        is_main_character=candidate.is_main_character,
    )


async def request_portraits(
    candidates: list[CharacterCandidate], image_model, style: str
) -> list[CharacterPortrait]:
    """Generate one portrait per candidate concurrently, keeping candidate order."""
    results = await asyncio.gather(
        *(_request_portrait(c, image_model, style) for c in candidates)
    )
    return [p for p in results if p is not None]


def merge(
    existing: list[CharacterPortrait], new: list[CharacterPortrait]
) -> list[CharacterPortrait]:
    return [*existing, *new]


def order_for_display(
    characters: list[CharacterPortrait], highlight: str | None = None
) -> list[CharacterPortrait]:
    return sorted(
        characters,
        key=lambda c: (c.name != highlight, not c.is_main_character),
    )


def portraits_for(names: list[str], characters: list[CharacterPortrait]) -> list[str]:
    """Portrait images of the named characters, for use as visual references."""
    wanted = set(names)
    return [c.portrait_image for c in characters if c.name in wanted and c.portrait_image]
