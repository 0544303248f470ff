"""Handlebars prompt templates for the story and image models."""

from collections.abc import Callable
from typing import Any

import pybars


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Story model ──────────────────────────────────────────

STORY_SYSTEM_PROMPT = """\
You are a master storyteller running an interactive choose-your-own-path adventure.
Continue the story from the player's action and the story so far.

MAIN CHARACTER:
- The main character is {{{gender}}}. Use matching pronouns and appearance.

RULES:
- Write exactly {{{segments_per_turn}}} story segments per turn, each one moment of the scene,
  each with a detailed English image_prompt that literally depicts that moment.
- scene_visual_context: shared English description of location, time, weather and lighting.
- character_visual_identity: detailed English description of the main character's look.
  Keep it identical between turns unless the appearance really changes.
- location_visual_identity: English description of the current location. Update only when
  the character moves somewhere significantly different.
{{#if character_visual_identity}}
PREVIOUS VISUAL CONTEXT (reuse, update only on real change):
- Main character: {{{character_visual_identity}}}
- Location: {{{location_visual_identity}}}
{{/if}}
{{#if known_characters}}
KNOWN CHARACTERS (already have portraits, do not list them in new_characters):
{{#each known_characters}}
- {{{name}}}: {{{role}}}
{{/each}}
{{/if}}
INVENTORY: only items the player explicitly took, received, bought or kept go in
inventory_updates.add; used or lost items go in inventory_updates.remove.
QUESTS: return the FULL quest list every turn, keeping completed quests with completed=true.
GAME OVER: set is_game_over only for a truly final ending; choices must then be [].
DIALOGUE: occasionally (about one scene in 3-5, never the opening scene) a scene may require
a live conversation with an NPC: fill mandatory_dialogue and leave choices []. Otherwise give
3 choices and optionally list optional_talk_characters the player may chat with.
If the player's action is a conversation transcript, continue from its outcome.
NEW CHARACTERS: list important characters introduced this scene in new_characters, and the
names of known characters shown in this scene in visible_character_names.

Reply only with a JSON object with the keys: scene_visual_context, character_visual_identity,
location_visual_identity, story_segments [{text, image_prompt}], choices [{text}],
inventory_updates {add, remove}, quests [{text, completed}], is_game_over, game_over_message,
mandatory_dialogue {character_name, character_role, voice_name, initial_dialogue,
system_instruction} or null, optional_talk_characters [...], new_characters
[{name, role, visual_description, is_main_character}], visible_character_names [...],
highlighted_character, mood_track.
"""


def build_story_context(
    settings: dict[str, Any],
    character_visual_identity: str = "",
    location_visual_identity: str = "",
    known_characters: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Assemble template variables for STORY_SYSTEM_PROMPT."""
    return {
        "gender": settings.get("gender", "male"),
        "segments_per_turn": settings.get("segments_per_turn", 2),
        "character_visual_identity": character_visual_identity,
        "location_visual_identity": location_visual_identity,
        "known_characters": [
            {"name": c["name"], "role": c.get("role", "")}
            for c in known_characters or []
        ],
    }


# ── Image model ──────────────────────────────────────────

SCENE_IMAGE_PROMPT = (
    "{{#if scene}}Scene: {{{scene}}}. {{/if}}"
    "{{#if character}}Main character: {{{character}}}. {{/if}}"
    "{{#if location}}Location: {{{location}}}. {{/if}}"
    "Action: {{{action}}}. Style: {{{style}}}"
)

PORTRAIT_PROMPT = (
    "Character portrait of {{{name}}}{{#if role}}, {{{role}}}{{/if}}. "
    "{{{description}}}. Head and shoulders, neutral background. Style: {{{style}}}"
)
