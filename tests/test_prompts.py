"""Tests for taleweaver.prompts."""

import pytest

from taleweaver.prompts import (
    PORTRAIT_PROMPT,
    SCENE_IMAGE_PROMPT,
    STORY_SYSTEM_PROMPT,
    PromptError,
    build_story_context,
    render_prompt,
)


class TestStoryPrompt:
    def test_settings_rendered(self) -> None:
        ctx = build_story_context({"gender": "female", "segments_per_turn": 3})
        text = render_prompt(STORY_SYSTEM_PROMPT, ctx)
        assert "The main character is female" in text
        assert "exactly 3 story segments" in text
        assert "PREVIOUS VISUAL CONTEXT" not in text

    def test_known_characters_listed(self) -> None:
        ctx = build_story_context(
            {}, character_visual_identity="red hair & freckles",
            known_characters=[{"name": "Mira", "role": "herbalist"}],
        )
        text = render_prompt(STORY_SYSTEM_PROMPT, ctx)
        assert "- Mira: herbalist" in text
        assert "red hair & freckles" in text


class TestImagePrompts:
    def test_scene_prompt_skips_blank_parts(self) -> None:
        text = render_prompt(SCENE_IMAGE_PROMPT, {
            "scene": "", "character": "A ranger", "location": "",
            "action": "drawing a bow", "style": "comic",
        })
        assert text == "Main character: A ranger. Action: drawing a bow. Style: comic"

    def test_portrait_prompt(self) -> None:
        text = render_prompt(PORTRAIT_PROMPT, {
            "name": "Mira", "role": "herbalist", "description": "Grey braid", "style": "ink",
        })
        assert text.startswith("Character portrait of Mira, herbalist. Grey braid.")


def test_broken_template_raises() -> None:
    with pytest.raises(PromptError):
        render_prompt("{{#if}}", {})
