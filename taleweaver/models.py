"""Core domain models.

Every engine component and storage function operates on these types.
Pydantic is used for validation and serialisation at every data boundary:
the story generator's JSON output is validated into a GameStateUpdate before
anything downstream touches it, and saves round-trip through SaveData.

Images are carried as data URLs ("data:image/png;base64,...") or "" when
an illustration is pending or failed.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MAX_CHOICES = 3


class Choice(BaseModel):
    text: str


class Quest(BaseModel):
    text: str
    completed: bool = False


class Segment(BaseModel):
    """One paragraph of a scene paired with its illustration."""

    text: str = Field(min_length=1)
    image: str = ""


class DialogueConfig(BaseModel):
    """An NPC the player can talk to, either mandatory or optional."""

    character_name: str
    character_role: str = ""
    voice_name: str = "Kore"  # Zephyr | Puck | Charon | Kore | Fenrir
    initial_dialogue: str = ""
    system_instruction: str = ""


class ChatMessage(BaseModel):
    sender: Literal["player", "character"]
    text: str


class Scene(BaseModel):
    """One committed story beat."""

    segments: list[Segment] = Field(min_length=1)
    choices: list[Choice] = Field(default_factory=list, max_length=MAX_CHOICES)
    is_game_over: bool = False
    game_over_message: str = ""
    mandatory_dialogue: DialogueConfig | None = None
    optional_talk_characters: list[DialogueConfig] = Field(default_factory=list)
    visible_character_names: list[str] = Field(default_factory=list)
    highlighted_character: str | None = None
    mood_track: str | None = None


class CharacterPortrait(BaseModel):
    """A known character with a generated portrait for visual consistency."""

    id: str
    name: str
    role: str = ""
    visual_description: str = ""
    portrait_image: str = ""
    is_main_character: bool = False


class HistoryEntry(BaseModel):
    """One message of the conversation with the story model."""

    role: Literal["user", "model"]
    text: str


class SaveData(BaseModel):
    """Whole-session snapshot. Always written as a full overwrite."""

    id: str
    name: str
    created_at: int  # epoch millis
    updated_at: int
    thumbnail: str = ""
    scene_history: list[Scene] = Field(default_factory=list)
    cursor: int = -1
    inventory: list[str] = Field(default_factory=list)
    quests: list[Quest] = Field(default_factory=list)
    conversation_history: list[HistoryEntry] = Field(default_factory=list)
    turn_count: int = 0
    is_game_over: bool = False
    game_over_message: str = ""
    character_visual_identity: str = ""
    location_visual_identity: str = ""
    known_characters: list[CharacterPortrait] = Field(default_factory=list)
    conversation_logs: dict[str, list[ChatMessage]] | None = None


# ---------------------------------------------------------------------------
# Story generator output
# ---------------------------------------------------------------------------

class StorySegment(BaseModel):
    text: str = Field(min_length=1)
    image_prompt: str = ""


class InventoryUpdates(BaseModel):
    add: list[str] = Field(default_factory=list)
    remove: list[str] = Field(default_factory=list)


class CharacterCandidate(BaseModel):
    """A character the generator introduced that may need a portrait."""

    name: str
    role: str = ""
    visual_description: str = ""
    is_main_character: bool = False


class GameStateUpdate(BaseModel):
    """Validated structured output of one story-generator call."""

    model_config = ConfigDict(extra="ignore")

    scene_visual_context: str = ""
    character_visual_identity: str = ""
    location_visual_identity: str = ""
    story_segments: list[StorySegment] = Field(min_length=1)
    choices: list[Choice] = Field(default_factory=list)
    inventory_updates: InventoryUpdates = Field(default_factory=InventoryUpdates)
    quests: list[Quest] = Field(default_factory=list)
    is_game_over: bool = False
    game_over_message: str = ""
    mandatory_dialogue: DialogueConfig | None = None
    optional_talk_characters: list[DialogueConfig] = Field(default_factory=list)
    new_characters: list[CharacterCandidate] = Field(default_factory=list)
    visible_character_names: list[str] = Field(default_factory=list)
    highlighted_character: str | None = None
    mood_track: str | None = None
