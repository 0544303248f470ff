"""Turn orchestrator — runs one adventure session turn by turn.

Turn flow (submit_action / start_game / resolve_dialogue):
  1. Check preconditions: viewing the latest scene, no story request in
     flight, story not over, no mandatory dialogue pending.
  2. Fold any side-conversation transcripts into the action text.
  3. Ask the story generator for the next beat and wait for StoryReady.
  4. Commit atomically: turn count, scene append, inventory delta, quest
     snapshot, visual identity, conversation logs cleared, history extended.
     The caller gets a TurnHandle back here; text and choices are playable
     while the illustrations are still being drawn.
  5. In the background: patch each ImageReady into the scene captured by the
     handle, generate portraits for new characters concurrently, merge them
     into the registry once everything has settled, then auto-save once.

Anything that fails before step 4 leaves the session exactly as it was and
surfaces as GeneratorError; the same action can simply be retried.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum

from taleweaver.characters import (
    merge,
    order_for_display,
    request_portraits,
    resolve_new_characters,
)
from taleweaver.config import ConfigStore, GameSettings, MemoryConfigStore, art_style_prompt, load_settings
from taleweaver.conversations import ConversationLog, fold_into_action, summarize_dialogue
from taleweaver.generator import (
    AllImagesReady,
    GeneratorError,
    ImageModel,
    ImageReady,
    StoryGenerator,
    StoryReady,
    TurnEvent,
    TurnRequest,
)
from taleweaver.inventory import apply_inventory_delta, replace_quests
from taleweaver.ledger import SceneLedger
from taleweaver.models import (
    MAX_CHOICES,
    CharacterPortrait,
    ChatMessage,
    GameStateUpdate,
    HistoryEntry,
    Quest,
    SaveData,
    Scene,
    Segment,
)
from taleweaver.storage import SaveStore, generate_save_id, now_ms

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_STORY = "awaiting_story"
    AWAITING_IMAGES = "awaiting_images"
    MANDATORY_DIALOGUE = "mandatory_dialogue"
    GAME_OVER = "game_over"


class TurnRejectedError(RuntimeError):
    """A turn was submitted when the session cannot accept one."""


@dataclass(frozen=True)
class TurnHandle:
    """Identifies the scene a turn committed, for late image patches."""

    session_token: str
    scene_index: int
    turn: int


class TurnOrchestrator:
    def __init__(
        self,
        generator: StoryGenerator,
        *,
        image_model: ImageModel | None = None,
        store: SaveStore | None = None,
        config: ConfigStore | None = None,
        save_id: str | None = None,
        name: str = "",
    ) -> None:
        self._generator = generator
        self._image_model = image_model
        self._store = store
        self._config = config or MemoryConfigStore()
        self._image_tasks: set[asyncio.Task] = set()
        self._reset(save_id, name)

    def _reset(self, save_id: str | None, name: str) -> None:
        self._session_token = uuid.uuid4().hex
        self._story_pending = False
        self.save_id = save_id or generate_save_id()
        self.name = name
        self.created_at: int | None = None
        self.ledger = SceneLedger()
        self.inventory: list[str] = []
        self.quests: list[Quest] = []
        self.history: list[HistoryEntry] = []
        self.known_characters: list[CharacterPortrait] = []
        self.conversations = ConversationLog()
        self.turn_count = 0
        self.character_visual_identity = ""
        self.location_visual_identity = ""
        self.error: str | None = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def resume(
        cls,
        save: SaveData,
        generator: StoryGenerator,
        **kwargs,
    ) -> TurnOrchestrator:
        """Rebuild a session from a stored snapshot."""
        orch = cls(generator, save_id=save.id, name=save.name, **kwargs)
        orch.created_at = save.created_at
        orch.ledger = SceneLedger(
            [s.model_copy(deep=True) for s in save.scene_history], save.cursor
        )
        orch.inventory = list(save.inventory)
        orch.quests = [q.model_copy() for q in save.quests]
        orch.history = list(save.conversation_history)
        orch.known_characters = [c.model_copy() for c in save.known_characters]
        orch.conversations = ConversationLog(save.conversation_logs)
        orch.turn_count = save.turn_count
        orch.character_visual_identity = save.character_visual_identity
        orch.location_visual_identity = save.location_visual_identity
        logger.info("session resumed id=%s turns=%d", save.id, save.turn_count)
        return orch

    async def new_session(self, name: str = "", save_id: str | None = None) -> None:
        """Abandon the current session and start from an empty one."""
        if self._story_pending:
            raise TurnRejectedError("A turn is already in progress")
        await self.close()
        self._reset(save_id, name)

    async def close(self) -> None:
        """Abandon in-flight image work. Committed state is kept."""
        tasks = list(self._image_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def wait_for_images(self) -> None:
        """Wait until every background image/portrait job has settled."""
        while self._image_tasks:
            await asyncio.gather(*list(self._image_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def state(self) -> TurnState:
        if self._story_pending:
            return TurnState.AWAITING_STORY
        if self._image_tasks:
            return TurnState.AWAITING_IMAGES
        latest = self.ledger.latest
        if latest is not None and latest.is_game_over:
            return TurnState.GAME_OVER
        if latest is not None and latest.mandatory_dialogue is not None:
            return TurnState.MANDATORY_DIALOGUE
        return TurnState.IDLE

    @property
    def is_game_over(self) -> bool:
        latest = self.ledger.latest
        return latest is not None and latest.is_game_over

    @property
    def game_over_message(self) -> str:
        latest = self.ledger.latest
        return latest.game_over_message if latest is not None and latest.is_game_over else ""

    @property
    def settings(self) -> GameSettings:
        return load_settings(self._config)

    def characters_for_display(self) -> list[CharacterPortrait]:
        current = self.ledger.current
        highlight = current.highlighted_character if current is not None else None
        return order_for_display(self.known_characters, highlight)

    def navigate(self, index: int) -> int:
        return self.ledger.navigate(index)

    # ------------------------------------------------------------------
    # Turn submission
    # ------------------------------------------------------------------

    def _check_can_submit(self) -> None:
        if self._story_pending:
            raise TurnRejectedError("A turn is already in progress")
        if self.is_game_over:
            raise TurnRejectedError("The story is over; start a new session to play again")
        if not self.ledger.is_viewing_latest:
            raise TurnRejectedError("Return to the latest scene before choosing")

    async def start_game(self, opening_action: str) -> TurnHandle:
        """Generate the opening scene of an empty session."""
        if len(self.ledger):
            raise TurnRejectedError("The adventure has already started")
        self._check_can_submit()
        return await self._run_turn(opening_action, history=[])

    async def submit_action(self, action: str) -> TurnHandle:
        """Play one turn. Returns as soon as the story text is committed."""
        if not len(self.ledger):
            raise TurnRejectedError("The adventure has not started yet")
        self._check_can_submit()
        latest = self.ledger.latest
        if latest.mandatory_dialogue is not None:
            raise TurnRejectedError(
                f"A conversation with {latest.mandatory_dialogue.character_name} must happen first"
            )
        text = fold_into_action(
            action, self.conversations.as_dict(), latest.optional_talk_characters
        )
        return await self._run_turn(text, history=self.history)

    async def resolve_dialogue(self, messages: list[ChatMessage]) -> TurnHandle:
        """Finish a mandatory dialogue; its transcript becomes the next action."""
        self._check_can_submit()
        latest = self.ledger.latest
        if latest is None or latest.mandatory_dialogue is None:
            raise TurnRejectedError("No conversation is pending")
        action = summarize_dialogue(latest.mandatory_dialogue, messages)
        return await self._run_turn(action, history=self.history)

    def record_conversation(self, name: str, messages: list[ChatMessage]) -> None:
        """Store an optional side-conversation transcript for the current scene."""
        self.conversations.record(name, messages)

    async def _run_turn(self, action: str, history: list[HistoryEntry]) -> TurnHandle:
        settings = self.settings
        request = TurnRequest(
            history=list(history),
            action=action,
            settings=settings,
            character_visual_identity=self.character_visual_identity,
            location_visual_identity=self.location_visual_identity,
            known_characters=list(self.known_characters),
        )
        self._story_pending = True
        self.error = None
        stream = self._generator.stream_turn(request)
        try:
            event = await anext(stream)
            if not isinstance(event, StoryReady):
                raise GeneratorError(f"Expected StoryReady first, got {type(event).__name__}")
            scene = self._build_scene(event.update)
        except Exception as e:
            await stream.aclose()
            self.error = f"The story could not continue. {e}"
            logger.warning("turn aborted: %s", e)
            if isinstance(e, GeneratorError):
                raise
            if isinstance(e, StopAsyncIteration):
                raise GeneratorError("Story generator ended without a story") from e
            raise GeneratorError(str(e)) from e
        finally:
            self._story_pending = False

        handle = self._commit(action, history, event, scene)
        task = asyncio.create_task(self._finish_turn(handle, stream, event.update, settings))
        self._image_tasks.add(task)
        task.add_done_callback(self._image_tasks.discard)
        return handle

    def _build_scene(self, update: GameStateUpdate) -> Scene:
        """Turn a validated update into a Scene, normalising contract slips."""
        choices = update.choices
        if len(choices) > MAX_CHOICES:
            logger.warning("Story generator returned %d choices; keeping %d", len(choices), MAX_CHOICES)
            choices = choices[:MAX_CHOICES]
        dialogue = update.mandatory_dialogue
        if dialogue is not None and not dialogue.character_name.strip():
            dialogue = None
        talk = update.optional_talk_characters

        if update.is_game_over:
            choices, dialogue, talk = [], None, []
        elif dialogue is not None:
            if choices or talk:
                logger.warning("Mandatory dialogue with %s overrides choices and optional talks",
                               dialogue.character_name)
            choices, talk = [], []
        elif not choices:
            raise GeneratorError("Story generator returned no choices and no dialogue")

        return Scene(
            segments=[Segment(text=s.text) for s in update.story_segments],
            choices=choices,
            is_game_over=update.is_game_over,
            game_over_message=update.game_over_message if update.is_game_over else "",
            mandatory_dialogue=dialogue,
            optional_talk_characters=talk,
            visible_character_names=update.visible_character_names,
            highlighted_character=update.highlighted_character or None,
            mood_track=update.mood_track or None,
        )

    def _commit(
        self,
        action: str,
        history: list[HistoryEntry],
        event: StoryReady,
        scene: Scene,
    ) -> TurnHandle:
        update = event.update
        if not self.ledger.is_viewing_latest:
            # the player browsed history while the story was being written
            self.ledger.navigate(self.ledger.latest_index)
        index = self.ledger.append(scene)
        self.turn_count += 1
        self.inventory = apply_inventory_delta(
            self.inventory, update.inventory_updates.add, update.inventory_updates.remove
        )
        self.quests = replace_quests(self.quests, update.quests)
        if update.character_visual_identity:
            self.character_visual_identity = update.character_visual_identity
        if update.location_visual_identity:
            self.location_visual_identity = update.location_visual_identity
        self.conversations.clear()
        self.history = [
            *history,
            HistoryEntry(role="user", text=action),
            HistoryEntry(role="model", text=event.raw),
        ]
        logger.info("turn %d committed save=%s scene=%d", self.turn_count, self.save_id, index)
        return TurnHandle(session_token=self._session_token, scene_index=index, turn=self.turn_count)

    async def _finish_turn(
        self,
        handle: TurnHandle,
        stream: AsyncIterator[TurnEvent],
        update: GameStateUpdate,
        settings: GameSettings,
    ) -> None:
        candidates = resolve_new_characters(
            update.new_characters, [c.name for c in self.known_characters]
        )
        portrait_task = None
        if candidates and self._image_model is not None:
            portrait_task = asyncio.create_task(request_portraits(
                candidates, self._image_model, art_style_prompt(settings.art_style)
            ))

        try:
            async for event in stream:
                if isinstance(event, ImageReady):
                    self.patch_image(handle, event.segment_index, event.image)
                elif isinstance(event, AllImagesReady):
                    break
        except asyncio.CancelledError:
            if portrait_task is not None:
                portrait_task.cancel()
                await asyncio.gather(portrait_task, return_exceptions=True)
            raise
        except Exception:
            logger.warning("Image stream failed for turn %d; keeping the committed text",
                           handle.turn, exc_info=True)
        finally:
            await stream.aclose()

        portraits = await portrait_task if portrait_task is not None else []
        if handle.session_token != self._session_token:
            return
        known = {c.name for c in self.known_characters}
        fresh = [p for p in portraits if p.name not in known]
        if fresh:
            self.known_characters = merge(self.known_characters, fresh)
            logger.info("registered characters: %s", ", ".join(p.name for p in fresh))
        if settings.auto_save:
            try:
                self.save()
            except Exception as e:
                logger.exception("Auto-save failed for %s", self.save_id)
                self.error = f"The adventure could not be saved. {e}"

    def patch_image(self, handle: TurnHandle, segment_index: int, image: str) -> bool:
        if handle.session_token != self._session_token:
            return False
        patched = self.ledger.patch_segment_image(handle.scene_index, segment_index, image)
        logger.debug("image turn=%d segment=%d patched=%s", handle.turn, segment_index, patched)
        return patched

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> SaveData:
        now = now_ms()
        latest = self.ledger.latest
        logs = self.conversations.as_dict()
        return SaveData(
            id=self.save_id,
            name=self.name,
            created_at=self.created_at or now,
            updated_at=now,
            thumbnail=latest.segments[0].image if latest is not None else "",
            scene_history=[s.model_copy(deep=True) for s in self.ledger.scenes],
            cursor=self.ledger.cursor,
            inventory=list(self.inventory),
            quests=[q.model_copy() for q in self.quests],
            conversation_history=list(self.history),
            turn_count=self.turn_count,
            is_game_over=self.is_game_over,
            game_over_message=self.game_over_message,
            character_visual_identity=self.character_visual_identity,
            location_visual_identity=self.location_visual_identity,
            known_characters=[c.model_copy() for c in self.known_characters],
            conversation_logs=logs or None,
        )

    def save(self) -> SaveData | None:
        """Write a full snapshot to the store, if one is attached."""
        if self._store is None:
            return None
        snapshot = self.snapshot()
        self._store.put(snapshot)
        self.created_at = snapshot.created_at
        logger.info("session saved id=%s turn=%d", snapshot.id, snapshot.turn_count)
        return snapshot
