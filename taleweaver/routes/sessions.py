"""Live play sessions: start, resume, act, navigate, talk.

Sessions are held in memory on app.state; each writes to the save slot with
the same id. Turn endpoints return as soon as the story text is committed;
illustrations keep arriving in the background and show up on the next GET.
"""

from fastapi import APIRouter, Depends, HTTPException

from taleweaver.config import ConfigStore
from taleweaver.generator import GeneratorError, ImageModel, StoryGenerator
from taleweaver.genres import opening_action
from taleweaver.pipeline import TurnOrchestrator, TurnRejectedError
from taleweaver.storage import SaveStore

from .deps import get_config, get_models, get_sessions, get_store
from .models import ActionBody, ConversationBody, NavigateBody, StartSession

router = APIRouter()


def session_view(orch: TurnOrchestrator) -> dict:
    current = orch.ledger.current
    return {
        "id": orch.save_id,
        "name": orch.name,
        "state": orch.state.value,
        "cursor": orch.ledger.cursor,
        "latest_index": orch.ledger.latest_index,
        "scene": current.model_dump() if current is not None else None,
        "inventory": orch.inventory,
        "quests": [q.model_dump() for q in orch.quests],
        "characters": [c.model_dump() for c in orch.characters_for_display()],
        "conversations": orch.conversations.as_dict(),
        "turn_count": orch.turn_count,
        "is_game_over": orch.is_game_over,
        "game_over_message": orch.game_over_message,
        "error": orch.error,
    }


def _session(sessions: dict[str, TurnOrchestrator], session_id: str) -> TurnOrchestrator:
    orch = sessions.get(session_id)
    if orch is None:
        raise HTTPException(404, "Session not found")
    return orch


async def _play(orch: TurnOrchestrator, turn) -> dict:
    try:
        await turn
    except TurnRejectedError as e:
        raise HTTPException(409, str(e))
    except GeneratorError as e:
        raise HTTPException(502, str(e))
    return session_view(orch)


@router.post("/sessions", status_code=201)
async def start_session(
    body: StartSession,
    sessions: dict[str, TurnOrchestrator] = Depends(get_sessions),
    store: SaveStore = Depends(get_store),
    config: ConfigStore = Depends(get_config),
    models: tuple[StoryGenerator, ImageModel] = Depends(get_models),
):
    """Start a new adventure and generate its opening scene.

    An explicit opening_action wins; otherwise the genre's opening is used,
    or the default fantasy opening when no genre is picked.
    """
    opening = body.opening_action
    if not opening:
        try:
            opening = opening_action(body.genre)
        except KeyError:
            raise HTTPException(422, f"Unknown genre: {body.genre}")
    generator, image_model = models
    orch = TurnOrchestrator(
        generator, image_model=image_model, store=store, config=config, name=body.name
    )
    view = await _play(orch, orch.start_game(opening))
    sessions[orch.save_id] = orch
    return view


@router.post("/sessions/{save_id}/resume")
async def resume_session(
    save_id: str,
    sessions: dict[str, TurnOrchestrator] = Depends(get_sessions),
    store: SaveStore = Depends(get_store),
    config: ConfigStore = Depends(get_config),
    models: tuple[StoryGenerator, ImageModel] = Depends(get_models),
):
    """Load a save into a live session, replacing any live copy of it."""
    save = store.get(save_id)
    if save is None:
        raise HTTPException(404, "Save not found")
    previous = sessions.pop(save_id, None)
    if previous is not None:
        await previous.close()
    generator, image_model = models
    orch = TurnOrchestrator.resume(
        save, generator, image_model=image_model, store=store, config=config
    )
    sessions[save_id] = orch
    return session_view(orch)


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str, sessions: dict[str, TurnOrchestrator] = Depends(get_sessions)
):
    """Current view of a live session."""
    return session_view(_session(sessions, session_id))


@router.delete("/sessions/{session_id}")
async def close_session(
    session_id: str, sessions: dict[str, TurnOrchestrator] = Depends(get_sessions)
):
    """Drop a live session. Its save slot is kept."""
    orch = _session(sessions, session_id)
    await orch.close()
    del sessions[session_id]
    return {"ok": True}


@router.post("/sessions/{session_id}/actions")
async def submit_action(
    session_id: str,
    body: ActionBody,
    sessions: dict[str, TurnOrchestrator] = Depends(get_sessions),
):
    """Play one turn with a choice or free-text action."""
    orch = _session(sessions, session_id)
    return await _play(orch, orch.submit_action(body.action))


@router.post("/sessions/{session_id}/navigate")
async def navigate(
    session_id: str,
    body: NavigateBody,
    sessions: dict[str, TurnOrchestrator] = Depends(get_sessions),
):
    """Move the view cursor through scene history (clamped)."""
    orch = _session(sessions, session_id)
    orch.navigate(body.index)
    return session_view(orch)


@router.put("/sessions/{session_id}/conversations/{name}")
async def record_conversation(
    session_id: str,
    name: str,
    body: ConversationBody,
    sessions: dict[str, TurnOrchestrator] = Depends(get_sessions),
):
    """Store a side-conversation transcript for the current scene."""
    orch = _session(sessions, session_id)
    orch.record_conversation(name, body.messages)
    return session_view(orch)


@router.post("/sessions/{session_id}/dialogue")
async def resolve_dialogue(
    session_id: str,
    body: ConversationBody,
    sessions: dict[str, TurnOrchestrator] = Depends(get_sessions),
):
    """Finish the scene's mandatory dialogue and continue the story."""
    orch = _session(sessions, session_id)
    return await _play(orch, orch.resolve_dialogue(body.messages))
