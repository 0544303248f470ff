"""Health check, genre catalogue, game settings and API key endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from taleweaver.config import ConfigStore, get_api_key, load_settings, set_api_key, update_settings
from taleweaver.genres import GENRES

from .deps import get_config
from .models import ApiKeyBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/genres")
async def list_genres():
    """Genres a new adventure can start in."""
    return [{"id": g.id, "name": g.name, "description": g.description} for g in GENRES]


@router.get("/settings")
async def get_settings(config: ConfigStore = Depends(get_config)):
    """Get game settings, defaults filled in."""
    return load_settings(config).model_dump()


@router.patch("/settings")
async def patch_settings(body: dict, config: ConfigStore = Depends(get_config)):
    """Update game settings (partial merge, unknown keys ignored)."""
    try:
        return update_settings(config, body).model_dump()
    except ValidationError as e:
        raise HTTPException(422, e.errors(include_url=False, include_context=False))


@router.get("/api-key")
async def get_api_key_status(config: ConfigStore = Depends(get_config)):
    """Whether a key is configured. The key itself is never returned."""
    return {"configured": bool(get_api_key(config))}


@router.put("/api-key")
async def put_api_key(body: ApiKeyBody, config: ConfigStore = Depends(get_config)):
    """Store the model API key; a blank key clears it."""
    set_api_key(config, body.api_key)
    return {"configured": bool(get_api_key(config))}
