"""Save slot listing, deletion, backup download and restore upload."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from taleweaver.backup import BackupError, backup_store, restore_backup
from taleweaver.storage import SaveStore, now_ms

from .deps import get_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/saves")
async def list_saves(store: SaveStore = Depends(get_store)):
    """List save summaries, most recently updated first."""
    return [
        {
            "id": s.id,
            "name": s.name,
            "thumbnail": s.thumbnail,
            "created_at": s.created_at,
            "updated_at": s.updated_at,
            "turn_count": s.turn_count,
            "is_game_over": s.is_game_over,
        }
        for s in store.list()
    ]


@router.get("/saves/{save_id}")
async def get_save(save_id: str, store: SaveStore = Depends(get_store)):
    """Get a full save record."""
    save = store.get(save_id)
    if save is None:
        raise HTTPException(404, "Save not found")
    return save.model_dump()


@router.delete("/saves/{save_id}")
async def delete_save(save_id: str, store: SaveStore = Depends(get_store)):
    """Delete a save."""
    if store.get(save_id) is None:
        raise HTTPException(404, "Save not found")
    store.delete(save_id)
    return {"ok": True}


@router.get("/backup")
async def download_backup(store: SaveStore = Depends(get_store)):
    """Download every save as one zip archive."""
    try:
        data = backup_store(store)
    except BackupError as e:
        raise HTTPException(400, str(e))
    filename = f"taleweaver-backup-{now_ms()}.zip"
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/restore")
async def upload_restore(request: Request, store: SaveStore = Depends(get_store)):
    """Restore saves from a backup zip sent as the raw request body."""
    data = await request.body()
    try:
        result = restore_backup(data, store)
    except BackupError as e:
        raise HTTPException(400, str(e))
    return result.model_dump()
