"""FastAPI API endpoints under /api.

Endpoint groups: health + genres + settings, saves (list/get/delete, backup download,
restore upload), sessions (start, resume, view, actions, navigation,
side-conversations, mandatory dialogue). A session id is the id of the save
it writes to.
"""

from fastapi import APIRouter

from .saves import router as saves_router
from .sessions import router as sessions_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(saves_router)
router.include_router(sessions_router)
