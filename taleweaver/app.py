import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from taleweaver.config import JsonConfigStore
from taleweaver.routes import router
from taleweaver.storage import SaveStore

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Shutdown: abandon illustrations still being drawn
    for orch in app.state.sessions.values():
        await orch.close()


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))

    app = FastAPI(title="Taleweaver", lifespan=lifespan)
    app.state.store = SaveStore(resolved)
    app.state.config = JsonConfigStore(resolved / "settings.json")
    app.state.sessions = {}
    app.include_router(router, prefix="/api")

    logger.info("data directory: %s", resolved)
    return app
