"""Request dependencies. Tests swap get_models via app.dependency_overrides."""

from fastapi import Request

from taleweaver.config import ConfigStore, ConnectionSettings, get_api_key
from taleweaver.generator import ImageModel, StoryGenerator
from taleweaver.llm import build_models
from taleweaver.pipeline import TurnOrchestrator
from taleweaver.storage import SaveStore


def get_store(request: Request) -> SaveStore:
    return request.app.state.store


def get_config(request: Request) -> ConfigStore:
    return request.app.state.config


def get_sessions(request: Request) -> dict[str, TurnOrchestrator]:
    return request.app.state.sessions


def get_models(request: Request) -> tuple[StoryGenerator, ImageModel]:
    config = request.app.state.config
    return build_models(ConnectionSettings.from_env(), get_api_key(config))
