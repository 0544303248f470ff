"""Pydantic request models for API endpoints."""

from pydantic import BaseModel, Field

from taleweaver.models import ChatMessage


class StartSession(BaseModel):
    name: str = ""
    genre: str | None = None
    opening_action: str | None = None


class ActionBody(BaseModel):
    action: str = Field(min_length=1)


class NavigateBody(BaseModel):
    index: int


class ConversationBody(BaseModel):
    messages: list[ChatMessage]


class ApiKeyBody(BaseModel):
    api_key: str
