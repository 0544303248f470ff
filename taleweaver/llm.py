"""HTTP clients for the story (text) and image models.

Both match the narrow protocols in generator.py and are injected into
IllustratedStoryGenerator:

    HttpStoryModel  — async (request) -> raw JSON text
                      "openai"    POST /v1/chat/completions, JSON response format
                                  Response: {"choices": [{"message": {"content": "..."}}]}
                      "koboldcpp" POST /api/v1/generate {"prompt": ...}
                                  Response: {"results": [{"text": "..."}]}
    HttpImageModel  — async (prompt, *, aspect, references) -> (bytes, mime)
                      POST /v1/images/generations, response_format=b64_json
                      Response: {"data": [{"b64_json": "..."}]}

build_models() wires both into an IllustratedStoryGenerator from ConnectionSettings.
Tests use stub models instead.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Literal

import httpx

from taleweaver.config import ConnectionSettings
from taleweaver.generator import GeneratorError, IllustratedStoryGenerator, TurnRequest
from taleweaver.prompts import STORY_SYSTEM_PROMPT, build_story_context, render_prompt

logger = logging.getLogger(__name__)


class LLMError(GeneratorError):
    """Raised when a model backend cannot be reached or returns an error."""


ProviderFormat = Literal["koboldcpp", "openai"]

_IMAGE_SIZES = {
    # aspect ratio -> pixel size accepted by OpenAI-style image endpoints
    "16:9": "1792x1024",
    "1:1": "1024x1024",
}


class _HttpClient:
    def __init__(self, base_url: str, api_key: str, timeout: float) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post(self, url: str, body: dict) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to model backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"Model backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"Model backend timed out after {self._timeout}s") from e
        try:
            return resp.json()
        except ValueError as e:
            raise LLMError("Model backend returned a non-JSON body") from e


class HttpStoryModel(_HttpClient):
    """Async HTTP client for the story model.

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier, sent only by the openai format.
        timeout:         HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "",
        timeout: float = 120.0,
    ) -> None:
        super().__init__(provider_url, api_key, timeout)
        self._format = provider_format
        self._model = model

    def _system_prompt(self, request: TurnRequest) -> str:
        return render_prompt(STORY_SYSTEM_PROMPT, build_story_context(
            request.settings.model_dump(),
            character_visual_identity=request.character_visual_identity,
            location_visual_identity=request.location_visual_identity,
            known_characters=[c.model_dump() for c in request.known_characters],
        ))

    def _build_request(self, request: TurnRequest) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        system = self._system_prompt(request)
        if self._format == "openai":
            messages = [{"role": "system", "content": system}]
            for entry in request.history:
                role = "assistant" if entry.role == "model" else "user"
                messages.append({"role": role, "content": entry.text})
            messages.append({"role": "user", "content": request.action})
            body: dict = {
                "messages": messages,
                "response_format": {"type": "json_object"},
            }
            if self._model:
                body["model"] = self._model
            return f"{self._base_url}/v1/chat/completions", body

        # koboldcpp: one flat prompt
        lines = [system, ""]
        for entry in request.history:
            lines.append(f"> {entry.text}" if entry.role == "user" else entry.text)
        lines.append(f"> {request.action}")
        return f"{self._base_url}/api/v1/generate", {"prompt": "\n".join(lines)}

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "openai":
            choices = data.get("choices")
            try:
                return choices[0]["message"]["content"]
            except (TypeError, IndexError, KeyError) as e:
                raise LLMError("Unexpected response format from OpenAI-compatible backend") from e

        results = data.get("results")
        if not results or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def __call__(self, request: TurnRequest) -> str:
        url, body = self._build_request(request)
        logger.debug("story call url=%s history=%d action_len=%d",
                     url, len(request.history), len(request.action))
        text = self._parse_response(await self._post(url, body))
        logger.debug("story response len=%d", len(text))
        return text


class HttpImageModel(_HttpClient):
    """Async HTTP client for an OpenAI-style image generation endpoint.

    The generations endpoint is text-only, so reference images are not sent;
    the prompt carries the visual identity instead.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        model: str = "",
        timeout: float = 120.0,
    ) -> None:
        super().__init__(provider_url, api_key, timeout)
        self._model = model

    async def __call__(
        self, prompt: str, *, aspect: str = "16:9", references: list[str] | None = None
    ) -> tuple[bytes, str]:
        url = f"{self._base_url}/v1/images/generations"
        body: dict = {
            "prompt": prompt,
            "n": 1,
            "size": _IMAGE_SIZES.get(aspect, "1024x1024"),
            "response_format": "b64_json",
        }
        if self._model:
            body["model"] = self._model
        logger.debug("image call url=%s aspect=%s prompt_len=%d", url, aspect, len(prompt))

        data = await self._post(url, body)
        try:
            payload = data["data"][0]["b64_json"]
            return base64.b64decode(payload, validate=True), "image/png"
        except (TypeError, IndexError, KeyError, binascii.Error) as e:
            raise LLMError("Unexpected response format from image backend") from e


def build_models(
    connection: ConnectionSettings, api_key: str = ""
) -> tuple[IllustratedStoryGenerator, HttpImageModel]:
    """Wire the HTTP adapters into a generator. Returns (generator, image_model)."""
    story = HttpStoryModel(
        connection.provider_url,
        api_key=api_key,
        provider_format=connection.provider_format,
        model=connection.story_model,
        timeout=connection.timeout,
    )
    image = HttpImageModel(
        connection.image_url or connection.provider_url,
        api_key=api_key,
        model=connection.image_model,
        timeout=connection.timeout,
    )
    return IllustratedStoryGenerator(story, image), image
