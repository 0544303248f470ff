"""Tests for taleweaver.llm — HttpStoryModel and HttpImageModel."""

import base64
import json

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from taleweaver.config import ConnectionSettings, GameSettings
from taleweaver.generator import GeneratorError, IllustratedStoryGenerator, TurnRequest
from taleweaver.llm import HttpImageModel, HttpStoryModel, LLMError, build_models
from taleweaver.models import HistoryEntry


def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _request(action: str = "Open the door") -> TurnRequest:
    return TurnRequest(
        history=[
            HistoryEntry(role="user", text="Begin."),
            HistoryEntry(role="model", text='{"story_segments": []}'),
        ],
        action=action,
        settings=GameSettings(),
    )


# ---------------------------------------------------------------------------
# HttpStoryModel: OpenAI-compatible format
# ---------------------------------------------------------------------------

class TestStoryModelOpenAI:
    @pytest.fixture
    def model(self) -> HttpStoryModel:
        return HttpStoryModel(provider_url="http://localhost:5001/", api_key="sk-test", model="gpt-x")

    async def test_happy_path(self, model: HttpStoryModel) -> None:
        body = {"choices": [{"message": {"content": '{"story_segments": [{"text": "Hi"}]}'}}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await model(_request())
        assert json.loads(result)["story_segments"][0]["text"] == "Hi"

    async def test_request_shape(self, model: HttpStoryModel) -> None:
        body = {"choices": [{"message": {"content": "{}"}}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            await model(_request("Open the door"))
        url = mock_post.call_args[0][0]
        sent = mock_post.call_args.kwargs["json"]
        headers = mock_post.call_args.kwargs["headers"]
        assert url == "http://localhost:5001/v1/chat/completions"
        assert sent["model"] == "gpt-x"
        assert sent["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in sent["messages"]] == ["system", "user", "assistant", "user"]
        assert sent["messages"][-1]["content"] == "Open the door"
        assert headers["Authorization"] == "Bearer sk-test"

    async def test_unexpected_format(self, model: HttpStoryModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": []}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await model(_request())


# ---------------------------------------------------------------------------
# HttpStoryModel: KoboldCpp format
# ---------------------------------------------------------------------------

class TestStoryModelKoboldCpp:
    @pytest.fixture
    def model(self) -> HttpStoryModel:
        return HttpStoryModel(provider_url="http://localhost:5001", provider_format="koboldcpp")

    async def test_happy_path(self, model: HttpStoryModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "{}"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            assert await model(_request()) == "{}"
        url = mock_post.call_args[0][0]
        assert url == "http://localhost:5001/api/v1/generate"
        prompt = mock_post.call_args.kwargs["json"]["prompt"]
        assert prompt.endswith("> Open the door")
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]

    async def test_empty_results(self, model: HttpStoryModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": []}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError):
                await model(_request())


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------

class TestTransportErrors:
    @pytest.fixture
    def model(self) -> HttpStoryModel:
        return HttpStoryModel(provider_url="http://localhost:5001")

    async def test_connect_error(self, model: HttpStoryModel) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Cannot connect"):
                await model(_request())

    async def test_http_error(self, model: HttpStoryModel) -> None:
        mock_post = AsyncMock(return_value=_mock_response({}, status=503))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="HTTP 503"):
                await model(_request())

    async def test_timeout(self, model: HttpStoryModel) -> None:
        mock_post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="timed out"):
                await model(_request())

    async def test_llm_error_is_generator_error(self, model: HttpStoryModel) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(GeneratorError):
                await model(_request())


# ---------------------------------------------------------------------------
# HttpImageModel
# ---------------------------------------------------------------------------

class TestImageModel:
    async def test_decodes_b64(self, red_png: bytes) -> None:
        body = {"data": [{"b64_json": base64.b64encode(red_png).decode()}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        model = HttpImageModel(provider_url="http://img:9000", model="img-1")
        with patch("httpx.AsyncClient.post", mock_post):
            data, mime = await model("a forest", aspect="16:9", references=[])
        assert data == red_png
        assert mime == "image/png"
        sent = mock_post.call_args.kwargs["json"]
        assert sent["size"] == "1792x1024"
        assert sent["model"] == "img-1"
        assert mock_post.call_args[0][0] == "http://img:9000/v1/images/generations"

    async def test_bad_payload(self) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"data": [{"b64_json": "@@"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError):
                await HttpImageModel(provider_url="http://img")("x", aspect="1:1", references=[])


def test_build_models_falls_back_to_provider_url() -> None:
    generator, image = build_models(ConnectionSettings(provider_url="http://llm"))
    assert isinstance(generator, IllustratedStoryGenerator)
    assert generator.image_model is image
