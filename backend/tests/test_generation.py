"""Generation transports fail closed and retry transient errors."""

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.config import Settings
from app.services.generation import (
    BackboardGenerationService,
    GeminiGenerationService,
    GenerationService,
    build_generation_service,
)


@pytest.fixture
def gemini_settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_PATH=str(tmp_path / "inkwell.db"),
        GEMINI_API_KEY="test-key",
        GENERATION_MAX_RETRIES=2,
        GENERATION_RETRY_BASE_SECONDS=0,
    )


def _gemini(config: Settings, handler) -> GeminiGenerationService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiGenerationService(config, client=client)


def _reply(text: str) -> dict:
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}}],
        "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 2, "totalTokenCount": 5},
        "modelVersion": "gemini-2.0-flash-001",
    }


@pytest.mark.asyncio
async def test_gemini_success(gemini_settings) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_reply("Hi there"))

    service = _gemini(gemini_settings, handler)
    result = await service.generate("Hello")

    assert result.success
    assert result.response == "Hi there"
    assert result.total_tokens == 5
    assert result.model_name == "gemini-2.0-flash-001"
    request = seen[0]
    assert request.url.path.endswith("/gemini-2.0-flash:generateContent")
    assert request.headers["x-goog-api-key"] == "test-key"
    assert "key" not in request.url.params
    assert b'"text":"Hello"' in request.content.replace(b" ", b"")


@pytest.mark.asyncio
async def test_gemini_retries_transient_status_then_fails_closed(gemini_settings) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, json={"error": {"message": "overloaded"}})

    result = await _gemini(gemini_settings, handler).generate("Hello")

    assert not result.success
    assert result.error == "Gemini API returned 503"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_gemini_recovers_after_transient_error(gemini_settings) -> None:
    responses = [httpx.Response(429), httpx.Response(200, json=_reply("ok"))]

    result = await _gemini(gemini_settings, lambda request: responses.pop(0)).generate("Hello")

    assert result.success
    assert result.response == "ok"


@pytest.mark.asyncio
async def test_gemini_client_error_is_not_retried(gemini_settings) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400, json={"error": {"message": "bad key"}})

    result = await _gemini(gemini_settings, handler).generate("Hello")

    assert not result.success
    assert len(calls) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"candidates": []}, _reply("   ")])
async def test_gemini_malformed_payload_fails(gemini_settings, payload) -> None:
    result = await _gemini(gemini_settings, lambda request: httpx.Response(200, json=payload)).generate("Hello")

    assert not result.success
    assert result.error


@pytest.mark.asyncio
async def test_gemini_network_error_fails_closed(gemini_settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    result = await _gemini(gemini_settings, handler).generate("Hello")

    assert not result.success
    assert "unreachable" in result.error


@pytest.mark.asyncio
async def test_gemini_without_key_is_unavailable(tmp_path) -> None:
    config = Settings(DATABASE_PATH=str(tmp_path / "db.sqlite"), GEMINI_API_KEY="")
    service = GeminiGenerationService(config)
    await service.initialize()

    result = await service.generate("Hello")

    assert not service.is_available
    assert not result.success
    await service.close()


def _backboard_client(reply: str = "Hi there") -> MagicMock:
    client = MagicMock()
    client.create_assistant = AsyncMock(return_value=SimpleNamespace(assistant_id="asst-1"))
    client.create_thread = AsyncMock(return_value=SimpleNamespace(thread_id="thread-1"))
    client.add_message = AsyncMock(return_value=SimpleNamespace(
        content=reply,
        model_name="gemini-2.0-flash",
        input_tokens=4,
        output_tokens=3,
        total_tokens=7,
    ))
    client.delete_thread = AsyncMock()
    return client


@pytest.mark.asyncio
async def test_backboard_uses_throwaway_thread(tmp_path) -> None:
    config = Settings(DATABASE_PATH=str(tmp_path / "db.sqlite"), BACKBOARD_API_KEY="bb-key")
    client = _backboard_client()

    with patch("app.services.generation.BackboardClient", return_value=client):
        service = BackboardGenerationService(config)
        await service.initialize()
        first = await service.generate("Hello")
        await service.generate("Again")

    assert first.success
    assert first.response == "Hi there"
    assert first.total_tokens == 7
    client.create_assistant.assert_awaited_once()
    assert client.delete_thread.await_count == 2
    kwargs = client.add_message.await_args.kwargs
    assert kwargs["memory"] == "off"
    assert kwargs["content"] == "Again"


@pytest.mark.asyncio
async def test_backboard_failure_still_discards_thread(tmp_path) -> None:
    config = Settings(
        DATABASE_PATH=str(tmp_path / "db.sqlite"),
        BACKBOARD_API_KEY="bb-key",
        GENERATION_MAX_RETRIES=0,
    )
    client = _backboard_client()
    client.add_message = AsyncMock(side_effect=RuntimeError("model exploded"))

    with patch("app.services.generation.BackboardClient", return_value=client):
        service = BackboardGenerationService(config)
        await service.initialize()
        result = await service.generate("Hello")

    assert not result.success
    assert "model exploded" in result.error
    client.delete_thread.assert_awaited_once_with(thread_id="thread-1")


def test_build_generation_service(tmp_path) -> None:
    base = {"DATABASE_PATH": str(tmp_path / "db.sqlite")}

    assert isinstance(build_generation_service(Settings(**base)), GeminiGenerationService)
    assert isinstance(
        build_generation_service(Settings(GENERATION_PROVIDER="Backboard", **base)),
        BackboardGenerationService,
    )
    with pytest.raises(ValueError):
        build_generation_service(Settings(GENERATION_PROVIDER="carrier-pigeon", **base))


@pytest.mark.asyncio
async def test_gemini_key_never_reaches_logs(tmp_path, caplog) -> None:
    config = Settings(
        DATABASE_PATH=str(tmp_path / "db.sqlite"),
        GEMINI_API_KEY="SECRET-KEY-123",
        GENERATION_MAX_RETRIES=1,
        GENERATION_RETRY_BASE_SECONDS=0,
    )
    caplog.set_level(logging.DEBUG)

    result = await _gemini(config, lambda request: httpx.Response(503)).generate("Hello")

    assert not result.success
    assert any("503" in record.getMessage() for record in caplog.records)
    assert not any("SECRET-KEY-123" in record.getMessage() for record in caplog.records)
    assert "SECRET-KEY-123" not in (result.error or "")


@pytest.mark.asyncio
async def test_base_service_fails_closed() -> None:
    result = await GenerationService().generate("Hello")

    assert not result.success
    assert result.error == "No generation provider"
