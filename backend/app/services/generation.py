"""
Text generation collaborators.

A generation service takes one prompt string and returns one completion, or a
failure. Every transport fails closed: HTTP errors, network errors and
malformed payloads all come back as ``GenerationResult(success=False)``.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from backboard import BackboardClient

from app.config import Settings, settings
from app.logging import get_logger
from app.models import GenerationResult
from app.services.prompts import build_assistant_description

logger = get_logger('services.generation')
_T = TypeVar("_T")

_TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class GenerationService:
    """Base for prompt -> completion transports."""

    provider = "none"

    def __init__(self, config: Settings = settings):
        self.config = config

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None

    @property
    def is_available(self) -> bool:
        return False

    async def generate(self, prompt: str) -> GenerationResult:
        return GenerationResult(success=False, provider=self.provider, error="No generation provider")

    def _is_transient_error(self, error: Exception) -> bool:
        if isinstance(error, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
            return True
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code in _TRANSIENT_STATUS_CODES
        if isinstance(error, httpx.TransportError):
            return True

        message = str(error).lower()
        transient_tokens = (
            "timed out",
            "timeout",
            "rate limit",
            "too many requests",
            "temporarily unavailable",
            "connection reset",
            "connection aborted",
            "connection refused",
            "bad gateway",
            "service unavailable",
            "gateway timeout",
        )
        return any(token in message for token in transient_tokens)

    async def _run_with_retry(
        self,
        operation_name: str,
        operation: Callable[[], Awaitable[_T]],
    ) -> _T:
        max_retries = max(int(self.config.GENERATION_MAX_RETRIES), 0)
        total_attempts = max_retries + 1
        base_delay = max(float(self.config.GENERATION_RETRY_BASE_SECONDS), 0.0)
        max_delay = max(float(self.config.GENERATION_RETRY_MAX_SECONDS), base_delay)

        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as error:
                should_retry = attempt < total_attempts and self._is_transient_error(error)
                if not should_retry:
                    raise

                delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
                logger.warning(
                    "%s %s failed (attempt %d/%d): %s. Retrying in %.2fs",
                    self.provider,
                    operation_name,
                    attempt,
                    total_attempts,
                    error,
                    delay,
                )
                if delay > 0:
                    await asyncio.sleep(delay)
                attempt += 1


class GeminiGenerationService(GenerationService):
    """Google Gemini ``generateContent`` over plain HTTPS."""

    provider = "gemini"

    def __init__(self, config: Settings = settings, client: httpx.AsyncClient | None = None):
        super().__init__(config)
        self.client = client
        self._owns_client = client is None

    async def initialize(self) -> None:
        if not self.config.GEMINI_API_KEY:
            logger.warning("GEMINI_API_KEY not set - assistant replies will fail")
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.config.GENERATION_TIMEOUT_SECONDS)
            self._owns_client = True

    async def close(self) -> None:
        if self.client is not None and self._owns_client:
            await self.client.aclose()
        self.client = None

    @property
    def is_available(self) -> bool:
        return bool(self.config.GEMINI_API_KEY) and self.client is not None

    @property
    def endpoint(self) -> str:
        base = self.config.GEMINI_API_BASE_URL.rstrip("/")
        return f"{base}/{self.config.GEMINI_MODEL}:generateContent"

    def _extract_text(self, data: Any) -> str:
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise ValueError(f"Unexpected Gemini payload: missing {e}") from e
        text = "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise ValueError("Gemini returned an empty completion")
        return text

    async def generate(self, prompt: str) -> GenerationResult:
        if not self.is_available:
            return GenerationResult(success=False, provider=self.provider, error="Gemini service unavailable")

        async def _post() -> httpx.Response:
            response = await self.client.post(
                self.endpoint,
                headers={"x-goog-api-key": self.config.GEMINI_API_KEY},
                json={"contents": [{"parts": [{"text": prompt}]}]},
            )
            response.raise_for_status()
            return response

        try:
            response = await self._run_with_retry("generateContent", _post)
            data = response.json()
            text = self._extract_text(data)
        except httpx.HTTPStatusError as e:
            logger.error("Gemini request failed with status %d", e.response.status_code)
            return GenerationResult(
                success=False,
                provider=self.provider,
                error=f"Gemini API returned {e.response.status_code}",
            )
        except Exception as e:
            logger.error(f"Gemini request failed: {e}")
            return GenerationResult(success=False, provider=self.provider, error=str(e))

        usage = data.get("usageMetadata") or {}
        return GenerationResult(
            success=True,
            response=text,
            provider=self.provider,
            model_name=str(data.get("modelVersion") or self.config.GEMINI_MODEL),
            input_tokens=usage.get("promptTokenCount"),
            output_tokens=usage.get("candidatesTokenCount"),
            total_tokens=usage.get("totalTokenCount"),
        )


class BackboardGenerationService(GenerationService):
    """Backboard.io assistant, used as a stateless completion endpoint.

    Each prompt goes to a fresh thread with memory off, since the history is
    already flattened into the prompt.
    """

    provider = "backboard"

    def __init__(self, config: Settings = settings):
        super().__init__(config)
        self.client = None
        self.assistant_id: str | None = None
        self._initialized = False
        self._assistant_lock = asyncio.Lock()

    async def initialize(self) -> None:
        if not self.config.BACKBOARD_API_KEY:
            logger.warning("BACKBOARD_API_KEY not set - assistant replies will fail")
            return

        try:
            self.client = BackboardClient(api_key=self.config.BACKBOARD_API_KEY)
            self._initialized = True
            logger.info("Backboard client initialized")
        except Exception as e:
            logger.error(f"Failed to initialize Backboard: {e}")

    @property
    def is_available(self) -> bool:
        return self._initialized and self.client is not None

    async def _ensure_assistant(self) -> str:
        async with self._assistant_lock:
            if self.assistant_id:
                return self.assistant_id
            assistant = await self._run_with_retry(
                "create_assistant",
                lambda: self.client.create_assistant(
                    name="Inkwell notes assistant",
                    description=build_assistant_description(),
                ),
            )
            self.assistant_id = str(assistant.assistant_id)
            logger.info(f"Created notes assistant: {self.assistant_id}")
            return self.assistant_id

    async def _discard_thread(self, thread_id: str) -> None:
        try:
            await self.client.delete_thread(thread_id=thread_id)
        except Exception as e:
            logger.warning(f"Failed to delete Backboard thread {thread_id}: {e}")

    async def generate(self, prompt: str) -> GenerationResult:
        if not self.is_available:
            return GenerationResult(success=False, provider=self.provider, error="Backboard service unavailable")

        add_message_kwargs: dict[str, Any] = {"content": prompt, "memory": "off"}
        if self.config.BACKBOARD_LLM_PROVIDER:
            add_message_kwargs["llm_provider"] = self.config.BACKBOARD_LLM_PROVIDER
        if self.config.BACKBOARD_MODEL_NAME:
            add_message_kwargs["model_name"] = self.config.BACKBOARD_MODEL_NAME

        thread_id: str | None = None
        try:
            assistant_id = await self._ensure_assistant()
            thread = await self._run_with_retry(
                "create_thread",
                lambda: self.client.create_thread(assistant_id=assistant_id),
            )
            thread_id = str(thread.thread_id)
            response = await self._run_with_retry(
                "add_message",
                lambda: self.client.add_message(thread_id=thread_id, **add_message_kwargs),
            )
        except Exception as e:
            logger.error(f"Backboard chat failed: {e}")
            return GenerationResult(success=False, provider=self.provider, error=str(e))
        finally:
            if thread_id:
                await self._discard_thread(thread_id)

        content = str(getattr(response, "content", "") or "")
        if not content.strip():
            return GenerationResult(success=False, provider=self.provider, error="Backboard returned an empty reply")

        return GenerationResult(
            success=True,
            response=content,
            provider=self.provider,
            model_name=str(getattr(response, "model_name", "") or "").strip() or None,
            input_tokens=getattr(response, "input_tokens", None),
            output_tokens=getattr(response, "output_tokens", None),
            total_tokens=getattr(response, "total_tokens", None),
        )


def build_generation_service(config: Settings = settings) -> GenerationService:
    provider = config.GENERATION_PROVIDER.strip().lower()
    if provider == "gemini":
        return GeminiGenerationService(config)
    if provider == "backboard":
        return BackboardGenerationService(config)
    raise ValueError(f"Unknown GENERATION_PROVIDER: {config.GENERATION_PROVIDER!r}")
