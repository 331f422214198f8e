"""OllamaClient - Direct HTTP communication with the Ollama REST API."""

import asyncio
from typing import Awaitable, Callable, Iterable, TypeVar

import aiohttp
from agent.exceptions import OllamaConnectionError, OllamaModelError


T = TypeVar("T")


class OllamaClient:
    """Direct async HTTP client for the Ollama API."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        connect_timeout: float = 5.0,
        read_timeout: float = 120.0,
        max_retries: int = 3,
    ):
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_retries = max_retries

    async def health_check(self) -> bool:
        """Check if Ollama is running. GET /api/tags"""
        try:
            async def _request() -> bool:
                async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                    async with session.get(
                        f"{self.base_url}/api/tags",
                    ) as resp:
                        return resp.status == 200

            return await self._with_retry("health check", _request)
        except OllamaConnectionError:
            return False

    async def list_models(self) -> list[dict]:
        """List available local models. GET /api/tags"""
        async def _request() -> list[dict]:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.get(
                    f"{self.base_url}/api/tags",
                ) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        raise OllamaConnectionError(
                            f"Failed to list models (HTTP {resp.status}): {body}"
                        )
                    data = await resp.json()
                    return data.get("models", [])

        return await self._with_retry("list models", _request)

    async def get_missing_models(self, required_models: Iterable[str]) -> list[str]:
        """Return a list of required model names that are not available."""
        models = await self.list_models()
        names = [m.get("name", "") for m in models]
        return self.filter_missing_models(required_models, names)

    @staticmethod
    def filter_missing_models(
        required_models: Iterable[str],
        available_models: Iterable[str],
    ) -> list[str]:
        """Filter required models against a list of available model names."""
        available = [m for m in available_models if m]
        missing: list[str] = []
        for required in required_models:
            if not required:
                continue
            if not OllamaClient._model_available(required, available):
                missing.append(required)
        return missing

    @staticmethod
    def _model_available(required: str, available: Iterable[str]) -> bool:
        """Check whether a model name is available, accounting for tags."""
        if required in available:
            return True
        tag_prefix = f"{required}:"
        return any(name.startswith(tag_prefix) for name in available)

    async def chat(
        self,
        model: str,
        messages: list[dict],
        tools: list[dict] | None = None,
        temperature: float = 0.7,
        options: dict | None = None,
    ) -> dict:
        """
        Send a non-streaming chat request. POST /api/chat
        Returns the decoded response body; tool calls arrive in
        ``body["message"]["tool_calls"]``.
        """
        payload = {
            "model": model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": temperature,
                **(options or {}),
            },
        }
        if tools:
            payload["tools"] = tools

        async def _request() -> dict:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.post(
                    f"{self.base_url}/api/chat",
                    json=payload,
                ) as resp:
                    if resp.status == 404:
                        raise OllamaModelError(
                            f"Model '{model}' not found. Pull it with: ollama pull {model}"
                        )
                    if resp.status != 200:
                        body = await resp.text()
                        raise OllamaConnectionError(
                            f"Ollama chat failed (HTTP {resp.status}): {body}"
                        )
                    return await resp.json(content_type=None)

        return await self._with_retry("chat", _request)

    def _timeout(self) -> aiohttp.ClientTimeout:
        """Build a client timeout configuration from settings."""
        return aiohttp.ClientTimeout(
            total=None,
            connect=self.connect_timeout,
            sock_connect=self.connect_timeout,
            sock_read=self.read_timeout,
        )

    async def _with_retry(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run an async operation with exponential backoff retries."""
        delay = 1.0
        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return await func()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
                if attempt >= self.max_retries:
                    break
                await asyncio.sleep(delay)
                delay *= 2

        raise OllamaConnectionError(self._connection_error_message(operation, last_error))

    def _connection_error_message(self, operation: str, error: Exception | None) -> str:
        """Create a user-friendly connection error message."""
        details = f"{error}" if error else "unknown error"
        return (
            f"Cannot connect to Ollama at {self.base_url} during {operation} "
            f"(after {self.max_retries} attempt(s)): {details}"
        )
