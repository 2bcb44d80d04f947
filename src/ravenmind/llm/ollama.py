"""Ollama text backend.

Chat completions go through Ollama's OpenAI-compatible endpoint via the
OpenAI SDK; model residency (``/api/ps``) and load/unload
(``/api/generate``) use the native API over httpx.
"""

import logging
from typing import Any

import httpx
from openai import AsyncOpenAI

from ravenmind.llm.client import BackendError, GenerationOptions, LoadedModel, Message
from ravenmind.llm.retry import with_retry

logger = logging.getLogger(__name__)


class OllamaClient:
    """Text backend that wraps an Ollama server."""

    def __init__(
        self,
        model: str,
        host: str = "http://localhost:11434",
        timeout: int = 300,
    ):
        """Initialize Ollama client.

        Args:
            model: Model name (e.g., "qwen2.5:14b")
            host: Ollama server URL
            timeout: Request timeout in seconds
        """
        self.model = model
        self.host = host.rstrip("/")

        # Retries are handled by with_retry so the schedule stays fixed
        self.client = AsyncOpenAI(
            base_url=f"{self.host}/v1",
            api_key="ollama",  # Ollama doesn't use API keys but SDK requires one
            timeout=timeout,
            max_retries=0,
        )
        self._http = httpx.AsyncClient(base_url=self.host, timeout=timeout)

    def _convert_messages(self, system_prompt: str, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert internal messages to OpenAI chat format.

        Tool results are rendered as user turns because the model calls tools
        through plain-text JSON blocks rather than native function calling.
        """
        converted: list[dict[str, Any]] = []
        if system_prompt:
            converted.append({"role": "system", "content": system_prompt})

        for msg in messages:
            if msg.role == "tool":
                converted.append(
                    {
                        "role": "user",
                        "content": f'[Tool "{msg.name or "unknown"}" result]:\n{msg.content}',
                    }
                )
            else:
                converted.append({"role": msg.role, "content": msg.content})

        return converted

    async def generate(
        self,
        system_prompt: str,
        messages: list[Message],
        options: GenerationOptions | None = None,
    ) -> str:
        """Generate a reply from Ollama.

        Args:
            system_prompt: System instructions
            messages: Conversation history, oldest first
            options: Sampling options

        Returns:
            Generated text

        Raises:
            BackendError: If the request still fails after retries
        """
        options = options or GenerationOptions()
        params: dict[str, Any] = {
            "model": options.model or self.model,
            "messages": self._convert_messages(system_prompt, messages),
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }

        try:
            response = await with_retry(
                lambda: self.client.chat.completions.create(**params),
                description=f"Ollama chat ({params['model']})",
            )
        except Exception as e:
            raise BackendError(f"Generation failed: {type(e).__name__}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def list_loaded(self) -> list[LoadedModel]:
        """List models currently loaded by Ollama (``GET /api/ps``)."""

        async def _request() -> httpx.Response:
            response = await self._http.get("/api/ps")
            response.raise_for_status()
            return response

        response = await with_retry(_request, description="Ollama /api/ps")
        data = response.json()

        return [
            LoadedModel(
                name=item.get("name", ""),
                size_bytes=int(item.get("size", 0)),
                vram_bytes=int(item.get("size_vram", 0)),
            )
            for item in data.get("models", [])
        ]

    async def _post_generate(self, payload: dict[str, Any], description: str) -> None:
        async def _request() -> httpx.Response:
            response = await self._http.post("/api/generate", json=payload)
            response.raise_for_status()
            return response

        await with_retry(_request, description=description)

    async def unload(self, model: str) -> None:
        """Unload a model by requesting a zero keep-alive."""
        await self._post_generate(
            {"model": model, "keep_alive": 0, "stream": False},
            description=f"Ollama unload ({model})",
        )
        logger.info("Requested unload of %s", model)

    async def warm_load(self, model: str, keep_alive: int) -> None:
        """Load a model without generating, keeping it resident for keep_alive seconds."""
        await self._post_generate(
            {"model": model, "keep_alive": keep_alive, "stream": False},
            description=f"Ollama preload ({model})",
        )
        logger.info("Preloaded %s (keep_alive=%s)", model, keep_alive)

    async def close(self) -> None:
        """Close HTTP clients."""
        await self._http.aclose()
        await self.client.close()
