"""
Provider adapter interface and implementations.

Defines the abstract interface that every backend adapter implements and
the concrete adapters for OpenAI, Anthropic and a local Ollama server.
Adapters are initialized once at startup; an adapter whose setup fails
stays disabled and is skipped by the router.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

import anthropic
import httpx
import openai

from common.logging import get_logger
from model_router.config import AnthropicConfig, OllamaConfig, OpenAIConfig, looks_like_api_key
from model_router.exceptions import (
    ConfigurationError,
    ProviderAuthenticationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from model_router.models import ChatRequest, ChatResponse, MessageRole, Usage, new_completion_id

logger = get_logger(__name__)

ChunkCallback = Callable[[ChatResponse], Awaitable[None]]


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    return len(text) // 4


def estimate_prompt_tokens(request: ChatRequest) -> int:
    return sum(estimate_tokens(msg.content) for msg in request.messages)


class ProviderAdapter(ABC):
    """
    Abstract base class for all backend adapters.

    The router only relies on this interface: `enabled` and
    `supports_model` decide whether an adapter is asked to serve a model,
    `generate` and `generate_streaming` do the work.
    """

    def __init__(self) -> None:
        self._enabled = False
        self._initialized = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., "openai", "anthropic")."""
        pass

    @property
    def enabled(self) -> bool:
        """True only after a successful initialize(); never flips back on."""
        return self._enabled

    async def initialize(self) -> None:
        """
        Run adapter setup once.

        Any failure is logged and leaves the adapter disabled for the life
        of the process. Calling this again is a no-op.
        """
        if self._initialized:
            return
        self._initialized = True

        try:
            await self._setup()
        except Exception as e:
            self._enabled = False
            logger.warning(
                "provider_initialization_failed",
                provider=self.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        self._enabled = True
        logger.info("provider_initialized", provider=self.name)

    @abstractmethod
    async def _setup(self) -> None:
        """
        Adapter-specific setup (credentials, clients, model discovery).

        Raises:
            ConfigurationError: If the adapter cannot be used
        """
        pass

    @abstractmethod
    def supports_model(self, model_name: str) -> bool:
        """
        Structural check (usually a name prefix) for a model name.

        Must not perform network calls.
        """
        pass

    @abstractmethod
    async def generate(self, request: ChatRequest, model_name: str) -> ChatResponse:
        """
        Generate a complete response.

        Raises:
            ProviderError: On transport, auth or malformed-upstream failures
        """
        pass

    async def generate_streaming(
        self,
        request: ChatRequest,
        model_name: str,
        on_chunk: ChunkCallback,
    ) -> None:
        """
        Deliver the response as ordered chunks, ending with exactly one
        terminal chunk that carries a finish_reason.

        The default implementation has no native streaming: it makes one
        generate() call, emits the whole answer as one chunk, then the
        terminal chunk.
        """
        response = await self.generate(request, model_name)
        completion_id = new_completion_id()
        if response.content:
            await on_chunk(
                ChatResponse.chunk(
                    model_name, response.content, completion_id=completion_id, provider=self.name
                )
            )
        await on_chunk(
            ChatResponse.chunk(
                model_name, "", finish_reason="stop", completion_id=completion_id, provider=self.name
            )
        )

    def get_supported_models(self) -> List[str]:
        """Known model names; may be incomplete for prefix-matched providers."""
        return []

    async def aclose(self) -> None:
        """Release network clients."""
        pass

    def _require_enabled(self) -> None:
        if not self._enabled:
            raise ProviderError(f"Provider '{self.name}' is not enabled", provider=self.name)


def _openai_messages(request: ChatRequest) -> List[Dict[str, Any]]:
    messages = []
    for msg in request.messages:
        entry = {"role": msg.role, "content": msg.content}
        if msg.name:
            entry["name"] = msg.name
        messages.append(entry)
    return messages


class OpenAIProvider(ProviderAdapter):
    """
    Adapter for the OpenAI chat completions API.

    Serves model names starting with "gpt-" and "o1".
    """

    def __init__(self, config: OpenAIConfig):
        super().__init__()
        self._config = config
        self._client: Optional[openai.AsyncOpenAI] = None
        self._supported_models = [
            "gpt-4o",
            "gpt-4o-mini",
            "gpt-4-turbo",
            "gpt-3.5-turbo",
            "o1",
        ]

    @property
    def name(self) -> str:
        return "openai"

    async def _setup(self) -> None:
        if not looks_like_api_key(self._config.api_key):
            raise ConfigurationError("OpenAI API key not configured")
        self._client = openai.AsyncOpenAI(
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            max_retries=self._config.max_retries,
        )

    def supports_model(self, model_name: str) -> bool:
        return model_name.startswith("gpt-") or model_name == "o1"

    def get_supported_models(self) -> List[str]:
        return self._supported_models.copy()

    def _params(self, request: ChatRequest, model_name: str) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": model_name,
            "messages": _openai_messages(request),
            "temperature": request.temperature,
            "top_p": request.top_p,
            "frequency_penalty": request.frequency_penalty,
            "presence_penalty": request.presence_penalty,
        }
        if request.max_tokens is not None:
            params["max_tokens"] = request.max_tokens
        if request.stop:
            params["stop"] = request.stop
        if request.user:
            params["user"] = request.user
        return params

    def _translate_error(self, e: Exception) -> ProviderError:
        if isinstance(e, openai.APITimeoutError):
            return ProviderTimeoutError(f"OpenAI request timed out: {e}", provider=self.name)
        if isinstance(e, openai.RateLimitError):
            return ProviderRateLimitError(f"OpenAI rate limit exceeded: {e}", provider=self.name)
        if isinstance(e, openai.AuthenticationError):
            return ProviderAuthenticationError(f"OpenAI authentication failed: {e}", provider=self.name)
        return ProviderError(f"OpenAI API error: {e}", provider=self.name)

    async def generate(self, request: ChatRequest, model_name: str) -> ChatResponse:
        self._require_enabled()

        start_time = time.time()
        try:
            response = await self._client.chat.completions.create(**self._params(request, model_name))
        except openai.OpenAIError as e:
            raise self._translate_error(e) from e

        if not response.choices:
            raise ProviderError("OpenAI returned no choices", provider=self.name)

        choice = response.choices[0]
        content = choice.message.content or ""

        if response.usage:
            usage = Usage.of(response.usage.prompt_tokens, response.usage.completion_tokens)
        else:
            usage = Usage.of(estimate_prompt_tokens(request), estimate_tokens(content))

        logger.debug(
            "provider_call_completed",
            provider=self.name,
            model=model_name,
            latency_ms=round((time.time() - start_time) * 1000, 2),
        )
        return ChatResponse.completion(
            model=model_name,
            content=content,
            usage=usage,
            provider=self.name,
            finish_reason=choice.finish_reason or "stop",
        )

    async def generate_streaming(
        self,
        request: ChatRequest,
        model_name: str,
        on_chunk: ChunkCallback,
    ) -> None:
        self._require_enabled()

        completion_id = new_completion_id()
        finish_reason = None
        try:
            stream = await self._client.chat.completions.create(
                **self._params(request, model_name), stream=True
            )
            async for event in stream:
                if not event.choices:
                    continue
                choice = event.choices[0]
                text = choice.delta.content if choice.delta else None
                if text:
                    await on_chunk(
                        ChatResponse.chunk(
                            model_name, text, completion_id=completion_id, provider=self.name
                        )
                    )
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except openai.OpenAIError as e:
            raise self._translate_error(e) from e

        await on_chunk(
            ChatResponse.chunk(
                model_name,
                "",
                finish_reason=finish_reason or "stop",
                completion_id=completion_id,
                provider=self.name,
            )
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


# Anthropic stop reasons mapped onto the wire format's finish reasons.
_ANTHROPIC_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
}


class AnthropicProvider(ProviderAdapter):
    """
    Adapter for the Anthropic messages API.

    Serves model names starting with "claude-".
    """

    def __init__(self, config: AnthropicConfig):
        super().__init__()
        self._config = config
        self._client: Optional[anthropic.AsyncAnthropic] = None
        self._supported_models = [
            "claude-3-5-sonnet-20241022",
            "claude-3-5-haiku-20241022",
            "claude-3-opus-20240229",
            "claude-3-sonnet-20240229",
            "claude-3-haiku-20240307",
        ]

    @property
    def name(self) -> str:
        return "anthropic"

    async def _setup(self) -> None:
        if not looks_like_api_key(self._config.api_key):
            raise ConfigurationError("Anthropic API key not configured")
        self._client = anthropic.AsyncAnthropic(
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            max_retries=self._config.max_retries,
        )

    def supports_model(self, model_name: str) -> bool:
        return model_name.startswith("claude-")

    def get_supported_models(self) -> List[str]:
        return self._supported_models.copy()

    def _params(self, request: ChatRequest, model_name: str) -> Dict[str, Any]:
        # System text goes in its own field; function output is fed back as user text.
        system_parts = []
        messages = []
        for msg in request.messages:
            if msg.role == MessageRole.SYSTEM.value:
                system_parts.append(msg.content)
            elif msg.role == MessageRole.ASSISTANT.value:
                messages.append({"role": "assistant", "content": msg.content})
            else:
                messages.append({"role": "user", "content": msg.content})

        if not messages:
            messages = [{"role": "user", "content": "\n\n".join(system_parts)}]
            system_parts = []

        params: Dict[str, Any] = {
            "model": model_name,
            "messages": messages,
            "max_tokens": request.max_tokens or 1024,
            "temperature": min(request.temperature, 1.0),
            "top_p": request.top_p,
        }
        if system_parts:
            params["system"] = "\n\n".join(system_parts)
        if request.stop:
            params["stop_sequences"] = request.stop
        return params

    def _translate_error(self, e: Exception) -> ProviderError:
        if isinstance(e, anthropic.APITimeoutError):
            return ProviderTimeoutError(f"Anthropic request timed out: {e}", provider=self.name)
        if isinstance(e, anthropic.RateLimitError):
            return ProviderRateLimitError(f"Anthropic rate limit exceeded: {e}", provider=self.name)
        if isinstance(e, anthropic.AuthenticationError):
            return ProviderAuthenticationError(
                f"Anthropic authentication failed: {e}", provider=self.name
            )
        return ProviderError(f"Anthropic API error: {e}", provider=self.name)

    async def generate(self, request: ChatRequest, model_name: str) -> ChatResponse:
        self._require_enabled()

        start_time = time.time()
        try:
            response = await self._client.messages.create(**self._params(request, model_name))
        except anthropic.AnthropicError as e:
            raise self._translate_error(e) from e

        # Anthropic returns content as a list of blocks; only text blocks matter here.
        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

        if response.usage:
            usage = Usage.of(response.usage.input_tokens, response.usage.output_tokens)
        else:
            usage = Usage.of(estimate_prompt_tokens(request), estimate_tokens(content))

        logger.debug(
            "provider_call_completed",
            provider=self.name,
            model=model_name,
            latency_ms=round((time.time() - start_time) * 1000, 2),
        )
        return ChatResponse.completion(
            model=model_name,
            content=content,
            usage=usage,
            provider=self.name,
            finish_reason=_ANTHROPIC_STOP_REASONS.get(response.stop_reason, "stop"),
        )

    async def generate_streaming(
        self,
        request: ChatRequest,
        model_name: str,
        on_chunk: ChunkCallback,
    ) -> None:
        self._require_enabled()

        completion_id = new_completion_id()
        try:
            async with self._client.messages.stream(**self._params(request, model_name)) as stream:
                async for text in stream.text_stream:
                    if text:
                        await on_chunk(
                            ChatResponse.chunk(
                                model_name, text, completion_id=completion_id, provider=self.name
                            )
                        )
                final_message = await stream.get_final_message()
        except anthropic.AnthropicError as e:
            raise self._translate_error(e) from e

        await on_chunk(
            ChatResponse.chunk(
                model_name,
                "",
                finish_reason=_ANTHROPIC_STOP_REASONS.get(final_message.stop_reason, "stop"),
                completion_id=completion_id,
                provider=self.name,
            )
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


class OllamaProvider(ProviderAdapter):
    """
    Adapter for a local Ollama server.

    Enabled only when turned on in configuration and the server answers
    the model listing at startup. Serves the models that listing reports,
    plus the configured default model.
    """

    def __init__(self, config: OllamaConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__()
        self._config = config
        self._transport = transport
        self._base_url = config.base_url.rstrip("/")
        self._client: Optional[httpx.AsyncClient] = None
        self._supported_models: List[str] = []
        if config.default_model:
            self._supported_models.append(config.default_model)

    @property
    def name(self) -> str:
        return "ollama"

    async def _setup(self) -> None:
        if not self._config.enabled:
            raise ConfigurationError("Ollama provider disabled in configuration")

        client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        )
        try:
            response = await client.get("/api/tags")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            await client.aclose()
            raise ConfigurationError(f"Ollama not reachable at {self._base_url}: {e}") from e

        for model in data.get("models", []):
            model_name = model.get("name")
            if model_name and model_name not in self._supported_models:
                self._supported_models.append(model_name)
        self._client = client

    def supports_model(self, model_name: str) -> bool:
        # Ollama reports "llama3:latest" for a model pulled as "llama3".
        return (
            model_name in self._supported_models
            or f"{model_name}:latest" in self._supported_models
        )

    def get_supported_models(self) -> List[str]:
        return self._supported_models.copy()

    def _payload(self, request: ChatRequest, model_name: str, stream: bool) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "temperature": request.temperature,
            "top_p": request.top_p,
            "frequency_penalty": request.frequency_penalty,
            "presence_penalty": request.presence_penalty,
        }
        if request.max_tokens is not None:
            options["num_predict"] = request.max_tokens
        if request.stop:
            options["stop"] = request.stop

        messages = [
            {
                "role": msg.role if msg.role != MessageRole.FUNCTION.value else "user",
                "content": msg.content,
            }
            for msg in request.messages
        ]
        return {"model": model_name, "messages": messages, "stream": stream, "options": options}

    def _translate_error(self, e: Exception, model_name: str) -> ProviderError:
        if isinstance(e, httpx.TimeoutException):
            return ProviderTimeoutError(f"Ollama request timed out: {e}", provider=self.name)
        if isinstance(e, httpx.HTTPStatusError):
            if e.response.status_code == 404:
                return ProviderError(
                    f"Ollama: Model '{model_name}' not found. "
                    f"Install it with: ollama pull {model_name}",
                    provider=self.name,
                )
            return ProviderError(
                f"Ollama API error (status {e.response.status_code})", provider=self.name
            )
        return ProviderError(f"Unexpected error calling Ollama: {e}", provider=self.name)

    async def generate(self, request: ChatRequest, model_name: str) -> ChatResponse:
        self._require_enabled()

        try:
            response = await self._client.post(
                "/api/chat", json=self._payload(request, model_name, stream=False)
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise self._translate_error(e, model_name) from e

        if "error" in data:
            raise ProviderError(f"Ollama error: {data['error']}", provider=self.name)

        content = (data.get("message") or {}).get("content", "")
        prompt_tokens = data.get("prompt_eval_count")
        completion_tokens = data.get("eval_count")
        if isinstance(prompt_tokens, int) and isinstance(completion_tokens, int):
            usage = Usage.of(prompt_tokens, completion_tokens)
        else:
            usage = Usage.of(estimate_prompt_tokens(request), estimate_tokens(content))

        return ChatResponse.completion(
            model=model_name,
            content=content,
            usage=usage,
            provider=self.name,
            finish_reason=data.get("done_reason") or "stop",
        )

    async def generate_streaming(
        self,
        request: ChatRequest,
        model_name: str,
        on_chunk: ChunkCallback,
    ) -> None:
        self._require_enabled()

        completion_id = new_completion_id()
        finish_reason = None
        payload = self._payload(request, model_name, stream=True)
        try:
            async with self._client.stream("POST", "/api/chat", json=payload) as response:
                response.raise_for_status()
                # NDJSON: one JSON object per line, the last one has done=true.
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    data = json.loads(line)
                    if "error" in data:
                        raise ProviderError(f"Ollama error: {data['error']}", provider=self.name)
                    text = (data.get("message") or {}).get("content", "")
                    if text:
                        await on_chunk(
                            ChatResponse.chunk(
                                model_name, text, completion_id=completion_id, provider=self.name
                            )
                        )
                    if data.get("done"):
                        finish_reason = data.get("done_reason") or "stop"
                        break
        except (httpx.HTTPError, ValueError) as e:
            raise self._translate_error(e, model_name) from e

        await on_chunk(
            ChatResponse.chunk(
                model_name,
                "",
                finish_reason=finish_reason or "stop",
                completion_id=completion_id,
                provider=self.name,
            )
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
