"""AI client abstraction with native messages and chat completions backends."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from finn_bot.ai.content import build_claude_messages, build_openai_messages
from finn_bot.config import AnthropicConfig, OpenRouterConfig
from finn_bot.core.errors import ConfigurationError, ProviderError
from finn_bot.core.types import Provider
from finn_bot.log import get_logger
from finn_bot.storage.models import Message

if TYPE_CHECKING:
    from finn_bot.ai.tools.base import ToolResult

logger = get_logger(__name__)


@dataclass
class AIResponse:
    """Final result of a loop run. Token counts are totals over every inference call."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True, slots=True)
class PendingToolCall:
    """A tool call requested by the model. ``arguments`` is raw and may not be valid JSON."""

    id: str
    name: str
    arguments: str


@dataclass
class Completion:
    """One parsed inference call."""

    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    tool_calls: list[PendingToolCall] = field(default_factory=list)
    raw: Any = None  # Backend-specific raw response


class AIClient(ABC):
    """One provider family's wire format."""

    @property
    @abstractmethod
    def provider(self) -> Provider:
        ...

    @abstractmethod
    def build_messages(self, history: list[Message]) -> list[dict[str, Any]]:
        """Encode conversation history in the provider's message format."""
        ...

    @abstractmethod
    async def infer(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system: str,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
    ) -> Completion:
        """Make a single inference call. Raises ProviderError on transport failure."""
        ...

    @abstractmethod
    def append_tool_turns(
        self,
        messages: list[dict[str, Any]],
        completion: Completion,
        results: list[tuple[PendingToolCall, ToolResult]],
    ) -> None:
        """Append the assistant tool-call turn and its results in the provider's turn shape."""
        ...

    @abstractmethod
    def forced_tool_choice(self, tool_name: str) -> dict[str, Any]:
        """tool_choice value that makes the model call ``tool_name``."""
        ...


class AnthropicClient(AIClient):
    """Anthropic Messages API backend using the official SDK."""

    def __init__(self, config: AnthropicConfig | None, client: Any = None):
        self._config = config or AnthropicConfig()
        self._client = client

    @property
    def provider(self) -> Provider:
        return Provider.CLAUDE

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._config.api_key:
                raise ConfigurationError("Anthropic API key not configured")
            import anthropic

            self._client = anthropic.AsyncAnthropic(
                api_key=self._config.api_key,
                base_url=self._config.base_url,
                max_retries=self._config.max_retries,
                timeout=self._config.timeout,
            )
        return self._client

    def build_messages(self, history: list[Message]) -> list[dict[str, Any]]:
        return build_claude_messages(history)

    async def infer(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system: str,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
    ) -> Completion:
        import anthropic

        client = self._get_client()
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": self._config.max_tokens,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = tools
            if tool_choice:
                kwargs["tool_choice"] = tool_choice

        logger.debug("api_request", provider="claude", model=model, message_count=len(messages))
        try:
            response = await client.messages.create(**kwargs)
        except anthropic.APIStatusError as e:
            logger.error("provider_error", provider="claude", status=e.status_code, error=str(e))
            raise ProviderError("Anthropic", str(e), status_code=e.status_code) from e
        except anthropic.APIError as e:
            logger.error("provider_error", provider="claude", error=str(e))
            raise ProviderError("Anthropic", str(e)) from e

        tool_calls = [
            PendingToolCall(id=block.id, name=block.name, arguments=json.dumps(block.input))
            for block in response.content
            if block.type == "tool_use"
        ]
        text = "\n".join(block.text for block in response.content if block.type == "text")
        logger.debug(
            "api_response",
            provider="claude",
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
            tool_calls=len(tool_calls),
        )
        return Completion(
            text=text,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            tool_calls=tool_calls,
            raw=response,
        )

    def append_tool_turns(
        self,
        messages: list[dict[str, Any]],
        completion: Completion,
        results: list[tuple[PendingToolCall, ToolResult]],
    ) -> None:
        # Echo the response blocks verbatim, then answer every tool_use in one user turn
        messages.append(
            {
                "role": "assistant",
                "content": [
                    block.model_dump(mode="json", exclude_none=True)
                    for block in completion.raw.content
                ],
            }
        )
        messages.append(
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": call.id,
                        "content": result.content,
                        "is_error": result.is_error,
                    }
                    for call, result in results
                ],
            }
        )

    def forced_tool_choice(self, tool_name: str) -> dict[str, Any]:
        return {"type": "tool", "name": tool_name}


class OpenRouterClient(AIClient):
    """OpenRouter chat completions backend via the OpenAI SDK."""

    def __init__(self, config: OpenRouterConfig | None, client: Any = None):
        self._config = config or OpenRouterConfig()
        self._client = client

    @property
    def provider(self) -> Provider:
        return Provider.OPENROUTER

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._config.api_key:
                raise ConfigurationError("OpenRouter API key not configured")
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=self._config.api_key,
                base_url=self._config.base_url,
                max_retries=self._config.max_retries,
                timeout=self._config.timeout,
                default_headers={
                    "HTTP-Referer": self._config.public_url,
                    "X-Title": self._config.app_title,
                },
            )
        return self._client

    def build_messages(self, history: list[Message]) -> list[dict[str, Any]]:
        return build_openai_messages(history)

    async def infer(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system: str,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
    ) -> Completion:
        import openai

        client = self._get_client()
        request_messages = [{"role": "system", "content": system}, *messages] if system else messages
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": self._config.max_tokens,
            "messages": request_messages,
        }
        if tools:
            kwargs["tools"] = tools
            if tool_choice:
                kwargs["tool_choice"] = tool_choice

        logger.debug("api_request", provider="openrouter", model=model, message_count=len(request_messages))
        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            logger.error("provider_error", provider="openrouter", status=e.status_code, error=str(e))
            raise ProviderError("OpenRouter", str(e), status_code=e.status_code) from e
        except openai.APIError as e:
            logger.error("provider_error", provider="openrouter", error=str(e))
            raise ProviderError("OpenRouter", str(e)) from e

        if not response.choices:
            raise ProviderError("OpenRouter", "response contained no choices")
        choice = response.choices[0]
        message = choice.message

        tool_calls = [
            PendingToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "")
            for tc in message.tool_calls or []
            if tc.type == "function"
        ]
        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0
        logger.debug(
            "api_response",
            provider="openrouter",
            model=response.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            finish_reason=choice.finish_reason,
            tool_calls=len(tool_calls),
        )
        return Completion(
            text=message.content or "",
            model=response.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            tool_calls=tool_calls,
            raw=message,
        )

    def append_tool_turns(
        self,
        messages: list[dict[str, Any]],
        completion: Completion,
        results: list[tuple[PendingToolCall, ToolResult]],
    ) -> None:
        message = completion.raw
        messages.append(
            {
                "role": "assistant",
                "content": message.content,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.function.name,
                            "arguments": tc.function.arguments,
                        },
                    }
                    for tc in message.tool_calls or []
                ],
            }
        )
        for call, result in results:
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": result.content,
                }
            )

    def forced_tool_choice(self, tool_name: str) -> dict[str, Any]:
        return {"type": "function", "function": {"name": tool_name}}


def create_client(provider: Provider, anthropic: Optional[AnthropicConfig], openrouter: OpenRouterConfig) -> AIClient:
    """Create the client for a provider family."""
    match provider:
        case Provider.CLAUDE:
            return AnthropicClient(anthropic)
        case Provider.OPENROUTER:
            return OpenRouterClient(openrouter)
        case _:
            raise ValueError(f"Unknown provider: {provider}")
