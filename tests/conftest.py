"""
Shared pytest fixtures for finn-bot tests.
"""
import copy
from types import SimpleNamespace
from typing import Any, AsyncIterator, Callable
from unittest.mock import AsyncMock

import pytest
from anthropic.types import Message as ClaudeMessage
from openai.types.chat import ChatCompletion

from finn_bot.ai.client import AnthropicClient, OpenRouterClient
from finn_bot.ai.router import ModelRouter
from finn_bot.ai.tools.base import ToolContext, ToolEvent
from finn_bot.ai.tools.registry import ToolRegistry
from finn_bot.config import AnthropicConfig, OpenRouterConfig
from finn_bot.core.types import Provider
from finn_bot.services.catalog import ModelCatalog
from finn_bot.storage.conversation_repo import ConversationRepository
from finn_bot.storage.database import Database
from finn_bot.storage.model_repo import ModelRepository
from finn_bot.storage.user_repo import UserRepository


@pytest.fixture
async def db(tmp_path) -> AsyncIterator[Database]:
    """Initialized SQLite database in a temporary directory."""
    database = Database(str(tmp_path / "finn.db"))
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def users(db) -> UserRepository:
    return UserRepository(db, default_model="claude-opus")


@pytest.fixture
def conversations(db) -> ConversationRepository:
    return ConversationRepository(db)


@pytest.fixture
async def models(db) -> ModelRepository:
    repo = ModelRepository(db)
    await repo.seed_defaults()
    return repo


@pytest.fixture
def catalog(tmp_path) -> ModelCatalog:
    """Catalog without an API key: any refresh fails with a configuration error."""
    return ModelCatalog(path=tmp_path / "openrouter-models.json", api_key=None)


@pytest.fixture
def router(models) -> ModelRouter:
    return ModelRouter(models)


@pytest.fixture
def registry(router, users, conversations, catalog) -> ToolRegistry:
    tool_registry = ToolRegistry()
    tool_registry.discover_and_register(
        router=router, users=users, conversations=conversations, catalog=catalog
    )
    return tool_registry


@pytest.fixture
def tool_events() -> list[ToolEvent]:
    """Collects every tool result reported through the context callback."""
    return []


@pytest.fixture
async def context(users, conversations, tool_events) -> ToolContext:
    user = await users.get_or_create("U123", display_name="Test User")
    conversation = await conversations.get_or_create(user.id, user.preferred_model, channel_id="C1")
    return ToolContext(user=user, conversation=conversation, on_tool_result=tool_events.append)


@pytest.fixture
def claude_response() -> Callable[..., ClaudeMessage]:
    """Build a native messages API response."""

    def _build(
        text: str | None = None,
        tool_uses: list[tuple[str, str, Any]] = (),
        input_tokens: int = 10,
        output_tokens: int = 5,
        model: str = "claude-opus-4-20250514",
    ) -> ClaudeMessage:
        content: list[dict[str, Any]] = []
        if text is not None:
            content.append({"type": "text", "text": text})
        for call_id, name, tool_input in tool_uses:
            content.append({"type": "tool_use", "id": call_id, "name": name, "input": tool_input})
        return ClaudeMessage.model_validate(
            {
                "id": "msg_test",
                "type": "message",
                "role": "assistant",
                "model": model,
                "content": content,
                "stop_reason": "tool_use" if tool_uses else "end_turn",
                "stop_sequence": None,
                "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
            }
        )

    return _build


@pytest.fixture
def chat_completion() -> Callable[..., ChatCompletion]:
    """Build a chat completions API response."""

    def _build(
        text: str | None = None,
        tool_calls: list[tuple[str, str, str]] = (),
        prompt_tokens: int = 10,
        completion_tokens: int = 5,
        model: str = "openai/gpt-4o",
    ) -> ChatCompletion:
        message: dict[str, Any] = {"role": "assistant", "content": text}
        if tool_calls:
            message["tool_calls"] = [
                {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}
                for call_id, name, arguments in tool_calls
            ]
        return ChatCompletion.model_validate(
            {
                "id": "gen-test",
                "object": "chat.completion",
                "created": 1700000000,
                "model": model,
                "choices": [
                    {
                        "index": 0,
                        "finish_reason": "tool_calls" if tool_calls else "stop",
                        "message": message,
                    }
                ],
                "usage": {
                    "prompt_tokens": prompt_tokens,
                    "completion_tokens": completion_tokens,
                    "total_tokens": prompt_tokens + completion_tokens,
                },
            }
        )

    return _build

class FakeSDK:
    """Stands in for an SDK resource: returns canned responses and records
    a deep copy of every request, since the loop keeps appending to the
    message list it passes."""

    def __init__(self, responses: list[Any]):
        self._responses = list(responses)
        self.requests: list[dict[str, Any]] = []
        self.create = AsyncMock(side_effect=self._create)

    async def _create(self, **kwargs: Any) -> Any:
        self.requests.append(copy.deepcopy(kwargs))
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def anthropic_client() -> Callable[[list[Any]], AnthropicClient]:
    """AnthropicClient whose SDK returns the given responses in order."""

    def _build(responses: list[Any]) -> AnthropicClient:
        sdk = SimpleNamespace(messages=FakeSDK(responses))
        return AnthropicClient(AnthropicConfig(api_key="test-key"), client=sdk)

    return _build


@pytest.fixture
def openrouter_client() -> Callable[[list[Any]], OpenRouterClient]:
    """OpenRouterClient whose SDK returns the given responses in order."""

    def _build(responses: list[Any]) -> OpenRouterClient:
        sdk = SimpleNamespace(chat=SimpleNamespace(completions=FakeSDK(responses)))
        return OpenRouterClient(OpenRouterConfig(api_key="test-key"), client=sdk)

    return _build


@pytest.fixture
def sdk_requests() -> Callable[[Any], list[dict[str, Any]]]:
    """Snapshots of every SDK request a test client made."""

    def _requests(client: AnthropicClient | OpenRouterClient) -> list[dict[str, Any]]:
        sdk = client._client
        if client.provider == Provider.CLAUDE:
            return sdk.messages.requests
        return sdk.chat.completions.requests

    return _requests
