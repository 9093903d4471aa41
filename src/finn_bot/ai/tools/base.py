"""Abstract tool interface and the values passed through tool execution."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from finn_bot.log import get_logger
from finn_bot.storage.models import Conversation, User

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Tool output fed back to the model. ``is_error`` results do not stop the loop."""

    content: str
    is_error: bool = False

    @classmethod
    def ok(cls, payload: Any) -> ToolResult:
        return cls(content=json.dumps(payload))

    @classmethod
    def error(cls, message: str, **extra: Any) -> ToolResult:
        return cls(content=json.dumps({"ok": False, "error": message, **extra}), is_error=True)


@dataclass(frozen=True, slots=True)
class ToolEvent:
    name: str
    input: Any
    result: ToolResult


@dataclass
class ToolContext:
    """State shared by every tool call of a single loop run.

    ``user`` is mutated in place by tools (e.g. a model switch) so that later
    calls in the same run see the change. Never share one context between runs.
    """

    user: User
    conversation: Conversation
    on_tool_result: Optional[Callable[[ToolEvent], None]] = None

    def notify(self, name: str, tool_input: Any, result: ToolResult) -> None:
        """Report a result to the observer. Observer failures are logged, never raised."""
        if self.on_tool_result is None:
            return
        try:
            self.on_tool_result(ToolEvent(name=name, input=tool_input, result=result))
        except Exception:
            logger.exception("tool_callback_error", tool=name)


class Tool(ABC):
    """Base class for all model-callable tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name sent to the provider."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description for the model."""
        ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema dict describing accepted parameters."""
        ...

    @abstractmethod
    async def execute(self, tool_input: Any, context: ToolContext) -> ToolResult:
        """Run the tool. ``tool_input`` is the decoded arguments, usually a dict."""
        ...

    def to_claude_dict(self) -> dict[str, Any]:
        """Serialize to the native messages tool declaration format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def to_openai_dict(self) -> dict[str, Any]:
        """Serialize to the chat completions function declaration format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }
