"""Tool registry for discovering, describing and executing tools."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from finn_bot.ai.tools.base import Tool, ToolContext, ToolResult
from finn_bot.core.types import Provider
from finn_bot.log import get_logger

if TYPE_CHECKING:
    from finn_bot.ai.router import ModelRouter
    from finn_bot.services.catalog import ModelCatalog
    from finn_bot.storage.conversation_repo import ConversationRepository
    from finn_bot.storage.user_repo import UserRepository

logger = get_logger(__name__)

TOOL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

TOOL_SYSTEM_PROMPT = (
    "You can use tools to manage models and query OpenRouter's model catalog. "
    "Use tools when a user asks to list or switch models, reset a conversation, "
    "or find the most recent OpenRouter models by capability."
)


class ToolRegistry:
    """Catalog of available tools, built once at startup."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if not TOOL_NAME_PATTERN.match(tool.name):
            raise ValueError(f"Invalid tool name: {tool.name!r}")
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        logger.info("tool_registered", tool_name=tool.name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def all_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def claude_schemas(self) -> list[dict[str, Any]]:
        return [t.to_claude_dict() for t in self._tools.values()]

    def openai_schemas(self) -> list[dict[str, Any]]:
        return [t.to_openai_dict() for t in self._tools.values()]

    def schemas_for(self, provider: Provider) -> list[dict[str, Any]]:
        match provider:
            case Provider.CLAUDE:
                return self.claude_schemas()
            case Provider.OPENROUTER:
                return self.openai_schemas()
            case _:
                raise ValueError(f"Unknown provider: {provider}")

    async def execute(self, name: str, tool_input: Any, context: ToolContext) -> ToolResult:
        """Run a tool by name. Never raises: failures become error results.

        The context callback fires before this returns, so observers see each
        result before it is appended to the conversation.
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("unknown_tool", tool=name)
            result = ToolResult.error(f"Unknown tool: {name}")
        else:
            logger.info("tool_execute", tool=name)
            try:
                result = await tool.execute(tool_input, context)
            except Exception as e:
                logger.error("tool_execution_error", tool=name, error=str(e))
                result = ToolResult.error(str(e) or type(e).__name__)

        context.notify(name, tool_input, result)
        return result

    def discover_and_register(
        self,
        router: ModelRouter,
        users: UserRepository,
        conversations: ConversationRepository,
        catalog: ModelCatalog,
    ) -> None:
        """Register all built-in tools."""
        from finn_bot.ai.tools.catalog import CatalogRefreshTool, CatalogSearchTool
        from finn_bot.ai.tools.conversation import ResetConversationTool
        from finn_bot.ai.tools.models import ListModelsTool, SwitchModelTool

        self.register(ListModelsTool(router))
        self.register(SwitchModelTool(router, users, catalog))
        self.register(ResetConversationTool(conversations))
        self.register(CatalogRefreshTool(catalog))
        self.register(CatalogSearchTool(catalog))
