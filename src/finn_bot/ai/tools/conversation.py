"""Conversation reset tool."""

from __future__ import annotations

from typing import Any

from finn_bot.ai.tools.base import Tool, ToolContext, ToolResult
from finn_bot.storage.conversation_repo import ConversationRepository


class ResetConversationTool(Tool):
    def __init__(self, conversations: ConversationRepository):
        self._conversations = conversations

    @property
    def name(self) -> str:
        return "reset_conversation"

    @property
    def description(self) -> str:
        return "Reset the user's conversation history, starting a fresh thread."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "additionalProperties": False}

    async def execute(self, tool_input: Any, context: ToolContext) -> ToolResult:
        await self._conversations.archive_active(context.user.id)
        return ToolResult.ok({"ok": True})
