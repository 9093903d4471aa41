"""Entry point: generate the assistant's reply for a conversation."""

from __future__ import annotations

from finn_bot.ai.client import AIResponse
from finn_bot.ai.router import ModelRouter
from finn_bot.ai.tool_runner import run_tool_loop
from finn_bot.ai.tools.base import ToolContext
from finn_bot.ai.tools.registry import ToolRegistry
from finn_bot.config import DEFAULT_SYSTEM_PROMPT
from finn_bot.log import get_logger
from finn_bot.storage.conversation_repo import ConversationRepository

logger = get_logger(__name__)


class ResponseGenerator:
    """Resolves the model, loads history and drives the tool loop.

    The caller persists the returned answer; history is read-only here.
    """

    def __init__(
        self,
        router: ModelRouter,
        conversations: ConversationRepository,
        tool_registry: ToolRegistry,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ):
        self._router = router
        self._conversations = conversations
        self._tool_registry = tool_registry
        self._system_prompt = system_prompt

    async def generate_response(
        self,
        conversation_id: str,
        model_alias: str,
        context: ToolContext | None = None,
        force_tool: str | None = None,
    ) -> AIResponse:
        """Generate a reply with the model behind ``model_alias``.

        Raises ModelNotFoundError / ModelDisabledError before any network call
        and ProviderError if an inference call fails. Tools are enabled only
        when ``context`` is given; ``force_tool`` makes the first call use
        that tool.
        """
        model = await self._router.require(model_alias)
        client = self._router.client_for(model.provider)

        history = await self._conversations.get_history(conversation_id)
        messages = client.build_messages(history)

        logger.info(
            "generate_response",
            conversation_id=conversation_id,
            alias=model.id,
            provider=str(model.provider),
            model_id=model.model_id,
            history=len(history),
            tools=context is not None,
        )
        return await run_tool_loop(
            client=client,
            model=model.model_id,
            messages=messages,
            system=self._system_prompt,
            tool_registry=self._tool_registry,
            context=context,
            tool_choice=client.forced_tool_choice(force_tool) if force_tool else None,
        )
