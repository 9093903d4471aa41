"""Message handler: stores the user turn, calls the model, stores the reply."""

from __future__ import annotations

import time
from typing import Optional

from finn_bot.ai.provider import ResponseGenerator
from finn_bot.ai.tools.base import ToolContext, ToolEvent
from finn_bot.core.errors import ConfigurationError, FinnError
from finn_bot.core.types import Role
from finn_bot.log import get_logger
from finn_bot.storage.conversation_repo import ConversationRepository
from finn_bot.storage.models import Attachment, Message
from finn_bot.storage.user_repo import UserRepository

logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Sorry, I couldn't get a response from the model. Please try again."


class MessageHandler:
    """Handles one incoming message end to end for a user and channel."""

    def __init__(
        self,
        generator: ResponseGenerator,
        users: UserRepository,
        conversations: ConversationRepository,
    ):
        self._generator = generator
        self._users = users
        self._conversations = conversations

    async def handle(
        self,
        user_id: str,
        text: str,
        channel_id: Optional[str] = None,
        thread_ts: Optional[str] = None,
        attachments: tuple[Attachment, ...] = (),
    ) -> str:
        """Process a message and return the text to show the user."""
        user = await self._users.get_or_create(user_id)
        conversation = await self._conversations.get_or_create(
            user_id=user.id,
            model=user.preferred_model,
            channel_id=channel_id,
            thread_ts=thread_ts,
        )
        await self._conversations.append(
            conversation.id,
            Message(
                conversation_id=conversation.id,
                role=Role.USER,
                content=text.strip(),
                attachments=attachments,
            ),
        )

        def _log_tool(event: ToolEvent) -> None:
            logger.info(
                "tool_result",
                user_id=user.id,
                tool=event.name,
                is_error=event.result.is_error,
            )

        context = ToolContext(user=user, conversation=conversation, on_tool_result=_log_tool)
        model_alias = user.preferred_model
        started = time.monotonic()
        try:
            response = await self._generator.generate_response(conversation.id, model_alias, context)
        except ConfigurationError as e:
            logger.error("ai_configuration_error", user_id=user.id, model=model_alias, error=str(e))
            return f"{GENERIC_ERROR_MESSAGE} ({e})"
        except FinnError as e:
            logger.error("ai_error", user_id=user.id, model=model_alias, error=str(e))
            return GENERIC_ERROR_MESSAGE
        latency_ms = int((time.monotonic() - started) * 1000)

        await self._conversations.append(
            conversation.id,
            Message(
                conversation_id=conversation.id,
                role=Role.ASSISTANT,
                content=response.content,
                model=response.model,
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
                latency_ms=latency_ms,
            ),
        )
        logger.info(
            "response_sent",
            user_id=user.id,
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            latency_ms=latency_ms,
        )
        return response.content
