"""Conversation and message persistence."""

from __future__ import annotations

import json
import uuid
from typing import Optional

from finn_bot.core.types import Role
from finn_bot.log import get_logger
from finn_bot.storage.database import Database
from finn_bot.storage.models import Attachment, Conversation, Message

logger = get_logger(__name__)


class ConversationRepository:
    """CRUD over conversations and their ordered message history."""

    def __init__(self, db: Database):
        self._db = db

    async def get_or_create(
        self,
        user_id: str,
        model: str,
        channel_id: Optional[str] = None,
        thread_ts: Optional[str] = None,
    ) -> Conversation:
        """Return the user's active conversation for a channel/thread, creating one if needed."""
        if thread_ts:
            cursor = await self._db.conn.execute(
                """SELECT * FROM conversations
                   WHERE user_id = ? AND channel_id IS ? AND thread_ts = ? AND status = 'active'""",
                (user_id, channel_id, thread_ts),
            )
        else:
            cursor = await self._db.conn.execute(
                """SELECT * FROM conversations
                   WHERE user_id = ? AND channel_id IS ? AND thread_ts IS NULL AND status = 'active'""",
                (user_id, channel_id),
            )
        row = await cursor.fetchone()
        if row:
            return self._row_to_conversation(row)

        conversation = Conversation(
            id=uuid.uuid4().hex,
            user_id=user_id,
            model=model,
            channel_id=channel_id,
            thread_ts=thread_ts,
        )
        await self._db.conn.execute(
            """INSERT INTO conversations (id, user_id, channel_id, thread_ts, model)
               VALUES (?, ?, ?, ?, ?)""",
            (conversation.id, user_id, channel_id, thread_ts, model),
        )
        await self._db.conn.commit()
        logger.info("conversation_created", conversation_id=conversation.id, user_id=user_id)
        return conversation

    async def get(self, conversation_id: str) -> Conversation | None:
        cursor = await self._db.conn.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def append(self, conversation_id: str, message: Message) -> Message:
        """Persist a message at the end of the conversation and return it with its id."""
        message_id = message.id or uuid.uuid4().hex
        attachments_json = (
            json.dumps([a.to_dict() for a in message.attachments])
            if message.attachments
            else None
        )
        await self._db.conn.execute(
            """INSERT INTO messages
               (id, seq, conversation_id, role, content, attachments, model,
                input_tokens, output_tokens, latency_ms, created_at)
               VALUES (?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM messages WHERE conversation_id = ?),
                       ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                message_id,
                conversation_id,
                conversation_id,
                str(message.role),
                message.content,
                attachments_json,
                message.model,
                message.input_tokens,
                message.output_tokens,
                message.latency_ms,
                message.created_at,
            ),
        )
        await self._db.conn.execute(
            "UPDATE conversations SET updated_at = CAST(strftime('%s','now') AS INTEGER) WHERE id = ?",
            (conversation_id,),
        )
        await self._db.conn.commit()
        return Message(
            conversation_id=conversation_id,
            role=message.role,
            content=message.content,
            attachments=message.attachments,
            model=message.model,
            input_tokens=message.input_tokens,
            output_tokens=message.output_tokens,
            latency_ms=message.latency_ms,
            created_at=message.created_at,
            id=message_id,
        )

    async def get_history(self, conversation_id: str) -> list[Message]:
        """Get the conversation's messages in the order they were appended."""
        cursor = await self._db.conn.execute(
            "SELECT * FROM messages WHERE conversation_id = ? ORDER BY seq ASC",
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    async def archive_active(self, user_id: str) -> int:
        """Archive every active conversation of a user. Returns the number archived."""
        cursor = await self._db.conn.execute(
            """UPDATE conversations SET status = 'archived', updated_at = CAST(strftime('%s','now') AS INTEGER)
               WHERE user_id = ? AND status = 'active'""",
            (user_id,),
        )
        await self._db.conn.commit()
        logger.info("conversations_archived", user_id=user_id, count=cursor.rowcount)
        return cursor.rowcount

    @staticmethod
    def _row_to_conversation(row) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            model=row["model"],
            channel_id=row["channel_id"],
            thread_ts=row["thread_ts"],
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_message(row) -> Message:
        attachments: tuple[Attachment, ...] = ()
        if row["attachments"]:
            try:
                attachments = tuple(
                    Attachment.from_dict(item) for item in json.loads(row["attachments"])
                )
            except (json.JSONDecodeError, TypeError, ValueError):
                logger.warning("attachments_unreadable", message_id=row["id"])
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=Role(row["role"]),
            content=row["content"],
            attachments=attachments,
            model=row["model"],
            input_tokens=row["input_tokens"],
            output_tokens=row["output_tokens"],
            latency_ms=row["latency_ms"],
            created_at=row["created_at"],
        )
