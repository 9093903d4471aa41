"""User persistence."""

from __future__ import annotations

from typing import Optional

from finn_bot.log import get_logger
from finn_bot.storage.database import Database
from finn_bot.storage.models import User

logger = get_logger(__name__)


class UserRepository:
    def __init__(self, db: Database, default_model: str):
        self._db = db
        self._default_model = default_model

    async def get(self, user_id: str) -> User | None:
        cursor = await self._db.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
        row = await cursor.fetchone()
        return self._row_to_user(row) if row else None

    async def get_or_create(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """Fetch a user, creating them with the default model on first contact."""
        existing = await self.get(user_id)
        if existing:
            if (display_name, email) != (existing.display_name, existing.email):
                await self._db.conn.execute(
                    """UPDATE users SET
                         display_name = COALESCE(?, display_name),
                         email = COALESCE(?, email),
                         updated_at = CAST(strftime('%s','now') AS INTEGER)
                       WHERE id = ?""",
                    (display_name, email, user_id),
                )
                await self._db.conn.commit()
                existing.display_name = display_name or existing.display_name
                existing.email = email or existing.email
            return existing

        await self._db.conn.execute(
            """INSERT INTO users (id, display_name, email, preferred_model)
               VALUES (?, ?, ?, ?)""",
            (user_id, display_name, email, self._default_model),
        )
        await self._db.conn.commit()
        logger.info("user_created", user_id=user_id, preferred_model=self._default_model)
        user = await self.get(user_id)
        if user is None:
            raise RuntimeError(f"User {user_id} missing after insert")
        return user

    async def set_preferred_model(self, user_id: str, alias: str) -> None:
        await self._db.conn.execute(
            "UPDATE users SET preferred_model = ?, updated_at = CAST(strftime('%s','now') AS INTEGER) WHERE id = ?",
            (alias, user_id),
        )
        await self._db.conn.commit()
        logger.info("preferred_model_updated", user_id=user_id, model=alias)

    @staticmethod
    def _row_to_user(row) -> User:
        return User(
            id=row["id"],
            preferred_model=row["preferred_model"],
            role=row["role"],
            display_name=row["display_name"],
            email=row["email"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
