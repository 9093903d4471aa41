"""Model alias configuration persistence."""

from __future__ import annotations

from typing import Optional

from finn_bot.core.types import Provider
from finn_bot.log import get_logger
from finn_bot.storage.database import Database
from finn_bot.storage.models import ModelConfig

logger = get_logger(__name__)

DEFAULT_MODELS: tuple[ModelConfig, ...] = (
    ModelConfig("claude-opus", Provider.CLAUDE, "claude-opus-4-20250514", "Claude Opus 4"),
    ModelConfig("claude-sonnet", Provider.CLAUDE, "claude-sonnet-4-20250514", "Claude Sonnet 4"),
    ModelConfig("gpt-4", Provider.OPENROUTER, "openai/gpt-4-turbo", "GPT-4 Turbo"),
    ModelConfig("gpt-4o", Provider.OPENROUTER, "openai/gpt-4o", "GPT-4o"),
    ModelConfig("gemini-pro", Provider.OPENROUTER, "google/gemini-pro-1.5", "Gemini Pro 1.5"),
    ModelConfig("llama-3", Provider.OPENROUTER, "meta-llama/llama-3.1-70b-instruct", "Llama 3.1 70B"),
)

_COLUMNS = "id, provider, model_id, display_name, enabled"


class ModelRepository:
    """CRUD over the model_config table. Every read hits the database."""

    def __init__(self, db: Database):
        self._db = db

    async def seed_defaults(self, models: tuple[ModelConfig, ...] = DEFAULT_MODELS) -> int:
        """Insert the default aliases into an empty table. Returns the number inserted."""
        cursor = await self._db.conn.execute("SELECT COUNT(*) AS count FROM model_config")
        row = await cursor.fetchone()
        if row["count"] > 0:
            return 0
        for model in models:
            await self._insert(model)
        await self._db.conn.commit()
        logger.info("models_seeded", count=len(models))
        return len(models)

    async def all(self) -> list[ModelConfig]:
        cursor = await self._db.conn.execute(
            f"SELECT {_COLUMNS} FROM model_config ORDER BY provider, id"
        )
        return [self._row_to_model(row) for row in await cursor.fetchall()]

    async def get_by_alias(self, alias: str) -> ModelConfig | None:
        cursor = await self._db.conn.execute(
            f"SELECT {_COLUMNS} FROM model_config WHERE id = ?", (alias,)
        )
        row = await cursor.fetchone()
        return self._row_to_model(row) if row else None

    async def get_by_provider_id(self, model_id: str) -> ModelConfig | None:
        cursor = await self._db.conn.execute(
            f"SELECT {_COLUMNS} FROM model_config WHERE model_id = ?", (model_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_model(row) if row else None

    async def create(self, model: ModelConfig) -> ModelConfig:
        await self._insert(model)
        await self._db.conn.commit()
        logger.info("model_registered", alias=model.id, provider=str(model.provider), model_id=model.model_id)
        return model

    async def update(
        self,
        alias: str,
        display_name: Optional[str] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        sets: list[str] = []
        values: list[object] = []
        if display_name is not None:
            sets.append("display_name = ?")
            values.append(display_name)
        if enabled is not None:
            sets.append("enabled = ?")
            values.append(1 if enabled else 0)
        if not sets:
            return
        sets.append("updated_at = CAST(strftime('%s','now') AS INTEGER)")
        values.append(alias)
        await self._db.conn.execute(
            f"UPDATE model_config SET {', '.join(sets)} WHERE id = ?", values
        )
        await self._db.conn.commit()

    async def _insert(self, model: ModelConfig) -> None:
        await self._db.conn.execute(
            f"INSERT INTO model_config ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
            (model.id, str(model.provider), model.model_id, model.display_name, 1 if model.enabled else 0),
        )

    @staticmethod
    def _row_to_model(row) -> ModelConfig:
        return ModelConfig(
            id=row["id"],
            provider=Provider(row["provider"]),
            model_id=row["model_id"],
            display_name=row["display_name"],
            enabled=bool(row["enabled"]),
        )
