"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from datetime import timedelta

from finn_bot.ai.client import create_client
from finn_bot.ai.handler import MessageHandler
from finn_bot.ai.provider import ResponseGenerator
from finn_bot.ai.router import ModelRouter
from finn_bot.ai.tools.registry import ToolRegistry
from finn_bot.config import AppConfig
from finn_bot.core.types import Provider
from finn_bot.log import get_logger
from finn_bot.services.catalog import ModelCatalog
from finn_bot.storage.conversation_repo import ConversationRepository
from finn_bot.storage.database import Database
from finn_bot.storage.model_repo import ModelRepository
from finn_bot.storage.user_repo import UserRepository

logger = get_logger(__name__)


class FinnApp:
    """Top-level application orchestrator."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.users = UserRepository(self.db, default_model=config.default_model)
        self.conversations = ConversationRepository(self.db)
        self.models = ModelRepository(self.db)
        self.catalog = ModelCatalog(
            path=config.catalog_path,
            api_key=config.openrouter.api_key,
            base_url=config.openrouter.base_url,
            public_url=config.openrouter.public_url,
            app_title=config.openrouter.app_title,
            max_age=timedelta(hours=config.catalog.max_age_hours),
        )
        self.router = ModelRouter(
            self.models,
            {p: create_client(p, config.anthropic, config.openrouter) for p in Provider},
        )
        self.tool_registry = ToolRegistry()
        self.generator = ResponseGenerator(
            router=self.router,
            conversations=self.conversations,
            tool_registry=self.tool_registry,
            system_prompt=config.system_prompt,
        )
        self.handler = MessageHandler(self.generator, self.users, self.conversations)

    async def start(self) -> None:
        """Initialize storage and register tools."""
        await self.db.initialize()
        await self.models.seed_defaults()
        self.tool_registry.discover_and_register(
            router=self.router,
            users=self.users,
            conversations=self.conversations,
            catalog=self.catalog,
        )
        logger.info("finn_started", tools=self.tool_registry.names())

    async def stop(self) -> None:
        await self.db.close()
        logger.info("finn_stopped")
