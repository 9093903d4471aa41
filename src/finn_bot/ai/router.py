"""Resolve model aliases and dispatch to the provider client for their family."""

from __future__ import annotations

from typing import TYPE_CHECKING

from finn_bot.core.errors import ConfigurationError, ModelDisabledError, ModelNotFoundError
from finn_bot.core.types import Provider
from finn_bot.storage.model_repo import ModelRepository
from finn_bot.storage.models import ModelConfig

if TYPE_CHECKING:
    from finn_bot.ai.client import AIClient


class ModelRouter:
    """Reads model configuration from the store on every call; nothing is cached,
    so admin changes (enable/disable, rename) apply to the next resolution."""

    def __init__(self, models: ModelRepository, clients: dict[Provider, AIClient] | None = None):
        self._models = models
        self._clients: dict[Provider, AIClient] = dict(clients or {})

    def set_client(self, provider: Provider, client: AIClient) -> None:
        self._clients[provider] = client

    async def resolve(self, alias: str) -> ModelConfig | None:
        return await self._models.get_by_alias(alias)

    async def all(self) -> list[ModelConfig]:
        return await self._models.all()

    async def get_by_provider_id(self, model_id: str) -> ModelConfig | None:
        return await self._models.get_by_provider_id(model_id)

    async def register(self, model: ModelConfig) -> ModelConfig:
        return await self._models.create(model)

    async def require(self, alias: str) -> ModelConfig:
        """Resolve an alias that must exist and be enabled."""
        model = await self.resolve(alias)
        if model is None:
            raise ModelNotFoundError(alias)
        if not model.enabled:
            raise ModelDisabledError(alias, model.display_name)
        return model

    def client_for(self, provider: Provider) -> AIClient:
        client = self._clients.get(provider)
        if client is None:
            raise ConfigurationError(f"No client configured for provider: {provider}")
        return client
