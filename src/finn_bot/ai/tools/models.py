"""Tools for listing and switching the user's model."""

from __future__ import annotations

import re
from typing import Any

from finn_bot.ai.router import ModelRouter
from finn_bot.ai.tools.base import Tool, ToolContext, ToolResult
from finn_bot.core.errors import FinnError
from finn_bot.core.types import Provider
from finn_bot.log import get_logger
from finn_bot.services.catalog import ModelCatalog
from finn_bot.storage.models import ModelConfig
from finn_bot.storage.user_repo import UserRepository

logger = get_logger(__name__)

# Argument names models use for the target model, highest priority first.
MODEL_FIELD_NAMES = ("model", "model_id", "modelId", "model_name", "modelName", "id", "name")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_model_name(value: str) -> str:
    """Lowercase and strip punctuation: "Claude Opus-4" -> "claudeopus4"."""
    return _NON_ALNUM.sub("", value.lower())


def extract_model_name(tool_input: Any) -> str | None:
    """Pull the requested model out of loosely shaped tool input."""
    if isinstance(tool_input, str):
        return tool_input.strip() or None
    if not isinstance(tool_input, dict):
        return None
    for key in MODEL_FIELD_NAMES:
        value = tool_input.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class ListModelsTool(Tool):
    def __init__(self, router: ModelRouter):
        self._router = router

    @property
    def name(self) -> str:
        return "list_models"

    @property
    def description(self) -> str:
        return (
            "List available models Finn can use. "
            "Optionally filter by provider and include disabled models."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "provider": {
                    "type": "string",
                    "enum": ["claude", "openrouter", "all"],
                    "description": "Optional provider filter. Use 'all' for both.",
                },
                "include_disabled": {
                    "type": "boolean",
                    "description": "Include disabled models in the response (default true).",
                },
            },
            "additionalProperties": False,
        }

    async def execute(self, tool_input: Any, context: ToolContext) -> ToolResult:
        data = tool_input if isinstance(tool_input, dict) else {}
        provider = data.get("provider") or "all"
        include_disabled = data.get("include_disabled", True)

        models = [
            m for m in await self._router.all()
            if (provider == "all" or m.provider == provider)
            and (include_disabled or m.enabled)
        ]
        return ToolResult.ok(
            {
                "current_model": context.user.preferred_model,
                "models": [
                    {
                        "id": m.id,
                        "provider": str(m.provider),
                        "display_name": m.display_name,
                        "enabled": m.enabled,
                    }
                    for m in models
                ],
            }
        )


class SwitchModelTool(Tool):
    """Switch the user's preferred model.

    Resolution order: exact alias, exact provider model id, normalized alias or
    display name, then the OpenRouter catalog (cached, then refreshed). A model
    found only in the catalog is registered as a new alias.
    """

    def __init__(self, router: ModelRouter, users: UserRepository, catalog: ModelCatalog):
        self._router = router
        self._users = users
        self._catalog = catalog

    @property
    def name(self) -> str:
        return "switch_model"

    @property
    def description(self) -> str:
        return (
            "Switch the current user's preferred model to a specific model id. "
            "Returns the new model info."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "model": {
                    "type": "string",
                    "description": "Model id to switch to (e.g. gpt-4o, claude-opus).",
                },
            },
            "required": ["model"],
            "additionalProperties": False,
        }

    async def execute(self, tool_input: Any, context: ToolContext) -> ToolResult:
        requested = extract_model_name(tool_input)
        if not requested:
            return ToolResult(content="Missing required 'model' field.", is_error=True)

        models = await self._router.all()
        model = await self._resolve(requested, models)

        if model is None:
            return ToolResult.error(
                f"Model '{requested}' not found",
                available_models=[m.id for m in models],
            )
        if not model.enabled:
            return ToolResult.error(f"Model '{model.display_name}' is disabled")

        await self._users.set_preferred_model(context.user.id, model.id)
        context.user.preferred_model = model.id

        return ToolResult.ok(
            {
                "ok": True,
                "model": {
                    "id": model.id,
                    "display_name": model.display_name,
                    "provider": str(model.provider),
                },
            }
        )

    async def _resolve(self, requested: str, models: list[ModelConfig]) -> ModelConfig | None:
        model = await self._router.resolve(requested) or await self._router.get_by_provider_id(requested)
        if model:
            return model

        wanted = normalize_model_name(requested)
        for match in (
            lambda m: normalize_model_name(m.id) == wanted,
            lambda m: normalize_model_name(m.display_name) == wanted,
        ):
            model = next((m for m in models if match(m)), None)
            if model:
                return model

        return await self._register_from_catalog(requested)

    async def _register_from_catalog(self, requested: str) -> ModelConfig | None:
        entry = None
        for refresh in (False, True):
            try:
                entry = await self._catalog.find(requested, refresh=refresh)
            except FinnError as e:
                logger.warning("catalog_lookup_failed", model=requested, refresh=refresh, error=str(e))
            if entry:
                break
        if not entry:
            return None

        model_id = entry["id"]
        display_name = entry["name"] if isinstance(entry.get("name"), str) else model_id
        return await self._router.register(
            ModelConfig(
                id=model_id,
                provider=Provider.OPENROUTER,
                model_id=model_id,
                display_name=display_name,
                enabled=True,
            )
        )
