"""Tools over the cached OpenRouter model catalog."""

from __future__ import annotations

from typing import Any

from finn_bot.ai.tools.base import Tool, ToolContext, ToolResult
from finn_bot.services.catalog import ModelCatalog


class CatalogRefreshTool(Tool):
    def __init__(self, catalog: ModelCatalog):
        self._catalog = catalog

    @property
    def name(self) -> str:
        return "catalog_refresh"

    @property
    def description(self) -> str:
        return (
            "Fetch the latest OpenRouter models from the OpenRouter API "
            "and refresh the local cache."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "force": {
                    "type": "boolean",
                    "description": "Force refresh even if cache is fresh (default true).",
                },
            },
            "additionalProperties": False,
        }

    async def execute(self, tool_input: Any, context: ToolContext) -> ToolResult:
        data = tool_input if isinstance(tool_input, dict) else {}
        if data.get("force", True):
            snapshot = await self._catalog.refresh()
        else:
            snapshot, _ = await self._catalog.get()
        return ToolResult.ok(
            {
                "ok": True,
                "fetched_at": snapshot.fetched_at,
                "model_count": len(snapshot.models),
            }
        )


class CatalogSearchTool(Tool):
    def __init__(self, catalog: ModelCatalog):
        self._catalog = catalog

    @property
    def name(self) -> str:
        return "catalog_search"

    @property
    def description(self) -> str:
        return (
            "Search OpenRouter's model catalog to find recent models "
            "or models matching a query."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search text for model id/name/description (optional).",
                },
                "limit": {
                    "type": "number",
                    "description": "Max number of results to return (default 5, max 25).",
                },
                "sort": {
                    "type": "string",
                    "enum": ["recent", "relevance"],
                    "description": "Sort by 'recent' for newest models or 'relevance' for query match.",
                },
                "refresh": {
                    "type": "boolean",
                    "description": "Refresh cache before searching (default false).",
                },
            },
            "additionalProperties": False,
        }

    async def execute(self, tool_input: Any, context: ToolContext) -> ToolResult:
        data = tool_input if isinstance(tool_input, dict) else {}
        sort = data.get("sort")
        results = await self._catalog.search(
            query=data.get("query") if isinstance(data.get("query"), str) else None,
            limit=data.get("limit") if isinstance(data.get("limit"), (int, float)) else None,
            sort=sort if sort in ("recent", "relevance") else None,
            refresh=bool(data.get("refresh", False)),
        )
        return ToolResult.ok(results)
