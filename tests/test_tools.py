"""
Tests for the tool registry and the built-in tools.
"""
import json
from datetime import datetime, timezone

import pytest

from finn_bot.ai.tools.base import Tool, ToolContext, ToolResult
from finn_bot.ai.tools.models import extract_model_name, normalize_model_name
from finn_bot.ai.tools.registry import ToolRegistry
from finn_bot.core.types import Provider
from finn_bot.services.catalog import CatalogSnapshot
from finn_bot.storage.models import ModelConfig


class _FailingTool(Tool):
    @property
    def name(self) -> str:
        return "explode"

    @property
    def description(self) -> str:
        return "Always fails."

    @property
    def input_schema(self) -> dict:
        return {"type": "object", "properties": {}}

    async def execute(self, tool_input, context) -> ToolResult:
        raise RuntimeError("boom")


class TestToolRegistry:
    async def test_builtin_tools_registered(self, registry):
        assert registry.names() == [
            "list_models",
            "switch_model",
            "reset_conversation",
            "catalog_refresh",
            "catalog_search",
        ]

    async def test_schema_export_is_idempotent(self, registry):
        assert registry.claude_schemas() == registry.claude_schemas()
        assert registry.openai_schemas() == registry.openai_schemas()

    async def test_schema_shapes_share_definitions(self, registry):
        for claude, openai in zip(registry.claude_schemas(), registry.openai_schemas()):
            assert openai["type"] == "function"
            assert openai["function"]["name"] == claude["name"]
            assert openai["function"]["description"] == claude["description"]
            assert openai["function"]["parameters"] == claude["input_schema"]

    async def test_schemas_for_provider(self, registry):
        assert registry.schemas_for(Provider.CLAUDE) == registry.claude_schemas()
        assert registry.schemas_for(Provider.OPENROUTER) == registry.openai_schemas()

    async def test_duplicate_name_rejected(self, registry, router):
        from finn_bot.ai.tools.models import ListModelsTool

        with pytest.raises(ValueError, match="already registered"):
            registry.register(ListModelsTool(router))

    def test_invalid_name_rejected(self):
        class BadName(_FailingTool):
            @property
            def name(self) -> str:
                return "bad name!"

        with pytest.raises(ValueError, match="Invalid tool name"):
            ToolRegistry().register(BadName())

    async def test_unknown_tool_is_error_result(self, registry, context, tool_events):
        result = await registry.execute("does_not_exist", {}, context)

        assert result.is_error is True
        assert json.loads(result.content)["error"] == "Unknown tool: does_not_exist"
        assert tool_events[0].name == "does_not_exist"

    async def test_exception_becomes_error_result(self, context, tool_events):
        registry = ToolRegistry()
        registry.register(_FailingTool())

        result = await registry.execute("explode", {"x": 1}, context)

        assert result.is_error is True
        assert json.loads(result.content) == {"ok": False, "error": "boom"}
        assert tool_events[0].input == {"x": 1}
        assert tool_events[0].result == result


    async def test_failing_callback_does_not_escape(self, registry, context):
        def observer(event):
            raise RuntimeError("observer failed")

        context.on_tool_result = observer

        result = await registry.execute("list_models", {}, context)

        assert result.is_error is False
        assert "models" in json.loads(result.content)


class TestListModels:
    async def test_lists_all_with_current_model(self, registry, context):
        result = await registry.execute("list_models", {}, context)

        payload = json.loads(result.content)
        assert payload["current_model"] == "claude-opus"
        assert {m["id"] for m in payload["models"]} >= {"claude-opus", "gpt-4o", "llama-3"}

    async def test_provider_filter_and_disabled(self, registry, context, models):
        await models.update("gpt-4", enabled=False)

        result = await registry.execute("list_models", {"provider": "openrouter", "include_disabled": False}, context)

        ids = [m["id"] for m in json.loads(result.content)["models"]]
        assert "gpt-4" not in ids
        assert "gpt-4o" in ids
        assert "claude-opus" not in ids


class TestSwitchModel:
    async def test_switch_to_registered_alias(self, registry, context, models, users):
        await models.create(ModelConfig("kimi-k2", Provider.OPENROUTER, "moonshotai/kimi-k2", "Kimi K2"))

        result = await registry.execute("switch_model", {"model": "kimi-k2"}, context)

        payload = json.loads(result.content)
        assert result.is_error is False
        assert payload["ok"] is True
        assert payload["model"]["id"] == "kimi-k2"
        assert context.user.preferred_model == "kimi-k2"
        assert (await users.get(context.user.id)).preferred_model == "kimi-k2"

    async def test_unknown_model_lists_aliases(self, registry, context, users, models):
        result = await registry.execute("switch_model", {"model": "nonexistent-model-xyz"}, context)

        payload = json.loads(result.content)
        assert result.is_error is True
        assert payload["ok"] is False
        assert sorted(payload["available_models"]) == sorted(m.id for m in await models.all())
        assert context.user.preferred_model == "claude-opus"
        assert (await users.get(context.user.id)).preferred_model == "claude-opus"

    async def test_case_different_alias_uses_normalized_match(self, registry, context, models):
        await models.create(ModelConfig("foo", Provider.OPENROUTER, "vendor/foo-1", "Foo One"))

        result = await registry.execute("switch_model", {"model": "Foo"}, context)

        assert json.loads(result.content)["model"]["id"] == "foo"

    @pytest.mark.parametrize("requested", ["openai/gpt-4o", "GPT-4o", "gpt 4o"])
    async def test_provider_id_and_display_name(self, requested, registry, context):
        result = await registry.execute("switch_model", {"model": requested}, context)

        assert json.loads(result.content)["model"]["id"] == "gpt-4o"

    async def test_alternate_field_names(self, registry, context):
        result = await registry.execute("switch_model", {"modelName": "claude-sonnet"}, context)

        assert context.user.preferred_model == "claude-sonnet"
        assert result.is_error is False

    async def test_missing_model_field(self, registry, context):
        result = await registry.execute("switch_model", {}, context)

        assert result.is_error is True
        assert result.content == "Missing required 'model' field."

    async def test_disabled_model(self, registry, context, models):
        await models.update("gemini-pro", enabled=False)

        result = await registry.execute("switch_model", {"model": "gemini-pro"}, context)

        assert result.is_error is True
        assert "disabled" in json.loads(result.content)["error"]
        assert context.user.preferred_model == "claude-opus"

    async def test_catalog_model_is_registered(self, registry, context, catalog, router):
        catalog.write_cache(
            CatalogSnapshot(
                fetched_at=datetime.now(timezone.utc).isoformat(),
                models=[{"id": "moonshotai/kimi-k2", "name": "Kimi K2", "created": 1000}],
            )
        )

        result = await registry.execute("switch_model", {"model": "MoonshotAI/Kimi-K2"}, context)

        assert json.loads(result.content)["model"]["id"] == "moonshotai/kimi-k2"
        registered = await router.resolve("moonshotai/kimi-k2")
        assert registered.provider == Provider.OPENROUTER
        assert registered.display_name == "Kimi K2"


    async def test_undecodable_catalog_cache_is_not_found(self, registry, context, catalog):
        catalog.path.write_bytes(b"\xff\xfe\x00garbage")

        result = await registry.execute("switch_model", {"model": "vendor/unknown"}, context)

        payload = json.loads(result.content)
        assert result.is_error is True
        assert "claude-opus" in payload["available_models"]
        assert context.user.preferred_model == "claude-opus"


class TestModelNameHelpers:
    def test_normalize(self):
        assert normalize_model_name("Claude Opus-4") == "claudeopus4"

    def test_extract_priority(self):
        assert extract_model_name({"name": "b", "model": "a"}) == "a"
        assert extract_model_name("  gpt-4o ") == "gpt-4o"
        assert extract_model_name({"model": "   "}) is None
        assert extract_model_name(42) is None


class TestResetConversation:
    async def test_archives_active_conversation(self, registry, context, conversations):
        result = await registry.execute("reset_conversation", {}, context)

        assert json.loads(result.content) == {"ok": True}
        assert (await conversations.get(context.conversation.id)).status == "archived"


class TestCatalogTools:
    async def test_search_uses_cache(self, registry, context, catalog):
        catalog.write_cache(
            CatalogSnapshot(
                fetched_at=datetime.now(timezone.utc).isoformat(),
                models=[
                    {"id": "a/old", "created": 1000},
                    {"id": "b/new", "created": 2000},
                ],
            )
        )

        result = await registry.execute("catalog_search", {"sort": "recent", "limit": 1}, context)

        payload = json.loads(result.content)
        assert [r["id"] for r in payload["results"]] == ["b/new"]
        assert payload["source"] == "cache"

    async def test_refresh_without_key_is_error_result(self, registry, context):
        result = await registry.execute("catalog_refresh", {}, context)

        assert result.is_error is True
        assert "API key" in json.loads(result.content)["error"]


async def test_context_without_callback_is_silent(context):
    quiet = ToolContext(user=context.user, conversation=context.conversation)
    quiet.notify("x", {}, ToolResult.ok({}))
