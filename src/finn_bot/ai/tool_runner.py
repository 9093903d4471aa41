"""Bounded inference/tool execution loop shared by every provider family."""

from __future__ import annotations

import asyncio
import json
from typing import Any

from finn_bot.ai.client import AIClient, AIResponse, Completion, PendingToolCall
from finn_bot.ai.tools.base import ToolContext, ToolResult
from finn_bot.ai.tools.registry import TOOL_SYSTEM_PROMPT, ToolRegistry
from finn_bot.log import get_logger

logger = get_logger(__name__)

MAX_TOOL_ROUNDS = 3
TOOL_LOOP_MESSAGE = (
    "Sorry, I ran into a tool loop and couldn't finish that request. "
    "Please try asking in a different way."
)


def _with_tool_prompt(system: str) -> str:
    return f"{system}\n\n{TOOL_SYSTEM_PROMPT}" if system else TOOL_SYSTEM_PROMPT


def _exhausted_content(completion: Completion) -> str:
    text = completion.text.strip()
    return f"{text}\n\n{TOOL_LOOP_MESSAGE}" if text else TOOL_LOOP_MESSAGE


async def execute_tool_call(
    registry: ToolRegistry, call: PendingToolCall, context: ToolContext
) -> ToolResult:
    """Decode the call's arguments and run it.

    Invalid JSON becomes an error result for this call only. Once started, a
    tool runs to completion even if the caller is cancelled.
    """
    try:
        tool_input: Any = json.loads(call.arguments) if call.arguments.strip() else {}
    except json.JSONDecodeError as e:
        logger.warning("tool_arguments_invalid", tool=call.name, call_id=call.id, error=str(e))
        result = ToolResult.error(f"Invalid JSON arguments for {call.name}: {e}")
        context.notify(call.name, call.arguments, result)
        return result

    return await asyncio.shield(registry.execute(call.name, tool_input, context))


async def run_tool_loop(
    client: AIClient,
    model: str,
    messages: list[dict[str, Any]],
    system: str,
    tool_registry: ToolRegistry | None = None,
    context: ToolContext | None = None,
    tool_choice: dict[str, Any] | None = None,
) -> AIResponse:
    """Run inference until the model answers without requesting tools.

    ``messages`` is the provider-native history; it is copied, not mutated.
    Tools are offered only when both a registry and a context are given.
    After MAX_TOOL_ROUNDS rounds of tool execution, a response that still
    asks for tools ends the loop with TOOL_LOOP_MESSAGE. ``tool_choice``
    applies to the first inference call only.
    """
    messages = list(messages)
    registry = tool_registry if context is not None and tool_registry is not None and tool_registry.names() else None
    tool_defs = registry.schemas_for(client.provider) if registry is not None else None
    if registry is not None:
        system = _with_tool_prompt(system)

    input_tokens = 0
    output_tokens = 0
    rounds = 0

    while True:
        completion = await client.infer(
            model=model,
            messages=messages,
            system=system,
            tools=tool_defs,
            tool_choice=tool_choice if rounds == 0 else None,
        )
        input_tokens += completion.input_tokens
        output_tokens += completion.output_tokens

        if not completion.tool_calls or registry is None or context is None:
            return AIResponse(
                content=completion.text,
                model=completion.model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )

        if rounds >= MAX_TOOL_ROUNDS:
            logger.warning(
                "tool_loop_exhausted",
                model=model,
                rounds=rounds,
                pending_calls=[c.name for c in completion.tool_calls],
            )
            return AIResponse(
                content=_exhausted_content(completion),
                model=completion.model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )

        results: list[tuple[PendingToolCall, ToolResult]] = []
        for call in completion.tool_calls:
            results.append((call, await execute_tool_call(registry, call, context)))

        client.append_tool_turns(messages, completion, results)
        rounds += 1
        logger.info("tool_round_complete", model=model, round=rounds, calls=len(results))
