"""
ToolNode - Executes the tool calls requested by the latest model message.

Given a MessageState whose last message is an ai message with tool calls,
runs each call through the ToolRegistry in request order and appends one
tool message per call, tagged with the call id so the model can match
results to requests.
"""

import json
import logging
import time
from typing import Any

from loopgraph.errors import GraphError, NoMessagesError
from loopgraph.graph.command import current_graph_context
from loopgraph.graph.node import NodeProtocol
from loopgraph.graph.state import MessageState
from loopgraph.llm.provider import ToolResult
from loopgraph.runner.tool_registry import ToolRegistry
from loopgraph.runtime.event_bus import EventType
from loopgraph.schemas.message import Message, ToolCall

logger = logging.getLogger(__name__)


def _stringify(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


class ToolNode(NodeProtocol):
    """
    Node that runs pending tool calls.

    Args:
        registry: Tools available to this node
        handle_tool_errors: When True, a failing or unknown tool produces an
            ``is_error`` tool message and the run continues (the model sees
            the error). When False the ToolExecutionError/ToolNotFoundError
            propagates and fails the run.
    """

    def __init__(self, registry: ToolRegistry, *, handle_tool_errors: bool = False):
        self.registry = registry
        self.handle_tool_errors = handle_tool_errors

    async def process(self, state: MessageState) -> MessageState:
        last = state.last_message()
        if last is None:
            raise NoMessagesError()

        if not last.has_tool_calls:
            return state

        results = [await self.run_tool_call(call) for call in last.tool_calls]

        updated = state.clone()
        updated.messages.extend(
            Message.tool(r.content, tool_call_id=r.tool_call_id, is_error=r.is_error)
            for r in results
        )
        return updated

    async def run_tool_call(self, call: ToolCall) -> ToolResult:
        """Execute one tool call and return its result, tagged with the call id."""
        ctx = current_graph_context()
        if ctx is not None:
            await ctx.emit(EventType.TOOL_CALLED, tool=call.name, tool_call_id=call.id)

        started = time.perf_counter()
        try:
            result = await self.registry.execute(call.name, call.arguments)
        except GraphError as e:
            if not self.handle_tool_errors:
                raise
            logger.warning(f"Tool '{call.name}' failed: {e}", extra={"tool": call.name})
            tool_result = ToolResult(tool_call_id=call.id, content=str(e), is_error=True)
        else:
            tool_result = ToolResult(tool_call_id=call.id, content=_stringify(result))

        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.debug(
            f"Tool '{call.name}' completed in {latency_ms}ms",
            extra={"tool": call.name, "latency_ms": latency_ms},
        )
        if ctx is not None:
            await ctx.emit(
                EventType.TOOL_COMPLETED,
                tool=call.name,
                tool_call_id=call.id,
                is_error=tool_result.is_error,
                latency_ms=latency_ms,
            )
        return tool_result

    def __repr__(self) -> str:
        return f"ToolNode(tools={self.registry.get_registered_names()})"
