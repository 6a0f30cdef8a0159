"""
Prebuilt ReAct agent: a model node and a tool node in a loop.

    __start__ --> agent --(tool calls)--> tools --> agent
                    \\
                     --(no tool calls)--> __end__

The loop ends when the model replies without requesting tools. There is no
built-in step bound.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from loopgraph.graph.builder import StateGraph
from loopgraph.graph.command import current_graph_context
from loopgraph.graph.compiled import CompiledGraph
from loopgraph.graph.edge import END
from loopgraph.graph.node import NodeProtocol
from loopgraph.graph.state import MessageState
from loopgraph.graph.tool_node import ToolNode
from loopgraph.llm.provider import LLMProvider, Tool
from loopgraph.runner.tool_registry import ToolRegistry
from loopgraph.runtime.event_bus import EventType
from loopgraph.schemas.message import Message
from loopgraph.storage.checkpoint_store import Checkpointer

logger = logging.getLogger(__name__)

AGENT_NODE = "agent"
TOOLS_NODE = "tools"


class ChatModelNode(NodeProtocol):
    """
    Node that asks the model for the next message.

    The system prompt, if any, is prepended to the request only; it is not
    stored in the state.
    """

    def __init__(
        self,
        llm: LLMProvider,
        tools: list[Tool] | None = None,
        system_prompt: str | None = None,
    ):
        self.llm = llm
        self.tools = list(tools or [])
        self.system_prompt = system_prompt

    async def process(self, state: MessageState) -> MessageState:
        request = list(state.messages)
        if self.system_prompt:
            request.insert(0, Message.system(self.system_prompt))

        response = await self.llm.complete(request, tools=self.tools or None)

        reply = response.message
        logger.info(
            f"Model replied ({response.input_tokens} in / {response.output_tokens} out tokens, "
            f"{len(reply.tool_calls)} tool calls)",
            extra={"model": response.model},
        )

        ctx = current_graph_context()
        if ctx is not None:
            await ctx.emit(
                EventType.LLM_CALLED,
                model=response.model,
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
                tool_calls=[call.name for call in reply.tool_calls],
            )

        updated = state.clone()
        updated.messages.append(reply.model_copy())
        return updated


def tools_condition(state: MessageState) -> str:
    """Route to the tool node while the last message requests tools, else finish."""
    last = state.last_message()
    if last is not None and last.has_tool_calls:
        return TOOLS_NODE
    return END


@dataclass
class ReactAgentOptions:
    """Optional settings for create_react_agent."""

    checkpointer: Checkpointer | None = None
    interrupt_before: list[str] = field(default_factory=list)
    interrupt_after: list[str] = field(default_factory=list)
    system_prompt: str | None = None
    handle_tool_errors: bool = False


ToolSpec = ToolRegistry | Iterable[Callable[..., Any] | tuple[Tool, Callable[[dict], Any]]]


def _as_registry(tools: ToolSpec) -> ToolRegistry:
    if isinstance(tools, ToolRegistry):
        return tools

    registry = ToolRegistry()
    for item in tools:
        if isinstance(item, tuple):
            definition, executor = item
            registry.register(definition.name, definition, executor)
        elif callable(item):
            metadata = getattr(item, "_tool_metadata", {})
            registry.register_function(
                item, name=metadata.get("name"), description=metadata.get("description")
            )
        else:
            raise TypeError(f"cannot use {type(item).__name__} as a tool")
    return registry


def create_react_agent(
    llm: LLMProvider,
    tools: ToolSpec,
    options: ReactAgentOptions | None = None,
) -> CompiledGraph:
    """
    Build the two-node agent graph.

    Args:
        llm: Model provider driving the agent node
        tools: A ToolRegistry, or plain functions and/or ``(Tool, executor)`` pairs
        options: Checkpointer, interrupts, system prompt and tool-error policy

    Returns:
        CompiledGraph over MessageState with nodes "agent" and "tools"

    Example:
        agent = create_react_agent(llm, [add, multiply])
        final = await agent.invoke(MessageState.with_messages([Message.human("2 + 3?")]))
    """
    options = options or ReactAgentOptions()
    registry = _as_registry(tools)

    graph = (
        StateGraph(MessageState, graph_id="react_agent")
        .add_node(
            AGENT_NODE,
            ChatModelNode(
                llm,
                tools=list(registry.get_tools().values()),
                system_prompt=options.system_prompt,
            ),
        )
        .add_node(
            TOOLS_NODE,
            ToolNode(registry, handle_tool_errors=options.handle_tool_errors),
        )
        .set_entry_point(AGENT_NODE)
        .add_conditional_edges(
            AGENT_NODE, tools_condition, {TOOLS_NODE: TOOLS_NODE, END: END}
        )
        .add_edge(TOOLS_NODE, AGENT_NODE)
        .interrupt_before(options.interrupt_before)
        .interrupt_after(options.interrupt_after)
        .compile()
    )

    if options.checkpointer is not None:
        graph = graph.with_checkpointer(options.checkpointer)

    logger.debug(f"Created ReAct agent with tools {registry.get_registered_names()}")
    return graph
