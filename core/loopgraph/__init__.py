"""
loopgraph - Stateful graph execution for tool-using agents.

Build a graph of nodes over a shared state, compile it, then run it with
invoke() or stream(). Cycles are allowed; conditional edges route on the
state each node produces, and nodes can override routing with goto()/end().

Example:
    from loopgraph import END, MessageState, Message, StateGraph

    graph = (
        StateGraph(MessageState)
        .add_node("greet", lambda s: s.merge(MessageState.with_messages([Message.ai("hi")])))
        .set_entry_point("greet")
        .add_edge("greet", END)
        .compile()
    )
    final = await graph.invoke(MessageState.with_messages([Message.human("hello")]))
"""

from loopgraph.errors import (
    CheckpointError,
    CheckpointerNotConfiguredError,
    CheckpointNotFoundError,
    DuplicateEdgeError,
    DuplicateNodeError,
    FanOutNotSupportedError,
    GraphError,
    GraphInterrupt,
    GraphRoutingError,
    GraphValidationError,
    LLMError,
    NodeNotFoundError,
    NoEntryPointError,
    NoMessagesError,
    NoOutgoingEdgeError,
    PathMapKeyError,
    ReservedNodeNameError,
    ToolExecutionError,
    ToolNotFoundError,
)
from loopgraph.graph import (
    END,
    START,
    ChatModelNode,
    CompiledGraph,
    End,
    GraphContext,
    GraphEvent,
    Goto,
    MessageState,
    NodeProtocol,
    ReactAgentOptions,
    Send,
    State,
    StateGraph,
    StreamMode,
    ToolNode,
    create_react_agent,
    end,
    get_graph_context,
    goto,
    tools_condition,
)
from loopgraph.llm import LLMProvider, LLMResponse, ScriptedLLMProvider, Tool, ToolResult
from loopgraph.runner import ToolRegistry, tool
from loopgraph.runtime import EventBus, EventType, RunEvent
from loopgraph.schemas import Checkpoint, CheckpointConfig, Message, ToolCall
from loopgraph.storage import Checkpointer, FileCheckpointStore, MemorySaver

__version__ = "0.1.0"

__all__ = [
    # Graph
    "StateGraph",
    "CompiledGraph",
    "GraphEvent",
    "StreamMode",
    "START",
    "END",
    "Send",
    "NodeProtocol",
    "ToolNode",
    "ChatModelNode",
    "State",
    "MessageState",
    "GraphContext",
    "Goto",
    "End",
    "goto",
    "end",
    "get_graph_context",
    "ReactAgentOptions",
    "create_react_agent",
    "tools_condition",
    # Messages
    "Message",
    "ToolCall",
    # Checkpoints
    "Checkpoint",
    "CheckpointConfig",
    "Checkpointer",
    "MemorySaver",
    "FileCheckpointStore",
    # Collaborators
    "LLMProvider",
    "LLMResponse",
    "ScriptedLLMProvider",
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "tool",
    # Events
    "EventBus",
    "EventType",
    "RunEvent",
    # Errors
    "GraphError",
    "GraphValidationError",
    "NoEntryPointError",
    "NodeNotFoundError",
    "ReservedNodeNameError",
    "DuplicateNodeError",
    "DuplicateEdgeError",
    "GraphRoutingError",
    "NoOutgoingEdgeError",
    "PathMapKeyError",
    "FanOutNotSupportedError",
    "GraphInterrupt",
    "CheckpointError",
    "CheckpointerNotConfiguredError",
    "CheckpointNotFoundError",
    "ToolNotFoundError",
    "ToolExecutionError",
    "LLMError",
    "NoMessagesError",
]
