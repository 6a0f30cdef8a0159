"""Graph structures: state, nodes, edges, the builder and the compiled runtime."""

from loopgraph.graph.builder import StateGraph
from loopgraph.graph.command import (
    End,
    GraphCommand,
    GraphContext,
    Goto,
    current_graph_context,
    end,
    get_graph_context,
    goto,
)
from loopgraph.graph.compiled import CompiledGraph, GraphEvent, StreamMode
from loopgraph.graph.edge import END, START, ConditionalEdge, Edge
from loopgraph.graph.node import FunctionNode, NodeProtocol, as_node
from loopgraph.graph.prebuilt import (
    ChatModelNode,
    ReactAgentOptions,
    create_react_agent,
    tools_condition,
)
from loopgraph.graph.send import Send
from loopgraph.graph.state import MessageState, State
from loopgraph.graph.tool_node import ToolNode

__all__ = [
    # Builder / runtime
    "StateGraph",
    "CompiledGraph",
    "GraphEvent",
    "StreamMode",
    # Topology
    "START",
    "END",
    "Edge",
    "ConditionalEdge",
    "Send",
    # Nodes
    "NodeProtocol",
    "FunctionNode",
    "as_node",
    "ToolNode",
    "ChatModelNode",
    # State
    "State",
    "MessageState",
    # Commands
    "GraphCommand",
    "GraphContext",
    "Goto",
    "End",
    "goto",
    "end",
    "get_graph_context",
    "current_graph_context",
    # Prebuilt
    "ReactAgentOptions",
    "create_react_agent",
    "tools_condition",
]
