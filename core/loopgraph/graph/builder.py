"""
StateGraph - Builder for node/edge graphs.

The builder is an append-only graph definition: every method records what it
was given and returns the builder for chaining. Nothing is checked until
compile(), which validates the whole definition and produces an
immutable CompiledGraph.

Example:
    graph = (
        StateGraph(MessageState)
        .add_node("agent", call_model)
        .add_node("tools", ToolNode(registry))
        .set_entry_point("agent")
        .add_conditional_edges("agent", tools_condition, {"tools": "tools", END: END})
        .add_edge("tools", "agent")
        .compile()
    )
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from loopgraph.errors import (
    DuplicateEdgeError,
    DuplicateNodeError,
    NodeNotFoundError,
    NoEntryPointError,
    ReservedNodeNameError,
)
from loopgraph.graph.compiled import CompiledGraph
from loopgraph.graph.edge import END, RESERVED_NAMES, START, ConditionalEdge, Edge, Router
from loopgraph.graph.node import NodeProtocol, as_node
from loopgraph.graph.state import State

logger = logging.getLogger(__name__)


class StateGraph:
    """Builder for a graph over a single state type."""

    def __init__(self, state_type: type[State] | None = None, graph_id: str = ""):
        """
        Args:
            state_type: State subclass the graph runs on; needed to rebuild
                state from checkpoints (resume, get_state)
            graph_id: Optional identifier used in logs and events
        """
        self.state_type = state_type
        self.graph_id = graph_id
        self._nodes: list[tuple[str, NodeProtocol]] = []
        self._edges: list[Edge] = []
        self._conditional_edges: list[ConditionalEdge] = []
        self._entry_point: str | None = None
        self._interrupt_before: list[str] = []
        self._interrupt_after: list[str] = []

    # === DEFINITION ===

    def add_node(self, name: str, node: NodeProtocol | Callable[..., Any]) -> "StateGraph":
        """Register ``node`` (a NodeProtocol or a plain callable) under ``name``."""
        self._nodes.append((name, as_node(node, name=name)))
        return self

    def add_edge(self, source: str, target: str) -> "StateGraph":
        """Add a fixed edge. ``add_edge(START, name)`` sets the entry point."""
        if source == START:
            return self.set_entry_point(target)
        self._edges.append(Edge(source=source, target=target))
        return self

    def add_conditional_edges(
        self,
        source: str,
        router: Router,
        path_map: Mapping[str, str] | Iterable[str] | None = None,
    ) -> "StateGraph":
        """
        Add a conditional edge from ``source``.

        Args:
            source: Node the edge leaves from
            router: ``(state) -> key``, sync or async
            path_map: Optional ``{key: target}`` mapping. A list of names is
                shorthand for the identity mapping over those names.
        """
        if path_map is not None and not isinstance(path_map, Mapping):
            path_map = {name: name for name in path_map}
        self._conditional_edges.append(
            ConditionalEdge(source=source, router=router, path_map=path_map)
        )
        return self

    def add_conditional_edges_with_path_map(
        self,
        source: str,
        router: Router,
        path_map: Mapping[str, str],
    ) -> "StateGraph":
        """Add a conditional edge whose router keys are translated through ``path_map``."""
        return self.add_conditional_edges(source, router, dict(path_map))

    def set_entry_point(self, name: str) -> "StateGraph":
        """Set the node every run starts at."""
        self._entry_point = name
        return self

    def set_finish_point(self, name: str) -> "StateGraph":
        """Shorthand for ``add_edge(name, END)``."""
        return self.add_edge(name, END)

    def interrupt_before(self, nodes: Iterable[str]) -> "StateGraph":
        """Stop runs before executing any of ``nodes`` (human-in-the-loop)."""
        self._interrupt_before.extend(nodes)
        return self

    def interrupt_after(self, nodes: Iterable[str]) -> "StateGraph":
        """Stop runs after executing any of ``nodes`` (human-in-the-loop)."""
        self._interrupt_after.extend(nodes)
        return self

    # === COMPILATION ===

    def validate(self) -> dict[str, NodeProtocol]:
        """
        Check the definition and return the node table.

        Raises the first GraphValidationError found. Cycles and unreachable
        nodes are allowed.
        """
        if self._entry_point is None:
            raise NoEntryPointError()

        nodes: dict[str, NodeProtocol] = {}
        for name, node in self._nodes:
            if name in RESERVED_NAMES:
                raise ReservedNodeNameError(name)
            if name in nodes:
                raise DuplicateNodeError(name)
            nodes[name] = node

        if self._entry_point not in nodes:
            raise NodeNotFoundError(self._entry_point, "entry point")

        def check_source(name: str, kind: str) -> None:
            if name not in nodes:
                raise NodeNotFoundError(name, f"{kind} source")

        def check_target(name: str, kind: str) -> None:
            if name != END and name not in nodes:
                raise NodeNotFoundError(name, f"{kind} target")

        for edge in self._edges:
            check_source(edge.source, "edge")
            check_target(edge.target, "edge")

        for ce in self._conditional_edges:
            check_source(ce.source, "conditional edge")
            if ce.path_map is not None:
                for label, target in ce.path_map.items():
                    check_target(target, f"path map label '{label}'")

        seen_sources: set[str] = set()
        for source in [e.source for e in self._edges] + [
            ce.source for ce in self._conditional_edges
        ]:
            if source in seen_sources:
                raise DuplicateEdgeError(source)
            seen_sources.add(source)

        for name in self._interrupt_before + self._interrupt_after:
            if name not in nodes:
                raise NodeNotFoundError(name, "interrupt")

        return nodes

    def compile(self) -> CompiledGraph:
        """
        Validate and freeze the graph.

        Returns:
            CompiledGraph ready for invoke()/stream()

        Raises:
            GraphValidationError: see validate()
        """
        nodes = self.validate()

        compiled = CompiledGraph(
            nodes=nodes,
            edges={e.source: e for e in self._edges},
            conditional_edges={ce.source: ce for ce in self._conditional_edges},
            entry_point=self._entry_point,
            interrupt_before=frozenset(self._interrupt_before),
            interrupt_after=frozenset(self._interrupt_after),
            state_type=self.state_type,
            graph_id=self.graph_id,
        )
        logger.debug(
            f"Compiled graph '{self.graph_id or 'graph'}': {len(nodes)} nodes, "
            f"{len(self._edges)} edges, {len(self._conditional_edges)} conditional edges"
        )
        return compiled
