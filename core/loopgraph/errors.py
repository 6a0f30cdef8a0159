"""
Error hierarchy for graph building, routing, persistence and tool execution.

Every failure the engine raises derives from GraphError so hosts can catch
the whole family at once. Errors raised by a node's own process() call are
NOT wrapped: the runtime re-raises them unchanged.
"""

from typing import Any


class GraphError(Exception):
    """Base class for all loopgraph errors."""


# ---------------------------------------------------------------------------
# Build-time validation (raised by StateGraph.compile)
# ---------------------------------------------------------------------------


class GraphValidationError(GraphError):
    """The graph definition is structurally invalid."""


class NoEntryPointError(GraphValidationError):
    def __init__(self) -> None:
        super().__init__("no entry point set: call set_entry_point() before compile()")


class NodeNotFoundError(GraphValidationError):
    """A name refers to neither a registered node nor END."""

    def __init__(self, name: str, context: str = "") -> None:
        self.name = name
        self.context = context
        where = f" ({context})" if context else ""
        super().__init__(f"node '{name}' not found{where}")


class ReservedNodeNameError(GraphValidationError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"node name '{name}' is reserved")


class DuplicateNodeError(GraphValidationError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"node '{name}' was added more than once")


class DuplicateEdgeError(GraphValidationError):
    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(
            f"node '{source}' has more than one outgoing edge definition; "
            "use a single conditional edge to branch"
        )


# ---------------------------------------------------------------------------
# Run-time routing
# ---------------------------------------------------------------------------


class GraphRoutingError(GraphError):
    """The runtime could not determine the next node."""


class NoOutgoingEdgeError(GraphRoutingError):
    def __init__(self, node: str) -> None:
        self.node = node
        super().__init__(f"node '{node}' has no outgoing edge")


class PathMapKeyError(GraphRoutingError):
    def __init__(self, node: str, key: Any, known: list[str] | None = None) -> None:
        self.node = node
        self.key = key
        self.known = sorted(known or [])
        super().__init__(
            f"router for node '{node}' returned '{key}', which is not in its path map "
            f"(known keys: {self.known})"
        )


class FanOutNotSupportedError(GraphRoutingError):
    def __init__(self, node: str) -> None:
        self.node = node
        super().__init__(
            f"router for node '{node}' returned Send instructions; parallel fan-out is not supported"
        )


class GraphInterrupt(GraphError):
    """Execution stopped at an interrupt_before / interrupt_after point."""

    def __init__(self, node: str, when: str, next_node: str | None = None) -> None:
        self.node = node
        self.when = when
        self.next_node = next_node
        super().__init__(f"interrupted {when} node '{node}'")


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class CheckpointError(GraphError):
    """Reading or writing a checkpoint failed."""


class CheckpointerNotConfiguredError(CheckpointError):
    def __init__(self) -> None:
        super().__init__("no checkpointer configured: call with_checkpointer() first")


class CheckpointNotFoundError(CheckpointError):
    def __init__(self, thread_id: str) -> None:
        self.thread_id = thread_id
        super().__init__(f"no checkpoint found for thread '{thread_id}'")


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class ToolNotFoundError(GraphError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"tool not found: {name}")


class ToolExecutionError(GraphError):
    def __init__(self, name: str, cause: BaseException) -> None:
        self.name = name
        self.cause = cause
        super().__init__(f"tool '{name}' failed: {cause}")


class LLMError(GraphError):
    """The model provider failed to produce a reply."""


class NoMessagesError(GraphError):
    def __init__(self) -> None:
        super().__init__("no messages in state")
