"""
Graph Commands - In-band control flow that overrides edge routing.

Each run owns exactly one GraphContext. While a node's process() call is
in flight the context is bound to a ContextVar, so code anywhere inside the
node (including helpers it calls and tasks it spawns) can reach it with
get_graph_context(), or via the module-level goto() / end() shortcuts.

The command slot is write-overwrite and read-once: the runtime takes it
right after the node returns, and a command never outlives that check.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from loopgraph.runtime.event_bus import EventBus, EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Goto:
    """Run ``node`` next, ignoring the edge table for this step."""

    node: str


@dataclass(frozen=True)
class End:
    """Finish the run with the state produced by the current step."""


GraphCommand = Goto | End


class GraphContext:
    """
    Per-run side channel between nodes and the runtime.

    Holds the single command slot plus read-only run metadata. A fresh
    instance is created for every invoke()/stream() call and is never
    shared between runs.
    """

    def __init__(
        self,
        run_id: str,
        graph_id: str = "",
        thread_id: str | None = None,
        event_bus: EventBus | None = None,
    ):
        self.run_id = run_id
        self.graph_id = graph_id
        self.thread_id = thread_id
        self.step = 0
        self.node: str | None = None
        self._event_bus = event_bus
        self._command: GraphCommand | None = None
        self._lock = threading.Lock()

    def goto(self, node: str) -> None:
        """Route to ``node`` after the current step (last write wins)."""
        with self._lock:
            self._command = Goto(node)

    def end(self) -> None:
        """Terminate the run after the current step (last write wins)."""
        with self._lock:
            self._command = End()

    def take_command(self) -> GraphCommand | None:
        """Read and clear the slot atomically. Used by the runtime."""
        with self._lock:
            command, self._command = self._command, None
        return command

    async def emit(self, event_type: EventType, **data: Any) -> None:
        """Publish an observational event for this run, if a bus is attached."""
        if self._event_bus is None:
            return
        from loopgraph.runtime.event_bus import RunEvent

        await self._event_bus.publish(
            RunEvent(type=event_type, run_id=self.run_id, node=self.node, data=data)
        )

    def __repr__(self) -> str:
        return f"GraphContext(run_id={self.run_id!r}, step={self.step}, node={self.node!r})"


_current_context: ContextVar[GraphContext | None] = ContextVar(
    "loopgraph_graph_context", default=None
)


@contextmanager
def bind_context(ctx: GraphContext) -> Iterator[GraphContext]:
    """Make ``ctx`` the current context for the duration of the block."""
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def get_graph_context() -> GraphContext:
    """
    Return the context of the run whose node is currently executing.

    Raises:
        RuntimeError: when called outside a node's process() call
    """
    ctx = _current_context.get()
    if ctx is None:
        raise RuntimeError("no graph run in progress: goto()/end() must be called from a node")
    return ctx


def current_graph_context() -> GraphContext | None:
    """Like get_graph_context(), but returns None outside a run."""
    return _current_context.get()


def goto(node: str) -> None:
    """Shortcut for ``get_graph_context().goto(node)``."""
    get_graph_context().goto(node)


def end() -> None:
    """Shortcut for ``get_graph_context().end()``."""
    get_graph_context().end()
