"""
Node Protocol - A named unit of work over graph state.

Nodes are registered by name on a StateGraph and shared read-only by every
run of the compiled graph, possibly concurrently, so implementations must
not keep per-run data on ``self``. Anything per-run lives in the state or
in the run's GraphContext.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from loopgraph.graph.command import get_graph_context
from loopgraph.graph.state import State

logger = logging.getLogger(__name__)


class NodeProtocol(ABC):
    """
    Interface all nodes implement.

    Example:
        class Increment(NodeProtocol):
            async def process(self, state: CounterState) -> CounterState:
                return state.model_copy(update={"counter": state.counter + 1})
    """

    @abstractmethod
    async def process(self, state: State) -> State:
        """
        Consume a state value and produce the next one.

        Subclasses may declare a second positional parameter,
        ``process(self, state, ctx)``, to receive the run's GraphContext.
        Raise to fail the run; the exception reaches the caller unchanged.
        """


def _wants_context(func: Callable) -> bool:
    """True if ``func`` takes a second positional parameter for the GraphContext."""
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return False
    positional = [
        p
        for p in sig.parameters.values()
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    has_varargs = any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in sig.parameters.values())
    return len(positional) >= 2 or has_varargs


class FunctionNode(NodeProtocol):
    """
    Wraps a plain callable as a node.

    The callable may be sync or async and takes either ``(state)`` or
    ``(state, ctx)``; in the second form it receives the run's GraphContext.
    """

    def __init__(self, func: Callable[..., Any], name: str | None = None):
        if not callable(func):
            raise TypeError(f"node function must be callable, got {type(func).__name__}")
        self.func = func
        self.name = name or getattr(func, "__name__", type(func).__name__)
        self._pass_context = _wants_context(func)

    async def process(self, state: State) -> State:
        if self._pass_context:
            result = self.func(state, get_graph_context())
        else:
            result = self.func(state)
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            raise TypeError(
                f"node function '{self.name}' returned None; it must return the next state"
            )
        return result

    def __repr__(self) -> str:
        return f"FunctionNode({self.name})"


def accepts_context(node: NodeProtocol) -> bool:
    """True if ``node.process`` takes the GraphContext as a second argument."""
    return _wants_context(node.process)


def as_node(obj: NodeProtocol | Callable[..., Any], name: str | None = None) -> NodeProtocol:
    """Coerce a NodeProtocol or callable into a NodeProtocol."""
    if isinstance(obj, NodeProtocol):
        return obj
    if callable(obj):
        return FunctionNode(obj, name=name)
    raise TypeError(f"cannot use {type(obj).__name__} as a node")
