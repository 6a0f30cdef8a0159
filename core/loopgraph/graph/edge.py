"""
Edge Protocol - How nodes connect in a graph.

Each node has at most one outgoing edge definition:
- direct: always continue to a fixed target
- conditional: a router inspects the freshly produced state and returns a
  key; the key is the target name itself, or, when a path map is given, is
  looked up in the map to obtain the target

Two reserved names never correspond to registered nodes. END is a legal
target meaning "finish the run with the current state"; START is a synonym
for the entry point and may only appear as an edge source.
"""

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from loopgraph.errors import FanOutNotSupportedError, PathMapKeyError
from loopgraph.graph.send import Send

START = "__start__"
END = "__end__"

RESERVED_NAMES = frozenset({START, END})

Router = Callable[[Any], "str | Awaitable[str]"]


@dataclass(frozen=True)
class Edge:
    """A fixed edge from ``source`` to ``target``."""

    source: str
    target: str


@dataclass(frozen=True)
class ConditionalEdge:
    """
    A routing rule evaluated at run time.

    Examples:
        # Router returns node names directly
        ConditionalEdge(source="grade", router=lambda s: "retry" if s.score < 5 else END)

        # Router returns labels, path map restricts/renames destinations
        ConditionalEdge(
            source="agent",
            router=lambda s: "continue" if s.last_message().has_tool_calls else "stop",
            path_map={"continue": "tools", "stop": END},
        )
    """

    source: str
    router: Router
    path_map: Mapping[str, str] | None = field(default=None)

    def __post_init__(self) -> None:
        if self.path_map is not None:
            object.__setattr__(self, "path_map", MappingProxyType(dict(self.path_map)))

    async def resolve(self, state: Any) -> str:
        """
        Evaluate the router against ``state`` and return the next node name.

        Raises:
            PathMapKeyError: the key is not in the path map
            FanOutNotSupportedError: the router asked for a Send fan-out
        """
        key = self.router(state)
        if inspect.isawaitable(key):
            key = await key

        if isinstance(key, Send) or (
            isinstance(key, (list, tuple)) and any(isinstance(k, Send) for k in key)
        ):
            raise FanOutNotSupportedError(self.source)

        if self.path_map is None:
            return key

        try:
            return self.path_map[key]
        except (KeyError, TypeError):
            # TypeError: unhashable key, which can never be in the map
            raise PathMapKeyError(self.source, key, list(self.path_map)) from None

    def possible_targets(self) -> list[str] | None:
        """Distinct targets declared in the path map, or None when unknown."""
        if self.path_map is None:
            return None
        return sorted(set(self.path_map.values()))
