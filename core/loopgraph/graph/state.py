"""
State Protocol - The payload that flows through a graph.

A compiled graph is parameterised by one State subclass. Each step hands
the current value to a node and receives the next value back; the runtime
may also clone it for stream consumers and checkpoints, so values must be
cheap to duplicate and must not share mutable data with their clones.
"""

from abc import abstractmethod
from typing import Any, Self

from pydantic import BaseModel, Field

from loopgraph.schemas.message import Message


class State(BaseModel):
    """
    Base class for graph state.

    Subclasses declare their fields as pydantic fields and implement
    ``merge``, the reducer used whenever two state fragments must be
    folded together (resume updates, future fan-in).

    Example:
        class CounterState(State):
            counter: int = 0
            visited: list[str] = []

            def merge(self, other):
                return CounterState(
                    counter=self.counter + other.counter,
                    visited=self.visited + other.visited,
                )
    """

    @abstractmethod
    def merge(self, other: Self) -> Self:
        """Return a new state folding ``other`` into ``self``; inputs are unchanged."""

    def clone(self) -> Self:
        """Deep copy, independent of the original."""
        return self.model_copy(deep=True)

    def delta(self, previous: Self) -> Self:
        """
        The part of ``self`` that is new relative to ``previous``.

        Used by StreamMode.UPDATES. The default has no notion of increments
        and returns the full value.
        """
        return self.clone()

    def to_checkpoint(self) -> dict[str, Any]:
        """JSON-compatible form stored in checkpoints."""
        return self.model_dump(mode="json")

    @classmethod
    def from_checkpoint(cls, data: dict[str, Any]) -> Self:
        """Rebuild a state from its checkpoint form."""
        return cls.model_validate(data)


class MessageState(State):
    """Built-in state holding an ordered conversation (the common case)."""

    messages: list[Message] = Field(default_factory=list)

    @classmethod
    def with_messages(cls, messages: list[Message]) -> "MessageState":
        return cls(messages=list(messages))

    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def merge(self, other: "MessageState") -> "MessageState":
        # Append-only: self's messages first, then other's, each in original order.
        merged = self.clone()
        merged.messages.extend(m.model_copy() for m in other.messages)
        return merged

    def delta(self, previous: "MessageState") -> "MessageState":
        before = previous.messages
        if len(before) <= len(self.messages) and self.messages[: len(before)] == before:
            update = self.clone()
            update.messages = update.messages[len(before) :]
            return update
        return self.clone()
