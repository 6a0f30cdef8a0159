"""
Event Bus - Pub/sub sink for run lifecycle events.

The compiled runtime, the prebuilt agent node and the tool node publish
here when a bus is supplied to invoke()/stream(). Subscribers are purely
observational: handler failures are logged and never reach the run.
"""

import asyncio
import itertools
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events that can be published."""

    # Run lifecycle
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"
    RUN_INTERRUPTED = "run_interrupted"

    # Step lifecycle
    NODE_STARTED = "node_started"
    NODE_COMPLETED = "node_completed"
    EDGE_TRAVERSED = "edge_traversed"
    COMMAND_ISSUED = "command_issued"

    # Persistence
    CHECKPOINT_SAVED = "checkpoint_saved"

    # Collaborators
    LLM_CALLED = "llm_called"
    TOOL_CALLED = "tool_called"
    TOOL_COMPLETED = "tool_completed"

    # Custom events
    CUSTOM = "custom"


@dataclass
class RunEvent:
    """An event emitted during a graph run."""

    type: EventType
    run_id: str
    node: str | None = None  # Which node emitted this event
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "type": self.type.value,
            "run_id": self.run_id,
            "node": self.node,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


# Type for event handlers
EventHandler = Callable[[RunEvent], Awaitable[None]]


@dataclass
class Subscription:
    """Handler plus the filters an event must pass to reach it."""

    id: str
    event_types: frozenset[EventType]
    handler: EventHandler
    filter_run: str | None = None
    filter_node: str | None = None

    def accepts(self, event: RunEvent) -> bool:
        return (
            event.type in self.event_types
            and self.filter_run in (None, event.run_id)
            and self.filter_node in (None, event.node)
        )


class EventBus:
    """
    Pub/sub event bus for run observability.

    Example:
        bus = EventBus()

        async def on_step(event: RunEvent):
            print(f"{event.node} finished step {event.data['step']}")

        bus.subscribe(event_types=[EventType.NODE_COMPLETED], handler=on_step)

        await graph.invoke(state, event_bus=bus)
    """

    def __init__(
        self,
        max_history: int = 1000,
        max_concurrent_handlers: int = 10,
    ):
        """
        Args:
            max_history: Most recent events kept for get_history()
            max_concurrent_handlers: Cap on handlers running at once, across runs
        """
        self._subscriptions: dict[str, Subscription] = {}
        self._history: deque[RunEvent] = deque(maxlen=max_history)
        self._semaphore = asyncio.Semaphore(max_concurrent_handlers)
        self._ids = itertools.count(1)

    def subscribe(
        self,
        event_types: list[EventType],
        handler: EventHandler,
        filter_run: str | None = None,
        filter_node: str | None = None,
    ) -> str:
        """
        Register ``handler`` for the given event types.

        ``filter_run`` / ``filter_node`` narrow delivery to one run id or
        one node name. Returns the subscription id for unsubscribe().
        """
        sub = Subscription(
            id=f"sub_{next(self._ids)}",
            event_types=frozenset(event_types),
            handler=handler,
            filter_run=filter_run,
            filter_node=filter_node,
        )
        self._subscriptions[sub.id] = sub
        logger.debug(f"Subscription {sub.id} registered for {sorted(sub.event_types)}")
        return sub.id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. False if the id is unknown."""
        removed = self._subscriptions.pop(subscription_id, None) is not None
        if removed:
            logger.debug(f"Subscription {subscription_id} removed")
        return removed

    async def publish(self, event: RunEvent) -> None:
        """Record ``event`` and deliver it to every accepting subscriber."""
        self._history.append(event)

        targets = [sub for sub in self._subscriptions.values() if sub.accepts(event)]
        if targets:
            await asyncio.gather(*(self._deliver(sub, event) for sub in targets))

    async def _deliver(self, sub: Subscription, event: RunEvent) -> None:
        async with self._semaphore:
            try:
                await sub.handler(event)
            except Exception:
                logger.exception(
                    f"Subscriber {sub.id} failed on {event.type} (run {event.run_id})"
                )

    # === CONVENIENCE PUBLISHERS ===

    async def emit_run_started(self, run_id: str, entry_point: str, graph_id: str = "") -> None:
        """Emit run started event."""
        await self.publish(
            RunEvent(
                type=EventType.RUN_STARTED,
                run_id=run_id,
                node=entry_point,
                data={"graph_id": graph_id, "entry_point": entry_point},
            )
        )

    async def emit_node_started(self, run_id: str, node: str, step: int) -> None:
        """Emit node started event."""
        await self.publish(
            RunEvent(type=EventType.NODE_STARTED, run_id=run_id, node=node, data={"step": step})
        )

    async def emit_node_completed(
        self, run_id: str, node: str, step: int, latency_ms: int
    ) -> None:
        """Emit node completed event."""
        await self.publish(
            RunEvent(
                type=EventType.NODE_COMPLETED,
                run_id=run_id,
                node=node,
                data={"step": step, "latency_ms": latency_ms},
            )
        )

    async def emit_edge_traversed(
        self, run_id: str, source: str, target: str, via: str
    ) -> None:
        """Emit edge traversed event. ``via`` is "edge", "conditional" or "command"."""
        await self.publish(
            RunEvent(
                type=EventType.EDGE_TRAVERSED,
                run_id=run_id,
                node=source,
                data={"target": target, "via": via},
            )
        )

    async def emit_run_completed(self, run_id: str, steps: int) -> None:
        """Emit run completed event."""
        await self.publish(
            RunEvent(type=EventType.RUN_COMPLETED, run_id=run_id, data={"steps": steps})
        )

    async def emit_run_failed(
        self, run_id: str, error: str, node: str | None = None, steps: int = 0
    ) -> None:
        """Emit run failed event."""
        await self.publish(
            RunEvent(
                type=EventType.RUN_FAILED,
                run_id=run_id,
                node=node,
                data={"error": error, "steps": steps},
            )
        )

    async def emit_run_interrupted(
        self, run_id: str, node: str, when: str, next_node: str | None
    ) -> None:
        """Emit run interrupted event."""
        await self.publish(
            RunEvent(
                type=EventType.RUN_INTERRUPTED,
                run_id=run_id,
                node=node,
                data={"when": when, "next_node": next_node},
            )
        )

    # === QUERY METHODS ===

    def get_history(
        self,
        event_type: EventType | None = None,
        run_id: str | None = None,
        node: str | None = None,
        limit: int = 100,
    ) -> list[RunEvent]:
        """Recorded events, oldest first, optionally filtered; at most ``limit``."""
        events = [
            e
            for e in self._history
            if (event_type is None or e.type == event_type)
            and (run_id is None or e.run_id == run_id)
            and (node is None or e.node == node)
        ]
        return events[-limit:]
