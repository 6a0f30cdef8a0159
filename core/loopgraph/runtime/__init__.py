"""Run-time observability: the event sink runs publish to."""

from loopgraph.runtime.event_bus import EventBus, EventHandler, EventType, RunEvent, Subscription

__all__ = [
    "EventBus",
    "EventHandler",
    "EventType",
    "RunEvent",
    "Subscription",
]
