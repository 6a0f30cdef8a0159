"""Tests for the EventBus pub/sub sink."""

import logging

import pytest

from loopgraph.runtime.event_bus import EventBus, EventType, RunEvent


def event(event_type: EventType = EventType.NODE_STARTED, run_id="r1", node="a") -> RunEvent:
    return RunEvent(type=event_type, run_id=run_id, node=node, data={"step": 1})


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_handler_receives_matching_events(self):
        bus = EventBus()
        received = []

        async def handler(e: RunEvent):
            received.append(e)

        bus.subscribe([EventType.NODE_STARTED], handler)

        await bus.publish(event(EventType.NODE_STARTED))
        await bus.publish(event(EventType.NODE_COMPLETED))

        assert [e.type for e in received] == [EventType.NODE_STARTED]

    @pytest.mark.asyncio
    async def test_run_and_node_filters(self):
        bus = EventBus()
        received = []

        async def handler(e: RunEvent):
            received.append((e.run_id, e.node))

        bus.subscribe([EventType.NODE_STARTED], handler, filter_run="r1", filter_node="a")

        await bus.publish(event(run_id="r1", node="a"))
        await bus.publish(event(run_id="r2", node="a"))
        await bus.publish(event(run_id="r1", node="b"))

        assert received == [("r1", "a")]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        received = []

        async def handler(e: RunEvent):
            received.append(e)

        sub_id = bus.subscribe([EventType.NODE_STARTED], handler)

        assert bus.unsubscribe(sub_id) is True
        assert bus.unsubscribe(sub_id) is False
        await bus.publish(event())
        assert received == []

    @pytest.mark.asyncio
    async def test_handler_failure_is_contained(self, caplog):
        bus = EventBus()
        received = []

        async def broken(e: RunEvent):
            raise RuntimeError("subscriber bug")

        async def healthy(e: RunEvent):
            received.append(e)

        broken_id = bus.subscribe([EventType.NODE_STARTED], broken)
        bus.subscribe([EventType.NODE_STARTED], healthy)

        with caplog.at_level(logging.ERROR, logger="loopgraph.runtime.event_bus"):
            await bus.publish(event())

        assert len(received) == 1
        assert broken_id in caplog.text


class TestHistory:
    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        bus = EventBus(max_history=3)
        for i in range(5):
            await bus.publish(event(run_id=f"r{i}"))

        assert [e.run_id for e in bus.get_history()] == ["r2", "r3", "r4"]

    @pytest.mark.asyncio
    async def test_history_filters(self):
        bus = EventBus()
        await bus.emit_run_started("r1", "a")
        await bus.emit_node_started("r1", "a", 1)
        await bus.emit_node_started("r2", "a", 1)

        assert len(bus.get_history(event_type=EventType.NODE_STARTED)) == 2
        assert len(bus.get_history(run_id="r1")) == 2
        assert len(bus.get_history(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_history_node_filter(self):
        bus = EventBus()
        await bus.emit_node_started("r1", "a", 1)
        await bus.emit_node_started("r1", "b", 2)

        assert [e.data["step"] for e in bus.get_history(node="b")] == [2]

    def test_to_dict(self):
        data = event().to_dict()

        assert data["type"] == "node_started"
        assert data["run_id"] == "r1"
        assert data["node"] == "a"
        assert data["data"] == {"step": 1}
