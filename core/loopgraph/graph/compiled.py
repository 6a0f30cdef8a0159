"""
Compiled Graph - Runs a validated graph to completion.

The executor:
1. Starts at the entry point (or a resume node) with the caller's state
2. Runs the current node
3. Honours a Goto/End command issued during that node, if any
4. Otherwise resolves the next node from the edge table
5. Repeats until END

There is no implicit step bound: cyclic graphs terminate when their data
says so (e.g. the model stops requesting tools). Callers that need a bound
stop consuming stream() or wrap invoke() in a timeout.

Checkpointing is opt-in. The store is only written when a checkpointer is
attached AND the call carries a CheckpointConfig; a fresh invoke()/stream()
never reads it, only resume() does.
"""

import copy
import logging
import time
import uuid
from collections.abc import AsyncIterator, Mapping
from contextlib import aclosing
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from loopgraph.errors import (
    CheckpointerNotConfiguredError,
    CheckpointError,
    CheckpointNotFoundError,
    GraphError,
    GraphInterrupt,
    NodeNotFoundError,
    NoOutgoingEdgeError,
)
from loopgraph.graph.command import GraphContext, Goto, bind_context
from loopgraph.graph.edge import END, ConditionalEdge, Edge
from loopgraph.graph.node import NodeProtocol, accepts_context
from loopgraph.graph.state import State
from loopgraph.graph.visualization import VisualizationMixin
from loopgraph.observability import trace_scope
from loopgraph.runtime.event_bus import EventBus, EventType
from loopgraph.schemas.checkpoint import Checkpoint, CheckpointConfig
from loopgraph.storage.checkpoint_store import Checkpointer

logger = logging.getLogger(__name__)


class StreamMode(StrEnum):
    """Controls what stream() yields after each node."""

    VALUES = "values"  # Full state after the node
    UPDATES = "updates"  # Only what the node added (State.delta)


@dataclass
class GraphEvent:
    """An event yielded by stream() after each executed node."""

    node: str
    state: Any
    step: int
    mode: StreamMode = StreamMode.VALUES


@dataclass
class _Step:
    node: str
    step: int
    state: Any
    previous: Any = None


def _clone(state: Any) -> Any:
    if isinstance(state, State):
        return state.clone()
    return copy.deepcopy(state)


class CompiledGraph(VisualizationMixin):
    """
    Executable, immutable graph produced by StateGraph.compile().

    Node and edge tables are read-only and shared by every run; all
    per-run data lives in the call's own loop variables and GraphContext,
    so concurrent runs against one instance do not interfere.

    Example:
        graph = builder.compile()
        final = await graph.invoke(MessageState.with_messages([Message.human("hi")]))

        async for event in graph.stream(state, StreamMode.UPDATES):
            print(event.node, event.state)
    """

    def __init__(
        self,
        nodes: Mapping[str, NodeProtocol],
        edges: Mapping[str, Edge],
        conditional_edges: Mapping[str, ConditionalEdge],
        entry_point: str,
        interrupt_before: frozenset[str] = frozenset(),
        interrupt_after: frozenset[str] = frozenset(),
        state_type: type[State] | None = None,
        graph_id: str = "",
        checkpointer: Checkpointer | None = None,
    ):
        self._nodes = MappingProxyType(dict(nodes))
        self._edges = MappingProxyType(dict(edges))
        self._conditional_edges = MappingProxyType(dict(conditional_edges))
        self._entry_point = entry_point
        self._interrupt_before = frozenset(interrupt_before)
        self._interrupt_after = frozenset(interrupt_after)
        self._state_type = state_type
        self._graph_id = graph_id
        self._checkpointer = checkpointer
        self._context_nodes = frozenset(
            name for name, node in self._nodes.items() if accepts_context(node)
        )

    # === INTROSPECTION ===

    @property
    def nodes(self) -> Mapping[str, NodeProtocol]:
        return self._nodes

    @property
    def edges(self) -> Mapping[str, Edge]:
        return self._edges

    @property
    def conditional_edges(self) -> Mapping[str, ConditionalEdge]:
        return self._conditional_edges

    @property
    def entry_point(self) -> str:
        return self._entry_point

    @property
    def interrupt_before_nodes(self) -> frozenset[str]:
        return self._interrupt_before

    @property
    def interrupt_after_nodes(self) -> frozenset[str]:
        return self._interrupt_after

    @property
    def state_type(self) -> type[State] | None:
        return self._state_type

    @property
    def graph_id(self) -> str:
        return self._graph_id

    @property
    def checkpointer(self) -> Checkpointer | None:
        return self._checkpointer

    def with_checkpointer(self, checkpointer: Checkpointer) -> "CompiledGraph":
        """Return a copy of this graph that persists to ``checkpointer``."""
        return CompiledGraph(
            nodes=self._nodes,
            edges=self._edges,
            conditional_edges=self._conditional_edges,
            entry_point=self._entry_point,
            interrupt_before=self._interrupt_before,
            interrupt_after=self._interrupt_after,
            state_type=self._state_type,
            graph_id=self._graph_id,
            checkpointer=checkpointer,
        )

    def __repr__(self) -> str:
        return (
            f"CompiledGraph(entry_point={self._entry_point!r}, nodes={len(self._nodes)}, "
            f"edges={len(self._edges)}, conditional_edges={len(self._conditional_edges)})"
        )

    def __str__(self) -> str:
        return self.draw_ascii()

    # === EXECUTION ===

    async def invoke(
        self,
        state: Any,
        config: CheckpointConfig | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> Any:
        """
        Run the graph from the entry point and return the terminal state.

        Args:
            state: Initial state
            config: Thread to snapshot into after every step (requires
                with_checkpointer)
            event_bus: Optional sink for run lifecycle events

        Raises:
            Whatever a node raises, unchanged; GraphRoutingError subclasses
            for routing failures; GraphInterrupt at interrupt points
        """
        return await self.invoke_from(state, self._entry_point, config, event_bus=event_bus)

    async def invoke_from(
        self,
        state: Any,
        node: str,
        config: CheckpointConfig | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> Any:
        """Run the graph starting at ``node`` instead of the entry point."""
        return await self._drain(state, node, config, event_bus, resumed=False)

    def stream(
        self,
        state: Any,
        mode: StreamMode = StreamMode.VALUES,
        config: CheckpointConfig | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> AsyncIterator[GraphEvent]:
        """
        Run the graph lazily, yielding a GraphEvent after every node.

        Each call starts a fresh run. The next node is only scheduled when
        the consumer asks for the next event; breaking out of the loop (or
        calling ``aclose()``) stops the run.
        """
        return self.stream_from(state, self._entry_point, mode, config, event_bus=event_bus)

    async def stream_from(
        self,
        state: Any,
        node: str,
        mode: StreamMode = StreamMode.VALUES,
        config: CheckpointConfig | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> AsyncIterator[GraphEvent]:
        """Like stream(), starting at ``node`` instead of the entry point."""
        mode = StreamMode(mode)
        steps = self._execute(
            state, node, config, event_bus, resumed=False, track_previous=mode == StreamMode.UPDATES
        )
        async with aclosing(steps):
            async for step in steps:
                if mode == StreamMode.UPDATES:
                    payload = (
                        step.state.delta(step.previous)
                        if isinstance(step.state, State)
                        else _clone(step.state)
                    )
                else:
                    payload = _clone(step.state)
                yield GraphEvent(node=step.node, state=payload, step=step.step, mode=mode)

    async def resume(
        self,
        config: CheckpointConfig,
        *,
        update: State | None = None,
        event_bus: EventBus | None = None,
    ) -> Any:
        """
        Continue a thread from its most recent checkpoint.

        Re-enters the loop at the checkpoint's next node with its state,
        optionally merged with ``update`` first. An interrupt_before on that
        node does not fire again. If the checkpoint has no continuation the
        stored state is returned as-is.

        Raises:
            CheckpointerNotConfiguredError: no checkpointer attached
            CheckpointNotFoundError: the thread has no checkpoints
        """
        checkpointer = self._require_checkpointer()
        checkpoint = await checkpointer.get(config)
        if checkpoint is None:
            raise CheckpointNotFoundError(config.thread_id)

        state = self._restore_state(checkpoint)
        if update is not None:
            state = state.merge(update)

        if checkpoint.next_node in (None, END):
            logger.info(f"Thread '{config.thread_id}' has no pending node; nothing to resume")
            return state

        logger.info(f"🔄 Resuming thread '{config.thread_id}' at node '{checkpoint.next_node}'")
        return await self._drain(state, checkpoint.next_node, config, event_bus, resumed=True)

    async def _drain(
        self,
        state: Any,
        node: str,
        config: CheckpointConfig | None,
        event_bus: EventBus | None,
        resumed: bool,
    ) -> Any:
        final = state
        steps = self._execute(state, node, config, event_bus, resumed=resumed)
        async with aclosing(steps):
            async for step in steps:
                final = step.state
        return final

    async def _execute(
        self,
        state: Any,
        start: str,
        config: CheckpointConfig | None,
        event_bus: EventBus | None,
        resumed: bool,
        track_previous: bool = False,
    ) -> AsyncIterator[_Step]:
        """The step loop. Yields after each node, before routing."""
        run_id = uuid.uuid4().hex
        thread_id = config.thread_id if config else None
        persist = self._checkpointer is not None and config is not None
        ctx = GraphContext(
            run_id=run_id, graph_id=self._graph_id, thread_id=thread_id, event_bus=event_bus
        )
        run_fields = {"run_id": run_id, "graph_id": self._graph_id, "thread_id": thread_id}

        current = start
        step = 0

        logger.info(
            f"▶ Run {run_id[:8]} started at '{start}'"
            + (f" (thread '{thread_id}')" if thread_id else "")
        )
        if event_bus:
            await event_bus.emit_run_started(run_id, start, self._graph_id)

        try:
            while current != END:
                if current in self._interrupt_before and not (resumed and step == 0):
                    # Later steps already saved next_node=current when they routed here
                    if persist and step == 0:
                        await self._save(ctx, config, state, next_node=current, source=None)
                    raise GraphInterrupt(current, "before", next_node=current)

                node = self._nodes.get(current)
                if node is None:
                    raise NodeNotFoundError(current, "runtime lookup")

                step += 1
                ctx.step = step
                ctx.node = current
                if event_bus:
                    await event_bus.emit_node_started(run_id, current, step)

                previous = _clone(state) if track_previous else None
                started = time.perf_counter()
                with bind_context(ctx), trace_scope(**run_fields, node=current):
                    if current in self._context_nodes:
                        state = await node.process(state, ctx)
                    else:
                        state = await node.process(state)
                latency_ms = int((time.perf_counter() - started) * 1000)

                logger.debug(f"  ✓ Step {step}: '{current}' completed in {latency_ms}ms")
                if event_bus:
                    await event_bus.emit_node_completed(run_id, current, step, latency_ms)

                yield _Step(node=current, step=step, state=state, previous=previous)

                command = ctx.take_command()
                if command is not None:
                    next_node = command.node if isinstance(command, Goto) else END
                    via = "command"
                    logger.debug(f"  ↪ '{current}' issued {command}")
                    await ctx.emit(EventType.COMMAND_ISSUED, command=repr(command))
                else:
                    next_node, via = await self._next_node(current, state)
                    if current in self._interrupt_after:
                        if persist:
                            await self._save(ctx, config, state, next_node=next_node, source=current)
                        raise GraphInterrupt(current, "after", next_node=next_node)

                if persist:
                    await self._save(ctx, config, state, next_node=next_node, source=current)

                if event_bus:
                    await event_bus.emit_edge_traversed(run_id, current, next_node, via)
                current = next_node

        except GraphInterrupt as interrupt:
            logger.info(f"⏸ Run {run_id[:8]} {interrupt}")
            if event_bus:
                await event_bus.emit_run_interrupted(
                    run_id, interrupt.node, interrupt.when, interrupt.next_node
                )
            raise
        except Exception as e:
            logger.error(f"✗ Run {run_id[:8]} failed at '{current}' after {step} steps: {e}")
            if event_bus:
                await event_bus.emit_run_failed(run_id, str(e), node=current, steps=step)
            raise

        logger.info(f"■ Run {run_id[:8]} completed after {step} steps")
        if event_bus:
            await event_bus.emit_run_completed(run_id, step)

    async def _next_node(self, current: str, state: Any) -> tuple[str, str]:
        """Resolve the successor of ``current`` from the edge table."""
        conditional = self._conditional_edges.get(current)
        if conditional is not None:
            return await conditional.resolve(state), "conditional"

        edge = self._edges.get(current)
        if edge is not None:
            return edge.target, "edge"

        raise NoOutgoingEdgeError(current)

    # === CHECKPOINTS ===

    def _require_checkpointer(self) -> Checkpointer:
        if self._checkpointer is None:
            raise CheckpointerNotConfiguredError()
        return self._checkpointer

    def _restore_state(self, checkpoint: Checkpoint) -> State:
        if self._state_type is None:
            raise GraphError(
                "state_type is required to restore checkpoints: "
                "build the graph with StateGraph(state_type=...)"
            )
        try:
            return self._state_type.from_checkpoint(checkpoint.state)
        except ValueError as e:
            raise CheckpointError(
                f"Checkpoint {checkpoint.checkpoint_id} does not hold a valid "
                f"{self._state_type.__name__}: {e}"
            ) from e

    @staticmethod
    def _dump_state(state: Any) -> dict[str, Any]:
        if not isinstance(state, State):
            raise CheckpointError(
                f"State of type {type(state).__name__} cannot be checkpointed; "
                "subclass loopgraph.State"
            )
        return state.to_checkpoint()

    async def _save(
        self,
        ctx: GraphContext,
        config: CheckpointConfig,
        state: Any,
        next_node: str | None,
        source: str | None,
    ) -> Checkpoint:
        checkpoint = Checkpoint.create(
            state=self._dump_state(state),
            next_node=next_node,
            source_node=source,
            step=ctx.step,
            metadata={"run_id": ctx.run_id},
        )
        await self._require_checkpointer().put(config, checkpoint)
        await ctx.emit(
            EventType.CHECKPOINT_SAVED,
            checkpoint_id=checkpoint.checkpoint_id,
            next_node=next_node,
        )
        return checkpoint

    async def snapshot(
        self,
        config: CheckpointConfig,
        state: State,
        next_node: str | None = None,
    ) -> Checkpoint:
        """
        Explicitly store ``state`` (and where to continue) for a thread.

        For callers that drive their own snapshot policy instead of passing
        a config to invoke()/stream().
        """
        checkpoint = Checkpoint.create(state=self._dump_state(state), next_node=next_node)
        await self._require_checkpointer().put(config, checkpoint)
        return checkpoint

    async def get_state(self, config: CheckpointConfig) -> State | None:
        """State of the thread's latest checkpoint, or None if it has none."""
        checkpoint = await self._require_checkpointer().get(config)
        if checkpoint is None:
            return None
        return self._restore_state(checkpoint)

    async def get_state_history(
        self, config: CheckpointConfig
    ) -> list[tuple[State, str | None]]:
        """All ``(state, next_node)`` pairs of a thread, oldest first."""
        checkpoints = await self._require_checkpointer().list(config)
        return [(self._restore_state(cp), cp.next_node) for cp in checkpoints]

    async def update_state(self, config: CheckpointConfig, update: State) -> Checkpoint:
        """
        Merge ``update`` into the thread's latest state (human-in-the-loop edits).

        Appends a new checkpoint with the merged state and the same next
        node; earlier checkpoints are left intact.
        """
        checkpointer = self._require_checkpointer()
        latest = await checkpointer.get(config)
        if latest is None:
            raise CheckpointNotFoundError(config.thread_id)

        merged = self._restore_state(latest).merge(update)
        checkpoint = Checkpoint.create(
            state=self._dump_state(merged),
            next_node=latest.next_node,
            source_node=latest.source_node,
            step=latest.step,
            metadata={"updated_from": latest.checkpoint_id},
        )
        await checkpointer.put(config, checkpoint)
        return checkpoint
