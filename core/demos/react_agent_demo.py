#!/usr/bin/env python3
"""
ReAct Agent Demo

Scripted model, real ToolRegistry, real FileCheckpointStore, real EventBus.
Runs the prebuilt agent with a human approval step before tools execute,
then resumes the thread from disk and prints the conversation.

Usage:
    cd core
    python demos/react_agent_demo.py
"""

import asyncio
import logging
import sys
import tempfile
from pathlib import Path

# Add core to path
_CORE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_CORE_DIR))  # loopgraph.*

from loopgraph import (  # noqa: E402
    CheckpointConfig,
    EventBus,
    EventType,
    FileCheckpointStore,
    GraphInterrupt,
    Message,
    MessageState,
    ReactAgentOptions,
    RunEvent,
    ScriptedLLMProvider,
    ToolCall,
    create_react_agent,
    tool,
)
from loopgraph.observability import configure_logging  # noqa: E402

logger = logging.getLogger("demo")


@tool(description="Add two integers")
def add(a: int, b: int) -> int:
    return a + b


@tool(description="Multiply two integers")
def multiply(a: int, b: int) -> int:
    return a * b


async def print_event(event: RunEvent) -> None:
    print(f"  [{event.type.value:<15}] {event.node or '':<6} {event.data}")


async def main() -> None:
    configure_logging(level="INFO", format="human")

    llm = ScriptedLLMProvider(
        [
            Message.ai_with_tool_calls(
                "Let me compute that.",
                [
                    ToolCall(id="call_1", name="add", arguments={"a": 2, "b": 3}),
                    ToolCall(id="call_2", name="multiply", arguments={"a": 5, "b": 4}),
                ],
            ),
            "2 + 3 = 5 and 5 * 4 = 20.",
        ]
    )

    bus = EventBus()
    bus.subscribe(
        [EventType.NODE_COMPLETED, EventType.TOOL_CALLED, EventType.RUN_INTERRUPTED],
        print_event,
    )

    with tempfile.TemporaryDirectory() as tmp:
        store = FileCheckpointStore(Path(tmp) / "checkpoints")
        agent = create_react_agent(
            llm,
            [add, multiply],
            ReactAgentOptions(
                checkpointer=store,
                interrupt_before=["tools"],
                system_prompt="You are a calculator.",
            ),
        )
        config = CheckpointConfig(thread_id="demo")

        print(agent.draw_ascii())
        print()

        try:
            await agent.invoke(
                MessageState.with_messages([Message.human("What is 2 + 3, times 4?")]),
                config=config,
                event_bus=bus,
            )
        except GraphInterrupt as interrupt:
            pending = await agent.get_state(config)
            calls = pending.last_message().tool_calls
            logger.info(f"Paused {interrupt.when} '{interrupt.node}': {[c.name for c in calls]}")

        # A fresh graph over the same directory picks the thread up from disk
        resumed = agent.with_checkpointer(FileCheckpointStore(Path(tmp) / "checkpoints"))
        final = await resumed.resume(config, event_bus=bus)

        print()
        for message in final.messages:
            print(f"{message.role:>6}: {message.content or [c.name for c in message.tool_calls]}")

        history = await resumed.get_state_history(config)
        print(f"\n{len(history)} checkpoints stored for thread '{config.thread_id}'")


if __name__ == "__main__":
    asyncio.run(main())
