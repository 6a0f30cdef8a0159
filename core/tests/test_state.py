"""Tests for the State contract and the built-in MessageState."""

import pytest
from pydantic import Field

from loopgraph.graph.state import MessageState, State
from loopgraph.schemas.message import Message, ToolCall


class CounterState(State):
    counter: int = 0
    visited: list[str] = Field(default_factory=list)

    def merge(self, other: "CounterState") -> "CounterState":
        return CounterState(
            counter=self.counter + other.counter,
            visited=self.visited + other.visited,
        )


class TestStateContract:
    def test_state_is_abstract(self):
        with pytest.raises(TypeError):
            State()

    def test_clone_is_independent(self):
        original = CounterState(counter=1, visited=["a"])
        copy = original.clone()
        copy.visited.append("b")

        assert original.visited == ["a"]
        assert copy.visited == ["a", "b"]

    def test_custom_merge(self):
        merged = CounterState(counter=1, visited=["a"]).merge(
            CounterState(counter=2, visited=["b"])
        )
        assert merged.counter == 3
        assert merged.visited == ["a", "b"]

    def test_default_delta_is_full_value(self):
        before = CounterState(counter=1)
        after = CounterState(counter=2, visited=["x"])
        assert after.delta(before) == after

    def test_checkpoint_form_restores_equal_state(self):
        state = CounterState(counter=7, visited=["a", "b"])
        data = state.to_checkpoint()

        assert data == {"counter": 7, "visited": ["a", "b"]}
        assert CounterState.from_checkpoint(data) == state


class TestMessageState:
    def test_merge_appends_in_order(self):
        left = MessageState.with_messages([Message.human("a")])
        right = MessageState.with_messages([Message.ai("b"), Message.ai("c")])

        merged = left.merge(right)

        assert [m.content for m in merged.messages] == ["a", "b", "c"]

    def test_merge_leaves_inputs_unchanged(self):
        left = MessageState.with_messages([Message.human("a")])
        right = MessageState.with_messages([Message.ai("b")])

        merged = left.merge(right)
        merged.messages.append(Message.ai("extra"))

        assert len(left.messages) == 1
        assert len(right.messages) == 1

    def test_merge_is_associative(self):
        a = MessageState.with_messages([Message.human("a1"), Message.human("a2")])
        b = MessageState.with_messages([Message.ai("b1")])
        c = MessageState.with_messages([Message.tool("c1", tool_call_id="x")])

        left = a.merge(b).merge(c)
        right = a.merge(b.merge(c))

        assert left.messages == right.messages
        assert [m.content for m in left.messages] == ["a1", "a2", "b1", "c1"]

    def test_merge_with_empty(self):
        state = MessageState.with_messages([Message.human("a")])
        assert state.merge(MessageState()).messages == state.messages
        assert MessageState().merge(state).messages == state.messages

    def test_last_message(self):
        assert MessageState().last_message() is None
        state = MessageState.with_messages([Message.human("a"), Message.ai("b")])
        assert state.last_message().content == "b"

    def test_empty_state_is_truthy(self):
        # Runtime code must be able to check ``if state`` without surprises
        assert MessageState()

    def test_delta_returns_new_suffix(self):
        before = MessageState.with_messages([Message.human("a")])
        after = before.merge(MessageState.with_messages([Message.ai("b")]))

        delta = after.delta(before)

        assert [m.content for m in delta.messages] == ["b"]

    def test_delta_without_shared_prefix_is_full_value(self):
        before = MessageState.with_messages([Message.human("x")])
        after = MessageState.with_messages([Message.human("a"), Message.ai("b")])

        assert after.delta(before).messages == after.messages

    def test_checkpoint_round_trip_keeps_tool_calls(self):
        state = MessageState.with_messages(
            [
                Message.human("add"),
                Message.ai_with_tool_calls(
                    "", [ToolCall(id="c1", name="add", arguments={"a": 1, "b": 2})]
                ),
                Message.tool("3", tool_call_id="c1"),
            ]
        )

        restored = MessageState.from_checkpoint(state.to_checkpoint())

        assert restored == state
        assert restored.messages[1].tool_calls[0].arguments == {"a": 1, "b": 2}


class TestMessage:
    def test_constructors_set_roles(self):
        assert Message.system("s").is_system()
        assert Message.human("h").is_human()
        assert Message.ai("a").is_ai()
        tool_msg = Message.tool("r", tool_call_id="c1")
        assert tool_msg.is_tool()
        assert tool_msg.tool_call_id == "c1"

    def test_has_tool_calls_only_for_ai(self):
        call = ToolCall(id="c1", name="t")
        assert Message.ai_with_tool_calls("", [call]).has_tool_calls
        assert not Message.ai("done").has_tool_calls
        assert not Message.human("hi").has_tool_calls

    def test_to_llm_dict(self):
        call = ToolCall(id="c1", name="add", arguments={"a": 1})
        assert Message.human("hi").to_llm_dict() == {"role": "user", "content": "hi"}

        ai = Message.ai_with_tool_calls("", [call]).to_llm_dict()
        assert ai["role"] == "assistant"
        assert ai["tool_calls"][0]["function"] == {"name": "add", "arguments": {"a": 1}}

        err = Message.tool("boom", tool_call_id="c1", is_error=True).to_llm_dict()
        assert err == {"role": "tool", "tool_call_id": "c1", "content": "ERROR: boom"}
