"""Tests for node wrappers and conditional-edge resolution."""

import pytest

from loopgraph.errors import FanOutNotSupportedError, PathMapKeyError
from loopgraph.graph.command import GraphContext, bind_context
from loopgraph.graph.edge import END, ConditionalEdge
from loopgraph.graph.node import FunctionNode, NodeProtocol, accepts_context, as_node
from loopgraph.graph.send import Send
from loopgraph.graph.state import MessageState
from loopgraph.schemas.message import Message


class Identity(NodeProtocol):
    async def process(self, state):
        return state


class TestFunctionNode:
    @pytest.mark.asyncio
    async def test_sync_function(self):
        node = FunctionNode(lambda s: s.merge(MessageState.with_messages([Message.ai("x")])))

        result = await node.process(MessageState())

        assert [m.content for m in result.messages] == ["x"]

    @pytest.mark.asyncio
    async def test_async_function(self):
        async def fn(state):
            return state

        state = MessageState()
        assert await FunctionNode(fn).process(state) is state

    @pytest.mark.asyncio
    async def test_context_is_passed_to_two_argument_functions(self):
        received = []

        def fn(state, ctx):
            received.append(ctx)
            return state

        ctx = GraphContext(run_id="r1")
        with bind_context(ctx):
            await FunctionNode(fn).process(MessageState())

        assert received == [ctx]

    def test_name_defaults_to_function_name(self):
        def my_step(state):
            return state

        assert FunctionNode(my_step).name == "my_step"
        assert FunctionNode(my_step, name="custom").name == "custom"

    def test_rejects_non_callables(self):
        with pytest.raises(TypeError):
            FunctionNode("not callable")

    def test_accepts_context_inspects_process(self):
        class WithContext(NodeProtocol):
            async def process(self, state, ctx):
                return state

        assert accepts_context(WithContext())
        assert not accepts_context(Identity())
        assert not accepts_context(FunctionNode(lambda s, ctx: s))

    def test_as_node(self):
        node = Identity()
        assert as_node(node) is node
        assert isinstance(as_node(lambda s: s), FunctionNode)
        with pytest.raises(TypeError):
            as_node(3)


class TestConditionalEdge:
    @pytest.mark.asyncio
    async def test_without_path_map_key_is_target(self):
        edge = ConditionalEdge(source="a", router=lambda s: "b")
        assert await edge.resolve(None) == "b"
        assert edge.possible_targets() is None

    @pytest.mark.asyncio
    async def test_path_map_lookup(self):
        edge = ConditionalEdge(source="a", router=lambda s: "stop", path_map={"stop": END})

        assert await edge.resolve(None) == END
        assert edge.possible_targets() == [END]

    @pytest.mark.asyncio
    async def test_missing_key_lists_known_keys(self):
        edge = ConditionalEdge(source="a", router=lambda s: "x", path_map={"b": "b", "c": "c"})

        with pytest.raises(PathMapKeyError) as exc_info:
            await edge.resolve(None)

        assert exc_info.value.known == ["b", "c"]
        assert "'x'" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unhashable_key_is_a_routing_error(self):
        edge = ConditionalEdge(source="a", router=lambda s: ["b"], path_map={"b": END})

        with pytest.raises(PathMapKeyError) as exc_info:
            await edge.resolve(None)

        assert exc_info.value.key == ["b"]

    @pytest.mark.asyncio
    async def test_single_send_rejected(self):
        edge = ConditionalEdge(source="a", router=lambda s: Send("b", s))

        with pytest.raises(FanOutNotSupportedError):
            await edge.resolve(None)

    def test_path_map_is_frozen(self):
        source = {"go": "b"}
        edge = ConditionalEdge(source="a", router=lambda s: "go", path_map=source)
        source["go"] = "c"

        assert edge.path_map["go"] == "b"
        with pytest.raises(TypeError):
            edge.path_map["new"] = "d"
