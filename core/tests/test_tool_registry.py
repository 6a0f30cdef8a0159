"""Tests for ToolRegistry registration and dispatch."""

import types

import pytest

from loopgraph.errors import ToolExecutionError, ToolNotFoundError
from loopgraph.llm.provider import Tool
from loopgraph.runner.tool_registry import ToolRegistry, tool


def add(a: int, b: int) -> int:
    """Add two integers."""
    return a + b


async def shout(text: str, times: int = 1) -> str:
    return text.upper() * times


class TestRegistration:
    def test_register_function_builds_schema(self):
        registry = ToolRegistry()
        definition = registry.register_function(add)

        assert definition.name == "add"
        assert definition.description == "Add two integers."
        assert definition.parameters == {
            "type": "object",
            "properties": {"a": {"type": "integer"}, "b": {"type": "integer"}},
            "required": ["a", "b"],
        }
        assert registry.has_tool("add")

    def test_optional_parameters_not_required(self):
        registry = ToolRegistry()
        definition = registry.register_function(shout, description="Shout it")

        assert definition.description == "Shout it"
        assert definition.parameters["required"] == ["text"]
        assert definition.parameters["properties"]["times"] == {"type": "integer"}

    def test_register_explicit_tool(self):
        registry = ToolRegistry()
        definition = Tool(name="echo", description="Echo input", parameters={})
        registry.register("echo", definition, lambda args: args)

        assert registry.get_tools() == {"echo": definition}
        assert registry.get_registered_names() == ["echo"]

    def test_tool_declaration_format(self):
        definition = Tool(name="echo", description="Echo input")

        assert definition.to_llm_dict() == {
            "type": "function",
            "function": {
                "name": "echo",
                "description": "Echo input",
                "parameters": {"type": "object", "properties": {}},
            },
        }

    def test_decorator_registers(self):
        registry = ToolRegistry()

        @registry.tool(description="Multiply")
        def multiply(a: int, b: int) -> int:
            return a * b

        assert multiply(2, 3) == 6
        assert registry.get_tools()["multiply"].description == "Multiply"

    def test_module_level_marker(self):
        @tool(name="weather", description="Weather lookup")
        def get_weather(city: str) -> dict:
            return {"city": city}

        module = types.ModuleType("fake_tools")
        module.get_weather = get_weather
        module.not_a_tool = lambda: None

        registry = ToolRegistry()

        assert registry.discover_from_module(module) == 1
        assert registry.get_registered_names() == ["weather"]

    def test_from_functions(self):
        registry = ToolRegistry.from_functions([add, shout])
        assert sorted(registry.get_registered_names()) == ["add", "shout"]


class TestExecute:
    @pytest.mark.asyncio
    async def test_sync_tool(self):
        registry = ToolRegistry()
        registry.register_function(add)

        assert await registry.execute("add", {"a": 2, "b": 3}) == 5

    @pytest.mark.asyncio
    async def test_async_tool(self):
        registry = ToolRegistry()
        registry.register_function(shout)

        assert await registry.execute("shout", {"text": "hi", "times": 2}) == "HIHI"

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        with pytest.raises(ToolNotFoundError) as exc_info:
            await ToolRegistry().execute("nope", {})
        assert exc_info.value.name == "nope"
        assert str(exc_info.value) == "tool not found: nope"

    @pytest.mark.asyncio
    async def test_tool_failure_is_wrapped(self):
        def broken() -> None:
            raise ValueError("bad input")

        registry = ToolRegistry()
        registry.register_function(broken)

        with pytest.raises(ToolExecutionError) as exc_info:
            await registry.execute("broken", {})

        assert exc_info.value.name == "broken"
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert "bad input" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_wrong_arguments_are_execution_errors(self):
        registry = ToolRegistry()
        registry.register_function(add)

        with pytest.raises(ToolExecutionError):
            await registry.execute("add", {"a": 1})

    @pytest.mark.asyncio
    async def test_arguments_are_copied(self):
        seen = []

        def mutate(args: dict) -> str:
            args["extra"] = True
            seen.append(args)
            return "ok"

        registry = ToolRegistry()
        registry.register("mutate", Tool(name="mutate", description=""), mutate)
        arguments = {"x": 1}

        await registry.execute("mutate", arguments)

        assert arguments == {"x": 1}
