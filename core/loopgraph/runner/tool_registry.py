"""Tool registration and dispatch for tool-executing nodes."""

import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from types import ModuleType
from typing import Any

from loopgraph.errors import ToolExecutionError, ToolNotFoundError
from loopgraph.llm.provider import Tool

logger = logging.getLogger(__name__)

_JSON_TYPES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
}


@dataclass
class RegisteredTool:
    """A tool with its executor function."""

    tool: Tool
    executor: Callable[[dict], Any]


class ToolRegistry:
    """
    Name -> (Tool, executor) table shared by a ToolNode and the model node.

    Executors take the call's argument dict. They may be sync or async;
    async ones are awaited, sync ones run inline.

    Example:
        registry = ToolRegistry()

        @registry.tool(description="Add two integers")
        def add(a: int, b: int) -> int:
            return a + b

        await registry.execute("add", {"a": 2, "b": 3})  # 5
    """

    def __init__(self):
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self,
        name: str,
        tool: Tool,
        executor: Callable[[dict], Any],
    ) -> None:
        """
        Register a single tool with its executor.

        Args:
            name: Tool name (must match tool.name)
            tool: Tool definition
            executor: Function that takes the argument dict and returns a result
        """
        if name in self._tools:
            logger.warning(f"Tool '{name}' re-registered; replacing previous executor")
        self._tools[name] = RegisteredTool(tool=tool, executor=executor)

    def register_function(
        self,
        func: Callable,
        name: str | None = None,
        description: str | None = None,
    ) -> Tool:
        """
        Register a function as a tool, auto-generating the Tool definition.

        Args:
            func: Function to register (sync or async)
            name: Tool name (defaults to function name)
            description: Tool description (defaults to docstring)

        Returns:
            The generated Tool
        """
        tool_name = name or func.__name__
        tool_desc = description or inspect.getdoc(func) or f"Execute {tool_name}"

        sig = inspect.signature(func)
        properties = {}
        required = []

        for param_name, param in sig.parameters.items():
            if param_name in ("self", "cls"):
                continue
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue

            param_type = "string"  # Default
            if param.annotation is not inspect.Parameter.empty:
                param_type = _JSON_TYPES.get(param.annotation, "string")

            properties[param_name] = {"type": param_type}

            if param.default is inspect.Parameter.empty:
                required.append(param_name)

        tool = Tool(
            name=tool_name,
            description=tool_desc,
            parameters={
                "type": "object",
                "properties": properties,
                "required": required,
            },
        )

        def executor(inputs: dict) -> Any:
            return func(**inputs)

        self.register(tool_name, tool, executor)
        return tool

    def tool(
        self,
        description: str | None = None,
        name: str | None = None,
    ) -> Callable:
        """Decorator form of register_function. Returns the function unchanged."""

        def decorator(func: Callable) -> Callable:
            self.register_function(func, name=name, description=description)
            return func

        return decorator

    def discover_from_module(self, module: ModuleType) -> int:
        """
        Register every function in ``module`` marked with the module-level @tool.

        Returns:
            Number of tools registered
        """
        count = 0
        for attr in dir(module):
            obj = getattr(module, attr)
            if callable(obj) and hasattr(obj, "_tool_metadata"):
                metadata = obj._tool_metadata
                self.register_function(
                    obj,
                    name=metadata.get("name", attr),
                    description=metadata.get("description"),
                )
                count += 1
        return count

    def get_tools(self) -> dict[str, Tool]:
        """Get all registered Tool objects."""
        return {name: rt.tool for name, rt in self._tools.items()}

    def get_registered_names(self) -> list[str]:
        """Get list of registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    async def execute(self, name: str, arguments: dict[str, Any]) -> Any:
        """
        Run the named tool with ``arguments`` and return its raw result.

        Raises:
            ToolNotFoundError: no tool registered under ``name``
            ToolExecutionError: the executor raised; the original exception
                is chained as ``__cause__``
        """
        registered = self._tools.get(name)
        if registered is None:
            raise ToolNotFoundError(name)

        try:
            result = registered.executor(dict(arguments))
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise ToolExecutionError(name, e) from e
        return result

    @classmethod
    def from_functions(cls, functions: Iterable[Callable]) -> "ToolRegistry":
        """Build a registry from plain functions."""
        registry = cls()
        for func in functions:
            metadata = getattr(func, "_tool_metadata", {})
            registry.register_function(
                func, name=metadata.get("name"), description=metadata.get("description")
            )
        return registry


def tool(
    description: str | None = None,
    name: str | None = None,
) -> Callable:
    """
    Decorator to mark a function as a tool without registering it yet.

    Marked functions are picked up by ToolRegistry.discover_from_module,
    ToolRegistry.from_functions and create_react_agent.

    Usage:
        @tool(description="Look up the weather for a city")
        def get_weather(city: str) -> dict:
            return {"city": city, "temp_c": 21}
    """

    def decorator(func: Callable) -> Callable:
        func._tool_metadata = {
            "name": name or func.__name__,
            "description": description or func.__doc__,
        }
        return func

    return decorator
