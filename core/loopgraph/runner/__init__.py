"""Tool registration and dispatch."""

from loopgraph.runner.tool_registry import RegisteredTool, ToolRegistry, tool

__all__ = ["RegisteredTool", "ToolRegistry", "tool"]
