"""LLM provider abstraction."""

from loopgraph.llm.mock import RecordedRequest, ScriptedLLMProvider
from loopgraph.llm.provider import LLMProvider, LLMResponse, Tool, ToolResult

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "Tool",
    "ToolResult",
    "ScriptedLLMProvider",
    "RecordedRequest",
]
