"""LLM Provider abstraction for pluggable model backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from loopgraph.schemas.message import Message


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    message: Message
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str = ""

    @property
    def content(self) -> str:
        return self.message.content


@dataclass
class Tool:
    """A tool the LLM can use."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_llm_dict(self) -> dict[str, Any]:
        """OpenAI-format function declaration."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters or {"type": "object", "properties": {}},
            },
        }


@dataclass
class ToolResult:
    """Result of executing a tool."""

    tool_call_id: str
    content: str
    is_error: bool = False


class LLMProvider(ABC):
    """
    Abstract LLM provider - plug in any model backend.

    Implementations should handle:
    - API authentication
    - Request/response formatting
    - Token counting
    - Mapping backend failures to LLMError
    """

    model: str = ""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        tools: list[Tool] | None = None,
    ) -> LLMResponse:
        """
        Generate the next assistant message.

        Args:
            messages: Full conversation, system prompt first if any
            tools: Tools the model may request

        Returns:
            LLMResponse whose message is an ai-role Message, with tool_calls
            when the model wants tools run
        """
