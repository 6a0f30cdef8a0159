"""
Message Schema - Conversation turns exchanged between graph nodes and models.

A message is one of four roles:
- system: instructions prepended to a model call
- human: user input
- ai: a model reply, optionally carrying tool-call requests
- tool: the result of one tool call, tagged with the originating call id
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class Message(BaseModel):
    """
    A single conversation turn.

    Examples:
        Message.human("What is 2 + 3?")
        Message.ai_with_tool_calls("", [ToolCall(id="c1", name="add", arguments={"a": 2})])
        Message.tool("5", tool_call_id="c1")
    """

    role: Literal["system", "human", "ai", "tool"]
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: str | None = None
    is_error: bool = False

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def human(cls, content: str) -> "Message":
        return cls(role="human", content=content)

    @classmethod
    def ai(cls, content: str) -> "Message":
        return cls(role="ai", content=content)

    @classmethod
    def ai_with_tool_calls(cls, content: str, tool_calls: list[ToolCall]) -> "Message":
        return cls(role="ai", content=content, tool_calls=list(tool_calls))

    @classmethod
    def tool(cls, content: str, tool_call_id: str, is_error: bool = False) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id, is_error=is_error)

    def is_system(self) -> bool:
        return self.role == "system"

    def is_human(self) -> bool:
        return self.role == "human"

    def is_ai(self) -> bool:
        return self.role == "ai"

    def is_tool(self) -> bool:
        return self.role == "tool"

    @property
    def has_tool_calls(self) -> bool:
        """True when this is an AI message with pending tool-call requests."""
        return self.role == "ai" and bool(self.tool_calls)

    def to_llm_dict(self) -> dict[str, Any]:
        """Convert to OpenAI-format message dict."""
        if self.role == "system":
            return {"role": "system", "content": self.content}

        if self.role == "human":
            return {"role": "user", "content": self.content}

        if self.role == "ai":
            d: dict[str, Any] = {"role": "assistant", "content": self.content}
            if self.tool_calls:
                d["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments},
                    }
                    for call in self.tool_calls
                ]
            return d

        # role == "tool"
        content = f"ERROR: {self.content}" if self.is_error else self.content
        return {
            "role": "tool",
            "tool_call_id": self.tool_call_id,
            "content": content,
        }
