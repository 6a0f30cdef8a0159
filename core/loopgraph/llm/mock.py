"""Scripted LLM provider for tests and offline demos."""

import logging
from dataclasses import dataclass

from loopgraph.errors import LLMError
from loopgraph.llm.provider import LLMProvider, LLMResponse, Tool
from loopgraph.schemas.message import Message

logger = logging.getLogger(__name__)


@dataclass
class RecordedRequest:
    """One call made to a ScriptedLLMProvider."""

    messages: list[Message]
    tools: list[Tool] | None


class ScriptedLLMProvider(LLMProvider):
    """
    Replays a fixed list of replies, one per complete() call.

    Each reply may be a Message, a plain string (turned into an ai
    message) or a full LLMResponse. Every request is recorded so tests can
    assert on what the model was shown.

    Example:
        llm = ScriptedLLMProvider([
            Message.ai_with_tool_calls("", [ToolCall(id="c1", name="add", arguments={"a": 2, "b": 3})]),
            "The answer is 5.",
        ])
    """

    def __init__(self, responses: list[Message | LLMResponse | str], model: str = "scripted"):
        self.model = model
        self._responses = list(responses)
        self._index = 0
        self.requests: list[RecordedRequest] = []

    @property
    def remaining(self) -> int:
        return len(self._responses) - self._index

    async def complete(
        self,
        messages: list[Message],
        tools: list[Tool] | None = None,
    ) -> LLMResponse:
        self.requests.append(RecordedRequest(messages=list(messages), tools=tools))

        if self._index >= len(self._responses):
            raise LLMError(
                f"ScriptedLLMProvider exhausted after {len(self._responses)} responses"
            )

        reply = self._responses[self._index]
        self._index += 1
        logger.debug(f"Scripted reply {self._index}/{len(self._responses)}")

        if isinstance(reply, LLMResponse):
            return reply
        if isinstance(reply, str):
            reply = Message.ai(reply)
        return LLMResponse(
            message=reply,
            model=self.model,
            stop_reason="tool_calls" if reply.tool_calls else "stop",
        )
