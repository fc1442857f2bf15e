"""Conversation messages and the append-only conversation state."""

import json
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Union

from . import fmt


@dataclass(frozen=True)
class ToolCallRequest:
    """One tool invocation requested by the model.

    ``arguments`` is the raw JSON text exactly as the model produced it.
    """

    id: str
    name: str
    arguments: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class UserMessage:
    content: str
    role: str = field(default="user", init=False)

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class AssistantMessage:
    content: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] = ()
    role: str = field(default="assistant", init=False)

    def to_dict(self) -> dict:
        d: dict = {"role": self.role, "content": self.content}
        if self.tool_calls:
            d["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        return d


@dataclass(frozen=True)
class ToolMessage:
    tool_call_id: str
    content: str
    role: str = field(default="tool", init=False)

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "tool_call_id": self.tool_call_id,
            "content": self.content,
        }


Message = Union[UserMessage, AssistantMessage, ToolMessage]


class Conversation:
    """Ordered, append-only list of messages exchanged with the model.

    Seeded with the user's prompt. Each tool turn is recorded atomically:
    the assistant message carrying the tool calls first, then exactly one
    tool message per call, in request order.
    """

    def __init__(self, prompt: str):
        self._messages: list[Message] = [UserMessage(prompt)]

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(self._messages)

    def record_tool_turn(self, assistant: AssistantMessage, results) -> None:
        """Append an assistant tool-call message followed by its results.

        ``results`` is a sequence of objects with ``tool_call_id`` and
        ``content``. Raises ValueError if they do not match the assistant's
        tool calls one-to-one and in order; nothing is appended in that case.
        """
        results = list(results)
        if not assistant.tool_calls:
            raise ValueError("assistant message carries no tool calls")
        expected = [tc.id for tc in assistant.tool_calls]
        got = [r.tool_call_id for r in results]
        if expected != got:
            raise ValueError(
                f"tool results {got!r} do not match tool calls {expected!r}"
            )
        self._messages.append(assistant)
        self._messages.extend(ToolMessage(r.tool_call_id, r.content) for r in results)

    def record_answer(self, assistant: AssistantMessage) -> None:
        """Append the final text answer."""
        if assistant.tool_calls:
            raise ValueError("final answer must not carry tool calls")
        self._messages.append(assistant)

    def last_assistant_text(self) -> str | None:
        for m in reversed(self._messages):
            if isinstance(m, AssistantMessage) and m.content:
                return m.content
        return None

    def to_dicts(self) -> list[dict]:
        return [m.to_dict() for m in self._messages]


@lru_cache(maxsize=1)
def _encoder():
    """Return the cl100k_base encoder, or None if it cannot be loaded.

    tiktoken downloads the encoding on first use, so an offline run without
    a cached copy falls back to a character-based estimate.
    """
    import tiktoken

    try:
        return tiktoken.get_encoding("cl100k_base")
    except Exception as e:
        fmt.warning(f"token counts are approximate, cannot load tokenizer: {e}")
        return None


def _count(enc, text: str) -> int:
    if enc is None:
        return len(text) // 4
    return len(enc.encode(text))


def estimate_tokens(messages, tools: list | None = None) -> int:
    """Count tokens across all messages using tiktoken."""
    enc = _encoder()
    total = 0
    for m in messages:
        content = getattr(m, "content", "") or ""
        for tc in getattr(m, "tool_calls", ()):
            content += tc.name + tc.arguments
        total += _count(enc, content)
    if tools:
        total += _count(enc, json.dumps(tools))
    # Per-message overhead (role, separators), ~4 tokens each
    total += 4 * len(messages)
    return total
