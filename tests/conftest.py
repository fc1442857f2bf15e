"""Shared fixtures and fakes for the skiff test suite."""

import types

import pytest

from skiff.client import ChatResponse, Choice
from skiff.conversation import AssistantMessage, ToolCallRequest


def make_tool_call(name, arguments, call_id="call_1"):
    return ToolCallRequest(id=call_id, name=name, arguments=arguments)


def make_response(content=None, tool_calls=(), finish_reason=None):
    if finish_reason is None:
        finish_reason = "tool_calls" if tool_calls else "stop"
    return ChatResponse(
        choices=[
            Choice(
                message=AssistantMessage(content=content, tool_calls=tuple(tool_calls)),
                finish_reason=finish_reason,
            )
        ]
    )


class FakeClient:
    """Returns scripted responses and records what each call was sent."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, messages, tools):
        self.calls.append(
            types.SimpleNamespace(messages=list(messages), tools=list(tools))
        )
        if not self.responses:
            raise AssertionError("FakeClient ran out of scripted responses")
        return self.responses.pop(0)


@pytest.fixture(autouse=True)
def _no_tokenizer(monkeypatch):
    """Keep tiktoken (and its encoding download) out of loop tests."""
    from skiff import agent

    monkeypatch.setattr(agent, "estimate_tokens", lambda *a, **kw: 0)


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Isolated environment: API key set, no global or project config."""
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
    monkeypatch.delenv("OPENROUTER_BASE_URL", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    return tmp_path
