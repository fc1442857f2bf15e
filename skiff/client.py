"""Chat-completion client: one request, one structured response."""

from dataclasses import dataclass, field

from . import fmt
from .config import Settings
from .conversation import AssistantMessage, ToolCallRequest
from .report import AgentError


@dataclass
class Choice:
    message: AssistantMessage
    finish_reason: str | None = None


@dataclass
class ChatResponse:
    choices: list[Choice] = field(default_factory=list)


def _parse_tool_calls(raw_tool_calls) -> tuple[ToolCallRequest, ...]:
    calls = []
    for tc in raw_tool_calls or ():
        function = tc.function
        calls.append(
            ToolCallRequest(
                id=tc.id,
                name=function.name,
                arguments=function.arguments or "",
            )
        )
    return tuple(calls)


def parse_response(response) -> ChatResponse:
    """Convert a litellm ModelResponse into a ChatResponse."""
    choices = []
    for choice in response.choices or ():
        msg = choice.message
        choices.append(
            Choice(
                message=AssistantMessage(
                    content=msg.content,
                    tool_calls=_parse_tool_calls(getattr(msg, "tool_calls", None)),
                ),
                finish_reason=choice.finish_reason,
            )
        )
    return ChatResponse(choices=choices)


class ChatClient:
    """Sends a conversation plus tool declarations to OpenRouter via LiteLLM."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def model_string(self) -> str:
        model = self.settings.model
        # Only strip the prefix if the user already included the LiteLLM
        # "openrouter/" prefix (i.e. "openrouter/openrouter/auto"). Don't strip
        # org names like "openrouter" in "openrouter/auto".
        if model.startswith("openrouter/openrouter/"):
            model = model[len("openrouter/") :]
        return f"openrouter/{model}"

    def complete(self, messages, tools) -> ChatResponse:
        """Run one chat completion.

        messages: conversation messages (objects with to_dict()).
        tools: ToolDefinition declarations offered to the model.
        Raises AgentError on any transport or API failure.
        """
        import litellm

        litellm.suppress_debug_info = True

        s = self.settings
        if s.verbose:
            fmt.model_info(
                f"Calling model {self.model_string} with max_tokens={s.max_output_tokens}"
            )

        completion_kwargs = dict(
            model=self.model_string,
            messages=[m.to_dict() for m in messages],
            max_tokens=s.max_output_tokens,
            api_key=s.api_key,
            api_base=s.base_url,
        )
        if tools:
            completion_kwargs["tools"] = [t.to_openai() for t in tools]
            completion_kwargs["tool_choice"] = "auto"
        for key, val in [("temperature", s.temperature), ("timeout", s.request_timeout)]:
            if val is not None:
                completion_kwargs[key] = val

        try:
            response = litellm.completion(**completion_kwargs)
        except Exception as e:
            raise AgentError(f"LLM call failed: {e}") from e

        return parse_response(response)
