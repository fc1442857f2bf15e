"""Public library API for skiff: Session class and Result dataclass."""

from dataclasses import dataclass

from .client import ChatClient
from .config import Settings
from .conversation import Conversation
from .report import ReportCollector
from .tools import ToolRegistry, build_registry


@dataclass
class Result:
    """Result of a session run."""

    answer: str | None
    exhausted: bool
    messages: list[dict]


class Session:
    """Programmatic interface to the skiff agent loop.

    The client and registry default to the OpenRouter client and the
    Read/Write/Bash registry built from `settings`.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client=None,
        registry: ToolRegistry | None = None,
    ):
        self.settings = settings
        self.client = client if client is not None else ChatClient(settings)
        self.registry = (
            registry
            if registry is not None
            else build_registry(command_timeout=settings.command_timeout)
        )

    def run(self, prompt: str, *, report: ReportCollector | None = None) -> Result:
        """Answer one prompt with a fresh conversation."""
        from .agent import run_agent_loop

        conversation = Conversation(prompt)
        answer, exhausted = run_agent_loop(
            conversation,
            self.registry,
            self.client,
            max_turns=self.settings.max_turns,
            parallel_tool_calls=self.settings.parallel_tool_calls,
            verbose=self.settings.verbose,
            report=report,
        )
        return Result(
            answer=answer,
            exhausted=exhausted,
            messages=conversation.to_dicts(),
        )
