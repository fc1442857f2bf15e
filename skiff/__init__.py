"""skiff: a minimal tool-calling command-line agent."""

from .config import Settings, load_settings
from .report import AgentError, ConfigError
from .session import Result, Session

__all__ = [
    "AgentError",
    "ConfigError",
    "Result",
    "Session",
    "Settings",
    "load_settings",
]
