"""Configuration loading for skiff.

Reads TOML config from ~/.config/skiff/config.toml (global) and
<base_dir>/skiff.toml (project), then the environment.
Precedence: environment > project > global > defaults.

The API key is only ever taken from OPENROUTER_API_KEY.
"""

import os
import sys
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from .report import ConfigError

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-haiku-4.5"

API_KEY_ENV = "OPENROUTER_API_KEY"
BASE_URL_ENV = "OPENROUTER_BASE_URL"


# --- Schema ---

CONFIG_KEYS: dict[str, type | tuple[type, ...]] = {
    "model": str,
    "base_url": str,
    "max_output_tokens": int,
    "max_turns": int,
    "temperature": (int, float),
    "request_timeout": (int, float),
    "command_timeout": (int, float),
    "parallel_tool_calls": bool,
    "quiet": bool,
    "color": bool,
    "report": str,
}

_POSITIVE_KEYS = {"max_output_tokens", "max_turns", "request_timeout", "command_timeout"}


@dataclass(frozen=True)
class Settings:
    """Immutable run configuration, built once before the agent loop starts."""

    api_key: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    max_output_tokens: int = 4096
    max_turns: int | None = None
    temperature: float | None = None
    request_timeout: float | None = None
    command_timeout: float | None = None
    parallel_tool_calls: bool = False
    quiet: bool = False
    color: bool | None = None
    report: str | None = None

    @property
    def verbose(self) -> bool:
        return not self.quiet

    def to_report_dict(self) -> dict:
        """Settings as a plain dict, without the API key."""
        d = asdict(self)
        d.pop("api_key")
        return d


# --- Internal helpers ---


def global_config_dir(environ=None) -> Path:
    """Return the global config directory, respecting XDG_CONFIG_HOME."""
    environ = os.environ if environ is None else environ
    xdg = environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "skiff"
    return Path.home() / ".config" / "skiff"


def _type_name(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _validate_config(config: dict, source: str) -> dict:
    """Validate a parsed config dict and return only the known keys.

    Raises ConfigError for type mismatches and out-of-range values.
    Prints warnings for unknown keys.
    """
    if "api_key" in config:
        raise ConfigError(
            f"{source}: 'api_key' is not read from config files, "
            f"set the {API_KEY_ENV} environment variable instead"
        )

    known: dict[str, Any] = {}
    for key, value in config.items():
        if key not in CONFIG_KEYS:
            print(f"warning: {source}: unknown config key {key!r}", file=sys.stderr)
            continue

        expected = CONFIG_KEYS[key]
        # bool is a subclass of int; reject it for numeric fields explicitly.
        if isinstance(value, bool) and expected is not bool:
            raise ConfigError(
                f"{source}: {key!r} expected {_type_name(expected)}, got bool"
            )
        if not isinstance(value, expected):
            raise ConfigError(
                f"{source}: {key!r} expected {_type_name(expected)}, got {type(value).__name__}"
            )
        if key in _POSITIVE_KEYS and value <= 0:
            raise ConfigError(f"{source}: {key!r} must be positive, got {value}")
        known[key] = value
    return known


def _load_single(path: Path) -> dict:
    """Load and validate a single TOML config file. Returns empty dict if missing."""
    if not path.is_file():
        return {}
    try:
        with open(path, "rb") as f:
            config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path}: invalid TOML: {e}") from e
    except OSError as e:
        raise ConfigError(f"{path}: cannot read file: {e}") from e

    known = _validate_config(config, str(path))

    # Report paths are relative to the file that names them.
    if "report" in known:
        p = Path(known["report"]).expanduser()
        known["report"] = str(p if p.is_absolute() else path.parent / p)
    return known


# --- Public API ---


def load_config(base_dir: str | Path = ".", environ=None) -> dict:
    """Load and merge global + project config files.

    Returns a flat dict containing only the keys actually set in a file.
    """
    global_config = _load_single(global_config_dir(environ) / "config.toml")
    project_config = _load_single(Path(base_dir).resolve() / "skiff.toml")
    return {**global_config, **project_config}


def load_settings(base_dir: str | Path = ".", environ=None) -> Settings:
    """Build the run Settings from config files and the environment.

    Raises ConfigError if OPENROUTER_API_KEY is missing or a config file is
    invalid.
    """
    environ = os.environ if environ is None else environ
    merged = load_config(base_dir, environ)

    api_key = environ.get(API_KEY_ENV, "").strip()
    if not api_key:
        raise ConfigError(f"{API_KEY_ENV} environment variable is not set")

    base_url = environ.get(BASE_URL_ENV)
    if base_url:
        merged["base_url"] = base_url

    return Settings(api_key=api_key, **merged)
