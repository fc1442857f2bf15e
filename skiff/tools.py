"""Tool definitions, implementations and dispatch for the agent loop."""

import json
import subprocess
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable


@dataclass(frozen=True)
class ToolDefinition:
    """Declaration of one tool, sent to the model with every request."""

    name: str
    description: str
    parameters: dict
    strict: bool = True

    def to_openai(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
                "strict": self.strict,
            },
        }


@dataclass
class ToolResult:
    """Textual outcome of one tool call. Failures are results too."""

    tool_call_id: str
    content: str
    succeeded: bool = True


READ_TOOL = ToolDefinition(
    name="Read",
    description="Read and return the contents of a file. Takes a `file_path` argument.",
    parameters={
        "type": "object",
        "properties": {
            "file_path": {
                "type": "string",
                "description": "The path to the file to read.",
            },
        },
        "required": ["file_path"],
        "additionalProperties": False,
    },
)

WRITE_TOOL = ToolDefinition(
    name="Write",
    description=(
        "Write contents to a file, creating or overwriting it. "
        "Takes `file_path` and `content` arguments."
    ),
    parameters={
        "type": "object",
        "properties": {
            "file_path": {
                "type": "string",
                "description": "The path of the file to write to.",
            },
            "content": {
                "type": "string",
                "description": "The full content to write to the file.",
            },
        },
        "required": ["file_path", "content"],
        "additionalProperties": False,
    },
)

BASH_TOOL = ToolDefinition(
    name="Bash",
    description=(
        "Execute a shell command and return its standard output followed by "
        "its standard error. Takes a `command` argument."
    ),
    parameters={
        "type": "object",
        "properties": {
            "command": {
                "type": "string",
                "description": "The command to execute, passed to `bash -c`.",
            },
        },
        "required": ["command"],
        "additionalProperties": False,
    },
)


# -- Errors --------------------------------------------------------------------


class ToolFailure(Exception):
    """A tool ran but could not do its job (I/O error, spawn failure)."""


class DispatchError(Exception):
    """A tool call could not be routed to a handler."""


class ArgumentParseError(DispatchError):
    pass


class UnknownToolError(DispatchError):
    pass


class MissingArgumentError(DispatchError):
    def __init__(self, key: str, detail: str = "missing required argument"):
        self.key = key
        super().__init__(f"{detail} {key!r}")


_JSON_TYPES: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}


# -- Handlers ------------------------------------------------------------------


def read_file(file_path: str) -> str:
    """Return the full contents of file_path."""
    try:
        return Path(file_path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ToolFailure(f"failed to decode {file_path} as UTF-8: {exc}") from exc
    except FileNotFoundError as exc:
        raise ToolFailure(f"file does not exist: {file_path}") from exc
    except IsADirectoryError as exc:
        raise ToolFailure(f"path is a directory: {file_path}") from exc
    except (OSError, ValueError) as exc:
        raise ToolFailure(str(exc)) from exc


def write_file(file_path: str, content: str) -> str:
    """Create or truncate file_path and write content to it."""
    path = Path(file_path)
    try:
        data = content.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ToolFailure(f"content is not valid UTF-8: {exc}") from exc
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except (OSError, ValueError) as exc:
        raise ToolFailure(str(exc)) from exc
    return f"Wrote {len(data)} bytes to {file_path}"


def run_bash(command: str, timeout: float | None = None) -> str:
    """Run command through bash and return stdout followed by stderr.

    A non-zero exit status is not a failure; the output speaks for itself.
    """
    try:
        proc = subprocess.run(
            ["bash", "-c", command],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise ToolFailure(f"command timed out after {timeout}s") from exc
    except (OSError, ValueError) as exc:
        raise ToolFailure(f"failed to start shell command: {exc}") from exc
    stdout = proc.stdout.decode("utf-8", errors="replace")
    stderr = proc.stderr.decode("utf-8", errors="replace")
    return stdout + stderr


# -- Registry ------------------------------------------------------------------


class ToolRegistry:
    """Fixed, ordered set of tools the model may call."""

    def __init__(self):
        self._tools: dict[str, tuple[ToolDefinition, Callable[..., str]]] = {}

    def register(self, definition: ToolDefinition, handler: Callable[..., str]):
        if definition.name in self._tools:
            raise ValueError(f"tool {definition.name!r} is already registered")
        self._tools[definition.name] = (definition, handler)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def declarations(self) -> list[ToolDefinition]:
        return [definition for definition, _ in self._tools.values()]

    def schemas(self) -> list[dict]:
        return [definition.to_openai() for definition in self.declarations()]

    def _resolve(self, name: str, raw_arguments: str):
        """Return (handler, kwargs) for a tool call or raise DispatchError."""
        try:
            args = json.loads(raw_arguments)
        except (json.JSONDecodeError, TypeError) as exc:
            raise ArgumentParseError(f"invalid JSON in tool arguments: {exc}") from exc
        if not isinstance(args, dict):
            raise ArgumentParseError(
                f"tool arguments must be a JSON object, got {type(args).__name__}"
            )

        entry = self._tools.get(name)
        if entry is None:
            available = ", ".join(self._tools) or "(none)"
            raise UnknownToolError(
                f"unknown tool {name!r}. Available tools: {available}"
            )
        definition, handler = entry

        properties = definition.parameters.get("properties", {})
        required = definition.parameters.get("required", [])
        kwargs = {}
        for key, prop in properties.items():
            if key not in args:
                if key in required:
                    raise MissingArgumentError(key)
                continue
            value = args[key]
            expected = _JSON_TYPES.get(prop.get("type"))
            if expected is not None and (
                not isinstance(value, expected)
                or (isinstance(value, bool) and expected is not bool)
            ):
                raise MissingArgumentError(
                    key, f"expected {prop['type']} for argument"
                )
            kwargs[key] = value
        return handler, kwargs

    def dispatch(
        self, name: str, raw_arguments: str, *, tool_call_id: str = ""
    ) -> ToolResult:
        """Route a tool call to its handler.

        Never raises for model mistakes or tool failures: those become a
        ToolResult whose content starts with "error:" so the model can see
        them and react.
        """
        try:
            handler, kwargs = self._resolve(name, raw_arguments)
            content = handler(**kwargs)
        except (DispatchError, ToolFailure) as exc:
            return ToolResult(tool_call_id, f"error: {exc}", succeeded=False)
        except Exception as exc:
            # Registered handlers are not limited to the built-in three.
            return ToolResult(
                tool_call_id, f"error: {type(exc).__name__}: {exc}", succeeded=False
            )
        return ToolResult(tool_call_id, content)


def build_registry(command_timeout: float | None = None) -> ToolRegistry:
    """Return the default registry: Read, Write and Bash, in that order.

    Bash runs arbitrary commands with the caller's privileges and no
    sandbox. Only build this registry for prompts you trust.
    """
    registry = ToolRegistry()
    registry.register(READ_TOOL, read_file)
    registry.register(WRITE_TOOL, write_file)
    registry.register(BASH_TOOL, partial(run_bash, timeout=command_timeout))
    return registry
