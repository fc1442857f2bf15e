import argparse
import json
import sys
import time
from concurrent.futures import ThreadPoolExecutor

from . import fmt
from .conversation import Conversation, ToolCallRequest, estimate_tokens
from .report import AgentError, ReportCollector
from .tools import ToolRegistry, ToolResult

MAX_ARG_LOG = 1000
MAX_RESULT_PREVIEW = 500
MAX_TOOL_WORKERS = 8


def handle_tool_call(
    tool_call: ToolCallRequest, registry: ToolRegistry, verbose: bool
) -> tuple[ToolResult, dict]:
    """Execute a single tool call and return (result, metadata).

    metadata has stable keys: name, arguments, elapsed, succeeded.
    """
    name = tool_call.name
    try:
        parsed_args = json.loads(tool_call.arguments)
    except (json.JSONDecodeError, TypeError):
        parsed_args = None

    if verbose:
        if isinstance(parsed_args, dict):
            pretty = json.dumps(parsed_args, indent=2)
        else:
            pretty = tool_call.arguments
        if len(pretty) > MAX_ARG_LOG:
            pretty = pretty[:MAX_ARG_LOG] + "\n... (truncated)"
        fmt.tool_call(name, pretty)

    t0 = time.monotonic()
    result = registry.dispatch(name, tool_call.arguments, tool_call_id=tool_call.id)
    elapsed = time.monotonic() - t0

    if verbose:
        if not result.succeeded:
            fmt.tool_error(name, result.content)
        else:
            fmt.tool_result(name, elapsed, result.content[:MAX_RESULT_PREVIEW])

    return result, {
        "name": name,
        "arguments": parsed_args if isinstance(parsed_args, dict) else None,
        "elapsed": elapsed,
        "succeeded": result.succeeded,
    }


def _dispatch_all(
    tool_calls, registry: ToolRegistry, verbose: bool, parallel: bool
) -> list[tuple[ToolResult, dict]]:
    """Run every tool call of one turn; output order follows request order."""
    if parallel and len(tool_calls) > 1:
        workers = min(len(tool_calls), MAX_TOOL_WORKERS)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(
                pool.map(lambda tc: handle_tool_call(tc, registry, verbose), tool_calls)
            )
    return [handle_tool_call(tc, registry, verbose) for tc in tool_calls]


def run_agent_loop(
    conversation: Conversation,
    registry: ToolRegistry,
    client,
    *,
    max_turns: int | None = None,
    parallel_tool_calls: bool = False,
    verbose: bool = True,
    report: ReportCollector | None = None,
) -> tuple[str | None, bool]:
    """Run the tool-calling loop until a final answer or max turns.

    Appends assistant and tool messages to `conversation`.
    Returns (final_answer, exhausted). exhausted is True only when
    max_turns is set and was hit; final_answer is then the last assistant
    text seen (may be None). max_turns=None never stops on its own.
    Raises AgentError when the model returns no choices or an empty message.
    """
    turns = 0
    declarations = registry.declarations()

    while max_turns is None or turns < max_turns:
        turns += 1
        token_est = 0
        if verbose or report:
            token_est = estimate_tokens(conversation.messages, registry.schemas())
        if verbose:
            fmt.turn_header(turns, max_turns, token_est)

        t0 = time.monotonic()
        try:
            response = client.complete(conversation.messages, declarations)
        except AgentError:
            if report:
                report.record_llm_call(turns, time.monotonic() - t0, token_est, "error")
            raise
        elapsed = time.monotonic() - t0

        if not response.choices:
            if report:
                report.record_llm_call(turns, elapsed, token_est, "error")
            raise AgentError("malformed response: no choices")

        choice = response.choices[0]
        msg = choice.message
        if verbose:
            fmt.llm_timing(elapsed, choice.finish_reason)
        if report:
            report.record_llm_call(turns, elapsed, token_est, choice.finish_reason)

        if msg.tool_calls:
            # Reasoning text that accompanies tool calls
            if msg.content and verbose:
                fmt.assistant_text(msg.content)

            outcomes = _dispatch_all(
                msg.tool_calls, registry, verbose, parallel_tool_calls
            )
            conversation.record_tool_turn(msg, [result for result, _ in outcomes])

            if report:
                for result, meta in outcomes:
                    report.record_tool_call(
                        turns,
                        meta["name"],
                        meta["arguments"],
                        meta["succeeded"],
                        meta["elapsed"],
                        len(result.content),
                        error=None if meta["succeeded"] else result.content,
                    )
            continue

        if msg.content:
            conversation.record_answer(msg)
            if verbose:
                fmt.completion(turns, "ok")
            return msg.content, False

        raise AgentError("malformed response: message has neither tool calls nor content")

    if verbose:
        fmt.completion(turns, "max_turns")
    return conversation.last_assistant_text(), True


def build_parser():
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="skiff",
        description="A minimal tool-calling agent: the model may read files, write files and run shell commands.",
    )
    parser.add_argument(
        "-p",
        "--prompt",
        required=True,
        help="The instruction or question for the model.",
    )
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    from .config import load_settings
    from .session import Session

    try:
        settings = load_settings()
    except AgentError as e:
        fmt.error(str(e))
        sys.exit(1)

    fmt.init(color=settings.color)

    report = ReportCollector() if settings.report else None

    def _write_report(outcome, answer=None, exit_code=0, error_message=None):
        if not report:
            return
        report.finalize(
            task=args.prompt,
            model=settings.model,
            settings=settings.to_report_dict(),
            outcome=outcome,
            answer=answer,
            exit_code=exit_code,
            error_message=error_message,
        )
        try:
            report.write(settings.report)
        except OSError as e:
            fmt.error(f"Failed to write report to {settings.report}: {e}")
            return
        if settings.verbose:
            fmt.info(f"Report written to {settings.report}")

    try:
        result = Session(settings).run(args.prompt, report=report)
    except AgentError as e:
        fmt.error(str(e))
        _write_report("error", exit_code=1, error_message=str(e))
        sys.exit(1)

    if result.answer is not None:
        print(result.answer)
    _write_report(
        "exhausted" if result.exhausted else "success",
        answer=result.answer,
        exit_code=2 if result.exhausted else 0,
    )
    if result.exhausted:
        fmt.warning("max turns reached, agent stopped.")
        sys.exit(2)


if __name__ == "__main__":
    main()
