"""
Command-line entry point: argument parsing and the interactive session loop.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Callable
from typing import TextIO

from deepcli.chat_service import ChatReply, ChatService
from deepcli.config import Configuration, validate_temperature
from deepcli.llm.client import LLMClient
from deepcli.logging_utils import configure_logging

QUIT_COMMAND = "\\q"
CLEAR_COMMAND = "\\c"
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def parse_temperature(value: str) -> float:
    try:
        return validate_temperature(float(value))
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def parse_max_tokens(value: str) -> int:
    try:
        tokens = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid token count '{value}'") from e
    if tokens < 1:
        raise argparse.ArgumentTypeError("max_tokens must be a positive integer")
    return tokens


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deepcli", description="DeepSeek command-line interface"
    )
    parser.add_argument(
        "-m", "--model", default="r1",
        help="Model to use: r1 (deepseek-r1) or chat (deepseek-chat)",
    )
    parser.add_argument(
        "-t", "--temperature", type=parse_temperature,
        help="Sampling temperature (0.0-2.0)",
    )
    parser.add_argument(
        "-l", "--max_tokens", type=parse_max_tokens,
        help="Maximum number of tokens to generate",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Ask for a JSON response and pretty-print it",
    )
    parser.add_argument(
        "-i", "--interactive", action="store_true",
        help="Start an interactive chat session (\\q quits, \\c clears history)",
    )
    parser.add_argument(
        "query", nargs="?",
        help="Query to send to the model (optional in interactive mode)",
    )
    return parser


class TerminalRenderer:
    """Writes chat replies to the terminal as they stream in."""

    RESET = "\033[0m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    CYAN = "\033[96m"

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None):
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.colors = self.out.isatty() and os.getenv("NO_COLOR") is None

    def style(self, text: str, code: str) -> str:
        return f"{code}{text}{self.RESET}" if self.colors else text

    def render(self, reply: ChatReply) -> None:
        if reply.type == "text":
            self.out.write(reply.content)
            self.out.flush()
        elif reply.type == "notice":
            self.out.write("\n" + self.style(f"[{reply.content}]", self.YELLOW) + "\n")
            self.out.flush()
        else:
            self.err.write("\n" + self.style(f"error: {reply.content}", self.RED) + "\n")
            self.err.flush()

    def end_turn(self) -> None:
        self.out.write("\n")
        self.out.flush()

    def print_json(self, text: str) -> None:
        try:
            formatted = json.dumps(json.loads(text), indent=2, ensure_ascii=False)
        except json.JSONDecodeError:
            formatted = text
        self.out.write(formatted + "\n")
        self.out.flush()


async def run_turn(
    service: ChatService, user_input: str, renderer: TerminalRenderer,
    *, buffer_text: bool = False,
) -> str:
    """Send one message and render its replies; returns the streamed text."""
    parts: list[str] = []
    async for reply in service.process_message(user_input):
        if reply.type == "text":
            parts.append(reply.content)
            if buffer_text:
                continue
        renderer.render(reply)

    text = "".join(parts)
    if buffer_text:
        renderer.print_json(text)
    else:
        renderer.end_turn()
    return text


def interactive_loop(
    service: ChatService,
    renderer: TerminalRenderer,
    runner: asyncio.Runner,
    read_line: Callable[[str], str] | None = None,
) -> None:
    """
    Read messages until ``\\q`` or end of input.

    The prompt is read with no event loop running, so Ctrl-C there raises
    ``KeyboardInterrupt`` at once. Each turn then runs on ``runner``.
    """
    read_line = read_line or input
    prompt = renderer.style("you> ", renderer.CYAN)
    while True:
        try:
            line = read_line(prompt)
        except EOFError:
            break

        user_input = line.strip()
        if not user_input:
            continue
        if user_input == QUIT_COMMAND:
            break
        if user_input == CLEAR_COMMAND:
            service.clear_history()
            renderer.render(ChatReply(type="notice", content="History cleared"))
            continue

        runner.run(run_turn(service, user_input, renderer))


def run(
    args: argparse.Namespace, configuration: Configuration, api_key: str
) -> int:
    renderer = TerminalRenderer()

    # One loop for the whole session; the HTTP client's connections live on it
    with asyncio.Runner() as runner:
        llm_client = LLMClient(configuration.get_llm_config(), api_key)
        try:
            service = ChatService.from_configuration(
                configuration,
                llm_client,
                args.model,
                temperature=args.temperature,
                max_tokens=args.max_tokens,
                json_mode=args.json,
            )

            if args.query:
                runner.run(
                    run_turn(
                        service, args.query, renderer,
                        buffer_text=args.json and not args.interactive,
                    )
                )
            if args.interactive:
                interactive_loop(service, renderer, runner)
        finally:
            runner.run(llm_client.close())
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.interactive and not args.query:
        parser.error("a query is required unless --interactive is given")

    # Everything that can fail is resolved before any network activity
    try:
        configuration = Configuration()
        configure_logging(configuration.get_logging_config().get("level", "WARNING"))
        configuration.get_model_spec(args.model)
        configuration.get_continuation_config()
        configuration.get_http_client_config()
        api_key = configuration.llm_api_key
    except (OSError, ValueError) as e:
        logging.error(f"Configuration error: {e}")
        print(f"deepcli: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        return run(args, configuration, api_key)
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
