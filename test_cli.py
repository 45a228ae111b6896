#!/usr/bin/env python3
"""
Tests for the command-line surface and the interactive loop.
"""

import asyncio
import io
import signal
import threading
import time

import pytest

from deepcli.chat_service import ChatReply, ChatService
from deepcli.config import Configuration
from deepcli.llm.models import ChatMessage, ModelSpec
from deepcli.llm.streaming import StreamEvent
from deepcli.main import (
    EXIT_CONFIG_ERROR,
    EXIT_INTERRUPTED,
    TerminalRenderer,
    build_parser,
    interactive_loop,
    main,
    run_turn,
)

MODEL = ModelSpec(
    alias="chat", name="deepseek-chat", max_input_tokens=1000, default_max_tokens=256
)


class ScriptedClient:
    """Replays one list of stream events per request."""

    def __init__(self, *scripts: list):
        self.scripts = list(scripts)
        self.requests = []

    async def stream_chat(self, request):
        self.requests.append(request)
        for event in self.scripts.pop(0):
            yield event


def make_service(*scripts) -> tuple[ChatService, ScriptedClient]:
    client = ScriptedClient(*scripts)
    service = ChatService(
        ChatService.ChatServiceConfig(
            llm_client=client, model=MODEL, system_prompt="sys"
        )
    )
    return service, client


def make_renderer() -> TerminalRenderer:
    return TerminalRenderer(out=io.StringIO(), err=io.StringIO())


def reply(text: str) -> list[StreamEvent]:
    return [StreamEvent(text, None), StreamEvent("", "stop")]


class TestParser:
    """Flags and validators."""

    def test_defaults(self):
        args = build_parser().parse_args(["hello"])
        assert args.model == "r1"
        assert args.temperature is None
        assert args.max_tokens is None
        assert not args.json
        assert not args.interactive
        assert args.query == "hello"

    def test_all_flags(self):
        args = build_parser().parse_args(
            ["-m", "chat", "-t", "0.5", "-l", "100", "--json", "-i", "hello"]
        )
        assert args.model == "chat"
        assert args.temperature == 0.5
        assert args.max_tokens == 100
        assert args.json
        assert args.interactive

    @pytest.mark.parametrize("value", ["2.5", "-1", "warm"])
    def test_bad_temperature(self, value):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-t", value, "hello"])

    @pytest.mark.parametrize("value", ["0", "-5", "many"])
    def test_bad_max_tokens(self, value):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-l", value, "hello"])


class TestMain:
    """Startup failures exit before any request is made."""

    @pytest.fixture(autouse=True)
    def no_dotenv(self, monkeypatch):
        monkeypatch.setattr(Configuration, "load_env", staticmethod(lambda: None))

    def test_query_required_without_interactive(self):
        with pytest.raises(SystemExit):
            main([])

    def test_missing_api_key(self, monkeypatch, capsys):
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)

        assert main(["hello"]) == EXIT_CONFIG_ERROR
        assert "DEEPSEEK_API_KEY" in capsys.readouterr().err

    def test_invalid_model(self, monkeypatch, capsys):
        monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")

        assert main(["-m", "gpt", "hello"]) == EXIT_CONFIG_ERROR
        assert "Invalid model 'gpt'" in capsys.readouterr().err

    def test_sigint_at_prompt_exits_at_once(self, monkeypatch):
        """Ctrl-C while waiting for input ends the session without waiting for Enter."""
        monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")

        def sigint_while_waiting(prompt: str) -> str:
            signal.raise_signal(signal.SIGINT)
            time.sleep(5)
            return "never sent"

        monkeypatch.setattr("builtins.input", sigint_while_waiting)
        previous_handler = signal.signal(signal.SIGINT, signal.default_int_handler)
        non_daemon_before = {
            t for t in threading.enumerate() if not t.daemon
        }
        try:
            started = time.monotonic()
            assert main(["-i"]) == EXIT_INTERRUPTED
            elapsed = time.monotonic() - started
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        assert elapsed < 3
        assert {t for t in threading.enumerate() if not t.daemon} <= non_daemon_before


class TestRunTurn:
    """Rendering of a single turn."""

    @pytest.mark.asyncio
    async def test_streams_text(self):
        service, _ = make_service(reply("Hello。"))
        renderer = make_renderer()

        text = await run_turn(service, "hi", renderer)

        assert text == "Hello。"
        assert renderer.out.getvalue() == "Hello。\n"

    @pytest.mark.asyncio
    async def test_json_is_pretty_printed(self):
        service, _ = make_service(reply('{"a": 1, "b": [true]}'))
        renderer = make_renderer()

        await run_turn(service, "json please", renderer, buffer_text=True)

        assert renderer.out.getvalue() == '{\n  "a": 1,\n  "b": [\n    true\n  ]\n}\n'

    @pytest.mark.asyncio
    async def test_invalid_json_printed_raw(self):
        service, _ = make_service(reply("not json。"))
        renderer = make_renderer()

        await run_turn(service, "json please", renderer, buffer_text=True)

        assert renderer.out.getvalue() == "not json。\n"

    def test_errors_go_to_stderr(self):
        renderer = make_renderer()

        renderer.render(ChatReply(type="error", content="Chat completion failed: x"))

        assert renderer.out.getvalue() == ""
        assert "error: Chat completion failed: x" in renderer.err.getvalue()


class TestInteractiveLoop:
    """In-band commands, end of input and interruption at the prompt."""

    @staticmethod
    def scripted_input(*lines: str):
        pending = list(lines)

        def read_line(prompt: str) -> str:
            if not pending:
                raise EOFError
            return pending.pop(0)

        return read_line

    def test_quit_command(self):
        service, client = make_service(reply("one。"))

        with asyncio.Runner() as runner:
            interactive_loop(
                service, make_renderer(), runner,
                self.scripted_input("first", "\\q", "never sent"),
            )

        assert len(client.requests) == 1

    def test_clear_command(self):
        service, client = make_service(reply("one。"), reply("two。"))
        renderer = make_renderer()

        with asyncio.Runner() as runner:
            interactive_loop(
                service, renderer, runner,
                self.scripted_input("first", "\\c", "second"),
            )

        assert client.requests[1].messages == [
            ChatMessage.system("sys"), ChatMessage.user("second")
        ]
        assert "History cleared" in renderer.out.getvalue()

    def test_blank_lines_skipped_and_eof_ends(self):
        service, client = make_service(reply("one。"))

        with asyncio.Runner() as runner:
            interactive_loop(
                service, make_renderer(), runner,
                self.scripted_input("   ", "", "hello"),
            )

        assert len(client.requests) == 1
        assert client.requests[0].messages[-1] == ChatMessage.user("hello")

    def test_interrupt_at_prompt_propagates(self):
        service, client = make_service(reply("one。"))

        def interrupted(prompt: str) -> str:
            raise KeyboardInterrupt

        with asyncio.Runner() as runner:
            with pytest.raises(KeyboardInterrupt):
                interactive_loop(service, make_renderer(), runner, interrupted)

        assert client.requests == []
