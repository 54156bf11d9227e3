"""
Tests for the session loop: one-shot runs, interactive commands, failures
and cancellation.
"""

import io

import pytest

from helpers import FakeClient, sse
from heygpt.commands import Back, Help, History, UserPrompt
from heygpt.conversation import Conversation, Role, Turn
from heygpt.errors import AuthError, HttpStatusError, NetworkError, StreamDecodeError
from heygpt.session import Session


class ScriptedInput:
    """Line reader that returns scripted lines, then raises EOFError."""

    def __init__(self, *lines):
        self.lines = list(lines)
        self.roles = []

    def __call__(self, role):
        self.roles.append(role)
        if not self.lines:
            raise EOFError
        line = self.lines.pop(0)
        if isinstance(line, BaseException):
            raise line
        return line


class InterruptingOutput(io.StringIO):
    """Output that raises KeyboardInterrupt when ``trigger`` is written."""

    def __init__(self, trigger):
        super().__init__()
        self.trigger = trigger

    def write(self, text):
        if text == self.trigger:
            self.trigger = None
            raise KeyboardInterrupt
        return super().write(text)


class TestOneShot:
    def test_prints_reply_and_records_it(self):
        output = io.StringIO()
        client = FakeClient(sse("4"))
        conversation = Session(client, output=output).run_once("2+2?")

        assert output.getvalue() == "4\n"
        assert conversation.turns == [Turn(Role.USER, "2+2?"), Turn(Role.ASSISTANT, "4")]
        assert client.requests == [[{"role": "user", "content": "2+2?"}]]

    def test_fragments_written_as_they_arrive(self):
        writes = []

        class RecordingOutput(io.StringIO):
            def write(self, text):
                writes.append(text)
                return super().write(text)

        Session(FakeClient(sse("Hel", "lo, ", "world")), output=RecordingOutput()).run_once("hi")
        assert writes == ["Hel", "lo, ", "world", "\n"]

    def test_leading_newlines_trimmed(self):
        output = io.StringIO()
        conversation = Session(FakeClient(sse("\n\nHi", "\nthere")), output=output).run_once("hi")
        assert output.getvalue() == "Hi\nthere\n"
        assert conversation.turns[-1] == Turn(Role.ASSISTANT, "Hi\nthere")

    def test_stream_error_keeps_user_turn(self):
        output = io.StringIO()
        session = Session(FakeClient(["data: {\"choices\": [{\"delta\": {\"content\": \"par\"}}]}", "data: {oops"]), output=output)

        with pytest.raises(StreamDecodeError):
            session.run_once("hi")

        assert output.getvalue().startswith("par")
        assert session.conversation.turns == [Turn(Role.USER, "hi")]

    def test_transport_errors_propagate(self):
        session = Session(FakeClient(NetworkError("down")), output=io.StringIO())
        with pytest.raises(NetworkError):
            session.run_once("hi")
        assert session.conversation.turns == [Turn(Role.USER, "hi")]

    def test_non_streaming(self):
        output = io.StringIO()
        client = FakeClient("\nfour")
        conversation = Session(client, output=output, stream=False).run_once("2+2?")
        assert output.getvalue() == "four\n"
        assert conversation.turns[-1] == Turn(Role.ASSISTANT, "four")

    def test_response_is_closed_after_reply(self):
        client = FakeClient(sse("4"))
        Session(client, output=io.StringIO()).run_once("2+2?")
        assert client.closed == [0]


class TestCommands:
    def make_session(self, *replies):
        conversation = Conversation(system_prompt="be brief")
        conversation.append(Role.USER, "A")
        conversation.append(Role.ASSISTANT, "B")
        output = io.StringIO()
        client = FakeClient(*replies)
        return Session(client, conversation=conversation, output=output), client, output

    def test_help_touches_nothing(self):
        session, client, output = self.make_session()
        assert session.handle_line("\\?") == Help()
        assert "\\back" in output.getvalue()
        assert client.requests == []
        assert len(session.conversation) == 3

    def test_history_prints_transcript(self):
        session, client, output = self.make_session()
        assert session.handle_line("\\h") == History()
        assert output.getvalue() == "system => be brief\nuser => A\nassistant => B\n"
        assert client.requests == []

    def test_back_retracts_and_prints_history(self):
        session, client, output = self.make_session()
        assert session.handle_line("\\back") == Back()
        assert session.conversation.turns == [Turn(Role.SYSTEM, "be brief")]
        assert output.getvalue() == "system => be brief\n"

    def test_back_with_nothing_to_retract(self):
        session, client, output = self.make_session()
        session.handle_line("\\b")
        session.handle_line("\\b")
        assert "error: nothing to retract" in output.getvalue()
        assert session.conversation.turns == [Turn(Role.SYSTEM, "be brief")]

    def test_unknown_command_is_sent_as_prompt(self):
        session, client, output = self.make_session(sse("ok"))
        assert session.handle_line("\\bogus") == UserPrompt("\\bogus")
        assert client.requests[0][-1] == {"role": "user", "content": "\\bogus"}
        assert output.getvalue() == "assistant => ok\n"

    def test_prompt_sends_whole_conversation(self):
        session, client, output = self.make_session(sse("D"))
        session.handle_line("C")
        assert [m["content"] for m in client.requests[0]] == ["be brief", "A", "B", "C"]
        assert session.conversation.turns[-2:] == [Turn(Role.USER, "C"), Turn(Role.ASSISTANT, "D")]


class TestInteractive:
    def test_loop_until_eof(self):
        output = io.StringIO()
        client = FakeClient(sse("4"), sse("6"))
        read_line = ScriptedInput("2+2?", "", "   ", "3+3?")

        conversation = Session(client, output=output).run_interactive(read_line)

        assert [t.content for t in conversation] == ["2+2?", "4", "3+3?", "6"]
        assert len(client.requests) == 2
        assert read_line.roles == ["user"] * 5
        assert "assistant => 4\n" in output.getvalue()

    def test_ctrl_c_at_prompt_ends_session(self):
        client = FakeClient()
        conversation = Session(client, output=io.StringIO()).run_interactive(
            ScriptedInput(KeyboardInterrupt())
        )
        assert len(conversation) == 0

    def test_network_error_reported_inline(self):
        output = io.StringIO()
        client = FakeClient(NetworkError("cannot reach the API"), sse("4"))
        session = Session(client, output=output)

        session.run_interactive(ScriptedInput("2+2?", "2+2?"))

        assert "error: cannot reach the API" in output.getvalue()
        assert "(previous unanswered message dropped)" in output.getvalue()
        assert session.conversation.turns == [Turn(Role.USER, "2+2?"), Turn(Role.ASSISTANT, "4")]

    def test_http_status_error_reported_inline(self):
        output = io.StringIO()
        session = Session(FakeClient(HttpStatusError(500, "boom")), output=output)
        session.run_interactive(ScriptedInput("hi"))
        assert "error: HTTP 500: boom" in output.getvalue()

    def test_connection_lost_mid_reply(self):
        output = io.StringIO()
        partial = 'data: {"choices": [{"delta": {"content": "par"}}]}'
        client = FakeClient([partial, NetworkError("connection lost: reset")], sse("ok"))
        session = Session(client, output=output)

        session.run_interactive(ScriptedInput("hi", "hi"))

        assert "assistant => par\nerror: connection lost: reset\n" in output.getvalue()
        assert session.conversation.turns == [Turn(Role.USER, "hi"), Turn(Role.ASSISTANT, "ok")]
        assert client.closed == [0, 1]

    def test_stream_error_keeps_history_before_turn(self):
        conversation = Conversation()
        conversation.append(Role.USER, "A")
        conversation.append(Role.ASSISTANT, "B")
        output = io.StringIO()
        session = Session(FakeClient(["data: {bad"]), conversation=conversation, output=output)

        session.run_interactive(ScriptedInput("C"))

        assert session.conversation.turns == [
            Turn(Role.USER, "A"),
            Turn(Role.ASSISTANT, "B"),
            Turn(Role.USER, "C"),
        ]
        assert "error: malformed stream payload" in output.getvalue()

    def test_auth_error_ends_session(self):
        session = Session(FakeClient(AuthError("bad key")), output=io.StringIO())
        with pytest.raises(AuthError):
            session.run_interactive(ScriptedInput("hi", "again"))

    def test_system_message(self):
        output = io.StringIO()
        client = FakeClient(sse("ok"))
        session = Session(client, output=output)
        read_line = ScriptedInput("be brief", "hi")

        assert session.start_system(read_line)
        session.run_interactive(read_line)

        assert read_line.roles[0] == "system"
        assert client.requests[0][0] == {"role": "system", "content": "be brief"}

    def test_system_prompt_eof_quits(self):
        session = Session(FakeClient(), output=io.StringIO())
        assert session.start_system(ScriptedInput()) is False


class TestCancellation:
    def test_interrupt_mid_stream_discards_partial_reply(self):
        conversation = Conversation()
        conversation.append(Role.USER, "A")
        conversation.append(Role.ASSISTANT, "B")
        output = InterruptingOutput(trigger="lo")
        client = FakeClient(sse("Hel", "lo", "world"), sse("fine"))
        session = Session(client, conversation=conversation, output=output)

        session.handle_line("C")

        assert session.conversation.turns == [
            Turn(Role.USER, "A"),
            Turn(Role.ASSISTANT, "B"),
            Turn(Role.USER, "C"),
        ]
        assert client.closed == [0]
        assert "(interrupted)" in output.getvalue()

        # the session carries on afterwards
        session.handle_line("C")
        assert session.conversation.turns[-1] == Turn(Role.ASSISTANT, "fine")

    def test_interrupt_while_ending_line_records_nothing(self):
        output = InterruptingOutput(trigger="\n")
        session = Session(FakeClient(sse("done")), output=output)

        session.handle_line("C")

        assert session.conversation.turns == [Turn(Role.USER, "C")]
        assert "(interrupted)" in output.getvalue()

    def test_interrupt_in_one_shot_propagates(self):
        client = FakeClient(sse("Hel", "lo"))
        session = Session(client, output=InterruptingOutput(trigger="Hel"))
        with pytest.raises(KeyboardInterrupt):
            session.run_once("hi")
        assert session.conversation.turns == [Turn(Role.USER, "hi")]
        assert client.closed == [0]
