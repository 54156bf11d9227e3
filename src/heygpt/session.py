"""The session loop: reads input, runs commands and streams replies.

One ``Session`` owns one ``Conversation``. Replies are written to the output
as fragments arrive; the conversation only gains an assistant turn once the
whole reply has arrived, so a failed or interrupted exchange never leaves
half an answer in the history.
"""

import logging
import sys
from typing import Iterator, Optional

from .commands import HELP_TEXT, Back, Help, History, UserPrompt, dispatch
from .conversation import Conversation, Role
from .errors import EmptyHistoryError, HttpStatusError, NetworkError, StreamDecodeError
from .log import SessionLoggerAdapter
from .prompt import LineReader
from .spinner import WaitingSpinner
from .stream import ContentDelta, Done, StreamError, StreamEvent, decode_stream

logger = logging.getLogger(__name__)

ANSI_COLORS = {
    Role.SYSTEM: "\033[1;37m",
    Role.USER: "\033[1;36m",
    Role.ASSISTANT: "\033[1;32m",
}
ANSI_RESET = "\033[0m"

# Per-turn failures; anything else (AuthError included) ends the session
RECOVERABLE_ERRORS = (NetworkError, HttpStatusError, StreamDecodeError)


class Session:
    def __init__(
        self,
        client,
        conversation: Optional[Conversation] = None,
        output=None,
        stream: bool = True,
    ):
        """
        Args:
            client: object with ``send(conversation)`` yielding raw response
                lines and ``complete(conversation)`` returning the whole reply
            conversation: history to continue from; a new one by default
            output: text stream replies are written to (stdout by default)
            stream: when False, fetch each reply in one request
        """
        self.client = client
        self.conversation = conversation if conversation is not None else Conversation()
        self.output = output if output is not None else sys.stdout
        self.stream = stream
        self.logger = SessionLoggerAdapter(logger, "one-shot")
        self._at_line_start = True

    # Output helpers

    def _write(self, text: str) -> None:
        if not text:
            return
        self.output.write(text)
        self.output.flush()
        self._at_line_start = text.endswith("\n")

    def _notice(self, message: str) -> None:
        if not self._at_line_start:
            self._write("\n")
        self._write(f"{message}\n")

    def _label(self, role: Role) -> str:
        isatty = getattr(self.output, "isatty", None)
        if isatty is not None and isatty():
            return f"{ANSI_COLORS[role]}{role.value}{ANSI_RESET} => "
        return f"{role.value} => "

    def _stop_spinner(self, spinner: WaitingSpinner, label: str) -> None:
        if spinner.stop():
            self._at_line_start = True
            self._write(label)

    # Streaming

    def _events(self) -> Iterator[StreamEvent]:
        if self.stream:
            return decode_stream(self.client.send(self.conversation))
        return self._whole_reply()

    def _whole_reply(self) -> Iterator[StreamEvent]:
        yield ContentDelta(self.client.complete(self.conversation))
        yield Done("stop")

    def _receive(self, label: str = "") -> str:
        """Render the reply to the trailing user turn and record it.

        A spinner runs until the first event arrives; ``label`` is written
        again once the spinner has cleared the line.

        Raises StreamDecodeError if the stream breaks off. On any failure,
        Ctrl-C included, the partial reply is dropped and the conversation
        is left as it was.
        """
        events = self._events()
        buffer = []
        spinner = WaitingSpinner(self.output)
        spinner.start()
        try:
            for event in events:
                if spinner.running:
                    self._stop_spinner(spinner, label)
                if isinstance(event, ContentDelta):
                    text = event.text
                    if not buffer and text.startswith("\n"):
                        # some models open with blank lines
                        text = text.lstrip()
                    if text:
                        self._write(text)
                        buffer.append(text)
                elif isinstance(event, Done):
                    reply = "".join(buffer)
                    self._write("\n")
                    self.conversation.append(Role.ASSISTANT, reply)
                    self.logger.log_item(
                        "assistant_reply",
                        {"chars": len(reply), "finish_reason": event.finish_reason},
                        level=logging.DEBUG,
                    )
                    return reply
                elif isinstance(event, StreamError):
                    raise StreamDecodeError(event.message)
        except KeyboardInterrupt:
            self.logger.log_item("cancelled", {"chars": sum(len(t) for t in buffer)})
            raise
        finally:
            self._stop_spinner(spinner, label)
            close = getattr(events, "close", None)
            if close is not None:
                close()

        raise StreamDecodeError("stream ended before completion")

    def _exchange(self, prompt: str, label: str = "") -> str:
        self.conversation.append(Role.USER, prompt)
        self.logger.log_item("user_input", {"content": prompt}, level=logging.DEBUG)
        return self._receive(label)

    # Modes

    def run_once(self, prompt: str) -> Conversation:
        """Send a single prompt and render the reply; errors propagate."""
        self.logger = SessionLoggerAdapter(logger, "one-shot")
        self._exchange(prompt)
        return self.conversation

    def start_system(self, read_line: LineReader) -> bool:
        """Read a system message to open the conversation.

        Returns False when the user quit instead of typing one.
        """
        try:
            line = read_line(Role.SYSTEM.value)
        except (EOFError, KeyboardInterrupt):
            return False
        if line.strip():
            self.conversation.append(Role.SYSTEM, line)
        return True

    def handle_line(self, line: str):
        """Run one line of interactive input and return the command it was."""
        command = dispatch(line)

        if isinstance(command, Help):
            self._write(HELP_TEXT + "\n")
        elif isinstance(command, History):
            self._show_history()
        elif isinstance(command, Back):
            try:
                removed = self.conversation.retract_last_user_turn()
            except EmptyHistoryError as e:
                self._notice(f"error: {e}")
            else:
                self.logger.log_item("retract", {"removed": len(removed)})
                self._show_history()
        elif isinstance(command, UserPrompt):
            self._prompt(command.text)
        return command

    def _show_history(self) -> None:
        if len(self.conversation):
            self._write(self.conversation.render_history() + "\n")
        else:
            self._write("(no history yet)\n")

    def _prompt(self, text: str) -> None:
        if self.conversation.awaiting_reply:
            self.conversation.discard_unanswered()
            self._notice("(previous unanswered message dropped)")

        label = self._label(Role.ASSISTANT)
        self._write(label)
        try:
            self._exchange(text, label)
        except KeyboardInterrupt:
            self._notice("(interrupted)")
        except RECOVERABLE_ERRORS as e:
            self.logger.log_item(
                "exchange_failed",
                {"error_type": type(e).__name__, "content": str(e)},
                level=logging.INFO,
            )
            self._notice(f"error: {e}")

    def run_interactive(self, read_line: LineReader) -> Conversation:
        """Loop over user input until EOF or Ctrl-C at the prompt.

        AuthError is not caught here and ends the session.
        """
        self.logger = SessionLoggerAdapter(logger, "interactive")
        while True:
            try:
                line = read_line(Role.USER.value)
            except (EOFError, KeyboardInterrupt):
                self._notice("")
                return self.conversation

            if not line.strip():
                continue
            self.handle_line(line)
