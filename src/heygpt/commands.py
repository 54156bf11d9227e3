"""Interactive meta-commands.

``dispatch`` classifies one input line. Anything that is not exactly one of
the known commands is a prompt for the model, backslash or not.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class History:
    pass


@dataclass(frozen=True)
class UserPrompt:
    text: str


Command = Union[Help, Back, History, UserPrompt]

COMMANDS = {
    "\\?": Help,
    "\\help": Help,
    "\\b": Back,
    "\\back": Back,
    "\\h": History,
    "\\history": History,
}

HELP_TEXT = """\
Commands:
  \\?, \\help       Show this help
  \\b, \\back       Retract the last question and its answer
  \\h, \\history    Show the conversation so far

Ctrl-C interrupts a reply in progress; Ctrl-D or Ctrl-C at the prompt exits."""


def dispatch(line: str) -> Command:
    command = COMMANDS.get(line.strip())
    if command is None:
        return UserPrompt(line)
    return command()
