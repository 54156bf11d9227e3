"""Line readers for interactive mode.

A reader is called with the role being entered and returns the typed line.
It raises ``EOFError`` on Ctrl-D and ``KeyboardInterrupt`` on Ctrl-C.
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory, InMemoryHistory

logger = logging.getLogger(__name__)

HISTORY_FILENAME = ".heygpt_history"

ROLE_COLORS = {
    "system": "ansiwhite",
    "user": "ansicyan",
    "assistant": "ansigreen",
}

LineReader = Callable[[str], str]


def _history(path: Path):
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(exist_ok=True)
    except OSError as e:
        logger.warning(f"Input history disabled, cannot write {path}: {e}")
        return InMemoryHistory()
    return FileHistory(str(path))


def make_line_reader(history_path: Optional[Path] = None) -> LineReader:
    """Use prompt_toolkit with persistent history on a TTY, else plain input()."""
    if not sys.stdin.isatty():

        def read_plain(role: str) -> str:
            return input(f"{role} => ")

        return read_plain

    if history_path is None:
        history_path = Path.home() / HISTORY_FILENAME
    session = PromptSession(history=_history(history_path))

    def read_line(role: str) -> str:
        color = ROLE_COLORS.get(role, "ansidefault")
        return session.prompt(HTML(f"<b><{color}>{role}</{color}></b> => "))

    return read_line
