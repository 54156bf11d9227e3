"""Spinner shown while waiting for the first fragment of a reply."""

from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner


class WaitingSpinner:
    """A transient spinner on the current line of a terminal.

    Nothing is drawn unless ``output`` is a TTY. Stopping the spinner clears
    the whole line it was drawn on.
    """

    def __init__(self, output, name: str = "simpleDotsScrolling"):
        self.output = output
        self.name = name
        self.live = None

    @property
    def running(self) -> bool:
        return self.live is not None

    def start(self) -> bool:
        isatty = getattr(self.output, "isatty", None)
        if self.live is not None or isatty is None or not isatty():
            return False
        self.live = Live(
            Spinner(self.name),
            console=Console(file=self.output),
            refresh_per_second=8,
            transient=True,
            redirect_stdout=False,
            redirect_stderr=False,
        )
        self.live.start()
        return True

    def stop(self) -> bool:
        """Stop and erase the spinner; returns True if it had been drawn."""
        if self.live is None:
            return False
        live, self.live = self.live, None
        live.stop()
        return True
