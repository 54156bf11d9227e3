"""Error types raised by the heygpt core.

Every error carries a message fit to show the user as-is.
"""


class HeyGptError(Exception):
    """Base class for all heygpt failures."""


class ConfigError(HeyGptError):
    """The configuration file could not be read or parsed."""


class AuthError(HeyGptError):
    """The API key is missing or was rejected by the server."""


class NetworkError(HeyGptError):
    """The endpoint could not be reached (refused, DNS, timeout)."""


class HttpStatusError(HeyGptError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        message = f"HTTP {status_code}"
        if body:
            message = f"{message}: {body}"
        super().__init__(message)


class StreamDecodeError(HeyGptError):
    """The response stream was malformed or reported an error mid-way."""


class EmptyHistoryError(HeyGptError):
    """There is no user turn left to retract."""

    def __init__(self, message: str = "nothing to retract"):
        super().__init__(message)
