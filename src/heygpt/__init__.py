"""
heygpt - chat completions in the terminal.

This package sends prompts to an OpenAI-compatible chat completion API and
streams the answer as it arrives, either for a single prompt or in an
interactive multi-turn session with a few meta-commands.
"""

__version__ = "0.1.0"

from .config import Config, load_config
from .conversation import Conversation, Role, Turn
from .session import Session
from .stream import ContentDelta, Done, StreamError, decode_stream
from .transport import CompletionClient

__all__ = [
    "CompletionClient",
    "Config",
    "ContentDelta",
    "Conversation",
    "Done",
    "Role",
    "Session",
    "StreamError",
    "Turn",
    "decode_stream",
    "load_config",
]
