"""Decoder for the server-sent-event stream of a chat completion.

Turns raw response lines into ``ContentDelta``, ``Done`` and ``StreamError``
events. The decoder stops at the first terminal event; one malformed line
ends the whole response.
"""

import json
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class ContentDelta:
    """A fragment of assistant text."""

    text: str


@dataclass(frozen=True)
class Done:
    """The response finished normally."""

    finish_reason: Optional[str] = None


@dataclass(frozen=True)
class StreamError:
    """The response broke off; no events follow."""

    message: str


StreamEvent = Union[ContentDelta, Done, StreamError]


def _excerpt(text: str, limit: int = 80) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _error_message(error) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


def decode_stream(lines: Iterable[str]) -> Iterator[StreamEvent]:
    """Lazily decode raw SSE lines into stream events.

    Closing the returned generator also closes ``lines`` when it supports it,
    which releases the HTTP response behind it.
    """
    finish_reason = None
    try:
        for line in lines:
            if not line or line.startswith(":"):
                continue

            field, _, value = line.partition(":")
            if field != "data":
                # event:, id: and retry: carry nothing we use
                continue
            data = value[1:] if value.startswith(" ") else value
            if not data:
                # an empty data buffer is never dispatched
                continue

            if data.strip() == DONE_SENTINEL:
                yield Done(finish_reason)
                return

            try:
                payload = json.loads(data)
            except json.JSONDecodeError as e:
                logger.warning(f"Malformed stream payload {_excerpt(data)!r}: {e}")
                yield StreamError(f"malformed stream payload: {e}")
                return

            if not isinstance(payload, dict):
                yield StreamError(f"unexpected stream payload: {_excerpt(data)}")
                return

            if payload.get("error"):
                yield StreamError(_error_message(payload["error"]))
                return

            choices = payload.get("choices")
            if not isinstance(choices, list):
                yield StreamError(f"stream payload has no choices: {_excerpt(data)}")
                return

            for choice in choices:
                if not isinstance(choice, dict):
                    continue
                delta = choice.get("delta") or {}
                content = delta.get("content") if isinstance(delta, dict) else None
                if isinstance(content, str) and content:
                    yield ContentDelta(content)
                if choice.get("finish_reason"):
                    finish_reason = choice["finish_reason"]

        if finish_reason is not None:
            yield Done(finish_reason)
        else:
            yield StreamError("stream ended before completion")
    finally:
        close = getattr(lines, "close", None)
        if close is not None:
            close()
