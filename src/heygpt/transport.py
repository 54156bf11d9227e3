"""HTTP transport for the chat completion endpoint.

Built on the ``openai`` SDK, but the streaming path takes the raw response
and hands its lines to ``stream.decode_stream`` unparsed, so the body is
consumed as it arrives.
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import httpx
import openai
from openai import OpenAI

from .config import Config
from .conversation import Conversation
from .errors import AuthError, HttpStatusError, NetworkError, StreamDecodeError

logger = logging.getLogger(__name__)

EXCERPT_LIMIT = 200


def _body_excerpt(response: httpx.Response, limit: int = EXCERPT_LIMIT) -> str:
    """Short, single-line summary of an error response body.

    Prefers the ``error.message`` field of an OpenAI-style error object.
    """
    try:
        text = response.text
    except httpx.ResponseNotRead:
        return ""

    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            text = str(error["message"])
        elif isinstance(error, str) and error:
            text = error

    text = " ".join(text.split())
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return text


@contextmanager
def _translate_errors():
    """Re-raise SDK and httpx failures as heygpt errors."""
    try:
        yield
    except openai.APIStatusError as e:
        excerpt = _body_excerpt(e.response)
        if e.status_code in (401, 403):
            raise AuthError(f"API key rejected (HTTP {e.status_code}): {excerpt}") from e
        raise HttpStatusError(e.status_code, excerpt) from e
    except openai.APIConnectionError as e:
        cause = e.__cause__ or e
        raise NetworkError(f"cannot reach the API: {cause}") from e
    except httpx.TransportError as e:
        # raised while reading a body the SDK already handed over
        raise NetworkError(f"connection lost: {e}") from e


class CompletionClient:
    """Sends a conversation to ``{api_base_url}/chat/completions``."""

    def __init__(self, config: Config, http_client: Optional[httpx.Client] = None):
        if not config.api_key:
            raise AuthError(
                "no API key configured: set OPENAI_API_KEY, pass --api-key, "
                "or add api_key to ~/.heygpt.toml"
            )
        self.config = config
        self.client = OpenAI(
            api_key=config.api_key,
            base_url=config.api_base_url,
            timeout=config.timeout,
            max_retries=0,
            http_client=http_client,
        )

    def _request_args(self, conversation: Conversation, stream: bool) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            "model": self.config.model,
            "messages": conversation.as_request_payload(),
            "stream": stream,
        }
        if self.config.temperature is not None:
            args["temperature"] = self.config.temperature
        if self.config.top_p is not None:
            args["top_p"] = self.config.top_p
        return args

    def send(self, conversation: Conversation) -> Iterator[str]:
        """Stream the reply as raw response lines.

        Nothing is sent until the first line is requested. Closing the
        generator closes the HTTP response.
        """
        args = self._request_args(conversation, stream=True)
        logger.debug(
            f"POST {self.config.api_base_url}/chat/completions "
            f"model={args['model']} turns={len(args['messages'])} stream=True"
        )
        with _translate_errors():
            with self.client.chat.completions.with_streaming_response.create(**args) as response:
                logger.debug(f"Response opened with HTTP {response.status_code}")
                yield from response.iter_lines()

    def complete(self, conversation: Conversation) -> str:
        """Fetch the whole reply in one non-streaming request."""
        args = self._request_args(conversation, stream=False)
        logger.debug(
            f"POST {self.config.api_base_url}/chat/completions "
            f"model={args['model']} turns={len(args['messages'])} stream=False"
        )
        with _translate_errors():
            completion = self.client.chat.completions.create(**args)

        if not completion.choices:
            raise StreamDecodeError("response contained no choices")
        return completion.choices[0].message.content or ""
