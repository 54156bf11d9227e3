"""Shared builders for the test suite."""

import json


def sse(*fragments, done=True, finish_reason="stop"):
    """Build the raw lines of a chat completion stream for ``fragments``."""
    lines = [
        "data: " + json.dumps({"choices": [{"index": 0, "delta": {"role": "assistant"}}]}),
        "",
    ]
    for fragment in fragments:
        chunk = {"choices": [{"index": 0, "delta": {"content": fragment}, "finish_reason": None}]}
        lines += ["data: " + json.dumps(chunk), ""]
    final = {"choices": [{"index": 0, "delta": {}, "finish_reason": finish_reason}]}
    lines += ["data: " + json.dumps(final), ""]
    if done:
        lines += ["data: [DONE]", ""]
    return lines


class FakeClient:
    """Stands in for CompletionClient; replays canned replies in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []
        self.closed = []

    def _next_reply(self, conversation):
        self.requests.append(conversation.as_request_payload())
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def send(self, conversation):
        reply = self._next_reply(conversation)
        index = len(self.requests) - 1
        try:
            for line in reply:
                if isinstance(line, Exception):
                    raise line
                yield line
        finally:
            self.closed.append(index)

    def complete(self, conversation):
        return self._next_reply(conversation)
