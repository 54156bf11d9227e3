"""Conversation state: the ordered turns sent to the API as chat context."""

import logging
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional

from .errors import EmptyHistoryError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Turn(NamedTuple):
    """One message in the conversation."""

    role: Role
    content: str


class Conversation:
    """Ordered list of turns.

    After an optional leading system turn, roles alternate user, assistant,
    user, ... The last turn may be a user turn still waiting for its reply.
    """

    def __init__(self, system_prompt: Optional[str] = None):
        self._turns: List[Turn] = []
        if system_prompt:
            self.append(Role.SYSTEM, system_prompt)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)

    @property
    def turns(self) -> List[Turn]:
        return list(self._turns)

    @property
    def last_role(self) -> Optional[Role]:
        return self._turns[-1].role if self._turns else None

    @property
    def awaiting_reply(self) -> bool:
        """True when the last turn is a user turn nobody has answered yet."""
        return self.last_role == Role.USER

    def append(self, role, content: str) -> Turn:
        """Append a turn, rejecting any role that breaks the alternation."""
        role = Role(role)
        last = self.last_role

        if role == Role.SYSTEM:
            allowed = last is None
        elif role == Role.USER:
            allowed = last in (None, Role.SYSTEM, Role.ASSISTANT)
        else:
            allowed = last == Role.USER

        if not allowed:
            after = last.value if last else "start of conversation"
            raise ValueError(f"cannot append a {role.value} turn after {after}")

        turn = Turn(role, content)
        self._turns.append(turn)
        return turn

    def retract_last_user_turn(self) -> List[Turn]:
        """Remove the most recent user turn and the reply that followed it.

        Returns the removed turns in their original order. Raises
        EmptyHistoryError if the conversation holds no user turn.
        """
        for index in range(len(self._turns) - 1, -1, -1):
            if self._turns[index].role == Role.USER:
                removed = self._turns[index:]
                del self._turns[index:]
                logger.debug(f"Retracted {len(removed)} turn(s)")
                return removed
        raise EmptyHistoryError()

    def discard_unanswered(self) -> Optional[Turn]:
        """Drop a trailing user turn that never received a reply."""
        if not self.awaiting_reply:
            return None
        return self._turns.pop()

    def render_history(self) -> str:
        """Human-readable transcript, one ``role => content`` block per turn."""
        return "\n".join(f"{turn.role.value} => {turn.content}" for turn in self._turns)

    def as_request_payload(self) -> List[Dict[str, str]]:
        return [{"role": turn.role.value, "content": turn.content} for turn in self._turns]
