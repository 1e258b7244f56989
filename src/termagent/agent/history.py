"""Bounded conversation history."""

from collections import deque
from typing import (
    Deque,
    Iterator,
    List,
)

from termagent.core.schema import (
    ChatMessage,
    Turn,
)


class ConversationHistory:
    """The *max_turns* most recent turns, oldest first.  Older turns are dropped silently."""

    def __init__(self, max_turns: int = 20):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.max_turns = max_turns
        self._turns: Deque[Turn] = deque(maxlen=max_turns)

    def append(self, user: str, assistant: str) -> Turn:
        turn = Turn(user=user, assistant=assistant)
        self._turns.append(turn)
        return turn

    def messages(self) -> List[ChatMessage]:
        """Flatten the turns into alternating user/assistant messages."""
        return [message for turn in self._turns for message in turn.as_messages()]

    def recent(self, limit: int) -> List[Turn]:
        return list(self._turns)[-limit:] if limit > 0 else []

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))
