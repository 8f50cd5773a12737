"""
context.py

Bounded conversation window shared with the LLM collaborator. Only the most
recent ``max_turns`` turns are kept; older ones are dropped without any
summary.
"""

from collections import deque
from typing import Deque, List, Optional

from todogpt.schema import ConversationTurn


class ConversationContext:
    def __init__(self, max_turns: int = 10):
        """
        Args:
            max_turns: Size of the sliding window (user and assistant turns
                       both count).
        """
        if max_turns < 1:
            raise ValueError("max_turns must be >= 1")
        self.max_turns = max_turns
        self._turns: Deque[ConversationTurn] = deque(maxlen=max_turns)

    def __len__(self) -> int:
        return len(self._turns)

    def record(self, turn: ConversationTurn) -> None:
        """Append a turn, evicting the oldest ones beyond the window."""
        self._turns.append(turn)

    def record_user(self, text: str) -> None:
        self.record(ConversationTurn(speaker="user", text=text))

    def record_assistant(self, text: str) -> None:
        self.record(ConversationTurn(speaker="assistant", text=text))

    def recent_context(self, max_turns: Optional[int] = None) -> List[ConversationTurn]:
        """
        Last ``min(max_turns, len(self))`` turns in chronological order.
        The returned list is a snapshot; later records do not show up in it.
        """
        if max_turns is None:
            max_turns = self.max_turns
        if max_turns <= 0:
            return []
        turns = list(self._turns)
        return turns[-max_turns:]

    def render(self, max_turns: Optional[int] = None) -> List[str]:
        return [turn.render() for turn in self.recent_context(max_turns)]

    def clear(self) -> None:
        self._turns.clear()
