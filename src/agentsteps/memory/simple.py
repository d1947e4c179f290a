"""Simple conversation memory implementation."""

from __future__ import annotations

from typing import Iterable, List

from ..llm.provider import Message


class ConversationBufferMemory:
    """Stores a bounded list of chat messages in memory.

    When the buffer overflows it drops whole turns from the front, so the
    history always starts at a ``user`` message and never holds ``tool``
    results whose assistant request was dropped.
    """

    def __init__(self, max_items: int = 20) -> None:
        self.max_items = max_items
        self._items: List[Message] = []

    def add(self, message: Message) -> None:
        self._items.append(message)
        if len(self._items) > self.max_items:
            self._items = self._items[-self.max_items :]
            while self._items and self._items[0].role != "user":
                self._items.pop(0)

    def extend(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.add(message)

    def dump(self) -> List[Message]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
