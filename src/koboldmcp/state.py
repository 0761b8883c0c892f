from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(slots=True)
class ChatTurn:
    role: str
    # None is legal for assistant replies that only carry tool_calls.
    content: str | None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ChatTurn":
        role = raw.get("role") or ChatRole.ASSISTANT.value
        content = raw.get("content")
        extra = {k: v for k, v in raw.items() if k not in {"role", "content"}}
        return cls(role=str(role), content=content, extra=extra)

    def as_chat_dict(self) -> dict[str, Any]:
        return {**self.extra, "role": self.role, "content": self.content}


class ChatTranscript:
    """Ordered conversation history shared by every chat call in one process.

    Growth is unbounded: nothing is ever evicted and the whole history is
    resent on each call.  Callers that read and append as one step must hold
    :attr:`lock` for the duration.
    """

    def __init__(self, turns: Iterable[ChatTurn] = ()) -> None:
        self._turns: list[ChatTurn] = list(turns)
        self.lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, turn: ChatTurn) -> None:
        self._turns.append(turn)

    def extend(self, turns: Iterable[ChatTurn]) -> None:
        self._turns.extend(turns)

    def as_messages(self) -> list[dict[str, Any]]:
        return [turn.as_chat_dict() for turn in self._turns]

    def tail(self, n: int) -> list[ChatTurn]:
        if n <= 0:
            return []
        return list(self._turns[-n:])

    def snapshot(self) -> int:
        return len(self._turns)

    def restore(self, length: int) -> None:
        """Drop every turn appended after *length* (a prior :meth:`snapshot`)."""
        del self._turns[length:]
