"""In-memory, per-session conversation history.

History lives only in process memory and is bounded to the newest
``max_turns`` entries per session. Each session has its own lock so a
chat exchange can hold it across read, completion and append without
blocking other sessions.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from Aamo_Config import AAMO_MAX_HISTORY_TURNS

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    role: str
    text: str

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(ROLE_USER, text)

    @classmethod
    def assistant(cls, text: str) -> "Turn":
        return cls(ROLE_ASSISTANT, text)

    def to_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.text}


class _SessionLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class SessionMemory:
    def __init__(self, max_turns: int = AAMO_MAX_HISTORY_TURNS) -> None:
        if max_turns < 1:
            raise ValueError(f"max_turns must be at least 1, got {max_turns}")
        self.max_turns = max_turns
        self._histories: dict[str, list[Turn]] = {}
        # Entries exist only while some thread holds or waits on the session.
        self._locks: dict[str, _SessionLock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def session_lock(self, session_id: str) -> Iterator[None]:
        """Hold exclusive access to one session's history."""
        with self._registry_lock:
            entry = self._locks.get(session_id)
            if entry is None:
                entry = self._locks[session_id] = _SessionLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[session_id]

    def get_history(self, session_id: str) -> list[Turn]:
        # Writers replace the stored list, never mutate it in place.
        return list(self._histories.get(session_id, ()))

    def append_turn(self, session_id: str, user_turn: Turn, assistant_turn: Turn) -> None:
        with self.session_lock(session_id):
            events = self._histories.get(session_id, []) + [user_turn, assistant_turn]
            self._histories[session_id] = events[-self.max_turns:]

    def reset(self, session_id: str) -> None:
        with self.session_lock(session_id):
            self._histories.pop(session_id, None)

    def seed_welcome(self, session_id: str, welcome_text: str) -> bool:
        with self.session_lock(session_id):
            if self._histories.get(session_id):
                return False
            self._histories[session_id] = [Turn.assistant(welcome_text)]
            return True

    def session_count(self) -> int:
        return sum(1 for events in list(self._histories.values()) if events)

    def lock_count(self) -> int:
        with self._registry_lock:
            return len(self._locks)
