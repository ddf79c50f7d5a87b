from __future__ import annotations

import os
import tempfile

# Must run before any Aamo module reads its configuration.
os.environ["AAMO_LOGS_DIR"] = tempfile.mkdtemp(prefix="aamo_logs_")
os.environ["GROQ_API_KEY"] = ""

import pytest

from Aamo_CompletionGateway import CompletionError
from Aamo_SessionMemory import SessionMemory


class FakeGateway:
    def __init__(self, reply: str = "Hei! Nice to hear from you.", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    def complete(self, system_prompt, history, new_user_text, temperature=None, max_tokens=None, request_id="-"):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "history": list(history),
                "message": new_user_text,
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def memory() -> SessionMemory:
    return SessionMemory(max_turns=10)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def failing_gateway() -> FakeGateway:
    return FakeGateway(error=CompletionError("APIConnectionError: Connection error."))
