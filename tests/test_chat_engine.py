import threading
import time

from Aamo_BodyNormalizer import NormalizedInput
from Aamo_ChatEngine import (
    DEFAULT_SYSTEM_PROMPT,
    STATUS_DEGRADED,
    STATUS_FALLBACK,
    STATUS_GUARDED,
    STATUS_OK,
    load_system_prompt,
    run_exchange,
    start_session,
)
from Aamo_ReplySanitizer import QUIET_FALLBACK_REPLY
from Aamo_SessionMemory import SessionMemory, Turn

from conftest import FakeGateway


def test_successful_exchange_is_stored(memory, fake_gateway):
    outcome = run_exchange(memory, fake_gateway, NormalizedInput("s1", "hello"), system_prompt="persona")
    assert outcome.status == STATUS_OK
    assert outcome.reply == "Hei! Nice to hear from you."
    assert outcome.stored
    assert memory.get_history("s1") == [Turn.user("hello"), Turn.assistant(outcome.reply)]
    assert fake_gateway.calls[0]["system_prompt"] == "persona"
    assert fake_gateway.calls[0]["message"] == "hello"


def test_history_is_passed_to_gateway(memory, fake_gateway):
    memory.append_turn("s1", Turn.user("earlier"), Turn.assistant("reply"))
    run_exchange(memory, fake_gateway, NormalizedInput("s1", "now"), system_prompt="p")
    assert fake_gateway.calls[0]["history"] == [Turn.user("earlier"), Turn.assistant("reply")]


def test_accusing_history_is_not_sent(memory, fake_gateway):
    memory.append_turn("s1", Turn.user("ok"), Turn.assistant("You seem quiet today"))
    run_exchange(memory, fake_gateway, NormalizedInput("s1", "what's up"), system_prompt="p")
    assert fake_gateway.calls[0]["history"] == [Turn.user("ok")]


def test_gateway_failure_falls_back_without_storing(memory, failing_gateway):
    outcome = run_exchange(memory, failing_gateway, NormalizedInput("s1", "hello"), system_prompt="p")
    assert outcome.status == STATUS_FALLBACK
    assert outcome.reason.startswith("upstream_error")
    assert "hello" in outcome.reply
    assert not outcome.stored
    assert memory.get_history("s1") == []
    assert len(failing_gateway.calls) == 1


def test_empty_completion_falls_back_without_storing(memory):
    gateway = FakeGateway(reply="")
    outcome = run_exchange(memory, gateway, NormalizedInput("s1", "hello"), system_prompt="p")
    assert outcome.status == STATUS_FALLBACK
    assert outcome.reason == "empty_reply"
    assert outcome.reply
    assert memory.get_history("s1") == []


def test_missing_gateway_is_degraded(memory):
    outcome = run_exchange(memory, None, NormalizedInput("s1", "hello"))
    assert outcome.status == STATUS_DEGRADED
    assert outcome.reason == "missing_credential"
    assert outcome.reply
    assert memory.get_history("s1") == []


def test_unprompted_quiet_accusation_is_guarded(memory):
    gateway = FakeGateway(reply="You seem quiet today")
    outcome = run_exchange(memory, gateway, NormalizedInput("s1", "I had a good day"), system_prompt="p")
    assert outcome.status == STATUS_GUARDED
    assert outcome.reply == QUIET_FALLBACK_REPLY
    assert memory.get_history("s1")[-1] == Turn.assistant(QUIET_FALLBACK_REPLY)


def test_prompted_quiet_reply_passes(memory):
    gateway = FakeGateway(reply="You seem quiet today")
    outcome = run_exchange(
        memory, gateway, NormalizedInput("s1", "I've been so quiet lately"), system_prompt="p"
    )
    assert outcome.status == STATUS_OK
    assert outcome.reply == "You seem quiet today"


def test_reply_punctuation_is_folded(memory):
    gateway = FakeGateway(reply="That’s lovely — really.")
    outcome = run_exchange(memory, gateway, NormalizedInput("s1", "hi"), system_prompt="p")
    assert outcome.reply == "That's lovely - really."


def test_history_bound_holds_across_exchanges(fake_gateway):
    memory = SessionMemory(max_turns=4)
    for index in range(5):
        run_exchange(memory, fake_gateway, NormalizedInput("s1", f"m{index}"), system_prompt="p")
    history = memory.get_history("s1")
    assert len(history) == 4
    assert history[0] == Turn.user("m3")


def test_start_session_seeds_once(memory):
    assert start_session(memory, "s1", "Welcome!") == "Welcome!"
    assert start_session(memory, "s1", "Welcome!") == "Welcome!"
    assert memory.get_history("s1") == [Turn.assistant("Welcome!")]


def test_load_system_prompt_reads_file(tmp_path):
    path = tmp_path / "system.md"
    path.write_text("  You are a fox.  \n", encoding="utf-8")
    assert load_system_prompt(path) == "You are a fox."


def test_load_system_prompt_falls_back(tmp_path):
    assert load_system_prompt(tmp_path / "missing.md") == DEFAULT_SYSTEM_PROMPT


class BlockingGateway(FakeGateway):
    def __init__(self):
        super().__init__(reply="Kiitos!")
        self.entered = threading.Event()
        self.release = threading.Event()

    def complete(self, *args, **kwargs):
        reply = super().complete(*args, **kwargs)
        self.entered.set()
        self.release.wait(timeout=5)
        return reply


def test_same_session_exchanges_are_serialized(memory):
    gateway = BlockingGateway()

    def exchange(text):
        run_exchange(memory, gateway, NormalizedInput("s1", text), system_prompt="p")

    first = threading.Thread(target=exchange, args=("first",))
    first.start()
    assert gateway.entered.wait(timeout=5)

    second = threading.Thread(target=exchange, args=("second",))
    second.start()
    time.sleep(0.2)
    assert len(gateway.calls) == 1

    gateway.release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert len(gateway.calls) == 2
    assert gateway.calls[1]["history"] == [Turn.user("first"), Turn.assistant("Kiitos!")]
    assert memory.get_history("s1") == [
        Turn.user("first"),
        Turn.assistant("Kiitos!"),
        Turn.user("second"),
        Turn.assistant("Kiitos!"),
    ]
    assert memory.lock_count() == 0


def test_other_sessions_are_not_blocked(memory):
    gateway = BlockingGateway()
    blocked = threading.Thread(
        target=run_exchange,
        args=(memory, gateway, NormalizedInput("busy", "hello")),
        kwargs={"system_prompt": "p"},
    )
    blocked.start()
    assert gateway.entered.wait(timeout=5)

    outcome = run_exchange(memory, FakeGateway(), NormalizedInput("free", "hi"), system_prompt="p")
    assert outcome.status == STATUS_OK

    gateway.release.set()
    blocked.join(timeout=5)
