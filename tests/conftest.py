from __future__ import annotations

import asyncio
from typing import Any, Callable, Coroutine, List, Optional

import pytest

from models import EnrichmentResult, KnowledgeCard, MicPermission, RecognitionEvent, RecognitionKind


class FakeTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock; timers fire only inside ``advance``."""

    def __init__(self) -> None:
        self.clock = 0.0
        self.timers: List[FakeTimer] = []
        self.tasks: List[asyncio.Task] = []

    def now(self) -> float:
        return self.clock

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.clock + delay, callback)
        self.timers.append(timer)
        return timer

    def call_soon_threadsafe(self, callback: Callable[..., None], *args: Any) -> None:
        callback(*args)

    def spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        self.tasks.append(asyncio.get_running_loop().create_task(coro))

    def pending_timers(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    async def settle(self) -> None:
        for _ in range(10):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        target = self.clock + seconds
        while True:
            due = self._next_due(target)
            if due is None:
                break
            self.clock = max(self.clock, due.due)
            due.fired = True
            due.callback()
            await self.settle()
        self.clock = target
        await self.settle()

    def _next_due(self, target: float) -> Optional[FakeTimer]:
        pending = [t for t in self.pending_timers() if t.due <= target]
        if not pending:
            return None
        return min(pending, key=lambda t: t.due)


class FakeRecorder:
    def __init__(self) -> None:
        self.start_calls = 0
        self.stop_calls = 0
        self.error: Optional[Exception] = None
        self.queue = None

    def start(self, audio_queue) -> None:
        self.start_calls += 1
        if self.error is not None:
            raise self.error
        self.queue = audio_queue

    def stop(self) -> None:
        self.stop_calls += 1


class FakeEngine:
    """Keeps every run's callback so tests can replay events from old runs."""

    def __init__(self) -> None:
        self.runs: List[Callable[[RecognitionEvent], None]] = []
        self.stop_calls = 0

    def start(self, audio_queue, on_event: Callable[[RecognitionEvent], None]) -> None:
        self.runs.append(on_event)

    def stop(self) -> None:
        self.stop_calls += 1

    def emit(self, kind: RecognitionKind, text: str = "", code: str = "", message: str = "", retryable: bool = True, run: int = -1) -> None:
        self.runs[run](RecognitionEvent(kind=kind.value, text=text, code=code, message=message, retryable=retryable))


class FakeMicrophone:
    def __init__(self, permission: MicPermission = MicPermission.GRANTED) -> None:
        self.value = permission

    def permission(self) -> MicPermission:
        return self.value


class FakeEnrichmentService:
    def __init__(self) -> None:
        self.calls: List[str] = []
        self.error: Optional[Exception] = None
        self.hold: Optional[asyncio.Event] = None

    async def enrich(self, transcript: str) -> EnrichmentResult:
        self.calls.append(transcript)
        if self.hold is not None:
            await self.hold.wait()
        if self.error is not None:
            raise self.error
        return EnrichmentResult(
            knowledge_cards=[KnowledgeCard(id="topic", emoji="📌", title=f"call {len(self.calls)}")]
        )


class FakeLedger:
    def __init__(self, credits: int = 50) -> None:
        self.credits = credits
        self.calls = 0
        self.error: Optional[Exception] = None
        self.hold: Optional[asyncio.Event] = None

    async def consume_credit(self, amount: int = 1) -> int:
        self.calls += 1
        if self.hold is not None:
            await self.hold.wait()
        if self.error is not None:
            raise self.error
        self.credits = max(0, self.credits - amount)
        return self.credits

    async def ensure_user(self, name: str = "") -> int:
        return self.credits


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def recorder() -> FakeRecorder:
    return FakeRecorder()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def microphone() -> FakeMicrophone:
    return FakeMicrophone()


@pytest.fixture
def enrichment_service() -> FakeEnrichmentService:
    return FakeEnrichmentService()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()
