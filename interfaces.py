"""Protocol interfaces used by the live session components."""

from __future__ import annotations

from queue import Queue
from typing import Any, Awaitable, Callable, Coroutine, Protocol

from models import AudioFrame, EnrichmentResult, MicPermission, RecognitionEvent


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class SpeechEngine(Protocol):
    """A recognition session that may end by itself at any time."""

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
    ) -> None: ...

    def stop(self) -> None: ...


class MicrophoneAccess(Protocol):
    def permission(self) -> MicPermission: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def call_soon_threadsafe(self, callback: Callable[..., None], *args: Any) -> None: ...

    def spawn(self, coro: Coroutine[Any, Any, None]) -> None: ...


class EnrichmentService(Protocol):
    def enrich(self, transcript: str) -> Awaitable[EnrichmentResult]: ...


class CreditLedger(Protocol):
    def consume_credit(self, amount: int = 1) -> Awaitable[int]: ...

    def ensure_user(self, name: str = "") -> Awaitable[int]: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def get_api_base_url(self) -> str: ...

    def get_mic_permission(self) -> MicPermission: ...

    def set_mic_permission(self, permission: MicPermission) -> None: ...

    def get_demo_seconds_used(self) -> int: ...

    def set_demo_seconds_used(self, seconds: int) -> None: ...
