"""Rate-limited, coalescing driver for the enrichment endpoint."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from errors import ENRICHMENT_FAILED, ERROR_MESSAGES, ApiError
from interfaces import EnrichmentService, Scheduler, TimerHandle
from models import EnrichmentResult, TranscriptEntry

log = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]


def build_transcript_payload(
    entries: Sequence[TranscriptEntry],
    max_entries: int = 30,
    max_chars: int = 3500,
) -> str:
    """Serialize the most recent entries as ``speaker: text`` lines."""
    recent = entries[-max_entries:] if max_entries > 0 else []
    text = "\n".join(f"{e.speaker}: {e.text}" for e in recent)
    return text[-max_chars:]


class ThrottleGate:
    """Minimum spacing between call starts plus exactly one retry slot.

    ``defer`` never stacks timers: while a retry is pending, further calls
    are absorbed by it.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        min_interval_s: float = 4.0,
        retry_delay_s: float = 1.0,
    ) -> None:
        self._scheduler = scheduler
        self._min_interval_s = min_interval_s
        self._retry_delay_s = retry_delay_s
        self._last_start: Optional[float] = None
        self._pending: Optional[TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def ready(self) -> bool:
        if self._last_start is None:
            return True
        return self._scheduler.now() - self._last_start >= self._min_interval_s

    def mark_started(self) -> None:
        self._last_start = self._scheduler.now()

    def defer(self, callback: Callable[[], None]) -> bool:
        if self._pending is not None:
            return False

        def _fire() -> None:
            self._pending = None
            callback()

        self._pending = self._scheduler.call_later(self._retry_delay_s, _fire)
        return True

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None


class EnrichmentCoordinator:
    def __init__(
        self,
        service: EnrichmentService,
        scheduler: Scheduler,
        min_interval_s: float = 4.0,
        retry_delay_s: float = 1.0,
        max_entries: int = 30,
        max_chars: int = 3500,
        on_change: Optional[ChangeCallback] = None,
    ) -> None:
        self._service = service
        self._scheduler = scheduler
        self._gate = ThrottleGate(scheduler, min_interval_s, retry_delay_s)
        self._max_entries = max_entries
        self._max_chars = max_chars
        self._on_change = on_change

        self._latest: List[TranscriptEntry] = []
        self._dirty = False
        self._in_flight = False
        self._generation = 0
        self._result = EnrichmentResult()
        self._error: Optional[str] = None

    # ------------------------------------------------------------------
    # Display-facing state
    # ------------------------------------------------------------------

    @property
    def result(self) -> EnrichmentResult:
        return self._result

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_updating(self) -> bool:
        return self._in_flight

    @property
    def retry_pending(self) -> bool:
        return self._gate.pending

    @property
    def last_update_seconds_ago(self) -> Optional[int]:
        if self._result.fetched_at is None:
            return None
        return max(0, int(self._scheduler.now() - self._result.fetched_at))

    def set_on_change(self, callback: Optional[ChangeCallback]) -> None:
        self._on_change = callback

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def notify(self, entries: Sequence[TranscriptEntry]) -> None:
        self._latest = list(entries)
        self._dirty = True
        self._attempt()

    def clear(self) -> None:
        self._gate.cancel()
        self._generation += 1
        self._latest = []
        self._dirty = False
        self._result = EnrichmentResult()
        self._error = None
        self._changed()

    def _attempt(self) -> None:
        if not self._dirty or not self._latest:
            return
        if self._in_flight or not self._gate.ready():
            if self._gate.defer(self._attempt):
                log.debug("enrichment throttled, retry scheduled")
            return

        self._gate.mark_started()
        self._in_flight = True
        self._dirty = False
        transcript = build_transcript_payload(self._latest, self._max_entries, self._max_chars)
        self._changed()
        self._scheduler.spawn(self._run(transcript, self._generation))

    async def _run(self, transcript: str, generation: int) -> None:
        try:
            result = await self._service.enrich(transcript)
        except ApiError as exc:
            self._finish_failure(generation, str(exc))
        except Exception as exc:
            log.exception("enrichment call crashed")
            self._finish_failure(generation, str(exc))
        else:
            self._in_flight = False
            if generation != self._generation:
                log.debug("discarding enrichment result from before clear()")
            else:
                result.fetched_at = self._scheduler.now()
                self._result = result
                self._error = None
            self._changed()

    def _finish_failure(self, generation: int, message: str) -> None:
        self._in_flight = False
        if generation == self._generation:
            self._error = message or ERROR_MESSAGES[ENRICHMENT_FAILED]
            log.warning("enrichment failed: %s", self._error)
        self._changed()

    def _changed(self) -> None:
        if self._on_change:
            self._on_change()
