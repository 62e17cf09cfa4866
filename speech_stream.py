"""State-machine wrapper around a restart-prone speech engine."""

from __future__ import annotations

import logging
from queue import Queue
from typing import Callable, Optional

from errors import ASR_PROTOCOL_ERROR, CAPABILITY_UNAVAILABLE, NO_SPEECH, TERMINAL_CODES
from interfaces import Recorder, Scheduler, SpeechEngine
from models import AudioFrame, RecognitionEvent, RecognitionKind, RecognizerState

log = logging.getLogger(__name__)

StateCallback = Callable[[RecognizerState, RecognizerState], None]
TextCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str, bool], None]


class SpeechStreamAdapter:
    """Continuous recognition with transparent engine restarts.

    States: ``IDLE -> LISTENING``, ``LISTENING -> RESTARTING -> LISTENING``
    when the engine ends by itself or hits a retryable fault, ``* -> ERROR``
    on a terminal fault, and ``* -> IDLE`` on ``stop()``. Every engine run
    gets a generation number; events tagged with an older generation are
    dropped. Engine events arrive on foreign threads and are handed to the
    scheduler before any state is touched.
    """

    def __init__(
        self,
        recorder: Recorder,
        engine: SpeechEngine,
        scheduler: Scheduler,
        queue_maxsize: int = 200,
        max_consecutive_restarts: int = 5,
        min_stable_run_s: float = 2.0,
        on_interim: Optional[TextCallback] = None,
        on_final: Optional[TextCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._engine = engine
        self._scheduler = scheduler
        self._queue_maxsize = queue_maxsize
        self._max_consecutive_restarts = max_consecutive_restarts
        self._min_stable_run_s = min_stable_run_s
        self._on_interim = on_interim
        self._on_final = on_final
        self._on_error = on_error
        self._on_state_change = on_state_change

        self._state = RecognizerState.IDLE
        self._generation = 0
        self._restarts = 0
        self._run_started_at = 0.0
        self._audio_queue: Queue[AudioFrame | None] = Queue(maxsize=queue_maxsize)

    @property
    def state(self) -> RecognizerState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state in (RecognizerState.LISTENING, RecognizerState.RESTARTING)

    def start(self) -> None:
        if self.active:
            return
        self._generation += 1
        self._restarts = 0
        self._audio_queue = Queue(maxsize=self._queue_maxsize)
        self._transition(RecognizerState.LISTENING)
        try:
            self._recorder.start(self._audio_queue)
        except Exception as exc:
            self._fail(CAPABILITY_UNAVAILABLE, f"microphone unavailable: {exc}")
            return
        self._start_engine()

    def stop(self) -> None:
        if self._state == RecognizerState.IDLE:
            return
        self._generation += 1
        self._safe_stop_recorder()
        self._safe_stop_engine()
        self._transition(RecognizerState.IDLE)

    # ------------------------------------------------------------------
    # Engine events
    # ------------------------------------------------------------------

    def _start_engine(self) -> None:
        generation = self._generation
        self._run_started_at = self._scheduler.now()

        def _from_engine(event: RecognitionEvent) -> None:
            self._scheduler.call_soon_threadsafe(self._handle_event, generation, event)

        try:
            self._engine.start(self._audio_queue, _from_engine)
        except Exception as exc:
            self._fail(ASR_PROTOCOL_ERROR, f"start failed: {exc}")

    def _handle_event(self, generation: int, event: RecognitionEvent) -> None:
        if generation != self._generation or not self.active:
            log.debug("ignoring %s event from stale engine run", event.kind)
            return

        kind = event.kind
        if kind == RecognitionKind.PARTIAL.value:
            self._restarts = 0
            if self._on_interim:
                self._on_interim(event.text.strip())
            return
        if kind == RecognitionKind.FINAL.value:
            self._restarts = 0
            if self._on_interim:
                self._on_interim("")
            text = event.text.strip()
            if text and self._on_final:
                self._on_final(text)
            return
        if kind == RecognitionKind.ENDED.value:
            self._restart("engine ended")
            return
        if kind == RecognitionKind.ERROR.value:
            if event.code == NO_SPEECH:
                log.debug("no speech detected, ignoring")
                return
            code = event.code or ASR_PROTOCOL_ERROR
            if not event.retryable or code in TERMINAL_CODES:
                self._fail(code, event.message)
                return
            self._emit_error(code, event.message, fatal=False)
            self._restart(code)

    def _restart(self, reason: str) -> None:
        if self._scheduler.now() - self._run_started_at >= self._min_stable_run_s:
            self._restarts = 0
        self._restarts += 1
        if self._restarts > self._max_consecutive_restarts:
            self._fail(ASR_PROTOCOL_ERROR, f"recognition keeps stopping ({reason})")
            return
        log.info("restarting recognition (%s), attempt %d", reason, self._restarts)
        self._transition(RecognizerState.RESTARTING)
        self._generation += 1
        self._safe_stop_engine()
        self._transition(RecognizerState.LISTENING)
        self._start_engine()

    def _fail(self, code: str, message: str) -> None:
        log.error("recognition failed: %s %s", code, message)
        self._generation += 1
        self._transition(RecognizerState.ERROR)
        self._safe_stop_recorder()
        self._safe_stop_engine()
        self._emit_error(code, message, fatal=True)

    def _emit_error(self, code: str, message: str, fatal: bool) -> None:
        if self._on_error:
            self._on_error(code, message, fatal)

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception as exc:
            log.warning("recorder stop failed: %s", exc)

    def _safe_stop_engine(self) -> None:
        try:
            self._engine.stop()
        except Exception as exc:
            log.warning("engine stop failed: %s", exc)

    def _transition(self, to_state: RecognizerState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
