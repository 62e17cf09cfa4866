"""Continuous speech engine backed by DashScope realtime recognition.

Audio frames from the recorder queue are pushed to a
``dashscope.audio.asr.Recognition`` session by a pump thread. Sentence
updates come back on DashScope's own threads through the callback and are
forwarded as :class:`RecognitionEvent`. The service closes idle or
long-running sessions on its own; that surfaces as an ``ENDED`` event, never
as an error.
"""

from __future__ import annotations

import logging
import os
import threading
from queue import Empty, Queue
from typing import Any, Callable, Optional

from errors import (
    ASR_PROTOCOL_ERROR,
    AUTH_FAILED,
    CAPABILITY_UNAVAILABLE,
    NETWORK_ERROR,
    NO_SPEECH,
)
from models import AudioFrame, RecognitionEvent, RecognitionKind

log = logging.getLogger(__name__)

try:
    import dashscope
    from dashscope.audio.asr import Recognition, RecognitionCallback
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore
    Recognition = None  # type: ignore
    RecognitionCallback = object  # type: ignore

EventCallback = Callable[[RecognitionEvent], None]


def _is_sentence_end(sentence: dict) -> bool:
    if sentence.get("sentence_end"):
        return True
    return sentence.get("end_time") is not None


def to_error_event(message: str) -> RecognitionEvent:
    """Map an SDK/network failure message to a standard event."""
    low = message.lower()
    if "no valid audio" in low or "no_valid_audio" in low or "no speech" in low:
        return RecognitionEvent(kind=RecognitionKind.ERROR.value, code=NO_SPEECH, message=message, retryable=True)
    if "idle" in low or "responsetimeout" in low:
        return RecognitionEvent(kind=RecognitionKind.ENDED.value, message=message)
    if "401" in low or "403" in low or "auth" in low or "api key" in low or "apikey" in low:
        code, retryable = AUTH_FAILED, False
    elif "timeout" in low or "network" in low or "connection" in low:
        code, retryable = NETWORK_ERROR, True
    else:
        code, retryable = ASR_PROTOCOL_ERROR, True
    return RecognitionEvent(
        kind=RecognitionKind.ERROR.value,
        code=code,
        message=message,
        retryable=retryable,
    )


class _Run:
    """State of one recognition session; stale runs go quiet once stopped."""

    def __init__(self, on_event: EventCallback) -> None:
        self.on_event = on_event
        self.stopped = threading.Event()
        self.ended = threading.Event()
        self.recognition: Any = None
        self.thread: Optional[threading.Thread] = None
        self.closer: Optional[threading.Thread] = None

    def emit(self, event: RecognitionEvent) -> None:
        if self.stopped.is_set():
            return
        if event.kind == RecognitionKind.ENDED.value:
            if self.ended.is_set():
                return
            self.ended.set()
        self.on_event(event)


class _EngineCallback(RecognitionCallback):
    def __init__(self, run: _Run) -> None:
        super().__init__()
        self._run = run

    def on_open(self) -> None:
        log.debug("recognition session open")

    def on_event(self, result: Any) -> None:
        sentence = result.get_sentence()
        if not isinstance(sentence, dict):
            return
        text = str(sentence.get("text", "") or "")
        kind = RecognitionKind.FINAL if _is_sentence_end(sentence) else RecognitionKind.PARTIAL
        self._run.emit(RecognitionEvent(kind=kind.value, text=text))

    def on_error(self, result: Any) -> None:
        code = str(getattr(result, "code", "") or "")
        message = str(getattr(result, "message", "") or result)
        self._run.emit(to_error_event(f"{code}: {message}" if code else message))

    def on_complete(self) -> None:
        self._run.emit(RecognitionEvent(kind=RecognitionKind.ENDED.value))

    def on_close(self) -> None:
        self._run.emit(RecognitionEvent(kind=RecognitionKind.ENDED.value))


class DashscopeSpeechEngine:
    def __init__(
        self,
        api_key: str,
        model: str = "paraformer-realtime-v2",
        sample_rate: int = 16000,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._sample_rate = sample_rate
        self._run: Optional[_Run] = None

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: EventCallback,
    ) -> None:
        if self._run is not None and not self._run.stopped.is_set():
            return
        run = _Run(on_event)
        self._run = run

        if dashscope is None or Recognition is None:
            run.emit(
                RecognitionEvent(
                    kind=RecognitionKind.ERROR.value,
                    code=CAPABILITY_UNAVAILABLE,
                    message="dashscope is not installed",
                    retryable=False,
                )
            )
            return

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            run.emit(
                RecognitionEvent(
                    kind=RecognitionKind.ERROR.value,
                    code=AUTH_FAILED,
                    message="No API key configured",
                    retryable=False,
                )
            )
            return

        dashscope.api_key = api_key
        run.recognition = Recognition(
            model=self._model,
            format="pcm",
            sample_rate=self._sample_rate,
            callback=_EngineCallback(run),
        )
        try:
            run.recognition.start()
        except Exception as exc:
            run.recognition = None
            run.emit(to_error_event(str(exc)))
            return

        run.thread = threading.Thread(target=self._pump, args=(run, audio_queue), daemon=True)
        run.thread.start()

    def stop(self) -> None:
        run = self._run
        if run is None or run.stopped.is_set():
            return
        run.stopped.set()
        # Recognition.stop() blocks until the service closes the task
        run.closer = threading.Thread(target=self._close, args=(run,), name="asr-close", daemon=True)
        run.closer.start()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _close(self, run: _Run) -> None:
        if run.thread and run.thread.is_alive():
            run.thread.join(timeout=0.5)
        if run.recognition is not None and not run.ended.is_set():
            try:
                run.recognition.stop()
            except Exception as exc:
                log.debug("recognition stop raised: %s", exc)

    def _pump(self, run: _Run, audio_queue: Queue[AudioFrame | None]) -> None:
        """Forward microphone frames until stopped, ended or sentinel."""
        while not run.stopped.is_set() and not run.ended.is_set():
            try:
                frame = audio_queue.get(timeout=0.2)
            except Empty:
                continue
            if frame is None:  # Sentinel
                break
            try:
                run.recognition.send_audio_frame(frame.pcm16_bytes)
            except Exception as exc:
                if run.ended.is_set() or run.stopped.is_set():
                    return
                run.emit(to_error_event(str(exc)))
                return
