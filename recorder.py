"""Microphone capture and permission probing."""

from __future__ import annotations

import logging
import threading
import time
from queue import Full, Queue
from typing import Any, Optional

from interfaces import ConfigStore
from models import AudioFrame, MicPermission

log = logging.getLogger(__name__)

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore


def input_device_available() -> bool:
    if sd is None:
        return False
    try:
        sd.query_devices(kind="input")
    except Exception as exc:
        log.info("no usable input device: %s", exc)
        return False
    return True


class MicrophonePermission:
    """Stored user consent combined with the presence of an input device."""

    def __init__(self, store: ConfigStore) -> None:
        self._store = store

    def permission(self) -> MicPermission:
        consent = self._store.get_mic_permission()
        if consent != MicPermission.GRANTED:
            return consent
        if not input_device_available():
            return MicPermission.DENIED
        return MicPermission.GRANTED

    def grant(self) -> None:
        self._store.set_mic_permission(MicPermission.GRANTED)

    def deny(self) -> None:
        self._store.set_mic_permission(MicPermission.DENIED)


class MicrophoneRecorder:
    """Feed mono 16-bit PCM from an input device into a bounded queue.

    One stream lives for a whole listening session and outlasts any number
    of engine restarts. Multichannel devices are mixed down to mono so the
    engine always sees the format it was opened with. ``stop()`` closes the
    stream and posts the ``None`` sentinel for the pump thread.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[int] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self.dropped_chunks = 0
        self.overflows = 0
        self._stream: Any = None
        self._running = False
        self._started_at = 0.0
        self._guard = threading.Lock()
        self._queue: Optional[Queue[AudioFrame | None]] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._guard:
            if self._running:
                return
            if sd is None or np is None:
                raise RuntimeError("sounddevice/numpy is not installed")
            self._queue = audio_queue
            self.dropped_chunks = 0
            self.overflows = 0
            self._started_at = time.monotonic()
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=self.sample_rate * self.chunk_ms // 1000,
                device=self.device,
                callback=self._capture,
            )
            stream.start()
            self._stream = stream
            self._running = True
            log.debug("microphone stream open (%d Hz, %d ch)", self.sample_rate, self.channels)

    def stop(self) -> None:
        with self._guard:
            if not self._running:
                return
            self._running = False
            stream, self._stream = self._stream, None
            if stream is not None:
                stream.stop()
                stream.close()
            if self.dropped_chunks or self.overflows:
                log.warning(
                    "audio backlog: %d chunks dropped, %d input overflows",
                    self.dropped_chunks,
                    self.overflows,
                )
            self._post(None)

    def _capture(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._queue is None:
            return
        if status:
            self.overflows += 1
        samples = np.asarray(indata, dtype=np.int16)
        if samples.ndim > 1 and samples.shape[1] > 1:
            samples = samples.mean(axis=1).astype(np.int16)
        frame = AudioFrame(
            pcm16_bytes=samples.tobytes(),
            sample_rate=self.sample_rate,
            channels=1,
            timestamp_ms=int((time.monotonic() - self._started_at) * 1000),
        )
        if not self._post(frame):
            self.dropped_chunks += 1

    def _post(self, item: Optional[AudioFrame]) -> bool:
        if self._queue is None:
            return False
        try:
            self._queue.put_nowait(item)
        except Full:
            return False
        return True
