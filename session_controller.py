"""Single entry point that drives recognition, transcript, enrichment and billing."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from account import Account, DemoUsage
from billing import MeteredBillingLoop
from enrichment import EnrichmentCoordinator
from errors import ERROR_MESSAGES, PERMISSION_DENIED, ApiError
from interfaces import CreditLedger, EnrichmentService, MicrophoneAccess, Recorder, Scheduler, SpeechEngine
from key_moments import classify
from models import MicPermission, SessionSignal, SessionSnapshot
from speech_stream import SpeechStreamAdapter
from transcript_store import TranscriptStore

log = logging.getLogger(__name__)

SignalCallback = Callable[[SessionSignal], None]
ErrorCallback = Callable[[str, str], None]
ChangeCallback = Callable[[], None]


class SessionController:
    def __init__(
        self,
        recorder: Recorder,
        engine: SpeechEngine,
        scheduler: Scheduler,
        enrichment_service: EnrichmentService,
        ledger: CreditLedger,
        account: Account,
        demo_usage: DemoUsage,
        microphone: MicrophoneAccess,
        on_signal: Optional[SignalCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_change: Optional[ChangeCallback] = None,
    ) -> None:
        self._scheduler = scheduler
        self._ledger = ledger
        self._account = account
        self._demo_usage = demo_usage
        self._microphone = microphone
        self._on_signal = on_signal
        self._on_error = on_error
        self._on_change = on_change

        self._listening = False
        self._listening_seconds = 0
        self._last_error: Optional[str] = None

        self.enrichment = EnrichmentCoordinator(
            enrichment_service,
            scheduler,
            on_change=self._changed,
        )
        self.transcript = TranscriptStore(on_append=self.enrichment.notify)
        self.speech = SpeechStreamAdapter(
            recorder,
            engine,
            scheduler,
            on_interim=self._handle_interim,
            on_final=self._handle_final,
            on_error=self._handle_speech_error,
        )
        self.billing = MeteredBillingLoop(
            scheduler,
            ledger,
            account,
            demo_usage,
            on_tick=self._handle_tick,
            on_stop_request=self._handle_stop_request,
            on_signal=self._emit_signal,
        )

    # ------------------------------------------------------------------
    # Display-facing state
    # ------------------------------------------------------------------

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def listening_seconds(self) -> int:
        return self._listening_seconds

    @property
    def demo_seconds_used(self) -> int:
        return self._demo_usage.seconds_used

    @property
    def interim_text(self) -> str:
        return self.transcript.interim_text

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def account(self) -> Account:
        return self._account

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            listening=self._listening,
            listening_seconds=self._listening_seconds,
            demo_seconds_used=self._demo_usage.seconds_used,
            interim_text=self.transcript.interim_text,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def set_listening(self, value: bool) -> bool:
        """Start or stop the session; returns the resulting listening flag."""
        if not value:
            self._stop()
            return False
        if self._listening:
            return True
        if not self._may_start():
            return False

        self._listening = True
        self._listening_seconds = 0
        self._last_error = None
        self.transcript.set_interim("")
        log.info("listening started")
        self.speech.start()
        if not self._listening:
            # recognition failed synchronously and already tore the session down
            return False
        self.billing.start()
        self._changed()
        return True

    def toggle_listening(self) -> bool:
        return self.set_listening(not self._listening)

    def clear(self) -> None:
        self.transcript.clear()
        self.enrichment.clear()
        self._changed()

    async def sign_in(self, token: str, name: str = "") -> int:
        """Switch to metered mode for ``token`` and seed the cached balance."""
        self.set_listening(False)
        self._account.sign_in(token)
        epoch = self._account.epoch
        try:
            credits = await self._ledger.ensure_user(name)
        except ApiError as exc:
            log.warning("could not load account balance: %s", exc)
        else:
            if epoch == self._account.epoch:
                self._account.credits = credits
        self._changed()
        return self._account.credits

    def sign_out(self) -> None:
        self.set_listening(False)
        self._listening_seconds = 0
        self._account.sign_out()
        self._changed()

    def _may_start(self) -> bool:
        permission = self._microphone.permission()
        if permission == MicPermission.PROMPT:
            self._emit_signal(SessionSignal.MIC_PERMISSION_REQUIRED)
            return False
        if permission == MicPermission.DENIED:
            self._report_error(PERMISSION_DENIED, ERROR_MESSAGES[PERMISSION_DENIED])
            return False
        if self._account.is_authenticated:
            if self._account.credits <= 0:
                self._emit_signal(SessionSignal.OUT_OF_CREDITS)
                return False
        elif self._demo_usage.exhausted:
            self._emit_signal(SessionSignal.TRIAL_ENDED)
            return False
        return True

    def _stop(self) -> None:
        self.speech.stop()
        self.billing.stop()
        self.transcript.set_interim("")
        if self._listening:
            self._listening = False
            log.info("listening stopped after %ds", self._listening_seconds)
            self._changed()

    # ------------------------------------------------------------------
    # Component callbacks
    # ------------------------------------------------------------------

    def _handle_interim(self, text: str) -> None:
        if not self._listening:
            return
        self.transcript.set_interim(text)
        self._changed()

    def _handle_final(self, text: str) -> None:
        self.transcript.append(text, classify(text))
        self._changed()

    def _handle_speech_error(self, code: str, message: str, fatal: bool) -> None:
        self._report_error(code, message or ERROR_MESSAGES.get(code, code))
        if fatal:
            self._stop()

    def _handle_tick(self, ticks: int) -> None:
        self._listening_seconds = ticks
        self._changed()

    def _handle_stop_request(self, signal: SessionSignal) -> None:
        self._stop()
        self._emit_signal(signal)

    def _report_error(self, code: str, message: str) -> None:
        self._last_error = message
        if self._on_error:
            self._on_error(code, message)

    def _emit_signal(self, signal: SessionSignal) -> None:
        log.info("signal: %s", signal.value)
        if self._on_signal:
            self._on_signal(signal)

    def _changed(self) -> None:
        if self._on_change:
            self._on_change()
