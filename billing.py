"""Per-second metering of listening time against the demo cap or the ledger."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from account import Account, DemoUsage
from errors import ApiError, InsufficientCreditsError
from interfaces import CreditLedger, Scheduler, TimerHandle
from models import SessionSignal

log = logging.getLogger(__name__)

TickCallback = Callable[[int], None]
SignalCallback = Callable[[SessionSignal], None]


class MeteredBillingLoop:
    """Tick once per second while the session is listening.

    The mode is picked at ``start()``: demo mode (no identity) burns the
    durable demo counter, metered mode debits one credit for every
    ``seconds_per_credit`` ticks. At most one debit is in flight; a minute
    boundary reached while one is pending is skipped, not queued.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        ledger: CreditLedger,
        account: Account,
        demo_usage: DemoUsage,
        tick_interval_s: float = 1.0,
        seconds_per_credit: int = 60,
        on_tick: Optional[TickCallback] = None,
        on_stop_request: Optional[SignalCallback] = None,
        on_signal: Optional[SignalCallback] = None,
    ) -> None:
        self._scheduler = scheduler
        self._ledger = ledger
        self._account = account
        self._demo_usage = demo_usage
        self._tick_interval_s = tick_interval_s
        self._seconds_per_credit = seconds_per_credit
        self._on_tick = on_tick
        self._on_stop_request = on_stop_request
        self._on_signal = on_signal

        self._running = False
        self._metered = False
        self._ticks = 0
        self._timer: Optional[TimerHandle] = None
        self._debit_in_flight = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def metered(self) -> bool:
        return self._metered

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def debit_in_flight(self) -> bool:
        return self._debit_in_flight

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._metered = self._account.is_authenticated
        self._ticks = 0
        log.info("billing loop started (%s mode)", "metered" if self._metered else "demo")
        self._schedule()

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._running:
            log.info("billing loop stopped after %d ticks", self._ticks)
        self._running = False
        self._demo_usage.flush()

    def _schedule(self) -> None:
        self._timer = self._scheduler.call_later(self._tick_interval_s, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if not self._running:
            return
        self.tick()
        if self._running:
            self._schedule()

    def tick(self) -> None:
        self._ticks += 1
        if self._on_tick:
            self._on_tick(self._ticks)

        if not self._metered:
            self._demo_usage.increment()
            if self._demo_usage.exhausted:
                log.info("demo allowance used up")
                self._request_stop(SessionSignal.TRIAL_ENDED)
            return

        if self._ticks % self._seconds_per_credit != 0:
            return
        if self._debit_in_flight:
            log.warning("debit still in flight at tick %d, skipping this boundary", self._ticks)
            return
        self._debit_in_flight = True
        self._scheduler.spawn(self._debit(self._account.epoch))

    async def _debit(self, epoch: int) -> None:
        try:
            credits = await self._ledger.consume_credit(1)
        except InsufficientCreditsError:
            if self._stale(epoch):
                return
            self._account.credits = 0
            log.info("ledger reports no credits left")
            if self._running:
                self._request_stop(SessionSignal.OUT_OF_CREDITS)
        except ApiError as exc:
            log.warning("debit failed, will retry at the next minute: %s", exc)
        except Exception:
            log.exception("debit crashed")
        else:
            if self._stale(epoch):
                return
            self._account.credits = credits
            if not self._running:
                log.debug("late debit result, balance updated to %d", credits)
                return
            if credits <= 0:
                self._request_stop(SessionSignal.OUT_OF_CREDITS)
            elif self._account.claim_low_credit_notice():
                self._emit(SessionSignal.LOW_CREDITS)
        finally:
            self._debit_in_flight = False

    def _stale(self, epoch: int) -> bool:
        if epoch == self._account.epoch:
            return False
        log.info("dropping debit reply issued for a previous sign-in")
        return True

    def _request_stop(self, signal: SessionSignal) -> None:
        if self._on_stop_request:
            self._on_stop_request(signal)
        else:
            self.stop()
            self._emit(signal)

    def _emit(self, signal: SessionSignal) -> None:
        if self._on_signal:
            self._on_signal(signal)
