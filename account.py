"""Durable per-user state the live session reads and writes.

``DemoUsage`` survives restarts of the app: it is only reset by an explicit
``reset()``. The counter lives in memory and is written to the store every
``persist_every`` seconds, when the allowance runs out, and on ``flush()``.
``Account`` holds the signed-in identity, the last balance the ledger
reported and the one-shot low-credit latch; the latch is re-armed and the
identity epoch bumped whenever the identity changes (sign-in or sign-out).
"""

from __future__ import annotations

import logging
from typing import Optional

from interfaces import ConfigStore

log = logging.getLogger(__name__)


class DemoUsage:
    def __init__(self, store: ConfigStore, ceiling: int = 180, persist_every: int = 10) -> None:
        self._store = store
        self._ceiling = ceiling
        self._persist_every = max(1, persist_every)
        self._seconds_used = min(store.get_demo_seconds_used(), ceiling)
        self._persisted = self._seconds_used

    @property
    def seconds_used(self) -> int:
        return self._seconds_used

    @property
    def ceiling(self) -> int:
        return self._ceiling

    @property
    def exhausted(self) -> bool:
        return self._seconds_used >= self._ceiling

    def increment(self) -> int:
        self._seconds_used = min(self._seconds_used + 1, self._ceiling)
        if self.exhausted or self._seconds_used - self._persisted >= self._persist_every:
            self.flush()
        return self._seconds_used

    def flush(self) -> None:
        if self._seconds_used == self._persisted:
            return
        self._store.set_demo_seconds_used(self._seconds_used)
        self._persisted = self._seconds_used

    def reset(self) -> None:
        self._seconds_used = 0
        self._persisted = 0
        self._store.set_demo_seconds_used(0)


class Account:
    def __init__(self, low_credit_threshold: int = 10) -> None:
        self._low_credit_threshold = low_credit_threshold
        self._token: Optional[str] = None
        self._credits = 0
        self._low_credit_notified = False
        self._epoch = 0

    @property
    def epoch(self) -> int:
        """Bumped on every sign-in and sign-out; ties ledger replies to an identity."""
        return self._epoch

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def bearer_token(self) -> Optional[str]:
        return self._token

    @property
    def credits(self) -> int:
        return self._credits

    @credits.setter
    def credits(self, value: int) -> None:
        self._credits = max(0, int(value))

    @property
    def low_credit_threshold(self) -> int:
        return self._low_credit_threshold

    def sign_in(self, token: str, credits: int = 0) -> None:
        self._epoch += 1
        self._token = token
        self.credits = credits
        self._low_credit_notified = False
        log.info("signed in, %d credits", self._credits)

    def sign_out(self) -> None:
        self._epoch += 1
        self._token = None
        self._credits = 0
        self._low_credit_notified = False
        log.info("signed out")

    def claim_low_credit_notice(self) -> bool:
        """Return True exactly once per sign-in when the balance is low."""
        if self._low_credit_notified:
            return False
        if self._credits > self._low_credit_threshold:
            return False
        self._low_credit_notified = True
        return True
