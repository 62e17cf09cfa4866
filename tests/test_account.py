from __future__ import annotations

from pathlib import Path

from account import Account, DemoUsage
from config import JsonConfigStore


def test_low_credit_notice_is_one_shot_per_sign_in() -> None:
    account = Account(low_credit_threshold=10)
    account.sign_in("token", 25)
    assert account.claim_low_credit_notice() is False

    account.credits = 10
    assert account.claim_low_credit_notice() is True
    account.credits = 4
    assert account.claim_low_credit_notice() is False

    account.sign_out()
    account.sign_in("token", 5)
    assert account.claim_low_credit_notice() is True


def test_credits_never_go_negative() -> None:
    account = Account()
    account.sign_in("token", 3)
    account.credits = -7

    assert account.credits == 0


def test_sign_out_clears_identity() -> None:
    account = Account()
    account.sign_in("token", 30)
    assert account.is_authenticated is True
    assert account.bearer_token() == "token"

    account.sign_out()

    assert account.is_authenticated is False
    assert account.bearer_token() is None
    assert account.credits == 0


def test_demo_usage_persists_and_caps(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    demo = DemoUsage(store, ceiling=3)

    for _ in range(5):
        demo.increment()

    assert demo.seconds_used == 3
    assert demo.exhausted is True
    assert DemoUsage(store, ceiling=3).seconds_used == 3

    demo.reset()
    assert DemoUsage(store, ceiling=3).seconds_used == 0


def test_demo_usage_writes_in_batches(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    demo = DemoUsage(store, persist_every=10)

    for _ in range(5):
        demo.increment()
    assert demo.seconds_used == 5
    assert store.get_demo_seconds_used() == 0

    for _ in range(5):
        demo.increment()
    assert store.get_demo_seconds_used() == 10

    demo.increment()
    demo.flush()
    assert store.get_demo_seconds_used() == 11
