from __future__ import annotations

import pytest

from key_moments import classify
from models import KeyMoment


@pytest.mark.parametrize(
    "text, expected",
    [
        ("We lost $50 today", KeyMoment.NUMBER),
        ("churn is up 5% this quarter", KeyMoment.NUMBER),
        ("the rollback risk is 3 days", KeyMoment.NUMBER),
        ("budget is ₹ only", KeyMoment.NUMBER),
        ("there's a rollback risk", KeyMoment.RISK),
        ("Known ISSUE with the importer", KeyMoment.RISK),
        ("let's finalize the budget", KeyMoment.DECISION),
        ("We should agree on owners", KeyMoment.DECISION),
        ("Let’s decide after lunch", KeyMoment.DECISION),
        ("good morning everyone", None),
    ],
)
def test_classify(text: str, expected: KeyMoment | None) -> None:
    assert classify(text) == expected


def test_risk_beats_decision() -> None:
    assert classify("let's talk about the problem") == KeyMoment.RISK


def test_digits_inside_words_are_not_numbers() -> None:
    assert classify("ship the v2beta build") is None
