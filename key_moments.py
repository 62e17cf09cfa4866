"""Key-moment tagging for finalized utterances."""

from __future__ import annotations

import re
from typing import Optional

from models import KeyMoment

_NUMBER_RE = re.compile(r"\b\d+(?:[.,]\d+)?\b")
CURRENCY_SYMBOLS = ("$", "€", "£", "¥", "₹")

RISK_TERMS = ("risk", "issue", "problem", "rollback", "failure")
DECISION_TERMS = ("let's", "we should", "decide", "finalize", "agree")


def classify(text: str) -> Optional[KeyMoment]:
    """Tag an utterance as number, risk or decision, in that precedence."""
    t = text.lower().replace("’", "'")

    if _NUMBER_RE.search(t) or "%" in t or any(sym in t for sym in CURRENCY_SYMBOLS):
        return KeyMoment.NUMBER
    if any(term in t for term in RISK_TERMS):
        return KeyMoment.RISK
    if any(term in t for term in DECISION_TERMS):
        return KeyMoment.DECISION
    return None
