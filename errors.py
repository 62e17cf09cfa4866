"""Shared error codes, user-facing messages and API exceptions."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
CAPABILITY_UNAVAILABLE = "CAPABILITY_UNAVAILABLE"
NO_SPEECH = "NO_SPEECH"
ENRICHMENT_FAILED = "ENRICHMENT_FAILED"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone permission is required.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
    CAPABILITY_UNAVAILABLE: "Speech recognition is not available on this machine.",
    NO_SPEECH: "No speech detected.",
    ENRICHMENT_FAILED: "AI update failed",
}

# Engine faults that must never trigger an automatic restart.
TERMINAL_CODES = frozenset({PERMISSION_DENIED, AUTH_FAILED, CAPABILITY_UNAVAILABLE})


class ApiError(Exception):
    """A request to the copilot backend failed."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class InsufficientCreditsError(ApiError):
    """The ledger refused a debit because the balance is already exhausted."""
