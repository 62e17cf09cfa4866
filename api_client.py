"""HTTP client for the copilot backend (enrichment, credit ledger, user setup)."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import httpx

from errors import ApiError, InsufficientCreditsError
from models import EnrichmentResult
from schema import decode_enrichment

log = logging.getLogger(__name__)

ENRICH_PATH = "/api/groqCopilot"
CONSUME_CREDIT_PATH = "/api/consumeCredit"
ENSURE_USER_PATH = "/api/ensureUser"

PAYMENT_REQUIRED = 402

TokenProvider = Callable[[], Optional[str]]


class CopilotApiClient:
    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider = lambda: None,
        timeout_s: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
            transport=transport,
        )

    async def enrich(self, transcript: str) -> EnrichmentResult:
        response = await self._post(ENRICH_PATH, {"transcript": transcript})
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        return decode_enrichment(body)

    async def consume_credit(self, amount: int = 1) -> int:
        response = await self._post(CONSUME_CREDIT_PATH, {"amount": amount})
        return self._credits_from(response)

    async def ensure_user(self, name: str = "") -> int:
        payload = {"name": name} if name else {}
        response = await self._post(ENSURE_USER_PATH, payload)
        return self._credits_from(response)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.post(path, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise ApiError(f"{type(exc).__name__}: {exc}") from exc

        if response.is_error:
            message = self._error_message(response)
            log.debug("POST %s -> %s %s", path, response.status_code, message)
            if response.status_code == PAYMENT_REQUIRED:
                raise InsufficientCreditsError(message, status=response.status_code)
            raise ApiError(message, status=response.status_code)
        return response

    def _error_message(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            msg = data.get("error") or data.get("message")
            if msg:
                return str(msg)
        return f"Request failed ({response.status_code})"

    def _credits_from(self, response: httpx.Response) -> int:
        try:
            data = response.json()
            return max(0, int(data["credits"]))
        except (ValueError, KeyError, TypeError) as exc:
            raise ApiError(f"malformed ledger response: {response.text[:200]}") from exc
