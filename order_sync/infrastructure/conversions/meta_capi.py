from __future__ import annotations

import hashlib
import re
import time
from typing import Any

import httpx

from order_sync.application.ports.conversions import DispatchResult, PurchaseEvent
from order_sync.shared.logging import get_logger

log = get_logger(__name__)

GRAPH_URL = "https://graph.facebook.com"


class CircuitBreaker:
    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 30.0) -> None:
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._failure_count = 0
        self._last_failure_time: float = 0.0
        self._is_open = False

    @property
    def is_open(self) -> bool:
        if self._is_open and (time.monotonic() - self._last_failure_time) > self._recovery_timeout:
            self._is_open = False
            self._failure_count = 0
        return self._is_open

    def record_success(self) -> None:
        self._failure_count = 0
        self._is_open = False

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        if self._failure_count >= self._failure_threshold:
            self._is_open = True


def _hash(value: str | None) -> str | None:
    if not value:
        return None
    return hashlib.sha256(value.strip().lower().encode()).hexdigest()


def build_user_data(event: PurchaseEvent) -> dict[str, list[str]]:
    """Meta expects normalized, SHA-256 hashed identifiers."""
    phone_digits = re.sub(r"\D", "", event.customer_phone or "")
    first, _, last = (event.customer_name or "").strip().partition(" ")
    fields = {
        "em": _hash(event.customer_email),
        "ph": _hash(phone_digits),
        "fn": _hash(first),
        "ln": _hash(last),
    }
    return {k: [v] for k, v in fields.items() if v}


class MetaConversionsAdapter:
    """Meta Conversions API client with a circuit breaker."""

    def __init__(
        self,
        pixel_id: str,
        access_token: str,
        api_version: str = "v19.0",
        test_event_code: str | None = None,
        timeout: float = 5.0,
        circuit_failure_threshold: int = 5,
        circuit_recovery_timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._pixel_id = pixel_id
        self._access_token = access_token
        self._api_version = api_version
        self._test_event_code = test_event_code
        self._timeout = timeout
        self._transport = transport
        self._circuit = CircuitBreaker(circuit_failure_threshold, circuit_recovery_timeout)

    @property
    def url(self) -> str:
        return f"{GRAPH_URL}/{self._api_version}/{self._pixel_id}/events"

    def build_body(self, event: PurchaseEvent, event_time: int | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {
            "data": [
                {
                    "event_name": "Purchase",
                    "event_time": event_time or int(time.time()),
                    "event_id": event.event_id,
                    "action_source": "website",
                    "user_data": build_user_data(event),
                    "custom_data": {
                        "currency": event.currency,
                        "value": float(event.total_amount),
                        "order_id": event.order_id,
                    },
                }
            ],
        }
        if self._test_event_code:
            body["test_event_code"] = self._test_event_code
        return body

    async def send_purchase(self, event: PurchaseEvent) -> DispatchResult:
        if self._circuit.is_open:
            return DispatchResult(
                success=False,
                provider="meta",
                error_code="circuit_open",
                error_message="Circuit breaker is open, conversions API temporarily unavailable",
                is_retryable=True,
            )

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    params={"access_token": self._access_token},
                    json=self.build_body(event),
                )
        except httpx.HTTPError as exc:
            self._circuit.record_failure()
            log.warning("conversions request failed", extra={"order_id": event.order_id, "error": str(exc)})
            return DispatchResult(
                success=False,
                provider="meta",
                error_code=type(exc).__name__.lower(),
                error_message=str(exc),
                is_retryable=True,
            )

        if response.status_code >= 400:
            if response.status_code >= 500 or response.status_code == 429:
                self._circuit.record_failure()
            log.warning(
                "conversions API rejected event",
                extra={"order_id": event.order_id, "status_code": response.status_code, "body": response.text[:500]},
            )
            return DispatchResult(
                success=False,
                provider="meta",
                error_code=f"http_{response.status_code}",
                error_message=response.text[:500],
                is_retryable=response.status_code >= 500 or response.status_code == 429,
            )

        self._circuit.record_success()
        log.info("purchase sent to conversions API", extra={"order_id": event.order_id})
        return DispatchResult(success=True, provider="meta")
