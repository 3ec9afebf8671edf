from __future__ import annotations

from order_sync.application.ports.conversions import DispatchResult, PurchaseEvent
from order_sync.shared.logging import get_logger

log = get_logger(__name__)


class FakeConversionsAdapter:
    """Records purchase events in memory for local development and testing."""

    def __init__(self, fail: bool = False) -> None:
        self._fail = fail
        self.sent: list[PurchaseEvent] = []

    async def send_purchase(self, event: PurchaseEvent) -> DispatchResult:
        if self._fail:
            return DispatchResult(
                success=False,
                provider="fake",
                error_code="simulated_failure",
                error_message="Simulated failure",
            )
        self.sent.append(event)
        log.info("fake purchase", extra={"order_id": event.order_id, "amount": str(event.total_amount)})
        return DispatchResult(success=True, provider="fake")
