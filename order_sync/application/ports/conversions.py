from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol


@dataclass(frozen=True)
class PurchaseEvent:
    order_id: str
    total_amount: Decimal
    currency: str
    customer_email: str | None = None
    customer_phone: str | None = None
    customer_name: str | None = None

    @property
    def event_id(self) -> str:
        return f"purchase_{self.order_id}"


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    provider: str
    error_code: str = ""
    error_message: str = ""
    is_retryable: bool = False


class ConversionsPort(Protocol):
    async def send_purchase(self, event: PurchaseEvent) -> DispatchResult: ...
