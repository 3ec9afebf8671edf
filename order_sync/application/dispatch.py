from __future__ import annotations

import asyncio

from order_sync.application.ports.conversions import ConversionsPort, DispatchResult, PurchaseEvent
from order_sync.infrastructure.redis.dedupe import PurchaseDedupe
from order_sync.shared.logging import get_logger
from order_sync.shared.metrics import CONVERSIONS_DISPATCHED_TOTAL

log = get_logger(__name__)


async def dispatch_purchase(
    adapter: ConversionsPort,
    event: PurchaseEvent,
    timeout_seconds: float = 5.0,
    dedupe: PurchaseDedupe | None = None,
) -> DispatchResult | None:
    """Send the purchase conversion; failures are logged and never raised.

    The reconciliation has already been committed when this runs, so the
    webhook is acknowledged whatever happens here. The dedupe claim and the
    send share one ``timeout_seconds`` budget. Returns ``None`` when the
    order was already dispatched.
    """
    claimed = False

    async def _claim_and_send() -> DispatchResult | None:
        nonlocal claimed
        if dedupe is not None:
            try:
                fresh = await dedupe.claim(event.order_id)
            except Exception:
                log.warning("purchase dedupe unavailable; dispatching anyway", exc_info=True)
            else:
                if not fresh:
                    return None
                claimed = True
        return await adapter.send_purchase(event)

    try:
        result = await asyncio.wait_for(_claim_and_send(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        CONVERSIONS_DISPATCHED_TOTAL.labels("timeout").inc()
        log.warning("purchase dispatch timed out", extra={"order_id": event.order_id, "timeout": timeout_seconds})
        result = DispatchResult(
            success=False, provider="unknown", error_code="timeout", error_message="dispatch timed out",
            is_retryable=True,
        )
    except Exception as exc:
        CONVERSIONS_DISPATCHED_TOTAL.labels("failed").inc()
        log.warning("purchase dispatch raised", exc_info=True, extra={"order_id": event.order_id})
        result = DispatchResult(
            success=False, provider="unknown", error_code="exception", error_message=str(exc),
        )
    else:
        if result is None:
            CONVERSIONS_DISPATCHED_TOTAL.labels("duplicate").inc()
            log.info("purchase already dispatched", extra={"order_id": event.order_id})
            return None
        CONVERSIONS_DISPATCHED_TOTAL.labels("sent" if result.success else "failed").inc()
        if not result.success:
            log.warning(
                "purchase dispatch failed",
                extra={"order_id": event.order_id, "error_code": result.error_code},
            )

    if not result.success and claimed:
        try:
            await asyncio.wait_for(dedupe.release(event.order_id), timeout=timeout_seconds)
        except Exception:
            log.warning("could not release purchase dedupe claim", exc_info=True)
    return result
