from __future__ import annotations

import json
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from order_sync.application.audit import record_delivery
from order_sync.application.extraction import event_name, extract_order, raw_status
from order_sync.application.ports.conversions import PurchaseEvent
from order_sync.application.reconciliation import ReconciliationOutcome, reconcile_order
from order_sync.application.signature import SignatureError, verify_signature
from order_sync.application.status import normalize_label, resolve_status
from order_sync.shared.config import Settings
from order_sync.shared.logging import get_logger
from order_sync.shared.metrics import WEBHOOK_DELIVERIES_TOTAL, WEBHOOK_PROCESSING_SECONDS
from order_sync.shared.problem import http_problem

log = get_logger(__name__)

TEST_EVENT = "test"


@dataclass(frozen=True)
class IngestOutcome:
    status_code: int
    body: dict[str, Any]
    purchase: PurchaseEvent | None = None
    reconciliation: ReconciliationOutcome | None = None


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _loggable(raw_body: bytes) -> Any:
    try:
        return json.loads(raw_body)
    except ValueError:
        return raw_body.decode("utf-8", errors="replace")


def ingest_delivery(
    session: Session,
    settings: Settings,
    endpoint: str,
    raw_body: bytes,
    headers: Mapping[str, str],
) -> IngestOutcome:
    """Authenticate, normalize and reconcile one gateway notification.

    Only authentication (401) and parse (400) failures reach the caller as
    errors. Everything else is acknowledged with 200 so the gateway does not
    keep redelivering events this service deliberately ignores.
    """
    started = time.perf_counter()
    try:
        return _ingest(session, settings, endpoint, raw_body, headers, started)
    finally:
        WEBHOOK_PROCESSING_SECONDS.labels(endpoint).observe(time.perf_counter() - started)


def _ingest(
    session: Session,
    settings: Settings,
    endpoint: str,
    raw_body: bytes,
    headers: Mapping[str, str],
    started: float,
) -> IngestOutcome:
    try:
        verify_signature(
            settings.appmax_webhook_secret,
            raw_body,
            headers.get(settings.appmax_signature_header),
            headers.get(settings.appmax_timestamp_header),
            tolerance_seconds=settings.webhook_timestamp_tolerance_seconds,
        )
    except SignatureError as exc:
        record_delivery(session, endpoint, _loggable(raw_body), 401, _elapsed_ms(started), exc.reason)
        WEBHOOK_DELIVERIES_TOTAL.labels(endpoint, "rejected_signature").inc()
        log.warning("webhook rejected", extra={"endpoint": endpoint, "reason": exc.reason})
        raise http_problem(401, "Unauthorized", exc.reason, instance=endpoint)

    try:
        payload = json.loads(raw_body)
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        record_delivery(
            session, endpoint, _loggable(raw_body), 400, _elapsed_ms(started), "invalid payload"
        )
        WEBHOOK_DELIVERIES_TOTAL.labels(endpoint, "invalid_payload").inc()
        raise http_problem(400, "Bad Request", "invalid payload", instance=endpoint)

    event = event_name(payload)
    if normalize_label(event) == TEST_EVENT and not settings.is_production:
        record_delivery(session, endpoint, payload, 200, _elapsed_ms(started))
        WEBHOOK_DELIVERIES_TOTAL.labels(endpoint, "test").inc()
        return IngestOutcome(200, {"success": True, "message": "test received"})

    resolution = resolve_status(event, raw_status(payload))
    if resolution is None:
        record_delivery(session, endpoint, payload, 200, _elapsed_ms(started))
        WEBHOOK_DELIVERIES_TOTAL.labels(endpoint, "ignored").inc()
        log.info("webhook ignored", extra={"endpoint": endpoint, "event": str(event)})
        return IngestOutcome(200, {"success": True, "message": "event ignored"})

    try:
        order = extract_order(payload)
    except Exception:
        record_delivery(
            session, endpoint, payload, 200, _elapsed_ms(started), "unreadable order fields"
        )
        WEBHOOK_DELIVERIES_TOTAL.labels(endpoint, "insufficient_data").inc()
        log.warning("order extraction failed", exc_info=True, extra={"endpoint": endpoint})
        return IngestOutcome(200, {"success": True, "message": "insufficient data"})
    record_delivery(session, endpoint, payload, 200, _elapsed_ms(started))

    if not order.is_actionable:
        WEBHOOK_DELIVERIES_TOTAL.labels(endpoint, "insufficient_data").inc()
        log.info(
            "webhook lacks order id or email",
            extra={"endpoint": endpoint, "has_order_id": bool(order.order_id), "has_email": bool(order.customer_email)},
        )
        return IngestOutcome(200, {"success": True, "message": "insufficient data"})

    outcome = reconcile_order(
        session, order, resolution, match_window_hours=settings.checkout_match_window_hours
    )
    WEBHOOK_DELIVERIES_TOTAL.labels(endpoint, "accepted").inc()

    purchase = None
    if resolution.is_success:
        purchase = PurchaseEvent(
            order_id=order.order_id,
            total_amount=order.total_amount,
            currency=settings.conversions_currency,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            customer_name=order.customer_name,
        )

    return IngestOutcome(
        200,
        {"success": True, "status": resolution.value, "order_id": order.order_id},
        purchase=purchase,
        reconciliation=outcome,
    )
