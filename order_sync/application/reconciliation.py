"""Apply one normalized delivery to customers, sales, checkout attempts and carts.

Consistency policy is availability over atomicity: each of the four steps
runs in its own transaction, and a failing step is logged, counted and
skipped so the remaining steps still run. Sale and Customer rely on the
database's insert-or-update on their unique key for idempotency. Checkout
attempt matching by email is read-then-write and two concurrent deliveries
for the same customer may each insert an attempt.

Writes against ``sales`` and ``checkout_attempts`` tolerate deployments that
lag a migration: if the database reports that one of a small set of optional
columns does not exist, the write is retried once without it.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, TypeVar

from sqlalchemy import Table, insert, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from order_sync.application.extraction import OrderPayload
from order_sync.application.status import OrderStatus, StatusResolution
from order_sync.infrastructure.db.models import (
    AbandonedCart,
    CheckoutAttempt,
    Customer,
    Sale,
    utcnow,
)
from order_sync.infrastructure.db.upsert import insert_or_update
from order_sync.shared.logging import get_logger
from order_sync.shared.metrics import RECONCILE_STEP_FAILURES_TOTAL, SCHEMA_DRIFT_RETRIES_TOTAL

log = get_logger(__name__)

T = TypeVar("T")

DEFAULT_CUSTOMER_NAME = "Cliente Appmax"
REOPENABLE_ATTEMPT_STATUSES = ("pending", "abandoned")

CUSTOMER_OPTIONAL_COLUMNS = frozenset({"document"})
SALE_OPTIONAL_COLUMNS = frozenset({"failure_reason", "customer_document", "refunded_at"})
ATTEMPT_OPTIONAL_COLUMNS = frozenset({"total_amount", "failure_reason", "gateway_order_id"})

_MISSING_COLUMN_MARKERS = (
    "does not exist",
    "no such column",
    "has no column named",
    "unknown column",
    "could not find",
)


@dataclass
class ReconciliationOutcome:
    customer_id: uuid.UUID | None = None
    sale_id: uuid.UUID | None = None
    checkout_match: str | None = None  # order_id|email|created
    carts_reopened: int = 0
    failed_steps: list[str] = field(default_factory=list)


def missing_columns(exc: DBAPIError, candidates: Iterable[str]) -> set[str]:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    if "column" not in message or not any(m in message for m in _MISSING_COLUMN_MARKERS):
        return set()
    return {c for c in candidates if re.search(rf"\b{re.escape(c)}\b", message)}


def _write_tolerating_drift(
    session: Session,
    table: Table,
    values: dict[str, Any],
    optional: frozenset[str],
    build: Callable[[dict[str, Any]], Any],
) -> list[Any]:
    try:
        with session.begin():
            return list(session.execute(build(values)).scalars())
    except DBAPIError as exc:
        missing = missing_columns(exc, optional & values.keys())
        if not missing:
            raise

    SCHEMA_DRIFT_RETRIES_TOTAL.labels(table.name).inc()
    log.warning(
        "schema drift; retrying without columns",
        extra={"table": table.name, "columns": sorted(missing)},
    )
    trimmed = {k: v for k, v in values.items() if k not in missing}
    with session.begin():
        return list(session.execute(build(trimmed)).scalars())


def upsert_customer(session: Session, order: OrderPayload) -> uuid.UUID | None:
    table = Customer.__table__
    values = {
        "email": order.customer_email,
        "name": order.customer_name,
        "phone": order.customer_phone,
        "document": order.customer_document,
        "updated_at": utcnow(),
    }
    ids = _write_tolerating_drift(
        session,
        table,
        values,
        CUSTOMER_OPTIONAL_COLUMNS,
        lambda v: insert_or_update(session, table, v, ["email"]),
    )
    return ids[0] if ids else None


def upsert_sale(
    session: Session,
    order: OrderPayload,
    resolution: StatusResolution,
    customer_id: uuid.UUID | None,
    now: datetime | None = None,
) -> uuid.UUID | None:
    now = now or utcnow()
    table = Sale.__table__
    values: dict[str, Any] = {
        "gateway_order_id": order.order_id,
        "customer_name": order.customer_name or DEFAULT_CUSTOMER_NAME,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "customer_document": order.customer_document,
        "total_amount": order.total_amount,
        "subtotal": order.total_amount,
        "discount": 0,
        "status": resolution.value,
        "failure_reason": resolution.failure_reason,
        "payment_method": order.payment_method,
        "paid_at": now if resolution.is_success else None,
        "refunded_at": now if resolution.status is OrderStatus.REFUNDED else None,
        "updated_at": now,
    }
    if customer_id is not None:
        values["customer_id"] = customer_id

    ids = _write_tolerating_drift(
        session,
        table,
        values,
        SALE_OPTIONAL_COLUMNS,
        lambda v: insert_or_update(session, table, v, ["gateway_order_id"]),
    )
    return ids[0] if ids else None


def sync_checkout_attempt(
    session: Session,
    order: OrderPayload,
    resolution: StatusResolution,
    sale_id: uuid.UUID | None,
    match_window_hours: int = 24,
    now: datetime | None = None,
) -> str | None:
    """Update the attempt for this order, else a recent one for the email, else insert.

    Returns how the attempt was found (``order_id``, ``email`` or
    ``created``), or ``None`` when there was no email to create one with.
    """
    now = now or utcnow()
    table = CheckoutAttempt.__table__
    changes: dict[str, Any] = {
        "status": resolution.value,
        "failure_reason": resolution.failure_reason,
        "total_amount": order.total_amount,
        "payment_method": order.payment_method,
        "recovery_status": resolution.recovery_status,
        "converted_at": now if resolution.is_success else None,
        "abandoned_at": now if resolution.is_failure else None,
        "sale_id": sale_id,
        "details": {
            "gateway_order_id": order.order_id,
            "failure_reason": resolution.failure_reason,
            "updated_by": "webhook",
        },
        "updated_at": now,
    }

    if order.order_id:
        try:
            matched = _write_tolerating_drift(
                session,
                table,
                changes,
                ATTEMPT_OPTIONAL_COLUMNS,
                lambda v: update(table)
                .where(table.c.gateway_order_id == order.order_id)
                .values(**v)
                .returning(table.c.id),
            )
        except DBAPIError as exc:
            matched = []
            if not missing_columns(exc, ["gateway_order_id"]):
                log.warning(
                    "checkout attempt update by order id failed",
                    exc_info=True,
                    extra={"order_id": order.order_id},
                )
        if matched:
            return "order_id"

    if not order.customer_email:
        return None

    since = now - timedelta(hours=match_window_hours)
    try:
        matched = _write_tolerating_drift(
            session,
            table,
            changes,
            ATTEMPT_OPTIONAL_COLUMNS,
            lambda v: update(table)
            .where(
                table.c.customer_email == order.customer_email,
                table.c.status.in_(REOPENABLE_ATTEMPT_STATUSES),
                table.c.created_at >= since,
            )
            .values(**v)
            .returning(table.c.id),
        )
    except DBAPIError:
        matched = []
        log.warning(
            "checkout attempt update by email failed",
            exc_info=True,
            extra={"order_id": order.order_id},
        )
    if matched:
        return "email"

    row = dict(changes)
    row.update(
        {
            "session_id": f"order_{order.order_id}" if order.order_id else f"webhook_{int(now.timestamp() * 1000)}",
            "customer_email": order.customer_email,
            "customer_name": order.customer_name,
            "cart_items": [],
            "cart_total": order.total_amount,
            "gateway_order_id": order.order_id,
            "details": {
                "gateway_order_id": order.order_id,
                "failure_reason": resolution.failure_reason,
                "created_by": "webhook",
            },
            "created_at": now,
        }
    )
    _write_tolerating_drift(
        session,
        table,
        row,
        ATTEMPT_OPTIONAL_COLUMNS,
        lambda v: insert(table).values(**v).returning(table.c.id),
    )
    return "created"


def reopen_abandoned_carts(session: Session, customer_email: str, now: datetime | None = None) -> int:
    """Flip carts that looked recovered back to abandoned after a failed payment."""
    table = AbandonedCart.__table__
    with session.begin():
        result = session.execute(
            update(table)
            .where(table.c.customer_email == customer_email, table.c.status == "recovered")
            .values(status="abandoned", updated_at=now or utcnow())
        )
    return result.rowcount or 0


def _best_effort(
    outcome: ReconciliationOutcome,
    step: str,
    order_id: str | None,
    fn: Callable[..., T],
    *args: Any,
) -> T | None:
    try:
        return fn(*args)
    except Exception:
        RECONCILE_STEP_FAILURES_TOTAL.labels(step).inc()
        outcome.failed_steps.append(step)
        log.warning(
            "reconciliation step failed; continuing",
            exc_info=True,
            extra={"step": step, "order_id": order_id},
        )
        return None


def reconcile_order(
    session: Session,
    order: OrderPayload,
    resolution: StatusResolution,
    match_window_hours: int = 24,
    now: datetime | None = None,
) -> ReconciliationOutcome:
    now = now or utcnow()
    outcome = ReconciliationOutcome()
    oid = order.order_id

    outcome.customer_id = _best_effort(outcome, "customer", oid, upsert_customer, session, order)
    outcome.sale_id = _best_effort(
        outcome, "sale", oid, upsert_sale, session, order, resolution, outcome.customer_id, now
    )
    outcome.checkout_match = _best_effort(
        outcome,
        "checkout_attempt",
        oid,
        sync_checkout_attempt,
        session,
        order,
        resolution,
        outcome.sale_id,
        match_window_hours,
        now,
    )
    if resolution.is_failure and order.customer_email:
        outcome.carts_reopened = (
            _best_effort(
                outcome, "abandoned_cart", oid, reopen_abandoned_carts, session, order.customer_email, now
            )
            or 0
        )

    log.info(
        "order reconciled",
        extra={
            "order_id": oid,
            "status": resolution.value,
            "sale_id": str(outcome.sale_id) if outcome.sale_id else None,
            "checkout_match": outcome.checkout_match,
            "carts_reopened": outcome.carts_reopened,
            "failed_steps": outcome.failed_steps,
        },
    )
    return outcome
