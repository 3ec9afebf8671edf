from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from sqlalchemy import insert, select
from sqlalchemy.orm import Session

from order_sync.infrastructure.db.models import WebhookLog, utcnow
from order_sync.shared.logging import get_logger
from order_sync.shared.metrics import AUDIT_LOG_FAILURES_TOTAL

log = get_logger(__name__)


class WebhookLogDTO(BaseModel):
    id: str
    endpoint: str | None
    payload: Any
    response_status: int | None
    processing_time_ms: int | None
    error: str | None
    success: bool | None
    created_at: str


def record_delivery(
    session: Session,
    endpoint: str,
    payload: Any,
    response_status: int,
    processing_time_ms: int,
    error: str | None = None,
) -> bool:
    """Append one audit row; never raises.

    If the full row is rejected (typically a deployment missing one of the
    optional columns) a payload-only row is attempted instead.
    """
    now = utcnow()
    row = {
        "endpoint": endpoint,
        "payload": payload,
        "response_status": response_status,
        "processing_time_ms": processing_time_ms,
        "error": error,
        "success": response_status < 400,
        "processed": True,
        "processed_at": now,
        "created_at": now,
    }
    try:
        with session.begin():
            session.execute(insert(WebhookLog).values(**row))
        return True
    except Exception:
        AUDIT_LOG_FAILURES_TOTAL.labels("full").inc()
        log.warning(
            "webhook log write failed; retrying with payload only",
            exc_info=True,
            extra={"endpoint": endpoint, "response_status": response_status},
        )

    try:
        with session.begin():
            session.execute(insert(WebhookLog).values(payload=payload, created_at=now))
        return True
    except Exception:
        AUDIT_LOG_FAILURES_TOTAL.labels("minimal").inc()
        log.warning("webhook log minimal write failed", exc_info=True, extra={"endpoint": endpoint})
        return False


def list_webhook_logs(
    session: Session, endpoint: str | None = None, limit: int = 50
) -> list[WebhookLogDTO]:
    q = select(WebhookLog)
    if endpoint:
        q = q.where(WebhookLog.endpoint == endpoint)
    q = q.order_by(WebhookLog.created_at.desc()).limit(limit)
    with session.begin():
        rows = session.execute(q).scalars().all()
    return [_to_dto(r) for r in rows]


def _to_dto(w: WebhookLog) -> WebhookLogDTO:
    return WebhookLogDTO(
        id=str(w.id),
        endpoint=w.endpoint,
        payload=w.payload,
        response_status=w.response_status,
        processing_time_ms=w.processing_time_ms,
        error=w.error,
        success=w.success,
        created_at=w.created_at.isoformat(),
    )
