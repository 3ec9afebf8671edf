from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from order_sync.api.deps.auth import require_permission
from order_sync.api.deps.db import get_db
from order_sync.application.audit import WebhookLogDTO, list_webhook_logs

router = APIRouter(prefix="/v1", tags=["webhook-logs"])


@router.get("/webhook-logs", response_model=list[WebhookLogDTO])
def list_(
    endpoint: Optional[str] = Query(default=None, max_length=255),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    _: object = Depends(require_permission("webhooks:read")),
):
    return list_webhook_logs(db, endpoint, limit)
