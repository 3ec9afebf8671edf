from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from order_sync.api.deps.conversions import get_conversions, get_purchase_dedupe
from order_sync.api.deps.db import get_db
from order_sync.application.dispatch import dispatch_purchase
from order_sync.application.ingestion import ingest_delivery
from order_sync.application.ports.conversions import ConversionsPort
from order_sync.infrastructure.redis.dedupe import PurchaseDedupe

router = APIRouter(prefix="/v1/webhooks", tags=["gateway-webhooks"])

APPMAX_ENDPOINT = "/v1/webhooks/appmax"


@router.post("/appmax")
async def appmax_webhook(
    request: Request,
    db: Session = Depends(get_db),
    conversions: ConversionsPort = Depends(get_conversions),
    dedupe: PurchaseDedupe | None = Depends(get_purchase_dedupe),
):
    settings = request.app.state.settings
    raw_body = await request.body()
    outcome = await run_in_threadpool(
        ingest_delivery, db, settings, APPMAX_ENDPOINT, raw_body, request.headers
    )
    if outcome.purchase is not None:
        await dispatch_purchase(
            conversions,
            outcome.purchase,
            timeout_seconds=settings.conversions_timeout_seconds,
            dedupe=dedupe,
        )
    return JSONResponse(outcome.body, status_code=outcome.status_code)
