from __future__ import annotations

from fastapi import Request

from order_sync.application.ports.conversions import ConversionsPort
from order_sync.infrastructure.redis.client import get_async_redis
from order_sync.infrastructure.redis.dedupe import PurchaseDedupe
from order_sync.shared.logging import get_logger

log = get_logger(__name__)


def get_conversions(request: Request) -> ConversionsPort:
    return request.app.state.conversions


def get_purchase_dedupe(request: Request) -> PurchaseDedupe | None:
    try:
        redis = get_async_redis()
    except RuntimeError:
        log.warning("redis not initialized; purchase dedupe disabled")
        return None
    return PurchaseDedupe(redis, request.app.state.settings.purchase_dedupe_ttl_seconds)
