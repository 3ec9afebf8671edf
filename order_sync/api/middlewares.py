from __future__ import annotations

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from order_sync.shared.correlation import new_correlation_id, set_correlation_id
from order_sync.shared.metrics import HTTP_REQUEST_DURATION_SECONDS, HTTP_REQUESTS_TOTAL


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        cid = request.headers.get("X-Correlation-Id") or new_correlation_id()
        set_correlation_id(cid)

        start = time.time()
        try:
            response = await call_next(request)
        finally:
            elapsed = max(0.0, time.time() - start)
            HTTP_REQUEST_DURATION_SECONDS.labels(request.method, request.url.path).observe(elapsed)
        response.headers["X-Correlation-Id"] = cid
        HTTP_REQUESTS_TOTAL.labels(request.method, request.url.path, str(response.status_code)).inc()
        return response
