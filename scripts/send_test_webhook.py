#!/usr/bin/env python3
"""Sign and POST an Appmax-style webhook to a running instance (for smoke tests)."""

from __future__ import annotations

import hashlib
import hmac
import json
import os
import sys
import time
import uuid

import httpx

URL = os.getenv("WEBHOOK_URL", "http://localhost:8000/v1/webhooks/appmax")
SECRET = os.getenv("APPMAX_WEBHOOK_SECRET", "")


def main() -> int:
    event = sys.argv[1] if len(sys.argv) > 1 else "pix pago"
    order_id = sys.argv[2] if len(sys.argv) > 2 else f"ORD-{uuid.uuid4().hex[:8]}"
    email = sys.argv[3] if len(sys.argv) > 3 else "cliente@example.com"
    amount = sys.argv[4] if len(sys.argv) > 4 else "100.00"

    payload = {
        "event": event,
        "data": {
            "order_id": order_id,
            "total_amount": amount,
            "payment_method": "pix",
            "customer": {"email": email, "name": "Cliente Teste", "phone": "+55 11 99999-0000"},
        },
    }
    body = json.dumps(payload).encode()
    headers = {
        "Content-Type": "application/json",
        "X-Correlation-Id": uuid.uuid4().hex,
        "X-Appmax-Timestamp": str(int(time.time())),
    }
    if SECRET:
        digest = hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()
        headers["X-Appmax-Signature"] = f"sha256={digest}"

    response = httpx.post(URL, content=body, headers=headers, timeout=10.0)
    print(json.dumps({"status": response.status_code, "body": response.json()}))
    return 0 if response.status_code < 400 else 1


if __name__ == "__main__":
    sys.exit(main())
