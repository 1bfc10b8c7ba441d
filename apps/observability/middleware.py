"""
Request correlation middleware.

Stamps every response with `X-Request-Id` (echoing a valid inbound id or
minting a UUID4) and `X-Response-Time-ms`, and logs one line per request on the
`foodhub.request` logger.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from apps.observability.log_context import request_id_var

logger = logging.getLogger("foodhub.request")

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9\-]{8,64}$")


class RequestIdMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        inbound = (request.META.get("HTTP_X_REQUEST_ID") or "").strip()
        request_id = inbound if _REQUEST_ID_RE.match(inbound) else str(uuid.uuid4())
        request.request_id = request_id
        token = request_id_var.set(request_id)
        started = time.monotonic()
        try:
            response = self.get_response(request)
            latency_ms = int((time.monotonic() - started) * 1000)
            response["X-Request-Id"] = request_id
            response["X-Response-Time-ms"] = str(latency_ms)
            user = getattr(request, "user", None)
            logger.info(
                "request_completed",
                extra={
                    "path": request.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "latency_ms": latency_ms,
                    "user_id": getattr(user, "id", None) if user is not None else None,
                },
            )
            return response
        finally:
            request_id_var.reset(token)
