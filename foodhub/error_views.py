from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse

logger = logging.getLogger("foodhub.request")


def handle_404(request: HttpRequest, exception=None) -> JsonResponse:
    return JsonResponse({"error": "Not found.", "reason": "not_found"}, status=404)


def handle_500(request: HttpRequest) -> JsonResponse:
    logger.error(
        "server_error",
        extra={"status_code": 500, "error_code": "server_error", "path": request.path},
    )
    return JsonResponse({"error": "Internal server error.", "reason": "server_error"}, status=500)
