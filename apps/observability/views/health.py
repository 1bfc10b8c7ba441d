from __future__ import annotations

import logging

from django.db import connection
from django.http import JsonResponse

logger = logging.getLogger("foodhub.request")


def healthz(request):
    return JsonResponse({"status": "ok"})


def readyz(request):
    db_ok = True
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except Exception:
        logger.exception("readiness_db_check_failed")
        db_ok = False
    status_code = 200 if db_ok else 503
    return JsonResponse({"status": "ok" if db_ok else "degraded", "db": db_ok}, status=status_code)
