"""
NoteSync Backend — Request Logging Middleware
===============================================

What:  One access log line per HTTP request, naming the note operation it ran.
How:   After the router has matched, the endpoint name (list_notes,
       create_note, delete_note, serve_file, ...) and the note id path
       parameter are read from the request scope. The level follows the
       status code (5xx ERROR, 4xx WARNING, else INFO).

Example:
    DELETE /api/notes/{id} 204 12.4ms op=delete_note note=0b9e4c1e [a1b2c3d4]

What we log vs what we DON'T log (privacy):
    ✅ Log: method, operation, note id, status, duration, request ID
    ❌ Don't log: note text, image bytes, the identity header, image paths
       (they embed the identity), signed URL query strings (they grant
       access to an image until they expire)
"""

import logging
import time
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notesync.middleware.request_id import request_id_var

logger = logging.getLogger("notesync.access")

# Probes run every few seconds
_QUIET_PATHS = {"/health"}


def _operation(request: Request) -> str:
    """Name of the endpoint the router dispatched to, or "unrouted"."""
    endpoint = request.scope.get("endpoint")
    return getattr(endpoint, "__name__", "unrouted")


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, operation, note id, status and duration of every request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        # Populated by the router on the shared scope during call_next
        operation = _operation(request)
        note_id: Optional[str] = request.path_params.get("note_id")
        rid = request_id_var.get("")

        logger.log(
            log_level,
            "%s %s %d %.1fms op=%s note=%s [%s]",
            request.method,
            _route_template(request),
            status,
            duration_ms,
            operation,
            note_id or "-",
            rid,
            extra={
                "request_id": rid,
                "method": request.method,
                "operation": operation,
                "note_id": note_id,
                "status": status,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
