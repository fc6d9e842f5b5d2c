"""
NoteSync Backend — Request ID Middleware
==========================================

What:  Assigns a correlation ID to each request and returns it in X-Request-ID.
Why:   A create request fans out into record, storage and list calls; the
       shared ID ties their log lines together. Error responses carry the
       same ID so a user report can be matched to the server logs.
How:   A client-supplied X-Request-ID is reused only if it is a short token of
       letters, digits, "-" and "_"; anything else is replaced, since the value
       is echoed into every log line and error body. Generated IDs are the
       first 8 hex characters of a UUID4.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def resolve_request_id(supplied: str) -> str:
    """Keep a well-formed client ID, otherwise generate one."""
    if supplied and _VALID_REQUEST_ID.match(supplied):
        return supplied
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to the request state, the context and the response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER, ""))
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
