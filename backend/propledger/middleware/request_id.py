# backend/propledger/middleware/request_id.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return request_id_ctx.get()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Correlates log lines with a request.

    A caller-supplied X-Request-ID is reused as is; otherwise a fresh uuid4
    is minted. The id lives in request_id_ctx for the duration of the call
    (JsonFormatter reads it from there) and is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # starlette headers are case-insensitive
        rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or uuid.uuid4().hex

        request.state.request_id = rid
        token = request_id_ctx.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
