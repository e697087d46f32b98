"""
Pure ASGI request-id middleware.

Reuses an inbound ``X-Request-ID`` header or mints a ULID, exposes it to
logging through the request context and echoes it on the response.
"""

import logging
import time

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.request_context import reset_request_id, set_request_id
from ..core.ulid_helper import generate_ulid

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddlewareASGI:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = Headers(scope=scope).get(REQUEST_ID_HEADER)
        request_id = (incoming or "").strip()[:64] or generate_ulid()
        token = set_request_id(request_id)
        start_time = time.time()
        path = scope.get("path", "")

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers[REQUEST_ID_HEADER] = request_id
                elapsed_ms = (time.time() - start_time) * 1000
                logger.info(
                    "%s %s -> %s (%.2fms)",
                    scope.get("method", ""),
                    path,
                    message.get("status"),
                    elapsed_ms,
                )
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            reset_request_id(token)
