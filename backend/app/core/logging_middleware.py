"""Request logging middleware."""

import json
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("tracker.requests")

# Polled often; logged at DEBUG only
QUIET_PATHS = frozenset({"/health", "/api/v1/sync/state"})


def summarize_error_body(body: bytes) -> str:
    """Reduce an error response body to ``error (details)`` for the log line."""
    text = body.decode("utf-8", errors="replace")
    try:
        payload = json.loads(text)
    except ValueError:
        return text[:300]
    if not isinstance(payload, dict) or "error" not in payload:
        return text[:300]
    summary = str(payload["error"])
    if payload.get("details"):
        summary += f" ({str(payload['details'])[:300]})"
    return summary


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request as ``METHOD path → status (ms)``.

    Failed requests also carry the ``error``/``details`` pair from the
    response body so a rejected store operation is visible in the terminal.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        elapsed_ms = (time.monotonic() - start) * 1000

        path = request.url.path
        line = f"{request.method} {path} → {response.status_code} ({elapsed_ms:.0f}ms)"

        if response.status_code < 400 or not hasattr(response, "body_iterator"):
            log = logger.debug if path in QUIET_PATHS else logger.info
            log(line)
            return response

        chunks = [
            chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
            async for chunk in response.body_iterator
        ]
        body = b"".join(chunks)
        log = logger.warning if response.status_code < 500 else logger.error
        log(f"{line}: {summarize_error_body(body)}")

        # The body iterator is consumed; hand the client a fresh response
        return Response(
            content=body,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type,
        )
