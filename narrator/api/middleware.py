"""
Request logging middleware.

- One line per request into the app's LogSink: method, path, status, latency.
- Request bodies are never logged (prompts may be personal); query strings
  are redacted before they reach the log.
"""
from __future__ import annotations
import logging
from time import perf_counter

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from narrator.redaction import redact_text

log = logging.getLogger("narrator.middleware")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        t0 = perf_counter()
        response: Response = await call_next(request)
        latency_ms = int(round((perf_counter() - t0) * 1000))

        target = request.url.path
        if request.url.query:
            target = redact_text(target + "?" + request.url.query)
        line = f"{request.method} {target} - {response.status_code} ({latency_ms} ms)"
        log.info("REQ %s", line)
        sink = getattr(request.app.state, "sink", None)
        if sink is not None and sink.is_open:
            sink.log(line)
        return response
