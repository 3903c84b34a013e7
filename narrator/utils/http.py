# narrator/utils/http.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from narrator.errors import ResponseParseError, TransportError, UpstreamError
from narrator.redaction import redact_secret

log = logging.getLogger("narrator.http")


def _error_message(err: Any) -> str:
    if isinstance(err, dict):
        msg = err.get("message") or err.get("status") or json.dumps(err)
        return str(msg)
    return str(err)


async def post_json(client: httpx.AsyncClient, url: str, api_key: str, body: Dict[str, Any],
                    timeout: Optional[float] = None, service: str = "upstream") -> Dict[str, Any]:
    """
    POST a JSON body with the API key as ?key=..., return the decoded JSON object.

    Raises TransportError on network failure/timeout, ResponseParseError on a
    non-JSON (or non-object) body and UpstreamError when the body carries an
    "error" field or the status is not 2xx.
    """
    kwargs: Dict[str, Any] = {"params": {"key": api_key}, "json": body}
    if timeout is not None:
        kwargs["timeout"] = timeout
    try:
        resp = await client.post(url, **kwargs)
    except httpx.TimeoutException as e:
        raise TransportError(f"{service} timed out: {redact_secret(str(e), [api_key])}") from e
    except httpx.TransportError as e:
        raise TransportError(f"{service} unreachable: {redact_secret(str(e), [api_key])}") from e
    except httpx.RequestError as e:
        # decoding failures, redirect loops
        raise TransportError(f"{service} request failed: {redact_secret(str(e), [api_key])}") from e

    try:
        payload = resp.json()
    except ValueError as e:
        raise ResponseParseError(f"{service} returned non-JSON body (HTTP {resp.status_code})") from e
    if not isinstance(payload, dict):
        raise ResponseParseError(f"{service} returned unexpected JSON ({type(payload).__name__})")

    if "error" in payload:
        msg = redact_secret(_error_message(payload["error"]), [api_key])
        raise UpstreamError(f"{service} error: {msg}", status_code=resp.status_code)
    if resp.is_error:
        raise UpstreamError(f"{service} error: HTTP {resp.status_code}", status_code=resp.status_code)

    log.debug("%s HTTP %s", service, resp.status_code)
    return payload
