# narrator/redaction.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import re

# Upstream APIs take the key as a query parameter, so it shows up in URLs
# echoed by httpx errors and in our own log lines.
KEY_PARAM_RE = re.compile(r"([?&](?:key|api_key|apikey)=)[^&\s\"']+", re.IGNORECASE)
EMAIL_RE = re.compile(r"\b[\w\.-]+@[\w\.-]+\.\w+\b")


def redact_text(s: str) -> str:
    if not s:
        return s
    s = KEY_PARAM_RE.sub(r"\1***", s)
    s = EMAIL_RE.sub("[REDACTED_EMAIL]", s)
    return s


def redact_secret(s: str, secrets) -> str:
    """Mask literal secret values (e.g. API keys) wherever they appear in s."""
    out = redact_text(s)
    for secret in secrets or ():
        if secret:
            out = out.replace(secret, "***")
    return out
