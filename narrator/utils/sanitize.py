# narrator/utils/sanitize.py
import re

PLACEHOLDER = "_"

_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def sanitize(text: str) -> str:
    """
    Map arbitrary text to a filesystem-safe token over [A-Za-z0-9_].

    Anything that is neither ASCII alphanumeric nor whitespace becomes the
    placeholder; each whitespace run then collapses to one underscore.
    Distinct inputs may collide ("a.b" and "a b" -> "a_b"); they share a key.
    """
    out = _DISALLOWED_RE.sub(PLACEHOLDER, text or "")
    return _WHITESPACE_RE.sub("_", out)
