# narrator/utils/clock.py
import time
from contextlib import contextmanager
from typing import Dict, Iterator


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class Spans:
    """
    Per-stage latency accounting for one pipeline run.

        spans = Spans()
        with spans.span("generating"): ...
        spans.as_dict()  # {"generating": 812, "total_ms": 815}
    """

    def __init__(self):
        self._acc: Dict[str, int] = {}
        self._t0 = monotonic_ms()

    @contextmanager
    def span(self, name: str) -> Iterator[None]:
        start = monotonic_ms()
        try:
            yield
        finally:
            self._acc[name] = self._acc.get(name, 0) + (monotonic_ms() - start)

    def ms(self, name: str) -> int:
        return int(self._acc.get(name, 0))

    def as_dict(self) -> Dict[str, int]:
        out = dict(self._acc)
        out["total_ms"] = monotonic_ms() - self._t0
        return out
