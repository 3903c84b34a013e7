# narrator/ops/log_sink.py
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from narrator.redaction import redact_secret

logger = logging.getLogger("narrator.ops.log_sink")


class _UTCIsoFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()


class LogSink:
    """
    Append-only diagnostic log (server.log by default).

    One record per line, "<ISO-8601 UTC> - <message>". Writes go through a
    logging.FileHandler so concurrent writers never interleave partial lines.
    Opened in the app lifespan and handed to the pipeline; close() flushes and
    releases the file.
    """

    def __init__(self, log_path: str = "server.log", secrets: Iterable[str] = ()):
        self.log_path = log_path
        self._secrets = tuple(secrets)
        # unregistered logger: each sink owns its handler and never propagates
        self._logger = logging.Logger("narrator.sink")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False
        self._handler: Optional[logging.Handler] = None

    @property
    def is_open(self) -> bool:
        return self._handler is not None

    def open(self) -> "LogSink":
        if self._handler is not None:
            return self
        parent = os.path.dirname(self.log_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        handler = logging.FileHandler(self.log_path, mode="a", encoding="utf-8")
        handler.setFormatter(_UTCIsoFormatter("%(asctime)s - %(message)s"))
        self._logger.addHandler(handler)
        self._handler = handler
        return self

    def close(self) -> None:
        if self._handler is None:
            return
        self._handler.flush()
        self._logger.removeHandler(self._handler)
        self._handler.close()
        self._handler = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def log(self, message: str) -> None:
        if self._handler is None:
            logger.warning("log sink %s is closed; dropping record", self.log_path)
            return
        # newlines would break the one-record-per-line layout
        safe = redact_secret(str(message), self._secrets).replace("\n", "\\n")
        self._logger.info(safe)

    def event(self, stage: str, /, **fields: Any) -> None:
        if fields:
            self.log(f"{stage} {json.dumps(fields, ensure_ascii=False, default=str)}")
        else:
            self.log(stage)
