# narrator/errors.py
"""
Error taxonomy for the query pipeline.

Every failure raised by a client, the artifact store or the pipeline itself is
a NarratorError. The pipeline wraps the terminal one in PipelineFailed so the
HTTP layer only needs to know the failing stage.
"""
from __future__ import annotations


class NarratorError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(NarratorError):
    """A required credential or setting is missing."""


class ValidationError(NarratorError):
    """The request itself is unusable (empty prompt/line)."""


class TransportError(NarratorError):
    """Network failure or timeout while reaching an upstream API."""


class UpstreamError(NarratorError):
    """The upstream API answered with a structured error payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ResponseParseError(NarratorError):
    """The upstream body was not JSON or had an unexpected shape."""


class MissingAudioError(NarratorError):
    """Synthesis succeeded but carried no audio payload."""


class StorageError(NarratorError):
    """A filesystem operation failed."""


class DecodeError(NarratorError):
    """The audio payload was not valid base64."""


class PipelineFailed(NarratorError):
    """Terminal Failed(stage, cause) state of a pipeline run."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"{stage}: {cause}")
        self.stage = stage
        self.cause = cause

    @property
    def message(self) -> str:
        return str(self.cause)
