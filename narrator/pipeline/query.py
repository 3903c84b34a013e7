# narrator/pipeline/query.py
"""
prompt + line -> generated text -> .txt -> synthesized speech -> .mp3

Stages run strictly in order (synthesis consumes generation's output):

    validating -> generating -> persisting_text -> synthesizing -> persisting_audio -> done

Any stage may end the run with PipelineFailed(stage, cause). The text write
is best-effort by default (audio is the deliverable); the audio write is
fatal. Both are switchable through PersistencePolicy. Nothing is retried.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, nullcontext
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from starlette.concurrency import run_in_threadpool

from narrator.errors import (
    ConfigError,
    DecodeError,
    NarratorError,
    PipelineFailed,
    StorageError,
    ValidationError,
)
from narrator.storage.artifacts import ArtifactKey, ArtifactStore
from narrator.utils.clock import Spans

log = logging.getLogger("narrator.pipeline")

GENERATION_KEY = "generation"
SYNTHESIS_KEY = "synthesis"

TTS_SUFFIX = (
    "Respond in plain spoken English suitable for a text-to-speech voice: "
    "no markdown, no bullet points, no headings, no emojis and no special characters."
)


class Stage(str, Enum):
    VALIDATING = "validating"
    GENERATING = "generating"
    PERSISTING_TEXT = "persisting_text"
    SYNTHESIZING = "synthesizing"
    PERSISTING_AUDIO = "persisting_audio"
    DONE = "done"


# Failure stages reported to the caller
FAIL_CONFIG = "config"
FAIL_VALIDATION = "validation"
FAIL_STORAGE = "storage"
FAIL_GENERATION = "generation"
FAIL_SYNTHESIS = "synthesis"


@dataclass(frozen=True)
class PersistencePolicy:
    text_fatal: bool = False
    audio_fatal: bool = True


@dataclass
class PipelineResult:
    response_text: str
    audio_path: Optional[str]
    key: ArtifactKey
    timings: Dict[str, int] = field(default_factory=dict)

    def to_response(self) -> Dict[str, Any]:
        return {"response": self.response_text, "filePath": self.audio_path}


class KeyedLocks:
    """One asyncio.Lock per ArtifactKey; an entry lives only while someone holds or waits on it."""

    def __init__(self):
        self._locks: Dict[ArtifactKey, list] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: ArtifactKey):
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._locks.pop(key, None)


def build_generation_prompt(prompt: str, line: str) -> str:
    return f"{prompt} {line} {TTS_SUFFIX}"


class QueryPipeline:
    def __init__(self, generator, synthesizer, store: ArtifactStore, secrets: Mapping[str, Optional[str]],
                 sink, policy: Optional[PersistencePolicy] = None, serialize_same_key: bool = True):
        self.generator = generator
        self.synthesizer = synthesizer
        self.store = store
        self.secrets = secrets
        self.sink = sink
        self.policy = policy or PersistencePolicy()
        self.locks: Optional[KeyedLocks] = KeyedLocks() if serialize_same_key else None

    def _fail(self, stage: str, cause: NarratorError) -> PipelineFailed:
        log.warning("pipeline failed at %s: %s", stage, cause)
        self.sink.event("failed", stage=stage, error=type(cause).__name__, message=str(cause))
        return PipelineFailed(stage, cause)

    def _enter(self, stage: Stage, **fields: Any) -> None:
        self.sink.event(stage.value, **fields)

    def _validate(self, prompt: str, line: str) -> tuple:
        missing = [name for name in (GENERATION_KEY, SYNTHESIS_KEY) if not self.secrets.get(name)]
        if missing:
            err = ConfigError("missing API key(s): " + ", ".join(missing))
            raise self._fail(FAIL_CONFIG, err) from err
        prompt = (prompt or "").strip()
        line = (line or "").strip()
        if not prompt or not line:
            err = ValidationError("prompt and line are required")
            raise self._fail(FAIL_VALIDATION, err) from err
        return prompt, line

    async def run(self, prompt: str, line: str) -> PipelineResult:
        spans = Spans()
        self._enter(Stage.VALIDATING)
        prompt, line = self._validate(prompt, line)

        key = self.store.key_for(prompt, line)
        try:
            await run_in_threadpool(self.store.ensure_directory, key.directory)
        except StorageError as e:
            raise self._fail(FAIL_STORAGE, e) from e

        guard = self.locks.hold(key) if self.locks is not None else nullcontext()
        async with guard:
            result = await self._run_stages(prompt, line, key, spans)

        result.timings = spans.as_dict()
        self.sink.event(Stage.DONE.value, key=str(key), file_path=result.audio_path, timings=result.timings)
        return result

    async def _run_stages(self, prompt: str, line: str, key: ArtifactKey, spans: Spans) -> PipelineResult:
        self._enter(Stage.GENERATING, key=str(key))
        try:
            with spans.span(Stage.GENERATING.value):
                text = await self.generator.generate(build_generation_prompt(prompt, line),
                                                     self.secrets[GENERATION_KEY])
        except NarratorError as e:
            raise self._fail(FAIL_GENERATION, e) from e

        text_path = self.store.text_path(key)
        self._enter(Stage.PERSISTING_TEXT, path=str(text_path), chars=len(text))
        try:
            with spans.span(Stage.PERSISTING_TEXT.value):
                await run_in_threadpool(self.store.write_text, text_path, text)
        except StorageError as e:
            if self.policy.text_fatal:
                raise self._fail(FAIL_STORAGE, e) from e
            log.warning("text write failed, continuing with in-memory text: %s", e)
            self.sink.event("text_write_failed", path=str(text_path), message=str(e))

        self._enter(Stage.SYNTHESIZING, key=str(key))
        try:
            with spans.span(Stage.SYNTHESIZING.value):
                audio_b64 = await self.synthesizer.synthesize(text, self.secrets[SYNTHESIS_KEY])
        except NarratorError as e:
            raise self._fail(FAIL_SYNTHESIS, e) from e

        audio_path = self.store.audio_path(key)
        public_path: Optional[str] = self.store.public_path(key)
        self._enter(Stage.PERSISTING_AUDIO, path=str(audio_path))
        try:
            with spans.span(Stage.PERSISTING_AUDIO.value):
                size = await run_in_threadpool(self.store.write_binary, audio_path, audio_b64)
            log.info("wrote %s (%d bytes)", audio_path, size)
        except (StorageError, DecodeError) as e:
            if self.policy.audio_fatal:
                raise self._fail(FAIL_STORAGE, e) from e
            log.warning("audio write failed: %s", e)
            self.sink.event("audio_write_failed", path=str(audio_path), message=str(e))
            public_path = None

        return PipelineResult(response_text=text, audio_path=public_path, key=key)
