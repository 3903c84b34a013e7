# narrator/storage/artifacts.py
"""
Filesystem layout for query outputs.

    <root>/<sanitize(prompt)>/<sanitize(line)>.txt
    <root>/<sanitize(prompt)>/<sanitize(line)>.mp3

Paths are a pure function of (prompt, line), so a repeated request overwrites
its previous artifacts instead of adding a copy. No locking happens here.
"""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from pathlib import Path

from narrator.errors import DecodeError, StorageError
from narrator.utils.sanitize import sanitize

TEXT_SUFFIX = ".txt"
AUDIO_SUFFIX = ".mp3"


@dataclass(frozen=True)
class ArtifactKey:
    directory: str
    file_base: str

    def __str__(self) -> str:
        return f"{self.directory}/{self.file_base}"


class ArtifactStore:
    def __init__(self, root: str | Path = "output", public_prefix: str = "/output"):
        self.root = Path(root)
        self.public_prefix = "/" + public_prefix.strip("/")

    def key_for(self, prompt: str, line: str) -> ArtifactKey:
        return ArtifactKey(directory=sanitize(prompt), file_base=sanitize(line))

    def ensure_directory(self, directory_name: str) -> Path:
        path = self.root / directory_name
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create directory {path}: {e}") from e
        return path

    def text_path(self, key: ArtifactKey) -> Path:
        return self.root / key.directory / (key.file_base + TEXT_SUFFIX)

    def audio_path(self, key: ArtifactKey) -> Path:
        return self.root / key.directory / (key.file_base + AUDIO_SUFFIX)

    def public_path(self, key: ArtifactKey) -> str:
        """URL path under which the static mount serves the mp3."""
        return f"{self.public_prefix}/{key.directory}/{key.file_base}{AUDIO_SUFFIX}"

    def write_text(self, path: Path, content: str) -> None:
        try:
            Path(path).write_text(content, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"cannot write {path}: {e}") from e

    def write_binary(self, path: Path, base64_content: str) -> int:
        """Decode base64 and write the bytes. Returns the byte count."""
        try:
            data = base64.b64decode(base64_content, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise DecodeError(f"audio payload is not valid base64: {e}") from e
        try:
            Path(path).write_bytes(data)
        except OSError as e:
            raise StorageError(f"cannot write {path}: {e}") from e
        return len(data)
