# narrator/config.py
"""
Settings loader.

Order of precedence (last wins): built-in defaults, configs/narrator.yaml
(or $NARRATOR_CONFIG), NARRATOR_* environment overrides. Secrets are only ever
read from the environment (a local .env is loaded first via python-dotenv).
A missing secret is not an error here; the pipeline reports it per request.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

log = logging.getLogger("narrator.config")

DEFAULT_CONFIG_PATH = "configs/narrator.yaml"
GENERATION_KEY_ENV = "GEMINI_API_KEY"
SYNTHESIS_KEY_ENV = "GOOGLE_TTS_API_KEY"


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    output_dir: str = "output"
    public_dir: str = "public"
    log_path: str = "server.log"


class HttpSettings(BaseModel):
    timeout_s: float = 30.0


class GenerationSettings(BaseModel):
    url: str = "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"


class SynthesisSettings(BaseModel):
    url: str = "https://texttospeech.googleapis.com/v1/text:synthesize"
    language_code: str = "en-US"
    voice_name: str = "en-US-Wavenet-D"
    audio_encoding: str = "MP3"


class PipelineSettings(BaseModel):
    serialize_same_key: bool = True
    text_write_fatal: bool = False
    audio_write_fatal: bool = True


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    synthesis: SynthesisSettings = Field(default_factory=SynthesisSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)

    # secrets
    generation_key: Optional[str] = Field(default=None, repr=False)
    synthesis_key: Optional[str] = Field(default=None, repr=False)

    def secrets(self) -> tuple:
        return tuple(s for s in (self.generation_key, self.synthesis_key) if s)


def _load_yaml(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        log.info("Config file %s not found; using defaults", path)
        return {}
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    return data


def _env(name: str) -> Optional[str]:
    val = os.getenv(name, "").strip()
    return val or None


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    overrides = {
        ("server", "output_dir"): _env("NARRATOR_OUTPUT_DIR"),
        ("server", "public_dir"): _env("NARRATOR_PUBLIC_DIR"),
        ("server", "log_path"): _env("NARRATOR_LOG_PATH"),
        ("server", "port"): _env("NARRATOR_PORT"),
        ("http", "timeout_s"): _env("NARRATOR_HTTP_TIMEOUT"),
        ("synthesis", "voice_name"): _env("NARRATOR_TTS_VOICE"),
    }
    for (section, key), val in overrides.items():
        if val is not None:
            raw.setdefault(section, {})[key] = val
    return raw


def load_settings(config_path: Optional[str] = None, use_dotenv: bool = True) -> Settings:
    if use_dotenv:
        load_dotenv()
    path = config_path or os.getenv("NARRATOR_CONFIG", DEFAULT_CONFIG_PATH)
    raw = _apply_env_overrides(_load_yaml(path))
    raw["generation_key"] = _env(GENERATION_KEY_ENV)
    raw["synthesis_key"] = _env(SYNTHESIS_KEY_ENV)
    return Settings.model_validate(raw)
