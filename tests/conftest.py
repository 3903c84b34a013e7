import base64
import json
from pathlib import Path

import httpx
import pytest

from narrator.config import ServerSettings, Settings
from narrator.ops.log_sink import LogSink

REPO_ROOT = Path(__file__).resolve().parents[1]

GEN_HOST = "generativelanguage.googleapis.com"
TTS_HOST = "texttospeech.googleapis.com"

AUDIO_BYTES = b"ID3\x03\x00\x00\x00fake-mp3-frames"
AUDIO_B64 = base64.b64encode(AUDIO_BYTES).decode("ascii")


def gemini_ok(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


class Upstream:
    """
    MockTransport handler standing in for both Google APIs.
    Set .gen / .tts to a dict (JSON 200), an httpx.Response, or an exception instance.
    """

    def __init__(self, gen=None, tts=None):
        self.gen = gen if gen is not None else gemini_ok("Once upon a time.")
        self.tts = tts if tts is not None else {"audioContent": AUDIO_B64}
        self.requests = []

    def calls(self, host: str) -> list:
        return [r for r in self.requests if r.url.host == host]

    def bodies(self, host: str) -> list:
        return [json.loads(r.content) for r in self.calls(host)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        planned = self.gen if request.url.host == GEN_HOST else self.tts
        if isinstance(planned, Exception):
            raise planned
        if isinstance(planned, httpx.Response):
            return planned
        return httpx.Response(200, json=planned)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def out_root(tmp_path):
    return tmp_path / "output"


@pytest.fixture
def sink(tmp_path):
    s = LogSink(str(tmp_path / "server.log"), secrets=("gen-key", "tts-key")).open()
    yield s
    s.close()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        server=ServerSettings(
            output_dir=str(tmp_path / "output"),
            public_dir=str(REPO_ROOT / "public"),
            log_path=str(tmp_path / "server.log"),
        ),
        generation_key="gen-key",
        synthesis_key="tts-key",
    )
