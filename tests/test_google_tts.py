import asyncio
import json

import httpx
import pytest

from narrator.audio.tts import GoogleTTSClient
from narrator.errors import MissingAudioError, ResponseParseError, TransportError, UpstreamError

from conftest import AUDIO_B64, TTS_HOST, Upstream


def _synthesize(upstream: Upstream, text: str = "Once upon a time.", **kw):
    async def go():
        async with httpx.AsyncClient(transport=upstream.transport()) as client:
            return await GoogleTTSClient(client, **kw).synthesize(text, "tts-key")
    return asyncio.run(go())


def test_request_shape_and_returns_base64_untouched():
    up = Upstream()
    assert _synthesize(up, "Hello.") == AUDIO_B64
    (req,) = up.calls(TTS_HOST)
    assert req.url.path == "/v1/text:synthesize"
    assert req.url.params["key"] == "tts-key"
    assert json.loads(req.content) == {
        "input": {"text": "Hello."},
        "voice": {"languageCode": "en-US", "name": "en-US-Wavenet-D"},
        "audioConfig": {"audioEncoding": "MP3"},
    }


def test_voice_is_configurable():
    up = Upstream()
    _synthesize(up, voice_name="en-US-Neural2-F")
    assert up.bodies(TTS_HOST)[0]["voice"]["name"] == "en-US-Neural2-F"


@pytest.mark.parametrize("payload", [{}, {"audioContent": ""}, {"audioContent": None}])
def test_success_without_audio_is_missing_audio(payload):
    with pytest.raises(MissingAudioError):
        _synthesize(Upstream(tts=payload))


def test_error_payload():
    up = Upstream(tts=httpx.Response(400, json={"error": {"message": "Voice not found"}}))
    with pytest.raises(UpstreamError, match="Voice not found"):
        _synthesize(up)


def test_non_json_and_transport():
    with pytest.raises(ResponseParseError):
        _synthesize(Upstream(tts=httpx.Response(200, text="garbage")))
    with pytest.raises(TransportError):
        _synthesize(Upstream(tts=httpx.ConnectTimeout("slow")))
