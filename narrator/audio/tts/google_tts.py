# narrator/audio/tts/google_tts.py
import logging
from typing import Any, Dict, Optional

import httpx

from narrator.errors import MissingAudioError
from narrator.utils.http import post_json

logger = logging.getLogger("narrator.tts")

DEFAULT_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
DEFAULT_LANGUAGE = "en-US"
DEFAULT_VOICE = "en-US-Wavenet-D"


class GoogleTTSClient:
    """
    One call to Cloud Text-to-Speech `text:synthesize`.
    Returns the base64 `audioContent` untouched; decoding belongs to the store.
    """

    def __init__(self, client: httpx.AsyncClient, url: Optional[str] = None,
                 language_code: str = DEFAULT_LANGUAGE, voice_name: str = DEFAULT_VOICE,
                 audio_encoding: str = "MP3", timeout: Optional[float] = None):
        self.client = client
        self.url = url or DEFAULT_URL
        self.language_code = language_code
        self.voice_name = voice_name
        self.audio_encoding = audio_encoding
        self.timeout = timeout

    def build_body(self, text: str) -> Dict[str, Any]:
        return {
            "input": {"text": text},
            "voice": {"languageCode": self.language_code, "name": self.voice_name},
            "audioConfig": {"audioEncoding": self.audio_encoding},
        }

    async def synthesize(self, text: str, api_key: str) -> str:
        payload = await post_json(self.client, self.url, api_key, self.build_body(text),
                                  timeout=self.timeout, service="synthesis")
        audio = payload.get("audioContent")
        if not isinstance(audio, str) or not audio:
            raise MissingAudioError("synthesis response carried no audioContent")
        logger.debug("[tts] %s: %d base64 chars", self.voice_name, len(audio))
        return audio
