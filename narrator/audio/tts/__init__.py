# narrator/audio/tts/__init__.py
from .google_tts import GoogleTTSClient, DEFAULT_VOICE, DEFAULT_LANGUAGE

__all__ = ["GoogleTTSClient", "DEFAULT_VOICE", "DEFAULT_LANGUAGE"]
