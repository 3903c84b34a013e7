# narrator/llm/gemini_client.py
from typing import Any, Dict, Optional

import httpx

from narrator.utils.http import post_json

DEFAULT_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"


class GeminiClient:
    def __init__(self, client: httpx.AsyncClient, url: Optional[str] = None, timeout: Optional[float] = None):
        self.client = client
        self.url = url or DEFAULT_URL
        self.timeout = timeout

    @staticmethod
    def build_body(prompt_text: str) -> Dict[str, Any]:
        return {"contents": [{"parts": [{"text": prompt_text}]}]}

    @staticmethod
    def extract_text(payload: Dict[str, Any]) -> str:
        """candidates[0].content.parts[0].text, or "" when the model gave no candidate."""
        try:
            text = payload["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return ""
        return text if isinstance(text, str) else ""

    async def generate(self, prompt_text: str, api_key: str) -> str:
        payload = await post_json(self.client, self.url, api_key, self.build_body(prompt_text),
                                  timeout=self.timeout, service="generation")
        return self.extract_text(payload)
