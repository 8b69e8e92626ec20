"""Google Cloud Translation API v2."""

import logging
from typing import List, Optional

import httpx

from ..errors import ProviderError
from ..models import TranslationResult
from .base import TranslationProvider

logger = logging.getLogger(__name__)

GOOGLE_ENDPOINT = "https://translation.googleapis.com/language/translate/v2"


class GoogleProvider(TranslationProvider):
    name = "google"
    code_map = {"zh": "zh-CN", "zh-hans": "zh-CN", "zh-hant": "zh-TW", "he": "iw"}

    def __init__(self, api_key: str, timeout: float = 30.0,
                 client: Optional[httpx.Client] = None):
        if not api_key:
            raise ProviderError("Для Google Translate нужен api_key (TRANSLATOR_API_KEY)")
        self.api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def translate(self, texts: List[str], source_lang: str,
                  target_lang: str) -> List[TranslationResult]:
        response = self._client.post(
            GOOGLE_ENDPOINT,
            params={"key": self.api_key},
            json={
                "q": texts,
                "source": self.normalize_code(source_lang),
                "target": self.normalize_code(target_lang),
                "format": "text",
            },
        )
        response.raise_for_status()
        data = response.json()
        try:
            items = data["data"]["translations"]
        except (KeyError, TypeError):
            raise ProviderError(f"Неожиданный ответ Google: {str(data)[:200]}")

        return [
            TranslationResult(original=text, translated=item.get("translatedText", ""), source="api")
            for text, item in zip(texts, items)
        ]

    def close(self) -> None:
        self._client.close()
