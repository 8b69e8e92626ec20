"""DeepL API v2. Ключи с суффиксом ':fx' работают через бесплатный endpoint."""

import logging
from typing import List, Optional

import httpx

from ..errors import ProviderError
from ..models import TranslationResult
from .base import TranslationProvider

logger = logging.getLogger(__name__)

DEEPL_FREE_URL = "https://api-free.deepl.com/v2/translate"
DEEPL_PRO_URL = "https://api.deepl.com/v2/translate"


class DeepLProvider(TranslationProvider):
    name = "deepl"
    code_map = {
        "zh": "ZH", "zh-CN": "ZH", "zh-TW": "ZH",
        "en": "EN", "ja": "JA", "ko": "KO", "fr": "FR", "de": "DE",
        "es": "ES", "it": "IT", "pt": "PT", "ru": "RU", "nl": "NL",
        "pl": "PL", "sv": "SV", "da": "DA", "fi": "FI", "cs": "CS",
        "hu": "HU", "ro": "RO", "bg": "BG", "uk": "UK", "el": "EL",
        "tr": "TR", "id": "ID",
    }
    # Для целевого языка DeepL требует вариант английского и португальского
    target_overrides = {"en": "EN-US", "pt": "PT-PT"}

    def __init__(self, api_key: str, timeout: float = 30.0,
                 client: Optional[httpx.Client] = None):
        if not api_key:
            raise ProviderError("Для DeepL нужен api_key (TRANSLATOR_API_KEY)")
        self.api_key = api_key
        self.url = DEEPL_FREE_URL if api_key.endswith(":fx") else DEEPL_PRO_URL
        self._client = client or httpx.Client(timeout=timeout)

    def normalize_code(self, code: str) -> str:
        return self.code_map.get(code, code.upper())

    def translate(self, texts: List[str], source_lang: str,
                  target_lang: str) -> List[TranslationResult]:
        target = self.target_overrides.get(target_lang, self.normalize_code(target_lang))
        response = self._client.post(
            self.url,
            headers={"Authorization": f"DeepL-Auth-Key {self.api_key}"},
            data={
                "text": texts,
                "source_lang": self.normalize_code(source_lang),
                "target_lang": target,
            },
        )
        response.raise_for_status()
        data = response.json()
        try:
            items = data["translations"]
        except (KeyError, TypeError):
            raise ProviderError(f"Неожиданный ответ DeepL: {str(data)[:200]}")

        return [
            TranslationResult(original=text, translated=item.get("text", ""), source="api")
            for text, item in zip(texts, items)
        ]

    def close(self) -> None:
        self._client.close()
