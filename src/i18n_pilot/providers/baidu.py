"""
Baidu Fanyi (通用翻译 API).

API принимает одну строку на запрос, подпись - md5(appid + q + salt + secret).
Ошибки частоты и таймаута сервиса поднимаются исключением, чтобы пакет
был повторён; прочие коды ошибок - ошибка конкретной строки.
"""

import hashlib
import logging
import random
from typing import List, Optional

import httpx

from ..errors import ProviderError
from ..models import TranslationResult
from .base import TranslationProvider

logger = logging.getLogger(__name__)

BAIDU_ENDPOINT = "https://fanyi-api.baidu.com/api/trans/vip/translate"

# Коды, после которых имеет смысл повторить запрос
RETRYABLE_CODES = {"52001", "52002", "54003"}


def make_sign(app_id: str, query: str, salt: str, secret: str) -> str:
    return hashlib.md5(f"{app_id}{query}{salt}{secret}".encode("utf-8")).hexdigest()


class BaiduProvider(TranslationProvider):
    name = "baidu"
    code_map = {
        "zh": "zh", "zh-CN": "zh", "zh-TW": "cht", "en": "en", "ja": "jp",
        "ko": "kor", "fr": "fra", "es": "spa", "ar": "ara", "de": "de",
        "ru": "ru", "pt": "pt", "it": "it", "th": "th", "vi": "vie",
    }

    def __init__(self, app_id: str, secret: str, timeout: float = 30.0,
                 client: Optional[httpx.Client] = None):
        if not app_id or not secret:
            raise ProviderError("Для Baidu нужны app_id и secret (BAIDU_APPID, BAIDU_SECRET)")
        self.app_id = app_id
        self.secret = secret
        self._client = client or httpx.Client(timeout=timeout)

    def translate(self, texts: List[str], source_lang: str,
                  target_lang: str) -> List[TranslationResult]:
        source = self.normalize_code(source_lang)
        target = self.normalize_code(target_lang)
        return [self._translate_one(text, source, target) for text in texts]

    def _translate_one(self, text: str, source: str, target: str) -> TranslationResult:
        salt = str(random.randint(32768, 65536))
        response = self._client.get(BAIDU_ENDPOINT, params={
            "q": text,
            "from": source,
            "to": target,
            "appid": self.app_id,
            "salt": salt,
            "sign": make_sign(self.app_id, text, salt, self.secret),
        })
        response.raise_for_status()
        data = response.json()

        error_code = data.get("error_code")
        if error_code and str(error_code) != "52000":
            message = f"Baidu error {error_code}: {data.get('error_msg', '')}"
            if str(error_code) in RETRYABLE_CODES:
                raise ProviderError(message)
            logger.warning(message)
            return TranslationResult(original=text, translated=text, error=message)

        # Многострочный текст возвращается построчно
        parts = [item.get("dst", "") for item in data.get("trans_result", [])]
        if not parts:
            return TranslationResult(original=text, translated=text, error="Baidu: пустой trans_result")
        return TranslationResult(original=text, translated="\n".join(parts), source="api")

    def close(self) -> None:
        self._client.close()
