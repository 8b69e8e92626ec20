"""
Перевод пакета строк через LLM (litellm).

Модель получает пронумерованный список и должна вернуть JSON-массив
переводов той же длины. Если ответ не JSON, он разбирается построчно.
Маркеры __PH_<n>__ (защищённые плейсхолдеры) модель обязана сохранить.
"""

import json
import logging
import re
from typing import Any, Callable, List, Optional

import litellm

from ..models import TranslationResult
from .base import TranslationProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini/gemini-2.0-flash"

LANGUAGE_NAMES = {
    "zh-CN": "китайский (упрощённый)", "zh-TW": "китайский (традиционный)", "zh": "китайский",
    "en": "английский", "ru": "русский", "de": "немецкий", "fr": "французский",
    "es": "испанский", "ja": "японский", "ko": "корейский", "pt": "португальский",
    "it": "итальянский", "ar": "арабский", "hi": "хинди",
}


def build_batch_prompt(texts: List[str], source_lang: str, target_lang: str) -> str:
    """Строит промпт для батчевого перевода."""
    source_name = LANGUAGE_NAMES.get(source_lang, source_lang)
    target_name = LANGUAGE_NAMES.get(target_lang, target_lang)
    strings_block = "\n".join(f"{i}. {text}" for i, text in enumerate(texts, 1))

    return f"""Ты профессиональный переводчик интерфейсов программ.
Переведи строки с языка «{source_name}» на язык «{target_name}».

ПРАВИЛА:
1. Маркеры вида __PH_0__, __PH_1__ оставляй без изменений
2. Сохраняй HTML-теги, переносы строк и эмодзи
3. Переводи естественно и кратко, как принято в интерфейсах

СТРОКИ ДЛЯ ПЕРЕВОДА:
{strings_block}

ФОРМАТ ОТВЕТА: ТОЛЬКО JSON массив строк, без объяснений.
Верни РОВНО {len(texts)} переводов в том же порядке."""


def parse_batch_response(response: str, expected_count: int) -> List[str]:
    """Парсит ответ батчевого перевода."""
    # Убираем markdown блоки
    cleaned = response.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r'```(?:json)?\n?', '', cleaned).strip()

    try:
        translations = json.loads(cleaned)
        if isinstance(translations, list):
            translations = [str(t) if t is not None else "" for t in translations]
            # Добиваем до нужной длины пустыми строками
            while len(translations) < expected_count:
                translations.append("")
            return translations[:expected_count]
    except json.JSONDecodeError:
        pass

    # Fallback: парсим построчно (если LLM вернул не JSON)
    lines = []
    for line in cleaned.splitlines():
        line = line.strip()
        # Убираем нумерацию "1. " или "1) "
        line = re.sub(r'^\d+[\.\)]\s*', '', line)
        line = line.strip('"\'')
        if line:
            lines.append(line)

    while len(lines) < expected_count:
        lines.append("")
    return lines[:expected_count]


class LLMProvider(TranslationProvider):
    name = "llm"

    def __init__(self, model: str = DEFAULT_MODEL, temperature: float = 0.2,
                 max_tokens: int = 4096, completion: Optional[Callable[..., Any]] = None):
        self.model = model or DEFAULT_MODEL
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._completion = completion or litellm.completion

    def translate(self, texts: List[str], source_lang: str,
                  target_lang: str) -> List[TranslationResult]:
        prompt = build_batch_prompt(texts, source_lang, target_lang)
        response = self._completion(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        content = response.choices[0].message.content or ""
        translations = parse_batch_response(content, len(texts))

        results = []
        for text, translated in zip(texts, translations):
            if translated:
                results.append(TranslationResult(original=text, translated=translated, source="api"))
            else:
                results.append(TranslationResult(original=text, translated=text,
                                                 error="модель не вернула перевод"))
        return results
