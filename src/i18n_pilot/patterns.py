"""
PatternMatcher - чистые функции работы с текстом.

- определение письменности (по умолчанию китайская, han)
- поиск плейсхолдеров и HTML-тегов, сравнение исходника и перевода
- маскирование плейсхолдеров перед машинным переводом и восстановление
- расстояние Левенштейна и похожесть строк
- нормализация языковых кодов и генерация ключей

Ни одна функция не бросает исключений на пустой строке или ASCII-тексте.
"""

import hashlib
import re
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple

from .models import ComparisonResult, PlaceholderSet, ProtectedText


# Диапазоны символов письменности и её пунктуации
SCRIPT_RANGES: Dict[str, Tuple[str, str]] = {
    "han": ("\u4e00-\u9fa5", "\u3000-\u303f\uff00-\uffef"),
    "cyrillic": ("\u0400-\u04ff", ""),
    "hangul": ("\uac00-\ud7af\u1100-\u11ff", "\u3000-\u303f"),
    "kana": ("\u3040-\u30ff", "\u3000-\u303f\uff00-\uffef"),
}

DEFAULT_SCRIPT = "han"

# Семейства плейсхолдеров в порядке приоритета
PLACEHOLDER_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("curly", re.compile(r"\{[^}]+\}")),
    ("percent", re.compile(r"%(?:\d+\$)?[sdf]")),
    ("dollar", re.compile(r"\$\{?[a-zA-Z_][a-zA-Z0-9_]*\}?")),
    ("angular", re.compile(r"\{\{[^}]+\}\}|\[\[[^\]]+\]\]")),
    ("colon", re.compile(r":[a-zA-Z_][a-zA-Z0-9_]*")),
]

HTML_TAG_RE = re.compile(r"</?[a-zA-Z][a-zA-Z0-9]*\b[^>]*>")
WHITESPACE_RE = re.compile(r"\s+")

MARKER_PREFIX = "__PH_"

DEFAULT_SIMILARITY_THRESHOLD = 0.7

# Коды языков, которые понимают поддерживаемые провайдеры
VALID_CODES = frozenset([
    "en", "zh", "zh-CN", "zh-TW", "ja", "ko", "fr", "de", "es", "it",
    "pt", "ru", "ar", "hi", "th", "vi", "id", "ms", "tr", "pl",
    "nl", "sv", "da", "no", "fi", "cs", "hu", "ro", "bg", "uk",
    "el", "he", "fa", "ur", "bn", "ta", "te", "mr", "gu", "kn",
])

CODE_ALIASES = {
    "zh-cn": "zh-CN",
    "zh-tw": "zh-TW",
    "zh-hans": "zh-CN",
    "zh-hant": "zh-TW",
    "chinese": "zh-CN",
    "english": "en",
    "japanese": "ja",
    "korean": "ko",
}

KEY_MAX_LENGTH = 20
HASH_KEY_LENGTH = 8

_script_cache: Dict[str, Tuple["re.Pattern[str]", "re.Pattern[str]"]] = {}


def _script_patterns(script: str) -> Tuple["re.Pattern[str]", "re.Pattern[str]"]:
    """Возвращает (regex одного символа, regex серии с пунктуацией)."""
    if script not in _script_cache:
        if script not in SCRIPT_RANGES:
            raise ValueError(f"Неизвестная письменность: {script!r}")
        letters, punctuation = SCRIPT_RANGES[script]
        _script_cache[script] = (
            re.compile(f"[{letters}]"),
            re.compile(f"[{letters}{punctuation}]+"),
        )
    return _script_cache[script]


# ── Письменность ──

def has_script(text: str, script: str = DEFAULT_SCRIPT) -> bool:
    """Есть ли в тексте хотя бы один символ письменности."""
    if not text:
        return False
    return _script_patterns(script)[0].search(text) is not None


def extract_runs(text: str, script: str = DEFAULT_SCRIPT) -> List[str]:
    """Различные максимальные серии символов письменности в порядке появления."""
    if not text:
        return []
    char_re, run_re = _script_patterns(script)
    seen = []
    for run in run_re.findall(text):
        # Серия из одной пунктуации текстом не считается
        if char_re.search(run) and run not in seen:
            seen.append(run)
    return seen


def extract_script_text(text: str, script: str = DEFAULT_SCRIPT) -> Optional[str]:
    """Обрезанный текст, если в нём есть письменность, иначе None."""
    if not has_script(text, script):
        return None
    stripped = text.strip()
    return stripped or None


def clean_text(text: str) -> str:
    """Схлопывает пробельные серии в один пробел и обрезает края."""
    return WHITESPACE_RE.sub(" ", text or "").strip()


# ── Похожесть ──

def levenshtein(a: str, b: str) -> int:
    """Классическое расстояние Левенштейна (вставка, удаление, замена по 1)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """1 - lev(a, b) / max(len). Две пустые строки похожи на 1.0."""
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - levenshtein(a, b) / max(len(a), len(b))


def find_most_similar(target: str, candidates: Iterable[str],
                      threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> Optional[Tuple[str, float]]:
    """Самый похожий кандидат строго выше порога или None."""
    best: Optional[Tuple[str, float]] = None
    for candidate in candidates:
        score = similarity(target, candidate)
        if score > threshold and (best is None or score > best[1]):
            best = (candidate, score)
    return best


# ── Плейсхолдеры ──

def extract_placeholders(text: str) -> PlaceholderSet:
    """
    Находит плейсхолдеры всех семейств.

    Тип - первое по приоритету семейство с совпадениями, но в список
    попадают совпадения всех семейств: валидация сравнивает полный набор.
    """
    result = PlaceholderSet()
    if not text:
        return result

    for family, pattern in PLACEHOLDER_PATTERNS:
        matches = pattern.findall(text)
        if not matches:
            continue
        if result.type == "none":
            result.type = family
        for token in matches:
            if token not in result.placeholders:
                result.placeholders.append(token)
    return result


def validate_placeholders(source: str, translation: str) -> ComparisonResult:
    """Сравнивает наборы плейсхолдеров исходника и перевода."""
    source_set = extract_placeholders(source).placeholders
    target_set = extract_placeholders(translation).placeholders
    missing = [ph for ph in source_set if ph not in target_set]
    extra = [ph for ph in target_set if ph not in source_set]
    return ComparisonResult(valid=not missing and not extra, missing=missing, extra=extra)


def _placeholder_occurrences(text: str) -> List[Tuple[int, int]]:
    """Все вхождения плейсхолдеров без пересечений, слева направо."""
    spans = []
    for _, pattern in PLACEHOLDER_PATTERNS:
        spans.extend(m.span() for m in pattern.finditer(text))
    # При одинаковом начале побеждает более длинное совпадение
    spans.sort(key=lambda s: (s[0], -(s[1] - s[0])))

    chosen: List[Tuple[int, int]] = []
    last_end = -1
    for start, end in spans:
        if start >= last_end:
            chosen.append((start, end))
            last_end = end
    return chosen


def marker_prefix(text: str, base: str = MARKER_PREFIX) -> str:
    """Префикс маркеров, которого нет в самом тексте (__PH_, __PH1_, __PH2_, ...)."""
    prefix = base
    attempt = 0
    while prefix in text:
        attempt += 1
        prefix = f"{base[:-1]}{attempt}_"
    return prefix


def protect_placeholders(text: str) -> ProtectedText:
    """
    Заменяет каждое вхождение плейсхолдера уникальным маркером __PH_<n>__.

    Номера маркеров строго возрастают слева направо. Если текст уже
    содержит '__PH_', берётся другой префикс (см. marker_prefix), так что
    маркер никогда не совпадает с собственным текстом строки.
    """
    if not text:
        return ProtectedText(masked=text or "")

    prefix = marker_prefix(text)
    parts = []
    mapping: Dict[str, str] = {}
    cursor = 0
    for index, (start, end) in enumerate(_placeholder_occurrences(text)):
        marker = f"{prefix}{index}__"
        mapping[marker] = text[start:end]
        parts.append(text[cursor:start])
        parts.append(marker)
        cursor = end
    parts.append(text[cursor:])
    return ProtectedText(masked="".join(parts), placeholders=mapping)


def restore_placeholders(masked: str, placeholders: Dict[str, str]) -> str:
    """Возвращает исходные токены на место маркеров (только маркеров из placeholders)."""
    if not masked or not placeholders:
        return masked
    markers = sorted(placeholders, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(m) for m in markers))
    return pattern.sub(lambda m: placeholders[m.group(0)], masked)


# ── HTML ──

def extract_html_tags(text: str) -> List[str]:
    """Все открывающие и закрывающие теги по порядку, с повторами."""
    if not text:
        return []
    return HTML_TAG_RE.findall(text)


def validate_html_tags(source: str, translation: str) -> ComparisonResult:
    """Сравнивает мультимножества тегов: каждая недостача и излишек - отдельная запись."""
    source_tags = extract_html_tags(source)
    source_counts = Counter(source_tags)
    target_tags = extract_html_tags(translation)
    target_counts = Counter(target_tags)

    missing: List[str] = []
    for tag in dict.fromkeys(source_tags):
        missing.extend([tag] * max(0, source_counts[tag] - target_counts[tag]))
    extra: List[str] = []
    for tag in dict.fromkeys(target_tags):
        extra.extend([tag] * max(0, target_counts[tag] - source_counts[tag]))

    return ComparisonResult(valid=not missing and not extra, missing=missing, extra=extra)


# ── Языковые коды ──

def is_valid_code(code: str) -> bool:
    return code in VALID_CODES


def normalize_code(code: str) -> str:
    """Приводит код к каноническому виду (zh-cn -> zh-CN, chinese -> zh-CN)."""
    lowered = (code or "").strip().lower()
    return CODE_ALIASES.get(lowered, lowered)


# ── Ключи ──

def generate_hash_key(text: str, namespace: Optional[str] = None) -> str:
    """Ключ из первых 8 символов md5 текста."""
    digest = hashlib.md5(text.encode("utf-8")).hexdigest()[:HASH_KEY_LENGTH]
    return f"{namespace}.{digest}" if namespace else digest


def generate_key(text: str, namespace: Optional[str] = None) -> str:
    """Читаемый ключ: пробелы в '_', только буквы и цифры, не длиннее 20 символов."""
    key = WHITESPACE_RE.sub("_", text.strip())
    key = re.sub(r"[^\w]", "", key)[:KEY_MAX_LENGTH]
    if not key:
        return generate_hash_key(text, namespace)
    return f"{namespace}.{key}" if namespace else key
