"""
Модели данных i18n-pilot.

Все структуры - dataclass'ы. ExtractedSpan неизменяем после создания,
остальные собираются по ходу работы конвейера.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


# Виды мест в исходнике, где найден текст
SITE_STRING = "string"
SITE_TEMPLATE = "template"
SITE_JSX_TEXT = "jsx_text"
SITE_JSX_ATTRIBUTE = "jsx_attribute"
SITE_VUE_TEXT = "vue_text"
SITE_VUE_ATTRIBUTE = "vue_attribute"
SITE_FSTRING = "fstring"
SITE_DATA = "data"

SOURCE_TYPES = ("api", "manual", "imported")


@dataclass(frozen=True)
class ExtractedSpan:
    """Одно вхождение текста на целевой письменности в файле."""
    key: str
    text: str
    file: str
    line: Optional[int] = None
    column: Optional[int] = None
    context: Optional[str] = None
    namespace: Optional[str] = None
    kind: str = SITE_STRING

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class TranslationEntry:
    """Переводы одного ключа на разные языки."""
    key: str
    source: str
    translations: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get(self, lang: str) -> Optional[str]:
        return self.translations.get(lang)

    def set(self, lang: str, text: str) -> None:
        self.translations[lang] = text


@dataclass
class MemoryRecord:
    """Запись памяти переводов, уникальная по (source, target_lang)."""
    source: str
    target_lang: str
    translation: str
    source_type: str = "api"
    usage_count: int = 1
    created_at: str = ""
    updated_at: str = ""


@dataclass
class SimilarMatch:
    """Нечёткое совпадение из памяти переводов."""
    source: str
    translation: str
    similarity: float


@dataclass
class PlaceholderSet:
    """Плейсхолдеры строки и семейство, найденное первым."""
    type: str = "none"
    placeholders: List[str] = field(default_factory=list)


@dataclass
class ComparisonResult:
    """Результат сравнения плейсхолдеров или HTML-тегов."""
    valid: bool
    missing: List[str] = field(default_factory=list)
    extra: List[str] = field(default_factory=list)


@dataclass
class ProtectedText:
    """Текст с плейсхолдерами, заменёнными на маркеры."""
    masked: str
    placeholders: Dict[str, str] = field(default_factory=dict)


@dataclass
class Replacement:
    """Одна выполненная замена литерала на вызов функции перевода."""
    line: int
    column: int
    original: str
    replaced: str
    key: str


@dataclass
class ReplaceResult:
    """Итог обработки одного файла заменителем."""
    file_path: str
    success: bool = True
    count: int = 0
    replacements: List[Replacement] = field(default_factory=list)
    error: Optional[str] = None
    content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("content", None)
        return data


@dataclass
class ReplaceReport:
    """Сводка пакетной замены."""
    total: int = 0
    success: int = 0
    failed: int = 0
    total_replacements: int = 0
    files: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TranslationResult:
    """Результат перевода одной строки провайдером."""
    original: str
    translated: str
    source: str = "api"
    confidence: Optional[float] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ValidationIssue:
    """Найденная проблема перевода. Это данные, а не исключение."""
    key: str
    language: str
    type: str          # empty | placeholder | html | length
    severity: str      # error | warning | info
    message: str
    source: str = ""
    translation: str = ""


@dataclass
class GlossaryEntry:
    """Термин глоссария: фиксированные переводы или запрет перевода."""
    term: str
    translations: Dict[str, str] = field(default_factory=dict)
    do_not_translate: bool = False
    case_sensitive: bool = False
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if not data["description"]:
            data.pop("description")
        return data


@dataclass
class TermIssue:
    """Нарушение глоссария в переводе: missing, incorrect или untranslated."""
    term: str
    issue: str
    expected: str = ""
    found: str = ""
