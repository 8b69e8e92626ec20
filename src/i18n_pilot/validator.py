"""
Validator - механическая проверка переводов.

Проверки одной пары исходник/перевод:
- пустой перевод                      -> error (дальше не проверяем)
- потерянный плейсхолдер              -> error, лишний -> warning
- потерянный HTML-тег                 -> error, лишний -> warning
- перевод длиннее max_length          -> warning
- перевод длиннее исходника в 3+ раза -> info
- термин глоссария передан не так      -> warning (если задан глоссарий)

Качество перевода не оценивается. Проблемы - данные (ValidationIssue),
исключения не бросаются.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .catalog import CatalogStore
from .config import ValidationConfig
from .glossary import Glossary
from .models import ValidationIssue
from .patterns import validate_html_tags, validate_placeholders

logger = logging.getLogger(__name__)

LENGTH_RATIO_LIMIT = 3


@dataclass
class ValidationReport:
    """Сводка валидации."""
    timestamp: str = ""
    total: int = 0
    errors: int = 0
    warnings: int = 0
    infos: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    by_language: Dict[str, int] = field(default_factory=dict)
    issues: List[dict] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)

    def to_json(self, compact: bool = False) -> str:
        if compact:
            return json.dumps(self.to_dict(), ensure_ascii=False, separators=(',', ':'))
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    @property
    def has_errors(self) -> bool:
        return self.errors > 0


class TranslationValidator:
    """Проверка каталогов переводов против базового каталога."""

    def __init__(self, config: Optional[ValidationConfig] = None,
                 store: Optional[CatalogStore] = None,
                 glossary: Optional[Glossary] = None):
        self.config = config or ValidationConfig()
        self.store = store
        self.glossary = glossary

    def validate_single(self, source: str, translation: Optional[str], language: str,
                        key: str = "", check_placeholders: Optional[bool] = None,
                        check_html_tags: Optional[bool] = None,
                        check_length: Optional[bool] = None,
                        max_length: Optional[int] = None) -> List[ValidationIssue]:
        """
        Проверяет один перевод.

        Args:
            source: исходный текст
            translation: перевод (None или пустая строка - нет перевода)
            language: код целевого языка
            key: ключ записи для отчёта

        Returns:
            Список проблем (пустой, если всё в порядке)
        """
        cfg = self.config
        check_placeholders = cfg.check_placeholders if check_placeholders is None else check_placeholders
        check_html_tags = cfg.check_html_tags if check_html_tags is None else check_html_tags
        check_length = cfg.check_length if check_length is None else check_length
        max_length = cfg.max_length if max_length is None else max_length

        def issue(type_: str, severity: str, message: str) -> ValidationIssue:
            return ValidationIssue(key=key, language=language, type=type_, severity=severity,
                                   message=message, source=source, translation=translation or "")

        if not translation or not translation.strip():
            return [issue("empty", "error", "Перевод отсутствует или пуст")]

        issues: List[ValidationIssue] = []

        if check_placeholders:
            result = validate_placeholders(source, translation)
            if result.missing:
                issues.append(issue("placeholder", "error",
                                    f"Потеряны плейсхолдеры: {', '.join(result.missing)}"))
            if result.extra:
                issues.append(issue("placeholder", "warning",
                                    f"Лишние плейсхолдеры: {', '.join(result.extra)}"))

        if check_html_tags:
            result = validate_html_tags(source, translation)
            if result.missing:
                issues.append(issue("html", "error",
                                    f"Потеряны HTML-теги: {', '.join(result.missing)}"))
            if result.extra:
                issues.append(issue("html", "warning",
                                    f"Лишние HTML-теги: {', '.join(result.extra)}"))

        if check_length:
            if len(translation) > max_length:
                issues.append(issue("length", "warning",
                                    f"Перевод длиннее {max_length} символов ({len(translation)})"))
            if source and len(translation) > len(source) * LENGTH_RATIO_LIMIT:
                issues.append(issue("length", "info",
                                    f"Перевод длиннее исходника более чем в {LENGTH_RATIO_LIMIT} раза"))

        if self.glossary is not None:
            for problem in self.glossary.validate_usage(source, translation, language):
                issues.append(issue("glossary", "warning",
                                    f"Термин {problem.term!r} ({problem.issue}): ожидается {problem.expected!r}"))

        return issues

    def validate_catalog(self, base: Dict[str, str], translations: Dict[str, str],
                         language: str, **options) -> List[ValidationIssue]:
        """Проверяет каталог одного языка по всем ключам базового каталога."""
        issues: List[ValidationIssue] = []
        for key, source in base.items():
            issues.extend(self.validate_single(source, translations.get(key), language,
                                               key=key, **options))
        return issues

    def validate_all(self, source_language: str, languages: Iterable[str],
                     **options) -> List[ValidationIssue]:
        """
        Проверяет каталоги всех языков из хранилища.

        Отсутствие базового каталога - фатальная ошибка (CatalogNotFound).
        """
        if self.store is None:
            raise ValueError("Для validate_all нужен CatalogStore")
        base = self.store.require(source_language)
        issues: List[ValidationIssue] = []
        for language in languages:
            if not self.store.exists(language):
                logger.warning("Каталог %s не найден - все ключи будут без перевода", language)
            found = self.validate_catalog(base, self.store.load(language), language, **options)
            logger.info("Проверка %s: %d ключей, %d проблем", language, len(base), len(found))
            issues.extend(found)
        return issues

    @staticmethod
    def generate_report(issues: List[ValidationIssue]) -> ValidationReport:
        report = ValidationReport(timestamp=datetime.now().isoformat(timespec="seconds"),
                                  total=len(issues))
        for item in issues:
            if item.severity == "error":
                report.errors += 1
            elif item.severity == "warning":
                report.warnings += 1
            else:
                report.infos += 1
            report.by_type[item.type] = report.by_type.get(item.type, 0) + 1
            report.by_language[item.language] = report.by_language.get(item.language, 0) + 1
            report.issues.append(asdict(item))
        return report
