"""
Глоссарий - термины с фиксированным переводом или запретом перевода.

Формат файла (YAML или JSON по расширению) - список записей:

    - term: API
      do_not_translate: true
      case_sensitive: true
    - term: 仪表盘
      translations: {en: Dashboard, ja: ダッシュボード}

Записи хранятся по термину в нижнем регистре. Перед машинным переводом
термины заменяются маркерами __TERM_<n>__ и после ответа провайдера
восстанавливаются: запрещённые к переводу - как в исходнике,
остальные - фиксированным переводом на целевой язык.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import yaml

from .catalog import atomic_write
from .config import ProjectConfig
from .models import GlossaryEntry, ProtectedText, TermIssue
from .patterns import marker_prefix, restore_placeholders

logger = logging.getLogger(__name__)

TERM_MARKER_PREFIX = "__TERM_"

# ASCII-термин не должен совпадать внутри другого латинского слова
_ASCII_WORD = "A-Za-z0-9_"


def entry_from_dict(data: Dict[str, Any]) -> GlossaryEntry:
    """Запись глоссария из словаря файла или конфигурации."""
    if not isinstance(data, dict) or not str(data.get("term") or "").strip():
        raise ValueError(f"Запись глоссария без term: {data!r}")
    translations = data.get("translations") or {}
    if not isinstance(translations, dict):
        raise ValueError(f"translations термина {data['term']!r} должен быть словарём")
    return GlossaryEntry(
        term=str(data["term"]).strip(),
        translations={str(k): str(v) for k, v in translations.items() if v},
        do_not_translate=bool(data.get("do_not_translate", False)),
        case_sensitive=bool(data.get("case_sensitive", False)),
        description=str(data.get("description") or ""),
    )


def default_entries() -> List[GlossaryEntry]:
    """Стартовый набор технических аббревиатур, которые не переводятся."""
    return [
        GlossaryEntry(term=term, do_not_translate=True, case_sensitive=True,
                      description=description)
        for term, description in (
            ("API", "Application Programming Interface"),
            ("UI", "User Interface"),
            ("URL", "Uniform Resource Locator"),
            ("HTTP", "Hypertext Transfer Protocol"),
            ("HTTPS", "Hypertext Transfer Protocol Secure"),
        )
    ]


class Glossary:
    """Набор терминов: поиск в тексте, защита при переводе, проверка переводов."""

    def __init__(self, path: Optional[Union[str, Path]] = None,
                 entries: Optional[Iterable[Union[GlossaryEntry, Dict[str, Any]]]] = None):
        self.path = Path(path) if path else None
        self._entries: Dict[str, GlossaryEntry] = {}
        self._patterns: Dict[str, "re.Pattern[str]"] = {}
        if entries:
            self.add_terms(entries)

    @classmethod
    def from_config(cls, config: ProjectConfig) -> Optional["Glossary"]:
        """Глоссарий проекта: записи из конфигурации, затем из файла. None, если выключен."""
        if not config.glossary.enabled:
            logger.debug("Глоссарий выключен")
            return None
        glossary = cls(config.glossary_path)
        for data in config.glossary.entries:
            try:
                glossary.add_term(entry_from_dict(data))
            except ValueError as e:
                logger.warning("glossary.entries: %s", e)
        glossary.load()
        logger.info("Глоссарий: %d терминов", len(glossary))
        return glossary

    # ── Хранение ──

    def load(self, path: Optional[Union[str, Path]] = None) -> int:
        """
        Добавляет записи из файла.

        Нечитаемый файл не прерывает работу: ошибка пишется в лог.

        Returns:
            Количество загруженных записей
        """
        path = Path(path) if path else self.path
        if path is None or not path.is_file():
            return 0
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f) if path.suffix == ".json" else yaml.safe_load(f)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            logger.error("Не удалось прочитать глоссарий %s: %s", path, e)
            return 0
        if data is None:
            return 0
        if not isinstance(data, list):
            logger.error("Глоссарий %s: ожидался список записей", path)
            return 0

        loaded = 0
        for item in data:
            try:
                self.add_term(entry_from_dict(item))
                loaded += 1
            except ValueError as e:
                logger.warning("%s: %s", path, e)
        logger.debug("Из %s загружено %d терминов", path, loaded)
        return loaded

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Записывает глоссарий атомарно, отсортированным по термину."""
        path = Path(path) if path else self.path
        if path is None:
            raise ValueError("Не задан путь файла глоссария")
        data = [entry.to_dict() for entry in self.terms()]
        if path.suffix == ".json":
            text = json.dumps(data, ensure_ascii=False, indent=2) + "\n"
        else:
            text = yaml.safe_dump(data, allow_unicode=True, sort_keys=False)
        atomic_write(path, text)
        logger.info("Глоссарий сохранён: %s (%d терминов)", path, len(data))
        return path

    # ── Записи ──

    def add_term(self, entry: GlossaryEntry) -> None:
        key = entry.term.lower()
        self._entries[key] = entry
        self._patterns.pop(key, None)

    def add_terms(self, entries: Iterable[Union[GlossaryEntry, Dict[str, Any]]]) -> int:
        count = 0
        for entry in entries:
            self.add_term(entry if isinstance(entry, GlossaryEntry) else entry_from_dict(entry))
            count += 1
        return count

    def remove_term(self, term: str) -> bool:
        key = term.lower()
        self._patterns.pop(key, None)
        return self._entries.pop(key, None) is not None

    def get_term(self, term: str) -> Optional[GlossaryEntry]:
        return self._entries.get(term.lower())

    def terms(self) -> List[GlossaryEntry]:
        return [self._entries[key] for key in sorted(self._entries)]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, term: str) -> bool:
        return term.lower() in self._entries

    # ── Поиск ──

    def _pattern(self, entry: GlossaryEntry) -> "re.Pattern[str]":
        key = entry.term.lower()
        if key not in self._patterns:
            body = re.escape(entry.term)
            if re.match(f"[{_ASCII_WORD}]", entry.term):
                body = f"(?<![{_ASCII_WORD}])" + body
            if re.search(f"[{_ASCII_WORD}]$", entry.term):
                body += f"(?![{_ASCII_WORD}])"
            flags = 0 if entry.case_sensitive else re.IGNORECASE
            self._patterns[key] = re.compile(body, flags)
        return self._patterns[key]

    def _occurrences(self, text: str,
                     entries: Iterable[GlossaryEntry]) -> List[Tuple[int, int, GlossaryEntry]]:
        """Вхождения без пересечений; более длинный термин выигрывает."""
        chosen: List[Tuple[int, int, GlossaryEntry]] = []
        for entry in sorted(entries, key=lambda e: len(e.term), reverse=True):
            for match in self._pattern(entry).finditer(text):
                start, end = match.span()
                if all(end <= s or start >= e for s, e, _ in chosen):
                    chosen.append((start, end, entry))
        chosen.sort(key=lambda item: item[0])
        return chosen

    def find_terms(self, text: str) -> List[Tuple[GlossaryEntry, List[int]]]:
        """Термины, встречающиеся в тексте, с позициями вхождений."""
        found: Dict[str, Tuple[GlossaryEntry, List[int]]] = {}
        for start, _, entry in self._occurrences(text or "", self._entries.values()):
            found.setdefault(entry.term.lower(), (entry, []))[1].append(start)
        return list(found.values())

    # ── Перевод ──

    def apply_terms(self, text: str, target_lang: str) -> str:
        """Подставляет фиксированные переводы терминов прямо в текст."""
        if not text:
            return text
        candidates = [e for e in self._entries.values()
                      if not e.do_not_translate and e.translations.get(target_lang)]
        parts = []
        cursor = 0
        for start, end, entry in self._occurrences(text, candidates):
            parts.append(text[cursor:start])
            parts.append(entry.translations[target_lang])
            cursor = end
        parts.append(text[cursor:])
        return "".join(parts)

    def protect_terms(self, text: str, target_lang: Optional[str] = None) -> ProtectedText:
        """
        Заменяет термины маркерами __TERM_<n>__.

        Args:
            text: исходный текст
            target_lang: язык перевода; без него защищаются только
                термины с do_not_translate

        Returns:
            ProtectedText, где placeholders: маркер -> текст для восстановления
        """
        if not text or not self._entries:
            return ProtectedText(masked=text or "")

        candidates = [e for e in self._entries.values()
                      if e.do_not_translate or (target_lang and e.translations.get(target_lang))]
        prefix = marker_prefix(text, TERM_MARKER_PREFIX)
        parts = []
        mapping: Dict[str, str] = {}
        cursor = 0
        for start, end, entry in self._occurrences(text, candidates):
            marker = f"{prefix}{len(mapping)}__"
            mapping[marker] = text[start:end] if entry.do_not_translate else entry.translations[target_lang]
            parts.append(text[cursor:start])
            parts.append(marker)
            cursor = end
        parts.append(text[cursor:])
        return ProtectedText(masked="".join(parts), placeholders=mapping)

    @staticmethod
    def restore_terms(masked: str, protected: ProtectedText) -> str:
        return restore_placeholders(masked, protected.placeholders)

    # ── Проверка ──

    def _contains(self, entry: GlossaryEntry, text: str, needle: str) -> bool:
        if entry.case_sensitive:
            return needle in text
        return needle.lower() in text.lower()

    def validate_usage(self, source: str, translation: str, target_lang: str) -> List[TermIssue]:
        """
        Проверяет, что термины исходника переданы в переводе по глоссарию.

        - do_not_translate термин пропал из перевода -> untranslated
        - фиксированного перевода нет, а исходный термин остался -> untranslated
        - фиксированного перевода нет и исходного термина нет -> missing
        """
        issues: List[TermIssue] = []
        if not source or not translation:
            return issues
        for entry, _ in self.find_terms(source):
            if entry.do_not_translate:
                if not self._pattern(entry).search(translation):
                    issues.append(TermIssue(term=entry.term, issue="untranslated",
                                            expected=entry.term))
                continue

            expected = entry.translations.get(target_lang)
            if not expected or self._contains(entry, translation, expected):
                continue
            if self._pattern(entry).search(translation):
                issues.append(TermIssue(term=entry.term, issue="untranslated",
                                        expected=expected, found=entry.term))
            else:
                issues.append(TermIssue(term=entry.term, issue="missing", expected=expected))
        return issues

    def statistics(self) -> Dict[str, Any]:
        by_language: Dict[str, int] = {}
        for entry in self._entries.values():
            for lang in entry.translations:
                by_language[lang] = by_language.get(lang, 0) + 1
        return {
            "total": len(self._entries),
            "protected": sum(1 for e in self._entries.values() if e.do_not_translate),
            "by_language": dict(sorted(by_language.items())),
        }
