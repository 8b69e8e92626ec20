"""
Обмен переводами через Excel (.xlsx).

Строка таблицы: фиксированные колонки key, source, file, context и
открытый набор колонок языков между source и file:

    key | source | en | ja | ... | file | context

Импорт возвращает список TranslationEntry; строки без key или source
пропускаются с предупреждением.

Глоссарий выгружается в отдельный файл, лист Glossary:

    term | description | do_not_translate | case_sensitive | en | ja | ...
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from openpyxl import Workbook, load_workbook

from .errors import I18nPilotError
from .models import GlossaryEntry, TranslationEntry

logger = logging.getLogger(__name__)

KEY_COLUMN = "key"
SOURCE_COLUMN = "source"
TRAILING_COLUMNS = ["file", "context"]
SHEET_TITLE = "Translations"
GLOSSARY_TITLE = "Glossary"
GLOSSARY_COLUMNS = ["term", "description", "do_not_translate", "case_sensitive"]

_TRUE_VALUES = {"1", "true", "yes", "y", "да", "x"}


def _cell(value) -> str:
    return "" if value is None else str(value)


def export_entries(entries: Iterable[TranslationEntry], path: Path,
                   languages: List[str]) -> int:
    """
    Записывает записи в .xlsx.

    Returns:
        Количество записанных строк
    """
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    ws.append([KEY_COLUMN, SOURCE_COLUMN] + list(languages) + TRAILING_COLUMNS)

    count = 0
    for entry in entries:
        ws.append(
            [entry.key, entry.source]
            + [entry.translations.get(lang, "") for lang in languages]
            + [_cell(entry.metadata.get("file")), _cell(entry.metadata.get("context"))]
        )
        count += 1

    ws.freeze_panes = "C2"
    ws.column_dimensions["A"].width = 24
    ws.column_dimensions["B"].width = 48

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    logger.info("Экспортировано %d строк -> %s", count, path)
    return count


def export_template(path: Path, languages: List[str],
                    samples: Optional[Dict[str, str]] = None) -> int:
    """Пустой шаблон (или шаблон с примерами key -> source) для ручного перевода."""
    entries = [TranslationEntry(key=k, source=v) for k, v in (samples or {}).items()]
    return export_entries(entries, path, languages)


def import_entries(path: Path, languages: Optional[List[str]] = None) -> List[TranslationEntry]:
    """
    Читает записи из .xlsx.

    Args:
        path: файл таблицы
        languages: какие языковые колонки брать (None - все между source и file)
    """
    wb = load_workbook(Path(path), read_only=True)
    try:
        ws = wb.active
        header = [_cell(v).strip() for v in next(ws.iter_rows(max_row=1, values_only=True), ())]
        if KEY_COLUMN not in header or SOURCE_COLUMN not in header:
            raise I18nPilotError(f"{path}: в заголовке нужны колонки {KEY_COLUMN!r} и {SOURCE_COLUMN!r}")

        key_idx = header.index(KEY_COLUMN)
        source_idx = header.index(SOURCE_COLUMN)
        fixed = {KEY_COLUMN, SOURCE_COLUMN, *TRAILING_COLUMNS}
        lang_columns = {name: i for i, name in enumerate(header) if name and name not in fixed}
        if languages is not None:
            lang_columns = {name: i for name, i in lang_columns.items() if name in languages}
        extra = {name: header.index(name) for name in TRAILING_COLUMNS if name in header}

        entries = []
        for row_num, row in enumerate(ws.iter_rows(min_row=2, values_only=True), 2):
            if not row or all(v is None for v in row):
                continue
            key = _cell(row[key_idx] if key_idx < len(row) else None).strip()
            source = _cell(row[source_idx] if source_idx < len(row) else None)
            if not key or not source:
                logger.warning("%s: строка %d без key или source - пропущена", path, row_num)
                continue

            translations = {}
            for lang, i in lang_columns.items():
                value = _cell(row[i] if i < len(row) else None)
                if value:
                    translations[lang] = value
            metadata = {}
            for name, i in extra.items():
                value = _cell(row[i] if i < len(row) else None)
                if value:
                    metadata[name] = value
            entries.append(TranslationEntry(key=key, source=source,
                                            translations=translations, metadata=metadata))
    finally:
        wb.close()

    logger.info("Импортировано %d записей из %s", len(entries), path)
    return entries


def _flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return _cell(value).strip().lower() in _TRUE_VALUES


def export_glossary(entries: Iterable[GlossaryEntry], path: Path,
                    languages: Optional[List[str]] = None) -> int:
    """
    Записывает глоссарий в .xlsx.

    Args:
        entries: термины
        path: выходной файл
        languages: языковые колонки (None - все языки из переводов терминов)
    """
    entries = list(entries)
    if languages is None:
        languages = sorted({lang for e in entries for lang in e.translations})

    wb = Workbook()
    ws = wb.active
    ws.title = GLOSSARY_TITLE
    ws.append(GLOSSARY_COLUMNS + list(languages))
    for entry in entries:
        ws.append([entry.term, entry.description, entry.do_not_translate, entry.case_sensitive]
                  + [entry.translations.get(lang, "") for lang in languages])

    ws.freeze_panes = "B2"
    ws.column_dimensions["A"].width = 24
    ws.column_dimensions["B"].width = 36

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    logger.info("Экспортировано %d терминов -> %s", len(entries), path)
    return len(entries)


def import_glossary(path: Path) -> List[GlossaryEntry]:
    """Читает термины из .xlsx; лист Glossary, а без него - активный лист."""
    wb = load_workbook(Path(path), read_only=True)
    try:
        ws = wb[GLOSSARY_TITLE] if GLOSSARY_TITLE in wb.sheetnames else wb.active
        header = [_cell(v).strip() for v in next(ws.iter_rows(max_row=1, values_only=True), ())]
        if "term" not in header:
            raise I18nPilotError(f"{path}: в заголовке глоссария нужна колонка 'term'")

        columns = {name: header.index(name) for name in GLOSSARY_COLUMNS if name in header}
        lang_columns = {name: i for i, name in enumerate(header)
                        if name and name not in GLOSSARY_COLUMNS}

        def value(row, name):
            i = columns.get(name)
            return row[i] if i is not None and i < len(row) else None

        entries = []
        for row_num, row in enumerate(ws.iter_rows(min_row=2, values_only=True), 2):
            if not row or all(v is None for v in row):
                continue
            term = _cell(value(row, "term")).strip()
            if not term:
                logger.warning("%s: строка %d без term - пропущена", path, row_num)
                continue
            translations = {}
            for lang, i in lang_columns.items():
                text = _cell(row[i] if i < len(row) else None)
                if text:
                    translations[lang] = text
            entries.append(GlossaryEntry(
                term=term,
                translations=translations,
                do_not_translate=_flag(value(row, "do_not_translate")),
                case_sensitive=_flag(value(row, "case_sensitive")),
                description=_cell(value(row, "description")),
            ))
    finally:
        wb.close()

    logger.info("Импортировано %d терминов из %s", len(entries), path)
    return entries
