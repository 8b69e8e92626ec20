"""
Каталоги переводов - плоские файлы ключ -> текст на каждый язык.

Структура файлов:
    locales/
        zh-CN.json   - базовый каталог (ключ -> исходный текст)
        en.json      - ключ -> перевод
        _meta.json   - метаданные (даты, количество записей)

Вложенные JSON/YAML при чтении разворачиваются в ключи через точку.
"""

import json
import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from .errors import CatalogNotFound
from .models import TranslationEntry

logger = logging.getLogger(__name__)

EXTENSIONS = {"json": ".json", "yaml": ".yaml"}
META_FILE = "_meta.json"


def flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, str]:
    """{"a": {"b": "x"}} -> {"a.b": "x"}"""
    flat: Dict[str, str] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten(value, full_key))
        elif value is not None:
            flat[full_key] = str(value)
    return flat


def atomic_write(path: Path, text: str) -> None:
    """Пишет файл через временный файл в той же директории и os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class CatalogStore:
    """Чтение и запись каталогов одной директории локалей."""

    def __init__(self, directory: Path, fmt: str = "json", minify: bool = False,
                 backup: bool = False):
        self.directory = Path(directory)
        self.fmt = fmt
        self.minify = minify
        self.backup = backup

    def path(self, lang: str) -> Path:
        return self.directory / f"{lang}{EXTENSIONS[self.fmt]}"

    def exists(self, lang: str) -> bool:
        return self.path(lang).is_file()

    # ── Чтение ──

    def load(self, lang: str) -> Dict[str, str]:
        """
        Загружает каталог языка.

        Args:
            lang: код языка

        Returns:
            Dict[key, text]; пустой словарь, если файла нет
        """
        path = self.path(lang)
        if not path.is_file():
            return {}

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f) if self.fmt == "json" else yaml.safe_load(f)

        if not data:
            return {}
        if not isinstance(data, dict):
            logger.warning("%s: ожидался словарь, каталог пропущен", path)
            return {}
        return flatten(data)

    def require(self, lang: str) -> Dict[str, str]:
        """Как load(), но отсутствие файла - фатальная ошибка."""
        if not self.exists(lang):
            raise CatalogNotFound(self.path(lang))
        return self.load(lang)

    def load_entries(self, source_lang: str, languages: Iterable[str]) -> List[TranslationEntry]:
        """Записи базового каталога с переводами на указанные языки."""
        base = self.require(source_lang)
        catalogs = {lang: self.load(lang) for lang in languages}
        entries = []
        for key, source in base.items():
            translations = {lang: cat[key] for lang, cat in catalogs.items() if cat.get(key)}
            entries.append(TranslationEntry(key=key, source=source, translations=translations))
        return entries

    def list_locales(self) -> List[str]:
        """Доступные локали."""
        if not self.directory.is_dir():
            return []
        locales = []
        for path in self.directory.glob(f"*{EXTENSIONS[self.fmt]}"):
            name = path.stem
            if not name.startswith("_") and not name.endswith(".backup"):
                locales.append(name)
        return sorted(locales)

    # ── Запись ──

    def save(self, lang: str, mapping: Dict[str, str]) -> Path:
        """
        Сохраняет каталог (ключи отсортированы, запись атомарная).

        Args:
            lang: код языка
            mapping: Dict[key, text]
        """
        path = self.path(lang)
        if self.backup and path.exists():
            backup_path = self.directory / f"{lang}.backup{EXTENSIONS[self.fmt]}"
            shutil.copy2(path, backup_path)

        data = dict(sorted(mapping.items()))
        if self.fmt == "json":
            if self.minify:
                text = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
            else:
                text = json.dumps(data, ensure_ascii=False, indent=2) + "\n"
        else:
            text = yaml.safe_dump(data, allow_unicode=True, sort_keys=True)

        atomic_write(path, text)
        self._update_meta(lang, len(data))
        logger.info("Каталог %s: %d записей -> %s", lang, len(data), path)
        return path

    def save_entries(self, entries: List[TranslationEntry], lang: str) -> Path:
        """Сохраняет переводы записей на один язык (без пустых)."""
        mapping = {e.key: e.translations[lang] for e in entries if e.translations.get(lang)}
        return self.save(lang, mapping)

    def merge(self, lang: str, updates: Dict[str, str], overwrite: bool = True) -> Dict[str, int]:
        """
        Вливает переводы в существующий каталог.

        Returns:
            {"added": n, "updated": n, "unchanged": n}
        """
        current = self.load(lang)
        stats = {"added": 0, "updated": 0, "unchanged": 0}
        for key, value in updates.items():
            if not value:
                continue
            if key not in current:
                stats["added"] += 1
            elif current[key] != value and overwrite:
                stats["updated"] += 1
            else:
                stats["unchanged"] += 1
                continue
            current[key] = value
        self.save(lang, current)
        return stats

    # ── Статистика ──

    @staticmethod
    def statistics(entries: List[TranslationEntry], languages: Iterable[str]) -> Dict[str, Any]:
        """Покрытие переводами по языкам."""
        total = len(entries)
        by_language = {}
        for lang in languages:
            translated = sum(1 for e in entries if e.translations.get(lang))
            by_language[lang] = {
                "translated": translated,
                "pending": total - translated,
                "coverage": round(translated / total * 100, 1) if total else 0.0,
            }
        return {"total": total, "by_language": by_language}

    def _update_meta(self, lang: str, count: int) -> None:
        meta_path = self.directory / META_FILE
        meta: Dict[str, Any] = {}
        if meta_path.exists():
            try:
                with open(meta_path, "r", encoding="utf-8") as f:
                    meta = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Не удалось прочитать %s: %s", meta_path, e)

        meta[lang] = {
            "entries": count,
            "updated_at": datetime.now().isoformat(timespec="seconds"),
        }
        atomic_write(meta_path, json.dumps(meta, ensure_ascii=False, indent=2) + "\n")


def merge_entries(existing: List[TranslationEntry],
                  new: List[TranslationEntry]) -> List[TranslationEntry]:
    """
    Объединяет списки записей по ключу.

    Переводы из new перекрывают существующие, метаданные дополняются.
    Порядок: сначала существующие, затем новые ключи.
    """
    merged: Dict[str, TranslationEntry] = {e.key: e for e in existing}
    for entry in new:
        current: Optional[TranslationEntry] = merged.get(entry.key)
        if current is None:
            merged[entry.key] = entry
            continue
        current.translations.update({k: v for k, v in entry.translations.items() if v})
        current.metadata.update(entry.metadata)
        if entry.source:
            current.source = entry.source
    return list(merged.values())
