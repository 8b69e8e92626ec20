"""
Translator - перевод базового каталога на целевые языки.

Порядок для каждого ключа:
1. Уже существующий перевод сохраняется (если не force)
2. Точное совпадение в памяти переводов
3. Нечёткое совпадение - только подсказка в логе; применяется при
   accept_fuzzy и только если плейсхолдеры совпадают
4. Остальное: термины глоссария и плейсхолдеры маскируются, пакет уходит провайдеру,
   маркеры восстанавливаются, успешные переводы пишутся в память
   одной транзакцией после ответа провайдера

Одинаковые тексты под разными ключами переводятся один раз.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Tuple

from .catalog import CatalogStore
from .config import ProjectConfig
from .glossary import Glossary
from .memory import TranslationMemory
from .models import ProtectedText, TranslationEntry
from .patterns import protect_placeholders, restore_placeholders, validate_placeholders
from .providers import BatchingProvider, create_batching_provider

logger = logging.getLogger(__name__)


@dataclass
class TranslateStats:
    """Статистика перевода одного языка."""
    language: str = ""
    total: int = 0
    kept: int = 0
    from_memory: int = 0
    fuzzy: int = 0
    translated: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class Translator:
    """Оркестратор: каталог -> память -> провайдер -> память -> каталог."""

    def __init__(self, config: ProjectConfig, provider: Optional[BatchingProvider] = None,
                 memory: Optional[TranslationMemory] = None,
                 store: Optional[CatalogStore] = None,
                 glossary: Optional[Glossary] = None):
        self.config = config
        self._provider = provider
        if memory is None and config.memory.enabled:
            memory = TranslationMemory(config.memory_path, config.memory.threshold,
                                       config.memory.candidate_limit)
        self.memory = memory
        self.store = store or CatalogStore(config.locales_dir, config.output.format,
                                           config.output.minify)
        self.glossary = glossary if glossary is not None else Glossary.from_config(config)

    @property
    def provider(self) -> BatchingProvider:
        # Провайдер создаётся лениво: перевод целиком из памяти не требует ключей API
        if self._provider is None:
            self._provider = create_batching_provider(self.config.api)
        return self._provider

    def translate_catalog(self, catalog: Dict[str, str], target_lang: str,
                          force: bool = False, use_memory: bool = True,
                          accept_fuzzy: Optional[bool] = None) -> Tuple[List[TranslationEntry], TranslateStats]:
        """
        Переводит каталог ключ -> текст на один язык.

        Args:
            catalog: базовый каталог
            target_lang: код целевого языка
            force: переводить заново уже переведённые ключи
            use_memory: использовать память переводов
            accept_fuzzy: применять нечёткие совпадения (по умолчанию из конфига)

        Returns:
            (записи с переводами, статистика)
        """
        source_lang = self.config.source_language
        if accept_fuzzy is None:
            accept_fuzzy = self.config.memory.accept_fuzzy
        memory = self.memory if use_memory else None
        existing = {} if force else self.store.load(target_lang)

        stats = TranslateStats(language=target_lang, total=len(catalog))
        entries: Dict[str, TranslationEntry] = {}
        pending: Dict[str, List[str]] = {}

        for key, source in catalog.items():
            entry = TranslationEntry(key=key, source=source)
            entries[key] = entry

            if existing.get(key):
                entry.set(target_lang, existing[key])
                entry.metadata["translated_by"] = "existing"
                stats.kept += 1
                continue

            if memory is not None:
                cached = memory.get(source, target_lang)
                if cached is not None:
                    entry.set(target_lang, cached)
                    entry.metadata["translated_by"] = "memory"
                    stats.from_memory += 1
                    continue

                fuzzy = self._fuzzy_match(memory, source, target_lang, accept_fuzzy)
                if fuzzy is not None:
                    entry.set(target_lang, fuzzy)
                    entry.metadata["translated_by"] = "memory_fuzzy"
                    stats.fuzzy += 1
                    continue

            pending.setdefault(source, []).append(key)

        if pending:
            self._translate_pending(pending, entries, target_lang, source_lang, memory, stats)

        logger.info(
            "Перевод %s: всего %d, сохранено %d, из памяти %d (+%d нечётких), "
            "переведено %d, ошибок %d",
            target_lang, stats.total, stats.kept, stats.from_memory, stats.fuzzy,
            stats.translated, stats.failed,
        )
        return list(entries.values()), stats

    def _fuzzy_match(self, memory: TranslationMemory, source: str, target_lang: str,
                     accept_fuzzy: bool) -> Optional[str]:
        similar = memory.find_similar(source, target_lang, limit=1)
        if not similar:
            return None
        best = similar[0]
        logger.debug("Похожий перевод для %r: %r (%.2f)", source[:40], best.source[:40], best.similarity)
        if not accept_fuzzy:
            return None
        if not validate_placeholders(source, best.translation).valid:
            return None
        return best.translation

    def _protect_terms(self, text: str, target_lang: str) -> ProtectedText:
        if self.glossary is None:
            return ProtectedText(masked=text)
        return self.glossary.protect_terms(text, target_lang)

    def _translate_pending(self, pending: Dict[str, List[str]], entries: Dict[str, TranslationEntry],
                           target_lang: str, source_lang: str,
                           memory: Optional[TranslationMemory], stats: TranslateStats) -> None:
        sources = list(pending)
        terms = [self._protect_terms(text, target_lang) for text in sources]
        protected = [protect_placeholders(term.masked) for term in terms]
        results = self.provider.translate_batch([p.masked for p in protected],
                                                source_lang, target_lang)

        to_memory = []
        for source, term, guard, result in zip(sources, terms, protected, results):
            keys = pending[source]
            if not result.ok or not result.translated:
                logger.warning("Не переведено %r: %s", source[:40], result.error or "пустой ответ")
                stats.failed += len(keys)
                continue

            translated = restore_placeholders(result.translated, guard.placeholders)
            translated = restore_placeholders(translated, term.placeholders)
            for key in keys:
                entries[key].set(target_lang, translated)
                entries[key].metadata["translated_by"] = self.provider.name
            stats.translated += len(keys)
            to_memory.append((source, target_lang, translated, "api"))

        if memory is not None and to_memory:
            memory.put_batch(to_memory)

    def translate_to_languages(self, catalog: Dict[str, str], languages: List[str],
                               **options) -> Dict[str, TranslateStats]:
        """Переводит и сохраняет каталог для каждого языка."""
        all_stats = {}
        for lang in languages:
            entries, stats = self.translate_catalog(catalog, lang, **options)
            self.save(entries, lang)
            all_stats[lang] = stats
        return all_stats

    def save(self, entries: List[TranslationEntry], lang: str):
        return self.store.save_entries(entries, lang)

    def close(self) -> None:
        if self.memory is not None:
            self.memory.close()
        if self._provider is not None:
            self._provider.close()
