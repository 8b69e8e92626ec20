"""
Память переводов (translation memory).

Хранит уже выполненные переводы по паре (исходный текст, целевой язык)
и счётчик использований. Точное совпадение отдаётся сразу, нечёткое -
через похожесть по Левенштейну среди самых используемых записей языка.

Хранение: SQLite (по умолчанию .translator/memory.db).
Любая ошибка хранилища логируется и превращается в промах / no-op.

Использование:
    memory = TranslationMemory('.translator/memory.db', threshold=0.7)
    cached = memory.get('保存成功', 'en')
    if cached is None:
        translated = provider.translate(...)
        memory.put('保存成功', 'en', translated)
"""

import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .errors import StoreFailure
from .models import SOURCE_TYPES, MemoryRecord, SimilarMatch
from .patterns import DEFAULT_SIMILARITY_THRESHOLD, similarity

logger = logging.getLogger(__name__)

DEFAULT_CANDIDATE_LIMIT = 100

_UPSERT_SQL = '''
    INSERT INTO translations (source, target_lang, translation, source_type,
                              created_at, updated_at, usage_count)
    VALUES (?, ?, ?, ?, ?, ?, 1)
    ON CONFLICT(source, target_lang) DO UPDATE SET
        translation = excluded.translation,
        source_type = excluded.source_type,
        updated_at = excluded.updated_at,
        usage_count = translations.usage_count + 1
'''


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


class TranslationMemory:
    """Память переводов поверх SQLite с нечётким поиском."""

    def __init__(
        self,
        db_path: Union[str, Path],
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        candidate_limit: int = DEFAULT_CANDIDATE_LIMIT,
    ):
        """
        Инициализация памяти.

        Аргументы:
            db_path: путь к файлу SQLite (':memory:' - в памяти процесса).
            threshold: минимальная похожесть для find_similar (0.0-1.0).
            candidate_limit: сколько самых используемых записей языка
                             сравнивать при нечётком поиске.
        """
        self._db_path = str(db_path)
        self._threshold = threshold
        self._candidate_limit = candidate_limit
        self._lock = threading.Lock()
        self._db: Optional[sqlite3.Connection] = None

        try:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._db = sqlite3.connect(self._db_path, check_same_thread=False)
            self._db.row_factory = sqlite3.Row
            self._init_db()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Память переводов недоступна (%s): %s", self._db_path, exc)
            self._db = None

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def available(self) -> bool:
        return self._db is not None

    # ── Инициализация ──

    def _init_db(self) -> None:
        """Создаёт таблицу и индексы, если их нет."""
        with self._db:
            self._db.execute('''
                CREATE TABLE IF NOT EXISTS translations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source TEXT NOT NULL,
                    target_lang TEXT NOT NULL,
                    translation TEXT NOT NULL,
                    source_type TEXT NOT NULL DEFAULT 'api',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    usage_count INTEGER NOT NULL DEFAULT 1,
                    UNIQUE(source, target_lang)
                )
            ''')
            self._db.execute(
                'CREATE INDEX IF NOT EXISTS idx_translations_source ON translations(source)'
            )
            self._db.execute(
                'CREATE INDEX IF NOT EXISTS idx_translations_lang_usage '
                'ON translations(target_lang, usage_count DESC)'
            )

    def _conn(self) -> sqlite3.Connection:
        if self._db is None:
            raise StoreFailure(f"База памяти переводов не открыта: {self._db_path}")
        return self._db

    # ── Публичные методы ──

    def get(self, source: str, target_lang: str) -> Optional[str]:
        """
        Точный поиск перевода.

        При попадании счётчик использований увеличивается в той же транзакции.
        """
        try:
            with self._lock:
                conn = self._conn()
                with conn:
                    row = conn.execute(
                        'SELECT id, translation FROM translations '
                        'WHERE source = ? AND target_lang = ?',
                        (source, target_lang),
                    ).fetchone()
                    if row is None:
                        return None
                    conn.execute(
                        'UPDATE translations SET usage_count = usage_count + 1 WHERE id = ?',
                        (row['id'],),
                    )
            logger.debug("Память: точное совпадение для %r (%s)", source[:40], target_lang)
            return row['translation']
        except (sqlite3.Error, StoreFailure) as exc:
            logger.warning("Ошибка чтения памяти переводов: %s", exc)
            return None

    def put(self, source: str, target_lang: str, translation: str,
            source_type: str = "api") -> bool:
        """Upsert по (source, target_lang). Возвращает True при успехе."""
        if source_type not in SOURCE_TYPES:
            raise ValueError(f"Неизвестный source_type: {source_type!r}")
        now = _now()
        try:
            with self._lock:
                conn = self._conn()
                with conn:
                    conn.execute(_UPSERT_SQL, (source, target_lang, translation,
                                               source_type, now, now))
            return True
        except (sqlite3.Error, StoreFailure) as exc:
            logger.warning("Ошибка записи в память переводов: %s", exc)
            return False

    def put_batch(self, entries: Iterable[Sequence[Any]]) -> int:
        """
        Пакетный upsert одной транзакцией (всё или ничего).

        Аргументы:
            entries: кортежи (source, target_lang, translation[, source_type]).

        Возвращает:
            количество записанных строк (0 при откате).
        """
        now = _now()
        rows = []
        for entry in entries:
            source, target_lang, translation = entry[0], entry[1], entry[2]
            source_type = entry[3] if len(entry) > 3 else "api"
            rows.append((source, target_lang, translation, source_type, now, now))
        if not rows:
            return 0

        try:
            with self._lock:
                conn = self._conn()
                with conn:
                    conn.executemany(_UPSERT_SQL, rows)
            logger.debug("Память: записано %d переводов", len(rows))
            return len(rows)
        except (sqlite3.Error, StoreFailure) as exc:
            logger.warning("Пакетная запись в память откатилась: %s", exc)
            return 0

    def find_similar(self, source: str, target_lang: str, limit: int = 5) -> List[SimilarMatch]:
        """
        Нечёткий поиск среди самых используемых записей языка.

        Возвращает не более limit совпадений с похожестью >= порога,
        отсортированных по убыванию похожести.
        """
        try:
            with self._lock:
                rows = self._conn().execute(
                    'SELECT source, translation FROM translations '
                    'WHERE target_lang = ? ORDER BY usage_count DESC LIMIT ?',
                    (target_lang, self._candidate_limit),
                ).fetchall()
        except (sqlite3.Error, StoreFailure) as exc:
            logger.warning("Ошибка нечёткого поиска в памяти: %s", exc)
            return []

        matches = []
        for row in rows:
            score = similarity(source, row['source'])
            if score >= self._threshold:
                matches.append(SimilarMatch(row['source'], row['translation'], score))
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    def record(self, source: str, target_lang: str) -> Optional[MemoryRecord]:
        """Полная запись без увеличения счётчика."""
        try:
            with self._lock:
                row = self._conn().execute(
                    'SELECT * FROM translations WHERE source = ? AND target_lang = ?',
                    (source, target_lang),
                ).fetchone()
        except (sqlite3.Error, StoreFailure) as exc:
            logger.warning("Ошибка чтения памяти переводов: %s", exc)
            return None
        return self._to_record(row) if row is not None else None

    def export(self, target_lang: Optional[str] = None) -> List[MemoryRecord]:
        """Все записи (или записи одного языка)."""
        sql = 'SELECT * FROM translations'
        params: tuple = ()
        if target_lang:
            sql += ' WHERE target_lang = ?'
            params = (target_lang,)
        sql += ' ORDER BY target_lang, source'
        try:
            with self._lock:
                rows = self._conn().execute(sql, params).fetchall()
        except (sqlite3.Error, StoreFailure) as exc:
            logger.warning("Ошибка экспорта памяти переводов: %s", exc)
            return []
        return [self._to_record(row) for row in rows]

    def statistics(self, target_lang: Optional[str] = None) -> Dict[str, Any]:
        """Количество записей всего и по языкам."""
        sql = 'SELECT target_lang, COUNT(*) AS cnt FROM translations'
        params: tuple = ()
        if target_lang:
            sql += ' WHERE target_lang = ?'
            params = (target_lang,)
        sql += ' GROUP BY target_lang'
        try:
            with self._lock:
                rows = self._conn().execute(sql, params).fetchall()
        except (sqlite3.Error, StoreFailure) as exc:
            logger.warning("Ошибка статистики памяти переводов: %s", exc)
            return {"total": 0, "by_language": {}}

        by_language = {row['target_lang']: row['cnt'] for row in rows}
        return {"total": sum(by_language.values()), "by_language": by_language}

    def clear(self) -> int:
        """Удаляет все записи. Возвращает количество удалённых."""
        try:
            with self._lock:
                conn = self._conn()
                with conn:
                    deleted = conn.execute('DELETE FROM translations').rowcount
            logger.info("Память переводов очищена: удалено %d записей", deleted)
            return deleted
        except (sqlite3.Error, StoreFailure) as exc:
            logger.warning("Ошибка очистки памяти переводов: %s", exc)
            return 0

    def close(self) -> None:
        with self._lock:
            if self._db is not None:
                self._db.close()
                self._db = None

    def __enter__(self) -> "TranslationMemory":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @staticmethod
    def _to_record(row: sqlite3.Row) -> MemoryRecord:
        return MemoryRecord(
            source=row['source'],
            target_lang=row['target_lang'],
            translation=row['translation'],
            source_type=row['source_type'],
            usage_count=row['usage_count'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )
