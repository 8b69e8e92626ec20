"""
Тесты памяти переводов на временном файле SQLite.
"""

from pathlib import Path

import pytest

from i18n_pilot.memory import TranslationMemory


@pytest.fixture
def memory(tmp_path: Path):
    tm = TranslationMemory(tmp_path / ".translator" / "memory.db", threshold=0.7)
    yield tm
    tm.close()


class TestExactLookup:
    """Точные совпадения и счётчик использований."""

    def test_miss(self, memory: TranslationMemory) -> None:
        assert memory.get("保存", "en") is None

    def test_put_then_get(self, memory: TranslationMemory) -> None:
        assert memory.put("保存", "en", "Save") is True
        assert memory.get("保存", "en") == "Save"
        assert memory.get("保存", "ja") is None

    def test_usage_count(self, memory: TranslationMemory) -> None:
        memory.put("保存", "en", "Save")
        memory.get("保存", "en")
        record = memory.record("保存", "en")
        assert record is not None
        assert record.usage_count == 2
        assert record.source_type == "api"

    def test_upsert_overwrites(self, memory: TranslationMemory) -> None:
        memory.put("保存", "en", "Save")
        memory.put("保存", "en", "Store", source_type="manual")
        record = memory.record("保存", "en")
        assert record.translation == "Store"
        assert record.source_type == "manual"
        assert memory.statistics()["total"] == 1

    def test_invalid_source_type(self, memory: TranslationMemory) -> None:
        with pytest.raises(ValueError):
            memory.put("保存", "en", "Save", source_type="robot")

    def test_persisted_between_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "tm.db"
        with TranslationMemory(path) as first:
            first.put("保存", "en", "Save")
        with TranslationMemory(path) as second:
            assert second.get("保存", "en") == "Save"


class TestBatch:
    """Пакетная запись - одна транзакция."""

    def test_put_batch(self, memory: TranslationMemory) -> None:
        count = memory.put_batch([
            ("保存", "en", "Save"),
            ("删除", "en", "Delete", "imported"),
        ])
        assert count == 2
        assert memory.get("删除", "en") == "Delete"
        assert memory.record("删除", "en").source_type == "imported"

    def test_failed_batch_leaves_no_rows(self, memory: TranslationMemory) -> None:
        count = memory.put_batch([
            ("保存", "en", "Save"),
            ("删除", "en", None),
        ])
        assert count == 0
        assert memory.get("保存", "en") is None
        assert memory.statistics()["total"] == 0

    def test_empty_batch(self, memory: TranslationMemory) -> None:
        assert memory.put_batch([]) == 0


class TestFuzzy:
    """Нечёткий поиск по Левенштейну."""

    def test_similar_found(self, memory: TranslationMemory) -> None:
        memory.put("保存成功", "en", "Saved successfully")
        matches = memory.find_similar("保存成功了", "en")
        assert len(matches) == 1
        assert matches[0].source == "保存成功"
        assert matches[0].translation == "Saved successfully"
        assert matches[0].similarity == pytest.approx(0.8)

    def test_below_threshold(self, memory: TranslationMemory) -> None:
        memory.put("保存成功", "en", "Saved successfully")
        assert memory.find_similar("删除", "en") == []

    def test_other_language_ignored(self, memory: TranslationMemory) -> None:
        memory.put("保存成功", "ja", "保存しました")
        assert memory.find_similar("保存成功了", "en") == []

    def test_sorted_and_limited(self, memory: TranslationMemory) -> None:
        memory.put("保存成功了吗", "en", "a")
        memory.put("保存成功了", "en", "b")
        matches = memory.find_similar("保存成功了", "en", limit=1)
        assert [m.translation for m in matches] == ["b"]


class TestMaintenance:
    def test_statistics_and_clear(self, memory: TranslationMemory) -> None:
        memory.put_batch([("保存", "en", "Save"), ("保存", "ja", "保存"), ("删除", "en", "Delete")])
        stats = memory.statistics()
        assert stats == {"total": 3, "by_language": {"en": 2, "ja": 1}}
        assert memory.statistics("ja")["total"] == 1

        assert [r.source for r in memory.export("en")] == ["保存", "删除"]

        assert memory.clear() == 3
        assert memory.statistics()["total"] == 0

    def test_unavailable_store_degrades(self, tmp_path: Path) -> None:
        tm = TranslationMemory(tmp_path)
        assert tm.available is False
        assert tm.get("保存", "en") is None
        assert tm.put("保存", "en", "Save") is False
        assert tm.put_batch([("保存", "en", "Save")]) == 0
        assert tm.find_similar("保存", "en") == []
        assert tm.statistics() == {"total": 0, "by_language": {}}
        tm.close()
