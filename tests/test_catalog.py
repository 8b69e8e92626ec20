"""
Тесты хранилища каталогов переводов.
"""

import json
from pathlib import Path

import pytest

from i18n_pilot.catalog import CatalogStore, flatten, merge_entries
from i18n_pilot.errors import CatalogNotFound
from i18n_pilot.models import TranslationEntry


class TestFlatten:
    def test_nested(self) -> None:
        assert flatten({"a": {"b": "x", "c": {"d": 1}}, "e": None}) == {"a.b": "x", "a.c.d": "1"}


class TestCatalogStore:
    """Чтение, запись и слияние каталогов."""

    def test_missing_catalog_is_empty(self, tmp_path: Path) -> None:
        store = CatalogStore(tmp_path / "locales")
        assert store.exists("en") is False
        assert store.load("en") == {}

    def test_require_missing(self, tmp_path: Path) -> None:
        with pytest.raises(CatalogNotFound) as exc_info:
            CatalogStore(tmp_path).require("zh-CN")
        assert exc_info.value.path.endswith("zh-CN.json")

    def test_save_sorted_and_load(self, tmp_path: Path) -> None:
        store = CatalogStore(tmp_path)
        path = store.save("zh-CN", {"b": "乙", "a": "甲"})
        text = path.read_text(encoding="utf-8")
        assert text.index('"a"') < text.index('"b"')
        assert "甲" in text
        assert store.load("zh-CN") == {"a": "甲", "b": "乙"}

    def test_nested_file_flattened(self, tmp_path: Path) -> None:
        (tmp_path / "en.json").write_text(json.dumps({"menu": {"home": "Home"}}), encoding="utf-8")
        assert CatalogStore(tmp_path).load("en") == {"menu.home": "Home"}

    def test_minify(self, tmp_path: Path) -> None:
        path = CatalogStore(tmp_path, minify=True).save("en", {"a": "A"})
        assert path.read_text(encoding="utf-8") == '{"a":"A"}'

    def test_yaml_format(self, tmp_path: Path) -> None:
        store = CatalogStore(tmp_path, fmt="yaml")
        path = store.save("en", {"a": "A"})
        assert path.name == "en.yaml"
        assert store.load("en") == {"a": "A"}

    def test_backup_and_meta(self, tmp_path: Path) -> None:
        store = CatalogStore(tmp_path, backup=True)
        store.save("en", {"a": "A"})
        store.save("en", {"a": "B"})
        backup = json.loads((tmp_path / "en.backup.json").read_text(encoding="utf-8"))
        assert backup == {"a": "A"}
        meta = json.loads((tmp_path / "_meta.json").read_text(encoding="utf-8"))
        assert meta["en"]["entries"] == 1
        assert store.list_locales() == ["en"]

    def test_merge(self, tmp_path: Path) -> None:
        store = CatalogStore(tmp_path)
        store.save("en", {"a": "A", "b": "B"})
        stats = store.merge("en", {"a": "A", "b": "B2", "c": "C", "d": ""})
        assert stats == {"added": 1, "updated": 1, "unchanged": 1}
        assert store.load("en") == {"a": "A", "b": "B2", "c": "C"}

    def test_merge_without_overwrite(self, tmp_path: Path) -> None:
        store = CatalogStore(tmp_path)
        store.save("en", {"a": "A"})
        stats = store.merge("en", {"a": "other", "b": "B"}, overwrite=False)
        assert stats == {"added": 1, "updated": 0, "unchanged": 1}
        assert store.load("en") == {"a": "A", "b": "B"}

    def test_entries_and_statistics(self, tmp_path: Path) -> None:
        store = CatalogStore(tmp_path)
        store.save("zh-CN", {"a": "甲", "b": "乙"})
        store.save("en", {"a": "A"})
        entries = store.load_entries("zh-CN", ["en", "ja"])
        assert [(e.key, e.source, e.translations) for e in entries] == [
            ("a", "甲", {"en": "A"}),
            ("b", "乙", {}),
        ]
        stats = CatalogStore.statistics(entries, ["en", "ja"])
        assert stats["total"] == 2
        assert stats["by_language"]["en"] == {"translated": 1, "pending": 1, "coverage": 50.0}
        assert stats["by_language"]["ja"]["coverage"] == 0.0

    def test_save_entries_skips_empty(self, tmp_path: Path) -> None:
        store = CatalogStore(tmp_path)
        store.save_entries([
            TranslationEntry("a", "甲", {"en": "A"}),
            TranslationEntry("b", "乙", {"en": ""}),
            TranslationEntry("c", "丙"),
        ], "en")
        assert store.load("en") == {"a": "A"}


class TestMergeEntries:
    def test_new_translations_win(self) -> None:
        existing = [TranslationEntry("a", "甲", {"en": "A", "ja": "ア"})]
        new = [TranslationEntry("a", "甲", {"en": "A2", "ja": ""}), TranslationEntry("b", "乙")]
        merged = merge_entries(existing, new)
        assert [e.key for e in merged] == ["a", "b"]
        assert merged[0].translations == {"en": "A2", "ja": "ア"}
