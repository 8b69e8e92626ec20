"""
Тесты извлечения текста из файлов проекта и реестра ключей.
"""

import json
from pathlib import Path

from i18n_pilot.catalog import CatalogStore
from i18n_pilot.config import ProjectConfig
from i18n_pilot.extractor import KeyRegistry, TextExtractor, collect_files
from i18n_pilot.patterns import generate_hash_key


class TestKeyRegistry:
    """Одинаковый текст - один ключ, разный текст - разные ключи."""

    def test_same_text_same_key(self) -> None:
        registry = KeyRegistry()
        assert registry.assign("保存") == registry.assign("保存")
        assert len(registry) == 1

    def test_hash_style(self) -> None:
        registry = KeyRegistry("hash")
        assert registry.assign("保存") == generate_hash_key("保存")
        assert registry.assign("保存", "user") == generate_hash_key("保存", "user")

    def test_collision_gets_suffix(self) -> None:
        registry = KeyRegistry("literal")
        first = registry.assign("保存 文件")
        second = registry.assign("保存_文件")
        assert first == "保存_文件"
        assert second == "保存_文件_1"
        assert registry.to_dict() == {"保存_文件": "保存 文件", "保存_文件_1": "保存_文件"}

    def test_seed_keeps_previous_keys(self) -> None:
        registry = KeyRegistry()
        registry.seed({"legacy_key": "你好", "user.abc": "保存"})
        assert registry.assign("你好") == "legacy_key"
        assert registry.assign("保存", "user") == "user.abc"
        assert "legacy_key" in registry
        assert registry.get("user.abc") == "保存"


class TestCollectFiles:
    def test_include_and_exclude(self, tmp_path: Path, write_file) -> None:
        write_file("src/a.js", "")
        write_file("src/views/b.vue", "")
        write_file("src/node_modules/lib.js", "")
        write_file("src/a.test.js", "")
        write_file("src/locales/zh-CN.json", "{}")

        files = collect_files(tmp_path, ["src/**/*.js", "src/**/*.vue"],
                              ["node_modules", "locales", "*.test.*"])
        assert [f.relative_to(tmp_path).as_posix() for f in files] == [
            "src/a.js",
            "src/views/b.vue",
        ]


class TestTextExtractor:
    """Извлечение по всем поддерживаемым типам файлов."""

    def test_same_text_in_two_files_shares_key(self, config: ProjectConfig, write_file) -> None:
        a = write_file("src/a.js", "const a = '保存';\n")
        b = write_file("src/b.py", 'LABEL = "保存"\n')
        extractor = TextExtractor(config)
        spans = extractor.extract_files([a, b])

        assert [s.file for s in spans] == ["src/a.js", "src/b.py"]
        assert spans[0].key == spans[1].key
        assert extractor.registry.to_dict() == {spans[0].key: "保存"}

    def test_span_fields(self, config: ProjectConfig, write_file) -> None:
        path = write_file("src/App.jsx", 'const A = () => <div title="标题">你好</div>;\n')
        spans = TextExtractor(config).extract_from_file(path)
        assert [(s.kind, s.text, s.line) for s in spans] == [
            ("jsx_attribute", "标题", 1),
            ("jsx_text", "你好", 1),
        ]
        assert spans[0].file == "src/App.jsx"
        assert spans[0].namespace is None

    def test_vue_file(self, config: ProjectConfig, write_file) -> None:
        path = write_file(
            "src/Comp.vue",
            "<template>\n  <p>你好</p>\n</template>\n<script>\nexport default { name: '组件' };\n</script>\n",
        )
        spans = TextExtractor(config).extract_from_file(path)
        assert [(s.kind, s.text) for s in spans] == [("vue_text", "你好"), ("string", "组件")]

    def test_data_file_context(self, config: ProjectConfig, write_file) -> None:
        path = write_file("src/menu.json", json.dumps(
            {"menu": {"items": ["首页", "ok"], "title": "菜单"}}, ensure_ascii=False))
        spans = TextExtractor(config).extract_from_file(path)
        assert [(s.context, s.text, s.kind) for s in spans] == [
            ("menu.items[0]", "首页", "data"),
            ("menu.title", "菜单", "data"),
        ]

    def test_yaml_data_file(self, config: ProjectConfig, write_file) -> None:
        path = write_file("src/conf.yaml", "title: 标题\nlist:\n  - 第一\n")
        spans = TextExtractor(config).extract_from_file(path)
        assert [(s.context, s.text) for s in spans] == [("title", "标题"), ("list[0]", "第一")]

    def test_parse_failure_yields_nothing(self, config: ProjectConfig, write_file) -> None:
        path = write_file("src/bad.js", "const a = '你好' +;\n")
        extractor = TextExtractor(config)
        assert extractor.extract_from_file(path) == []
        assert len(extractor.registry) == 0

    def test_parse_failure_does_not_stop_batch(self, config: ProjectConfig, write_file) -> None:
        bad = write_file("src/bad.js", "const a = '你好' +;\n")
        good = write_file("src/good.js", "const b = '好的';\n")
        spans = TextExtractor(config).extract_files([bad, good])
        assert [s.text for s in spans] == ["好的"]

    def test_parallel_matches_sequential(self, config: ProjectConfig, write_file) -> None:
        paths = [write_file(f"src/f{i}.js", f"const a = '文本{i % 3}';\n") for i in range(8)]
        sequential = TextExtractor(config).extract_files(paths, workers=1)
        parallel = TextExtractor(config).extract_files(paths, workers=4)
        assert [(s.file, s.key) for s in sequential] == [(s.file, s.key) for s in parallel]

    def test_namespaces(self, config: ProjectConfig, write_file) -> None:
        config.output.split_by_namespace = True
        nested = write_file("src/user/profile.js", "const a = '保存';\n")
        top = write_file("src/main.js", "const a = '保存';\n")
        spans = TextExtractor(config).extract_files([nested, top])

        assert spans[0].namespace == "user"
        assert spans[0].key == generate_hash_key("保存", "user")
        assert spans[1].namespace is None
        assert spans[1].key == generate_hash_key("保存")

    def test_collect_and_write_catalog(self, config: ProjectConfig, write_file) -> None:
        write_file("src/a.ts", "const a: string = '你好';\n")
        write_file("src/locales/zh-CN.json", "{}")
        extractor = TextExtractor(config)
        extractor.extract_files(extractor.collect_files())
        path = extractor.write_catalog()

        assert path == config.locales_dir / "zh-CN.json"
        assert CatalogStore(config.locales_dir).load("zh-CN") == {generate_hash_key("你好"): "你好"}

    def test_report_and_export(self, config: ProjectConfig, write_file, tmp_path: Path) -> None:
        a = write_file("src/a.js", "const a = '你好';\nconst b = `共 ${n} 条`;\n")
        extractor = TextExtractor(config)
        spans = extractor.extract_files([a])
        report = extractor.generate_report(spans)

        assert report["total_spans"] == 3
        assert report["unique_keys"] == 3
        assert report["by_kind"] == {"string": 1, "template": 2}
        assert report["by_file"] == {"src/a.js": 3}

        output = tmp_path / "out" / "spans.json"
        extractor.export_spans(spans, output)
        data = json.loads(output.read_text(encoding="utf-8"))
        assert len(data["spans"]) == 3
        assert data["spans"][0]["text"] == "你好"
        assert "context" not in data["spans"][0]
