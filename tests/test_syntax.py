"""
Тесты поиска мест текста в JS/TS/JSX и Python, импорта функции перевода
и склейки правок по байтовым позициям.
"""

import pytest

from i18n_pilot.errors import ParseFailure
from i18n_pilot.syntax import (
    JavaScriptSyntax,
    LineIndex,
    PythonSyntax,
    TextSite,
    render_site,
    splice,
    syntax_for,
    unescape_js,
)


def js_texts(source: str, dialect: str = "javascript"):
    return [s.text for s in JavaScriptSyntax(dialect).sites(source.encode("utf-8"))]


class TestJavaScriptSites:
    """Строки, шаблоны и JSX в дереве tree-sitter."""

    def test_plain_strings(self) -> None:
        source = "const a = '你好';\nconst b = \"hello\";\n"
        sites = JavaScriptSyntax().sites(source.encode("utf-8"))
        assert len(sites) == 1
        site = sites[0]
        assert site.text == "你好"
        assert site.kind == "string"
        assert (site.line, site.column) == (1, 11)
        assert source.encode("utf-8")[site.start:site.end] == "'你好'".encode("utf-8")

    def test_columns_count_characters(self) -> None:
        sites = JavaScriptSyntax().sites("const b = '中' + '文';".encode("utf-8"))
        assert [(s.text, s.column) for s in sites] == [("中", 11), ("文", 17)]

    def test_escaped_string_value(self) -> None:
        assert js_texts('const c = "\\u4f60\\u597d";') == ["你好"]

    def test_skipped_non_text_strings(self) -> None:
        source = (
            "import x from './模块';\n"
            "const y = require('模块');\n"
            "console.log(t('已翻译'));\n"
            "i18n.t('已翻译');\n"
            "const o = { '键': '值' };\n"
            "o['键'];\n"
        )
        assert js_texts(source) == ["值"]

    def test_export_default_text_extracted(self) -> None:
        source = (
            "export default '你好';\n"
            "export { a } from './模块';\n"
            "export * from './模块二';\n"
            "export const b = '保存';\n"
        )
        assert js_texts(source) == ["你好", "保存"]

    def test_template_chunks(self) -> None:
        sites = JavaScriptSyntax().sites("const m = `共 ${n} 条记录`;".encode("utf-8"))
        assert [(s.kind, s.text) for s in sites] == [("template", "共"), ("template", "条记录")]

    def test_template_substitution_strings(self) -> None:
        assert js_texts("const m = `${ok ? '成功' : '失败'}`;") == ["成功", "失败"]

    def test_jsx_text_and_attribute(self) -> None:
        source = 'const A = () => <div title="标题">你好世界</div>;\n'
        sites = JavaScriptSyntax().sites(source.encode("utf-8"))
        assert [(s.kind, s.text) for s in sites] == [
            ("jsx_attribute", "标题"),
            ("jsx_text", "你好世界"),
        ]

    def test_typescript_literal_type_skipped(self) -> None:
        source = "type Mode = '模式';\nconst label: string = '标签';\n"
        assert js_texts(source, "typescript") == ["标签"]

    def test_tsx(self) -> None:
        source = "const A = (p: { n: number }) => <span>共{p.n}条</span>;\n"
        assert js_texts(source, "tsx") == ["共", "条"]

    def test_parse_error(self) -> None:
        with pytest.raises(ParseFailure) as exc_info:
            JavaScriptSyntax().sites("const a = '你好' +;".encode("utf-8"), "bad.js")
        assert exc_info.value.path == "bad.js"

    def test_is_valid(self) -> None:
        syntax = JavaScriptSyntax()
        assert syntax.is_valid(b"const a = 1;") is True
        assert syntax.is_valid(b"const a = ;") is False


class TestJavaScriptImports:
    """Проверка и добавление import { t }."""

    def test_has_import_by_module(self) -> None:
        assert JavaScriptSyntax().has_import(b"import { t } from 'i18n';\n", "i18n") is True

    def test_has_import_by_binding(self) -> None:
        source = b"import { useI18n } from 'vue-i18n';\nconst { t } = useI18n();\n"
        assert JavaScriptSyntax().has_import(source, "i18n") is True

    def test_has_import_by_alias(self) -> None:
        source = b"import { translate as t } from 'lib';\n"
        assert JavaScriptSyntax().has_import(source, "i18n") is True

    def test_no_import(self) -> None:
        assert JavaScriptSyntax().has_import(b"const title = 1;\n", "i18n") is False

    def test_add_import_top(self) -> None:
        result = JavaScriptSyntax().add_import(b"const a = 1;\n", "i18n")
        assert result == b"import { t } from 'i18n';\nconst a = 1;\n"

    def test_add_import_after_shebang(self) -> None:
        result = JavaScriptSyntax().add_import(b"#!/usr/bin/env node\nconst a = 1;\n", "@/i18n")
        assert result == b"#!/usr/bin/env node\nimport { t } from '@/i18n';\nconst a = 1;\n"


class TestPythonSites:
    """Строки Python через ast."""

    SOURCE = (
        '"""模块文档"""\n'
        'MESSAGES = {"键": "值"}\n'
        "def greet(name):\n"
        '    """函数文档"""\n'
        '    print("你好")\n'
        '    return t("已翻译")\n'
        'greeting = f"你好 {name}"\n'
    )

    def test_sites(self) -> None:
        sites = PythonSyntax().sites(self.SOURCE.encode("utf-8"))
        assert [(s.kind, s.text, s.replaceable) for s in sites] == [
            ("string", "值", True),
            ("string", "你好", True),
            ("fstring", "你好", False),
        ]

    def test_positions(self) -> None:
        source = self.SOURCE.encode("utf-8")
        site = PythonSyntax().sites(source)[0]
        assert (site.line, site.column) == (2, 18)
        assert source[site.start:site.end] == '"值"'.encode("utf-8")

    def test_syntax_error(self) -> None:
        with pytest.raises(ParseFailure):
            PythonSyntax().sites("x = (".encode("utf-8"), "bad.py")

    def test_has_import(self) -> None:
        syntax = PythonSyntax()
        assert syntax.has_import(b"from i18n import t\n", "i18n") is True
        assert syntax.has_import(b"from app.lang import gettext as t\n", "i18n") is True
        assert syntax.has_import(b"import os\n", "i18n") is False

    def test_add_import_after_docstring_and_future(self) -> None:
        source = b'"""doc"""\nfrom __future__ import annotations\nX = 1\n'
        result = PythonSyntax().add_import(source, "i18n")
        assert result == b'"""doc"""\nfrom __future__ import annotations\nfrom i18n import t\nX = 1\n'

    def test_add_import_after_shebang(self) -> None:
        source = b"#!/usr/bin/env python3\n# -*- coding: utf-8 -*-\nX = 1\n"
        result = PythonSyntax().add_import(source, "i18n")
        assert result == b"#!/usr/bin/env python3\n# -*- coding: utf-8 -*-\nfrom i18n import t\nX = 1\n"


class TestHelpers:
    def test_splice_applies_from_end(self) -> None:
        assert splice(b"abcdef", [(0, 1, b"X"), (3, 4, b"YY")]) == b"XbcYYef"

    def test_line_index(self) -> None:
        source = "ab\n你好c".encode("utf-8")
        index = LineIndex(source)
        assert index.position(source.index(b"c")) == (2, 3)
        assert index.offset(2, 0) == 3

    def test_render_site(self) -> None:
        def site(kind: str) -> TextSite:
            return TextSite(kind=kind, text="x", start=0, end=1, line=1, column=1)

        assert render_site(site("string"), "t", "k") == "t('k')"
        assert render_site(site("jsx_text"), "t", "k") == "{t('k')}"
        assert render_site(site("jsx_attribute"), "t", "k") == "{t('k')}"
        assert render_site(site("template"), "t", "k") == "${t('k')}"
        assert render_site(site("string"), "t", "it's") == "t('it\\'s')"

    def test_unescape(self) -> None:
        assert unescape_js("a\\nb") == "a\nb"
        assert unescape_js("\\x41\\u{1F600}") == "A\U0001F600"

    def test_syntax_for(self) -> None:
        assert isinstance(syntax_for("a.tsx"), JavaScriptSyntax)
        assert isinstance(syntax_for("a.py"), PythonSyntax)
        assert syntax_for("a.vue") is None
        assert syntax_for("a.txt") is None
