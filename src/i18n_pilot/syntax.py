"""
Места текста в синтаксическом дереве (text sites).

Экстрактор и заменитель обходят дерево одинаково: сначала неизменяемый
проход собирает TextSite с байтовыми границами, затем заменитель
склеивает новые фрагменты по позициям в обратном порядке.

- JavaScript / JSX / TypeScript / TSX - деревья tree-sitter
- Python - стандартный модуль ast (как в сканере строк проекта)
"""

import ast
import bisect
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import tree_sitter_javascript as tsjs
import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser

from .errors import ParseFailure
from .models import (
    SITE_FSTRING, SITE_JSX_ATTRIBUTE, SITE_JSX_TEXT, SITE_STRING, SITE_TEMPLATE,
)
from .patterns import DEFAULT_SCRIPT, extract_script_text


JS_DIALECTS = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}

_LANGUAGES = {
    "javascript": Language(tsjs.language()),
    "typescript": Language(tsts.language_typescript()),
    "tsx": Language(tsts.language_tsx()),
}

# Parser не потокобезопасен - по экземпляру на поток
_local = threading.local()

_JS_ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|.)", re.DOTALL)
_JS_SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0",
    "\n": "", "\r\n": "",
}

# Родители, у которых строка - имя, а не значение
_NAME_PARENTS = {
    "method_definition", "public_field_definition", "field_definition",
    "property_signature", "method_signature", "enum_assignment",
    "module", "internal_module",
}
# Строка в поле source этих узлов - путь модуля
_SOURCE_PARENTS = {"import_statement", "export_statement", "import_require_clause"}


@dataclass
class TextSite:
    """Найденный в исходнике фрагмент текста с байтовыми границами."""
    kind: str
    text: str
    start: int
    end: int
    line: int
    column: int
    replaceable: bool = True


def quote_key(key: str) -> str:
    return "'" + key.replace("\\", "\\\\").replace("'", "\\'") + "'"


def render_call(function: str, key: str) -> str:
    return f"{function}({quote_key(key)})"


def render_site(site: TextSite, function: str, key: str) -> str:
    """Текст, которым заменяется фрагмент."""
    call = render_call(function, key)
    if site.kind in (SITE_JSX_TEXT, SITE_JSX_ATTRIBUTE):
        return "{" + call + "}"
    if site.kind == SITE_TEMPLATE:
        return "${" + call + "}"
    return call


def splice(source: bytes, edits: List[Tuple[int, int, bytes]]) -> bytes:
    """Применяет правки (start, end, bytes) с конца к началу."""
    result = source
    for start, end, new in sorted(edits, key=lambda e: e[0], reverse=True):
        result = result[:start] + new + result[end:]
    return result


class LineIndex:
    """Перевод байтового смещения в (строка, колонка) с отсчётом от 1."""

    def __init__(self, source: bytes):
        self._source = source
        self._starts = [0] + [m.end() for m in re.finditer(b"\n", source)]

    def offset(self, line: int, byte_column: int) -> int:
        return self._starts[line - 1] + byte_column

    def position(self, offset: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self._starts, offset)
        prefix = self._source[self._starts[line - 1]:offset]
        return line, len(prefix.decode("utf-8", errors="replace")) + 1


class SourceSyntax:
    """Общий интерфейс семейства исходников."""

    function: str = "t"

    def sites(self, source: bytes, path: str = "<source>") -> List[TextSite]:
        raise NotImplementedError

    def is_valid(self, source: bytes) -> bool:
        raise NotImplementedError

    def has_import(self, source: bytes, module: str) -> bool:
        raise NotImplementedError

    def add_import(self, source: bytes, module: str) -> bytes:
        raise NotImplementedError


def unescape_js(raw: str) -> str:
    """Значение JS-строки по её сырому содержимому между кавычками."""
    def _sub(match):
        seq = match.group(1)
        if seq in _JS_SIMPLE_ESCAPES:
            return _JS_SIMPLE_ESCAPES[seq]
        if seq.startswith("u{"):
            return chr(int(seq[2:-1], 16))
        if seq.startswith("u") and len(seq) == 5:
            return chr(int(seq[1:], 16))
        if seq.startswith("x") and len(seq) == 3:
            return chr(int(seq[1:], 16))
        return seq
    return _JS_ESCAPE_RE.sub(_sub, raw)


def _same(a: Optional[Node], b: Optional[Node]) -> bool:
    return (a is not None and b is not None and a.type == b.type
            and a.start_byte == b.start_byte and a.end_byte == b.end_byte)


def _parser(dialect: str) -> Parser:
    parsers: Dict[str, Parser] = getattr(_local, "parsers", None)
    if parsers is None:
        parsers = _local.parsers = {}
    if dialect not in parsers:
        parsers[dialect] = Parser(_LANGUAGES[dialect])
    return parsers[dialect]


class JavaScriptSyntax(SourceSyntax):
    """Обход дерева tree-sitter для JS, JSX, TS и TSX."""

    def __init__(self, dialect: str = "javascript", script: str = DEFAULT_SCRIPT,
                 function: str = "t"):
        if dialect not in _LANGUAGES:
            raise ValueError(f"Неизвестный диалект: {dialect!r}")
        self.dialect = dialect
        self.script = script
        self.function = function

    @classmethod
    def for_path(cls, path: Path, **kwargs) -> "JavaScriptSyntax":
        return cls(JS_DIALECTS[Path(path).suffix.lower()], **kwargs)

    def parse(self, source: bytes):
        return _parser(self.dialect).parse(source)

    def is_valid(self, source: bytes) -> bool:
        return not self.parse(source).root_node.has_error

    # ── Сбор мест ──

    def sites(self, source: bytes, path: str = "<source>") -> List[TextSite]:
        tree = self.parse(source)
        if tree.root_node.has_error:
            raise ParseFailure(path, "синтаксическая ошибка в дереве tree-sitter")

        index = LineIndex(source)
        found: List[TextSite] = []
        stack = [tree.root_node]
        while stack:
            node = stack.pop()
            if node.type == "string":
                if not self._is_skipped(node):
                    self._string_site(node, source, index, found)
                continue
            if node.type == "template_string":
                if self._is_skipped(node):
                    continue
                self._template_sites(node, source, index, found)
            elif node.type == "jsx_text":
                self._jsx_text_site(node, source, index, found)
                continue
            stack.extend(reversed(node.children))

        found.sort(key=lambda s: s.start)
        return found

    def _make_site(self, kind: str, text: str, start: int, end: int,
                   index: LineIndex) -> TextSite:
        line, column = index.position(start)
        return TextSite(kind=kind, text=text, start=start, end=end, line=line, column=column)

    def _string_site(self, node: Node, source: bytes, index: LineIndex,
                     found: List[TextSite]) -> None:
        raw = source[node.start_byte + 1:node.end_byte - 1].decode("utf-8")
        text = extract_script_text(unescape_js(raw), self.script)
        if text is None:
            return
        parent = node.parent
        kind = SITE_JSX_ATTRIBUTE if parent is not None and parent.type == "jsx_attribute" else SITE_STRING
        found.append(self._make_site(kind, text, node.start_byte, node.end_byte, index))

    def _template_sites(self, node: Node, source: bytes, index: LineIndex,
                        found: List[TextSite]) -> None:
        # Статические куски - промежутки между ${...}, без обратных кавычек
        bounds = []
        cursor = node.start_byte + 1
        for child in node.children:
            if child.type == "template_substitution":
                bounds.append((cursor, child.start_byte))
                cursor = child.end_byte
        bounds.append((cursor, node.end_byte - 1))

        for start, end in bounds:
            if end <= start:
                continue
            site = self._trimmed_site(SITE_TEMPLATE, source, start, end, index)
            if site is not None:
                found.append(site)

    def _jsx_text_site(self, node: Node, source: bytes, index: LineIndex,
                       found: List[TextSite]) -> None:
        site = self._trimmed_site(SITE_JSX_TEXT, source, node.start_byte, node.end_byte, index)
        if site is not None:
            found.append(site)

    def _trimmed_site(self, kind: str, source: bytes, start: int, end: int,
                      index: LineIndex) -> Optional[TextSite]:
        """Место, покрывающее только обрезанную часть фрагмента."""
        raw = source[start:end].decode("utf-8")
        text = extract_script_text(raw, self.script)
        if text is None:
            return None
        lead = len(raw) - len(raw.lstrip())
        trail = len(raw) - len(raw.rstrip())
        site_start = start + len(raw[:lead].encode("utf-8"))
        site_end = end - len(raw[len(raw) - trail:].encode("utf-8")) if trail else end
        return self._make_site(kind, text, site_start, site_end, index)

    def _is_skipped(self, node: Node) -> bool:
        """Строки, которые не являются пользовательским текстом."""
        parent = node.parent
        if parent is None:
            return False
        if parent.type in _SOURCE_PARENTS and _same(parent.child_by_field_name("source"), node):
            return True
        if parent.type == "literal_type":
            return True
        if parent.type == "pair" and _same(parent.child_by_field_name("key"), node):
            return True
        if parent.type in _NAME_PARENTS:
            if _same(parent.child_by_field_name("name"), node) or \
               _same(parent.child_by_field_name("property"), node):
                return True
        if parent.type == "enum_body":
            return True
        if parent.type == "subscript_expression" and _same(parent.child_by_field_name("index"), node):
            return True
        if parent.type == "arguments" and parent.parent is not None \
                and parent.parent.type == "call_expression":
            return self._is_excluded_call(parent.parent)
        return False

    def _is_excluded_call(self, call: Node) -> bool:
        callee = call.child_by_field_name("function")
        if callee is None:
            return False
        if callee.type == "import":
            return True
        if callee.type == "identifier":
            return callee.text.decode("utf-8") in (self.function, "require")
        if callee.type == "member_expression":
            prop = callee.child_by_field_name("property")
            return prop is not None and prop.text.decode("utf-8") == self.function
        return False

    # ── Импорт ──

    def has_import(self, source: bytes, module: str) -> bool:
        """Есть ли уже import/require модуля или привязка имени функции."""
        tree = self.parse(source)
        name_re = re.compile(r"\b" + re.escape(self.function) + r"\b")
        for stmt in tree.root_node.children:
            text = stmt.text.decode("utf-8", errors="replace")
            if stmt.type == "import_statement":
                src = stmt.child_by_field_name("source")
                if src is not None and unescape_js(src.text.decode("utf-8")[1:-1]) == module:
                    return True
                for child in stmt.children:
                    if child.type == "import_clause" and name_re.search(child.text.decode("utf-8")):
                        return True
            elif stmt.type in ("lexical_declaration", "variable_declaration"):
                if name_re.search(text.split("=", 1)[0]):
                    return True
        return False

    def add_import(self, source: bytes, module: str) -> bytes:
        line = f"import {{ {self.function} }} from {quote_key(module)};\n".encode("utf-8")
        position = 0
        if source.startswith(b"#!"):
            newline = source.find(b"\n")
            position = len(source) if newline < 0 else newline + 1
            if newline < 0:
                line = b"\n" + line
        return source[:position] + line + source[position:]


class _PythonSiteVisitor(ast.NodeVisitor):
    """Собирает строковые константы, пропуская docstring, ключи словарей и вызовы t()."""

    def __init__(self, function: str):
        self.function = function
        self.nodes: List[Tuple[ast.AST, str, str, bool]] = []
        self._skipped = set()

    def _mark_docstring(self, node):
        body = getattr(node, "body", None)
        if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant) \
                and isinstance(body[0].value.value, str):
            self._skipped.add(id(body[0].value))

    def visit_Module(self, node):
        self._mark_docstring(node)
        self.generic_visit(node)

    def visit_ClassDef(self, node):
        self._mark_docstring(node)
        self.generic_visit(node)

    def visit_FunctionDef(self, node):
        self._mark_docstring(node)
        self.generic_visit(node)

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_Dict(self, node):
        for key in node.keys:
            if isinstance(key, ast.Constant):
                self._skipped.add(id(key))
        self.generic_visit(node)

    def visit_Call(self, node):
        func = node.func
        name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
        if name == self.function:
            self.visit(func)
            return
        self.generic_visit(node)

    def visit_MatchValue(self, node):
        return

    def visit_JoinedStr(self, node):
        for value in node.values:
            if isinstance(value, ast.Constant) and isinstance(value.value, str):
                self.nodes.append((node, value.value, SITE_FSTRING, False))
            elif isinstance(value, ast.FormattedValue):
                self.visit(value.value)

    def visit_Constant(self, node):
        if isinstance(node.value, str) and id(node) not in self._skipped:
            self.nodes.append((node, node.value, SITE_STRING, True))


class PythonSyntax(SourceSyntax):
    """Строки Python-модуля через стандартный ast."""

    def __init__(self, script: str = DEFAULT_SCRIPT, function: str = "t"):
        self.script = script
        self.function = function

    def _parse(self, source: bytes, path: str = "<source>") -> ast.Module:
        try:
            return ast.parse(source, filename=path)
        except (SyntaxError, ValueError) as e:
            raise ParseFailure(path, str(e))

    def is_valid(self, source: bytes) -> bool:
        try:
            ast.parse(source)
        except (SyntaxError, ValueError):
            return False
        return True

    def sites(self, source: bytes, path: str = "<source>") -> List[TextSite]:
        tree = self._parse(source, path)
        visitor = _PythonSiteVisitor(self.function)
        visitor.visit(tree)

        index = LineIndex(source)
        found: List[TextSite] = []
        for node, value, kind, replaceable in visitor.nodes:
            text = extract_script_text(value, self.script)
            if text is None:
                continue
            start = index.offset(node.lineno, node.col_offset)
            end = index.offset(node.end_lineno, node.end_col_offset)
            line, column = index.position(start)
            found.append(TextSite(kind=kind, text=text, start=start, end=end,
                                  line=line, column=column, replaceable=replaceable))
        found.sort(key=lambda s: s.start)
        return found

    def has_import(self, source: bytes, module: str) -> bool:
        tree = self._parse(source)
        for node in ast.walk(tree):
            if isinstance(node, ast.ImportFrom) and node.module == module:
                if any(alias.name == self.function for alias in node.names):
                    return True
            if isinstance(node, (ast.Import, ast.ImportFrom)):
                for alias in node.names:
                    if (alias.asname or alias.name) == self.function:
                        return True
        return False

    def add_import(self, source: bytes, module: str) -> bytes:
        """Вставляет импорт после docstring модуля и from __future__."""
        tree = self._parse(source)
        after_line = 0
        for i, stmt in enumerate(tree.body):
            is_doc = i == 0 and isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant) \
                and isinstance(stmt.value.value, str)
            is_future = isinstance(stmt, ast.ImportFrom) and stmt.module == "__future__"
            if not (is_doc or is_future):
                break
            after_line = stmt.end_lineno

        lines = source.splitlines(keepends=True)
        if after_line == 0:
            # Шебанг и строки кодировки остаются первыми
            while after_line < len(lines) and lines[after_line].startswith(b"#") and (
                    lines[after_line].startswith(b"#!") or b"coding" in lines[after_line]):
                after_line += 1
        if after_line > 0 and after_line <= len(lines) and not lines[after_line - 1].endswith(b"\n"):
            lines[after_line - 1] += b"\n"
        statement = f"from {module} import {self.function}\n".encode("utf-8")
        lines.insert(after_line, statement)
        return b"".join(lines)


def syntax_for(path: Path, script: str = DEFAULT_SCRIPT, function: str = "t") -> Optional[SourceSyntax]:
    """Синтаксис по расширению файла или None."""
    suffix = Path(path).suffix.lower()
    if suffix in JS_DIALECTS:
        return JavaScriptSyntax(JS_DIALECTS[suffix], script=script, function=function)
    if suffix == ".py":
        return PythonSyntax(script=script, function=function)
    return None
