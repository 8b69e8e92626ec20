"""
Однофайловые компоненты Vue (.vue).

Шаблон разбирается терпимым regex-сканером: текст между соседними тегами
вне {{ }} и статические значения атрибутов; границы тегов учитывают
кавычки в значениях атрибутов. После замены последовательность тегов
шаблона сверяется с исходной. Блоки <script> и <script setup>
проходят через JavaScriptSyntax как отдельные исходники, после чего
результат вклеивается обратно в файл.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .errors import SerializationFailure
from .models import SITE_VUE_ATTRIBUTE, SITE_VUE_TEXT, Replacement
from .patterns import DEFAULT_SCRIPT, extract_script_text
from .syntax import JavaScriptSyntax, TextSite, quote_key, render_call, render_site, splice

logger = logging.getLogger(__name__)

TEMPLATE_OPEN_RE = re.compile(r"<template(\s[^>]*)?>", re.IGNORECASE)
TEMPLATE_CLOSE = "</template>"
SCRIPT_RE = re.compile(r"<script(\s[^>]*)?>(.*?)</script>", re.IGNORECASE | re.DOTALL)
LANG_RE = re.compile(r"""\blang\s*=\s*["']([\w-]+)["']""")
SETUP_RE = re.compile(r"\bsetup\b")
COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
MUSTACHE_RE = re.compile(r"\{\{.*?\}\}", re.DOTALL)
# Кавычки внутри тега учитываются: v-if="n > 0" не закрывает тег
TAG_RE = re.compile(r"""</?([a-zA-Z][\w:.-]*)(?:"[^"]*"|'[^']*'|[^>"'])*>""")
TEXT_RE = re.compile(r"[^\x00]+")
ATTR_RE = re.compile(r"""(?<=\s)([^\s=/>"']+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")

# Динамические атрибуты и директивы не трогаем
BOUND_PREFIXES = (":", "@", "#", "v-")

SCRIPT_DIALECTS = {"ts": "typescript", "tsx": "tsx", "js": "javascript", "jsx": "javascript"}


@dataclass
class ScriptRegion:
    start: int
    end: int
    setup: bool = False
    dialect: str = "javascript"


@dataclass
class VueLayout:
    template: Optional[Tuple[int, int]]
    scripts: List[ScriptRegion]


@dataclass
class VueSite:
    """Текст, найденный в .vue файле (позиции в символах)."""
    kind: str
    text: str
    start: int
    end: int
    line: int
    column: int
    attribute: Optional[str] = None


def _position(content: str, offset: int) -> Tuple[int, int]:
    line = content.count("\n", 0, offset) + 1
    column = offset - (content.rfind("\n", 0, offset) + 1) + 1
    return line, column


def mask_template(template: str) -> str:
    """Комментарии -> пробелы, {{ }} -> NUL; длина и позиции сохраняются."""
    masked = COMMENT_RE.sub(lambda m: " " * len(m.group(0)), template)
    return MUSTACHE_RE.sub(lambda m: "\x00" * len(m.group(0)), masked)


def tag_signature(template: str) -> List[str]:
    """Последовательность имён тегов шаблона ('p', '/p', ...)."""
    return [
        ("/" if m.group(0).startswith("</") else "") + m.group(1).lower()
        for m in TAG_RE.finditer(mask_template(template))
    ]


def apply_edits(text: str, edits: List[Tuple[int, int, str]]) -> str:
    for start, end, new in sorted(edits, key=lambda e: e[0], reverse=True):
        text = text[:start] + new + text[end:]
    return text


def split_regions(content: str) -> VueLayout:
    """Шаблон - от первого <template> до последнего </template>; скрипты вне его."""
    template = None
    opening = TEMPLATE_OPEN_RE.search(content)
    closing = content.rfind(TEMPLATE_CLOSE)
    if opening and closing >= opening.end():
        template = (opening.end(), closing)

    scripts = []
    for match in SCRIPT_RE.finditer(content):
        if template and template[0] <= match.start() < template[1]:
            continue
        attrs = match.group(1) or ""
        lang = LANG_RE.search(attrs)
        dialect = SCRIPT_DIALECTS.get(lang.group(1).lower(), "javascript") if lang else "javascript"
        scripts.append(ScriptRegion(
            start=match.start(2),
            end=match.end(2),
            setup=bool(SETUP_RE.search(attrs)),
            dialect=dialect,
        ))
    return VueLayout(template=template, scripts=scripts)


def render_vue_site(site: VueSite, function: str, key: str) -> str:
    call = render_call(function, key)
    if site.kind == SITE_VUE_ATTRIBUTE:
        return f':{site.attribute}="{call}"'
    return "{{ " + call + " }}"


class VueSyntax:
    """Поиск и замена текста в .vue файле."""

    def __init__(self, script: str = DEFAULT_SCRIPT, function: str = "t"):
        self.script = script
        self.function = function

    def _script_syntax(self, region: ScriptRegion) -> JavaScriptSyntax:
        return JavaScriptSyntax(region.dialect, script=self.script, function=self.function)

    # ── Шаблон ──

    def template_sites(self, content: str, layout: VueLayout) -> List[VueSite]:
        if layout.template is None:
            return []
        start, end = layout.template
        segment = content[start:end]
        masked = mask_template(segment)
        sites: List[VueSite] = []

        cursor = 0
        for tag in TAG_RE.finditer(masked):
            self._text_sites(content, masked, start, cursor, tag.start(), sites)
            self._attribute_sites(content, segment, start, tag, sites)
            cursor = tag.end()
        self._text_sites(content, masked, start, cursor, len(masked), sites)

        sites.sort(key=lambda s: s.start)
        return sites

    def _text_sites(self, content: str, masked: str, offset: int, a: int, b: int,
                    sites: List[VueSite]) -> None:
        """Текст между двумя соседними тегами, без {{ }}."""
        for piece in TEXT_RE.finditer(masked, a, b):
            raw = piece.group(0)
            text = extract_script_text(raw, self.script)
            if text is None:
                continue
            site_start = offset + piece.start() + (len(raw) - len(raw.lstrip()))
            line, column = _position(content, site_start)
            sites.append(VueSite(SITE_VUE_TEXT, text, site_start, site_start + len(text),
                                 line, column))

    def _attribute_sites(self, content: str, segment: str, offset: int, tag,
                         sites: List[VueSite]) -> None:
        if tag.group(0).startswith("</"):
            return
        tag_start = offset + tag.start()
        for attr in ATTR_RE.finditer(segment[tag.start():tag.end()]):
            name = attr.group(1)
            if name.startswith(BOUND_PREFIXES):
                continue
            value = attr.group(2) if attr.group(2) is not None else attr.group(3)
            text = extract_script_text(value, self.script)
            if text is None:
                continue
            line, column = _position(content, tag_start + attr.start())
            sites.append(VueSite(SITE_VUE_ATTRIBUTE, text, tag_start + attr.start(),
                                 tag_start + attr.end(), line, column, name))

    # ── Скрипты ──

    def script_sites(self, content: str, region: ScriptRegion,
                     path: str = "<vue>") -> List[TextSite]:
        """Места в блоке скрипта с номерами строк и колонок относительно файла."""
        source = content[region.start:region.end].encode("utf-8")
        sites = self._script_syntax(region).sites(source, path)
        line_offset, column_offset = _position(content, region.start)
        for site in sites:
            if site.line == 1:
                site.column += column_offset - 1
            site.line += line_offset - 1
        return sites

    def sites(self, content: str, path: str = "<vue>") -> List[VueSite]:
        """Все места файла: шаблон и скрипты."""
        layout = split_regions(content)
        found = self.template_sites(content, layout)
        for region in layout.scripts:
            for site in self.script_sites(content, region, path):
                found.append(VueSite(site.kind, site.text, site.start, site.end,
                                     site.line, site.column))
        return found

    # ── Замена ──

    def replace(self, content: str, lookup: Callable[[str], Optional[str]],
                module: str, add_imports: bool = True,
                path: str = "<vue>") -> Tuple[str, List[Replacement]]:
        """
        Заменяет найденный текст вызовами функции перевода.

        Аргументы:
            content: исходный текст .vue файла
            lookup: текст -> ключ или None
            module: модуль, из которого импортируется функция
            add_imports: добавлять ли импорт в блок скрипта

        Возвращает:
            (новый текст, список замен)
        """
        layout = split_regions(content)
        edits: List[Tuple[int, int, str]] = []
        replacements: List[Replacement] = []

        template_edits: List[Tuple[int, int, str]] = []
        offset = layout.template[0] if layout.template else 0
        for site in self.template_sites(content, layout):
            key = lookup(site.text)
            if key is None:
                continue
            new = render_vue_site(site, self.function, key)
            template_edits.append((site.start - offset, site.end - offset, new))
            replacements.append(Replacement(site.line, site.column,
                                            content[site.start:site.end], new, key))

        if template_edits:
            start, end = layout.template
            template = content[start:end]
            new_template = apply_edits(template, template_edits)
            if tag_signature(new_template) != tag_signature(template):
                raise SerializationFailure(path, "разметка <template> после замены изменилась")
            edits.append((start, end, new_template))

        rewritten = []
        for region in layout.scripts:
            source = content[region.start:region.end].encode("utf-8")
            byte_edits = []
            for site in self.script_sites(content, region, path):
                if not site.replaceable:
                    continue
                key = lookup(site.text)
                if key is None:
                    continue
                new = render_site(site, self.function, key)
                byte_edits.append((site.start, site.end, new.encode("utf-8")))
                original = source[site.start:site.end].decode("utf-8")
                replacements.append(Replacement(site.line, site.column, original, new, key))
            rewritten.append(splice(source, byte_edits))

        if replacements and add_imports:
            target = self._import_region(layout)
            if target is None:
                block = f"<script setup>\nimport {{ {self.function} }} from {quote_key(module)};\n</script>\n\n"
                edits.append((0, 0, block))
            else:
                index = layout.scripts.index(target)
                syntax = self._script_syntax(target)
                current = rewritten[index]
                if not syntax.has_import(current, module):
                    # Перевод строки сразу после <script> остаётся на месте
                    lead = len(current) - len(current.lstrip(b"\r\n"))
                    rewritten[index] = current[:lead] + syntax.add_import(current[lead:], module)

        for region, new_source in zip(layout.scripts, rewritten):
            if not self._script_syntax(region).is_valid(new_source):
                raise SerializationFailure(path, "блок <script> после замены не разбирается")
            edits.append((region.start, region.end, new_source.decode("utf-8")))

        logger.debug("%s: %d замен в .vue", path, len(replacements))
        return apply_edits(content, edits), replacements

    @staticmethod
    def _import_region(layout: VueLayout) -> Optional[ScriptRegion]:
        for region in layout.scripts:
            if region.setup:
                return region
        return layout.scripts[0] if layout.scripts else None
