"""
Extractor - поиск непереведённого текста в исходниках проекта.

Поддерживаемые файлы:
- .js .jsx .mjs .cjs .ts .tsx - дерево tree-sitter
- .py - стандартный ast
- .vue - шаблон терпимым regex-сканером, <script> через tree-sitter
- .json .yaml .yml - все строковые листья, context = путь до листа

Каждому найденному тексту KeyRegistry выдаёт стабильный ключ:
одинаковый текст -> один ключ, разный текст -> разные ключи.
"""

import fnmatch
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from .catalog import CatalogStore
from .config import ProjectConfig
from .errors import ParseFailure
from .models import SITE_DATA, ExtractedSpan
from .patterns import extract_script_text, generate_hash_key, generate_key
from .syntax import syntax_for
from .vue import VueSyntax

logger = logging.getLogger(__name__)

DATA_SUFFIXES = {".json", ".yaml", ".yml"}


class KeyRegistry:
    """
    Реестр ключей одного запуска извлечения.

    Не синглтон: создаётся на запуск и передаётся всем обработчикам файлов.
    Проверка и вставка ключа выполняются под одной блокировкой.
    """

    def __init__(self, key_style: str = "hash"):
        self.key_style = key_style
        self._generate = generate_key if key_style == "literal" else generate_hash_key
        self._texts: Dict[str, str] = {}
        self._index: Dict[Tuple[Optional[str], str], str] = {}
        self._spans: Dict[str, ExtractedSpan] = {}
        self._lock = threading.Lock()

    def assign(self, text: str, namespace: Optional[str] = None) -> str:
        """
        Выдаёт ключ для текста.

        Тот же текст (в том же пространстве имён) получает прежний ключ;
        при совпадении базового ключа с чужим текстом добавляется _1, _2, ...
        """
        with self._lock:
            known = self._index.get((namespace, text))
            if known is not None:
                return known

            base = self._generate(text, namespace)
            key = base
            suffix = 0
            while key in self._texts and self._texts[key] != text:
                suffix += 1
                key = f"{base}_{suffix}"

            self._texts[key] = text
            self._index[(namespace, text)] = key
            return key

    def register(self, span: ExtractedSpan) -> None:
        """Запоминает первое вхождение ключа."""
        with self._lock:
            self._spans.setdefault(span.key, span)

    def seed(self, catalog: Dict[str, str]) -> None:
        """Предзагрузка каталога прошлого запуска: старые ключи сохраняются."""
        with self._lock:
            for key, text in catalog.items():
                namespace = key.split(".", 1)[0] if "." in key else None
                self._texts.setdefault(key, text)
                self._index.setdefault((namespace, text), key)
        logger.debug("Реестр ключей: загружено %d записей", len(catalog))

    def get(self, key: str) -> Optional[str]:
        return self._texts.get(key)

    def to_dict(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._texts)

    def spans(self) -> List[ExtractedSpan]:
        with self._lock:
            return list(self._spans.values())

    def __len__(self) -> int:
        return len(self._texts)

    def __contains__(self, key: str) -> bool:
        return key in self._texts


@dataclass
class FoundText:
    """Текст, найденный в файле, до выдачи ключа."""
    text: str
    kind: str
    line: Optional[int] = None
    column: Optional[int] = None
    context: Optional[str] = None


def collect_files(root: Path, include: Iterable[str], exclude: Iterable[str]) -> List[Path]:
    """Файлы по glob-шаблонам include без исключённых директорий и шаблонов."""
    root = Path(root)
    exclude = list(exclude)
    files = set()
    for pattern in include:
        for path in root.glob(pattern):
            if not path.is_file():
                continue
            rel = path.relative_to(root)
            # Пропускаем исключённые директории
            if any(part in exclude for part in rel.parts[:-1]):
                continue
            rel_posix = rel.as_posix()
            if any(fnmatch.fnmatch(rel_posix, pat) or fnmatch.fnmatch(path.name, pat)
                   for pat in exclude):
                continue
            files.add(path)
    return sorted(files)


class TextExtractor:
    """Извлечение текста из файлов проекта с выдачей ключей."""

    def __init__(self, config: ProjectConfig, registry: Optional[KeyRegistry] = None):
        self.config = config
        self.registry = registry if registry is not None else KeyRegistry(config.extract.key_style)
        self.script = config.extract.script
        self.function = config.replace.function
        self._vue = VueSyntax(script=self.script, function=self.function)

    # ── Публичные методы ──

    def extract_from_file(self, path: Path) -> List[ExtractedSpan]:
        """Спаны одного файла. Ошибка разбора логируется, файл даёт []."""
        path = Path(path)
        return self._assign(path, self._scan_file(path))

    def extract_files(self, paths: Iterable[Path], workers: Optional[int] = None) -> List[ExtractedSpan]:
        """
        Извлекает текст из набора файлов.

        Файлы разбираются параллельно, а ключи выдаются в порядке входного
        списка, поэтому каталог не зависит от порядка завершения потоков.
        """
        paths = [Path(p) for p in paths]
        workers = workers or self.config.extract.workers

        if workers > 1 and len(paths) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                scanned = list(pool.map(self._scan_file, paths))
        else:
            scanned = [self._scan_file(p) for p in paths]

        spans: List[ExtractedSpan] = []
        for path, found in zip(paths, scanned):
            spans.extend(self._assign(path, found))

        logger.info("Извлечено %d вхождений из %d файлов, уникальных ключей: %d",
                    len(spans), len(paths), len(self.registry))
        return spans

    def collect_files(self) -> List[Path]:
        return collect_files(self.config.root, self.config.extract.include,
                             self.config.extract.exclude)

    def namespace_for(self, path: Path) -> Optional[str]:
        """Сегмент пути после корня исходников (src), если включено разбиение."""
        if not self.config.output.split_by_namespace:
            return None
        parts = self._relative(path).split("/")
        source_root = self.config.extract.source_root
        if source_root not in parts:
            return None
        index = parts.index(source_root)
        # Сегмент должен быть директорией, а не самим файлом
        if index + 1 >= len(parts) - 1:
            return None
        return parts[index + 1]

    def generate_report(self, spans: List[ExtractedSpan]) -> Dict[str, Any]:
        """
        Генерирует отчёт об извлечении.

        Returns:
            Dict со статистикой по файлам, видам мест и пространствам имён
        """
        by_file: Dict[str, int] = {}
        by_kind: Dict[str, int] = {}
        by_namespace: Dict[str, int] = {}
        for span in spans:
            by_file[span.file] = by_file.get(span.file, 0) + 1
            by_kind[span.kind] = by_kind.get(span.kind, 0) + 1
            ns = span.namespace or "-"
            by_namespace[ns] = by_namespace.get(ns, 0) + 1

        return {
            "total_spans": len(spans),
            "unique_keys": len({s.key for s in spans}),
            "by_file": by_file,
            "by_kind": by_kind,
            "by_namespace": by_namespace,
        }

    def write_catalog(self, store: Optional[CatalogStore] = None) -> Path:
        """Записывает базовый каталог ключ -> текст."""
        store = store or CatalogStore(self.config.locales_dir, self.config.output.format,
                                      self.config.output.minify)
        return store.save(self.config.source_language, self.registry.to_dict())

    def export_spans(self, spans: List[ExtractedSpan], output_path: Path) -> None:
        """Экспортирует вхождения с позициями в JSON."""
        data = {
            "meta": {
                "project": str(self.config.root),
                "report": self.generate_report(spans),
            },
            "spans": [s.to_dict() for s in spans],
        }
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        logger.info("Экспортировано %d вхождений -> %s", len(spans), output_path)

    # ── Разбор файлов ──

    def _relative(self, path: Path) -> str:
        try:
            return Path(path).resolve().relative_to(Path(self.config.root).resolve()).as_posix()
        except ValueError:
            return Path(path).as_posix()

    def _scan_file(self, path: Path) -> List[FoundText]:
        suffix = path.suffix.lower()
        try:
            if suffix == ".vue":
                content = path.read_bytes().decode("utf-8")
                return [FoundText(s.text, s.kind, s.line, s.column)
                        for s in self._vue.sites(content, str(path))]
            if suffix in DATA_SUFFIXES:
                return self._scan_data(path)

            syntax = syntax_for(path, script=self.script, function=self.function)
            if syntax is None:
                logger.warning("Неподдерживаемый тип файла: %s", path)
                return []
            sites = syntax.sites(path.read_bytes(), str(path))
            return [FoundText(s.text, s.kind, s.line, s.column) for s in sites]

        except ParseFailure as e:
            logger.warning("Пропуск %s: %s", path, e.reason)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Не удалось прочитать %s: %s", path, e)
        return []

    def _scan_data(self, path: Path) -> List[FoundText]:
        content = path.read_text(encoding="utf-8")
        try:
            data = json.loads(content) if path.suffix.lower() == ".json" else yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ParseFailure(path, str(e))

        found: List[FoundText] = []
        self._traverse(data, "", found)
        return found

    def _traverse(self, value: Any, context: str, found: List[FoundText]) -> None:
        if isinstance(value, dict):
            for key, child in value.items():
                self._traverse(child, f"{context}.{key}" if context else str(key), found)
        elif isinstance(value, list):
            for i, child in enumerate(value):
                self._traverse(child, f"{context}[{i}]", found)
        elif isinstance(value, str):
            text = extract_script_text(value, self.script)
            if text is not None:
                found.append(FoundText(text, SITE_DATA, context=context))

    def _assign(self, path: Path, found: List[FoundText]) -> List[ExtractedSpan]:
        namespace = self.namespace_for(path)
        rel = self._relative(path)
        spans = []
        for item in found:
            key = self.registry.assign(item.text, namespace)
            span = ExtractedSpan(
                key=key,
                text=item.text,
                file=rel,
                line=item.line,
                column=item.column,
                context=item.context,
                namespace=namespace,
                kind=item.kind,
            )
            self.registry.register(span)
            spans.append(span)
        return spans
