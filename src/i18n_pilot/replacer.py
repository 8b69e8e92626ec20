"""
Replacer - замена найденного текста вызовами функции перевода.

Работает в два прохода: сначала собираются места (тот же обход, что
у экстрактора), затем правки применяются по байтовым позициям с конца
файла к началу. Непопавшие в правки байты остаются без изменений.

    "保存成功"            -> t('a1b2c3d4')
    <b title="提示">     -> <b title={t('...')}>
    <p>你好</p>          -> <p>{t('...')}</p>
    `共${n}条`           -> `${t('...')}${n}${t('...')}`
    Vue: <p>你好</p>     -> <p>{{ t('...') }}</p>

Переписанный файл заново разбирается парсером; если он перестал
разбираться, файл не трогается, а результат помечается ошибкой.
"""

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .catalog import atomic_write
from .config import ProjectConfig
from .errors import ParseFailure, SerializationFailure
from .models import ExtractedSpan, Replacement, ReplaceReport, ReplaceResult
from .syntax import render_site, splice, syntax_for
from .vue import VueSyntax

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"


class CodeReplacer:
    """Замена литералов на t('key') по замороженной карте текст -> ключ."""

    def __init__(self, config: ProjectConfig, function: Optional[str] = None,
                 import_path: Optional[str] = None):
        self.config = config
        self.function = function or config.replace.function
        self.import_path = import_path or config.replace.import_path
        self.add_imports = config.replace.add_imports
        self.script = config.extract.script
        self._keys: Dict[str, List[str]] = {}
        self._vue = VueSyntax(script=self.script, function=self.function)

    # ── Карта ключей ──

    def load_keys(self, source: Union[Dict[str, str], Iterable[ExtractedSpan]]) -> int:
        """
        Строит карту текст -> ключи.

        Args:
            source: базовый каталог {key: text} или список ExtractedSpan

        Returns:
            Количество различных текстов
        """
        keys: Dict[str, List[str]] = {}
        if isinstance(source, dict):
            pairs = source.items()
        else:
            pairs = ((span.key, span.text) for span in source)
        for key, text in pairs:
            bucket = keys.setdefault(text.strip(), [])
            if key not in bucket:
                bucket.append(key)
        self._keys = keys
        logger.debug("Карта замен: %d текстов", len(keys))
        return len(keys)

    def lookup(self, text: str, namespace: Optional[str] = None) -> Optional[str]:
        """Ключ для текста; при нескольких ключах предпочитается свой namespace."""
        candidates = self._keys.get(text)
        if not candidates:
            return None
        if namespace:
            for key in candidates:
                if key.startswith(namespace + "."):
                    return key
        return candidates[0]

    def supports(self, path: Path) -> bool:
        path = Path(path)
        return path.suffix.lower() == ".vue" or syntax_for(path) is not None

    # ── Замена ──

    def replace_file(self, path: Path, backup: bool = False,
                     dry_run: bool = False, namespace: Optional[str] = None) -> ReplaceResult:
        """
        Заменяет текст в одном файле.

        Args:
            path: путь к файлу
            backup: скопировать оригинал в <path>.backup перед записью
            dry_run: всё, кроме записи на диск
            namespace: пространство имён файла для выбора ключа

        Returns:
            ReplaceResult; ошибки файла не бросаются, а попадают в error
        """
        path = Path(path)
        result = ReplaceResult(file_path=str(path))
        try:
            if path.suffix.lower() == ".vue":
                original = path.read_bytes().decode("utf-8")
                content, replacements = self._vue.replace(
                    original, lambda text: self.lookup(text, namespace),
                    self.import_path, self.add_imports, str(path),
                )
                changed = content != original
            else:
                content, replacements, changed = self._replace_source(path, namespace)
        except (ParseFailure, SerializationFailure) as e:
            logger.warning("Замена в %s отменена: %s", path, e.reason)
            result.success = False
            result.error = e.reason
            return result
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Не удалось прочитать %s: %s", path, e)
            result.success = False
            result.error = str(e)
            return result

        result.replacements = replacements
        result.count = len(replacements)
        result.content = content

        if dry_run or not changed:
            return result

        try:
            if backup:
                shutil.copy2(path, str(path) + BACKUP_SUFFIX)
            atomic_write(path, content)
        except OSError as e:
            logger.error("Не удалось записать %s: %s", path, e)
            result.success = False
            result.error = str(e)
            return result

        logger.info("%s: %d замен", path, result.count)
        return result

    def _replace_source(self, path: Path, namespace: Optional[str]):
        syntax = syntax_for(path, script=self.script, function=self.function)
        if syntax is None:
            raise ParseFailure(path, "неподдерживаемый тип файла")

        source = path.read_bytes()
        edits = []
        replacements: List[Replacement] = []
        for site in syntax.sites(source, str(path)):
            if not site.replaceable:
                continue
            key = self.lookup(site.text, namespace)
            if key is None:
                continue
            new = render_site(site, self.function, key)
            edits.append((site.start, site.end, new.encode("utf-8")))
            replacements.append(Replacement(
                line=site.line,
                column=site.column,
                original=source[site.start:site.end].decode("utf-8"),
                replaced=new,
                key=key,
            ))

        if not replacements:
            return source.decode("utf-8"), replacements, False

        rewritten = splice(source, edits)
        if not syntax.is_valid(rewritten):
            raise SerializationFailure(path, "результат замены не разбирается парсером")
        if self.add_imports and not syntax.has_import(rewritten, self.import_path):
            rewritten = syntax.add_import(rewritten, self.import_path)
        return rewritten.decode("utf-8"), replacements, True

    def replace_files(self, paths: Iterable[Path], backup: bool = False, dry_run: bool = False,
                      workers: int = 1, namespaces: Optional[Dict[str, str]] = None) -> List[ReplaceResult]:
        """Один результат на каждый входной файл; ошибки файла не прерывают пакет."""
        paths = [Path(p) for p in paths]
        namespaces = namespaces or {}

        def _one(path: Path) -> ReplaceResult:
            return self.replace_file(path, backup=backup, dry_run=dry_run,
                                     namespace=namespaces.get(str(path)))

        if workers > 1 and len(paths) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                return list(pool.map(_one, paths))
        return [_one(p) for p in paths]

    @staticmethod
    def generate_report(results: List[ReplaceResult]) -> ReplaceReport:
        report = ReplaceReport(total=len(results))
        for result in results:
            if result.success:
                report.success += 1
            else:
                report.failed += 1
            report.total_replacements += result.count
            if result.count or not result.success:
                report.files.append({
                    "file": result.file_path,
                    "success": result.success,
                    "count": result.count,
                    "error": result.error,
                    "replacements": [asdict(r) for r in result.replacements],
                })
        return report
