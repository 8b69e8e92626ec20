#!/usr/bin/env python3
"""
CLI i18n-pilot.

Команды:
  init       Создаёт .translatorrc.yaml с настройками по умолчанию
  extract    Извлекает непереведённые строки и пишет базовый каталог
  translate  Переводит базовый каталог (память переводов -> провайдер)
  validate   Проверяет плейсхолдеры, HTML-теги, пустые и длинные переводы
  replace    Заменяет строки в исходниках вызовами t('key')
  export     Выгружает каталоги в .xlsx для внешнего переводчика
  import     Загружает переводы из .xlsx в каталоги и память
  memory     Статистика / очистка памяти переводов
  glossary   Глоссарий терминов: init, stats, export, import

Использование:
  i18n-pilot init
  i18n-pilot extract --report extract_report.json
  i18n-pilot translate --lang en ja
  i18n-pilot validate --strict
  i18n-pilot replace --dry-run
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.table import Table

from .catalog import CatalogStore
from .config import CONFIG_FILENAMES, ProjectConfig, load_config, save_config
from .errors import CatalogNotFound, ConfigError, I18nPilotError
from .extractor import KeyRegistry, TextExtractor
from .glossary import Glossary, default_entries
from .memory import TranslationMemory
from .replacer import CodeReplacer
from .spreadsheet import (export_entries, export_glossary, export_template, import_entries,
                          import_glossary)
from .translator import Translator
from .validator import TranslationValidator

logger = logging.getLogger(__name__)

console = Console()

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, log_file: str = "") -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def _store(config: ProjectConfig) -> CatalogStore:
    return CatalogStore(config.locales_dir, config.output.format, config.output.minify)


def _languages(config: ProjectConfig, args) -> List[str]:
    return list(getattr(args, "lang", None) or config.target_languages)


def _write_json(path: str, data) -> None:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    console.print(f"Отчёт сохранён: {output}")


# ── Команды ──

def cmd_init(args) -> int:
    """Команда: создание конфигурации."""
    path = Path(args.path or CONFIG_FILENAMES[0])
    if path.exists() and not args.force:
        console.print(f"[yellow]{path} уже существует (используйте --force)[/yellow]")
        return 1
    config = ProjectConfig(root=Path.cwd())
    if args.source:
        config.source_language = args.source
    if args.lang:
        config.target_languages = list(args.lang)
    save_config(config, path)
    console.print(f"[green]Конфигурация создана: {path}[/green]")
    return 0


def cmd_extract(args) -> int:
    """Команда: извлечение строк."""
    config = load_config(args.config)
    store = _store(config)

    registry = KeyRegistry(config.extract.key_style)
    if args.incremental:
        existing = store.load(config.source_language)
        registry.seed(existing)
        console.print(f"Инкрементальный режим: {len(existing)} ключей из каталога")

    extractor = TextExtractor(config, registry)
    files = extractor.collect_files()
    console.print(f"\nСканирование {config.root}: {len(files)} файлов")

    spans = extractor.extract_files(files, workers=args.workers)
    report = extractor.generate_report(spans)
    path = extractor.write_catalog(store)

    table = Table(title="Извлечение", box=box.ROUNDED)
    table.add_column("Вид", style="cyan")
    table.add_column("Вхождений", justify="right")
    for kind, count in sorted(report["by_kind"].items()):
        table.add_row(kind, str(count))
    table.add_row("[bold]всего[/bold]", f"[bold]{report['total_spans']}[/bold]")
    console.print(table)
    console.print(f"Уникальных ключей: {len(registry)} -> {path}")

    if args.report:
        extractor.export_spans(spans, Path(args.report))
    return 0


def cmd_translate(args) -> int:
    """Команда: перевод каталога."""
    config = load_config(args.config)
    store = _store(config)
    catalog = store.require(config.source_language)
    languages = _languages(config, args)

    translator = Translator(config, store=store)
    try:
        all_stats = translator.translate_to_languages(
            catalog, languages,
            force=args.force,
            use_memory=not args.no_memory,
            accept_fuzzy=True if args.accept_fuzzy else None,
        )
    finally:
        translator.close()

    table = Table(title=f"Перевод ({config.source_language} -> {', '.join(languages)})",
                  box=box.ROUNDED)
    for column in ("Язык", "Всего", "Было", "Память", "Нечётко", "Переведено", "Ошибки"):
        table.add_column(column, justify="right" if column != "Язык" else "left")
    failed = 0
    for lang, stats in all_stats.items():
        failed += stats.failed
        table.add_row(lang, str(stats.total), str(stats.kept), str(stats.from_memory),
                      str(stats.fuzzy), str(stats.translated),
                      f"[red]{stats.failed}[/red]" if stats.failed else "0")
    console.print(table)
    if failed:
        console.print(f"[yellow]Не переведено {failed} строк, см. лог[/yellow]")
    return 0


def cmd_validate(args) -> int:
    """Команда: проверка переводов."""
    config = load_config(args.config)
    validator = TranslationValidator(config.validation, _store(config),
                                     glossary=Glossary.from_config(config))
    issues = validator.validate_all(config.source_language, _languages(config, args))
    report = validator.generate_report(issues)

    table = Table(title="Проверка переводов", box=box.ROUNDED)
    table.add_column("Ключ", style="dim")
    table.add_column("Язык")
    table.add_column("Тип", style="cyan")
    table.add_column("Уровень")
    table.add_column("Сообщение")
    colors = {"error": "red", "warning": "yellow", "info": "blue"}
    for item in issues[:args.limit]:
        color = colors.get(item.severity, "white")
        table.add_row(item.key, item.language, item.type,
                      f"[{color}]{item.severity}[/{color}]", item.message)
    if issues:
        console.print(table)
    if len(issues) > args.limit:
        console.print(f"... и ещё {len(issues) - args.limit}")

    console.print(f"\nОшибок: {report.errors}, предупреждений: {report.warnings}, "
                  f"замечаний: {report.infos}")

    if args.output:
        _write_json(args.output, report.to_dict())

    if args.strict and report.has_errors:
        return 1
    return 0


def cmd_replace(args) -> int:
    """Команда: замена строк вызовами функции перевода."""
    config = load_config(args.config)
    catalog = _store(config).require(config.source_language)

    replacer = CodeReplacer(config)
    replacer.load_keys(catalog)

    extractor = TextExtractor(config)
    if args.files:
        files = [config.resolve(f) for f in args.files]
    else:
        files = extractor.collect_files()
    files = [f for f in files if replacer.supports(f)]
    namespaces = {}
    for f in files:
        ns = extractor.namespace_for(f)
        if ns:
            namespaces[str(f)] = ns

    backup = args.backup or config.replace.backup
    results = replacer.replace_files(files, backup=backup, dry_run=args.dry_run,
                                     workers=config.extract.workers, namespaces=namespaces)
    report = replacer.generate_report(results)

    title = "Замена (dry-run)" if args.dry_run else "Замена"
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Файл", style="cyan")
    table.add_column("Замен", justify="right")
    table.add_column("Статус")
    for item in report.files:
        status = "[green]ok[/green]" if item["success"] else f"[red]{item['error']}[/red]"
        table.add_row(item["file"], str(item["count"]), status)
    if report.files:
        console.print(table)
    console.print(f"Файлов: {report.total}, успешно: {report.success}, ошибок: {report.failed}, "
                  f"замен: {report.total_replacements}")

    if args.output:
        _write_json(args.output, report.to_dict())
    return 0


def cmd_export(args) -> int:
    """Команда: выгрузка в .xlsx."""
    config = load_config(args.config)
    languages = _languages(config, args)
    if args.template:
        count = export_template(Path(args.output), languages)
    else:
        store = _store(config)
        entries = store.load_entries(config.source_language, languages)
        count = export_entries(entries, Path(args.output), languages)

        stats = store.statistics(entries, languages)
        table = Table(title="Покрытие", box=box.ROUNDED)
        table.add_column("Язык")
        table.add_column("Переведено", justify="right")
        table.add_column("Осталось", justify="right")
        table.add_column("%", justify="right")
        for lang, item in stats["by_language"].items():
            table.add_row(lang, str(item["translated"]), str(item["pending"]),
                          f"{item['coverage']}")
        console.print(table)
    console.print(f"Экспортировано {count} строк -> {args.output}")
    return 0


def cmd_import(args) -> int:
    """Команда: загрузка переводов из .xlsx."""
    config = load_config(args.config)
    store = _store(config)
    entries = import_entries(Path(args.input), args.lang)

    base_stats = store.merge(config.source_language,
                             {e.key: e.source for e in entries}, overwrite=False)

    languages = sorted({lang for e in entries for lang in e.translations})
    memory_rows = []
    for lang in languages:
        updates = {e.key: e.translations[lang] for e in entries if e.translations.get(lang)}
        stats = store.merge(lang, updates, overwrite=not args.keep_existing)
        console.print(f"{lang}: добавлено {stats['added']}, обновлено {stats['updated']}, "
                      f"без изменений {stats['unchanged']}")
        memory_rows.extend((e.source, lang, e.translations[lang], "imported")
                           for e in entries if e.translations.get(lang))

    if config.memory.enabled and memory_rows:
        with TranslationMemory(config.memory_path, config.memory.threshold,
                               config.memory.candidate_limit) as memory:
            saved = memory.put_batch(memory_rows)
        console.print(f"В память переводов записано: {saved}")

    console.print(f"Новых ключей в базовом каталоге: {base_stats['added']}")
    return 0


def cmd_memory(args) -> int:
    """Команда: память переводов."""
    config = load_config(args.config)
    with TranslationMemory(config.memory_path, config.memory.threshold,
                           config.memory.candidate_limit) as memory:
        if args.action == "clear":
            deleted = memory.clear()
            console.print(f"Удалено записей: {deleted}")
            return 0

        stats = memory.statistics(args.lang)
        table = Table(title=f"Память переводов: {config.memory_path}", box=box.ROUNDED)
        table.add_column("Язык")
        table.add_column("Записей", justify="right")
        for lang, count in sorted(stats["by_language"].items()):
            table.add_row(lang, str(count))
        table.add_row("[bold]всего[/bold]", f"[bold]{stats['total']}[/bold]")
        console.print(table)
    return 0


def cmd_glossary(args) -> int:
    """Команда: глоссарий терминов."""
    config = load_config(args.config)
    path = config.glossary_path
    glossary = Glossary(path)
    glossary.load()

    if args.action == "init":
        if len(glossary) and not args.force:
            console.print(f"[yellow]{path} уже содержит термины (используйте --force)[/yellow]")
            return 1
        glossary = Glossary(path, default_entries())
        glossary.save()
        console.print(f"[green]Глоссарий создан: {path} ({len(glossary)} терминов)[/green]")
        if not config.glossary.enabled:
            console.print("Включите его в конфигурации: glossary.enabled: true")
        return 0

    if args.action == "export":
        if not args.output:
            console.print("[red]Для export нужен --output[/red]")
            return 1
        count = export_glossary(glossary.terms(), Path(args.output), args.lang)
        console.print(f"Экспортировано {count} терминов -> {args.output}")
        return 0

    if args.action == "import":
        if not args.input:
            console.print("[red]Для import нужен --input[/red]")
            return 1
        entries = import_glossary(Path(args.input))
        glossary.add_terms(entries)
        glossary.save()
        console.print(f"Импортировано {len(entries)} терминов, всего {len(glossary)} -> {path}")
        return 0

    stats = glossary.statistics()
    table = Table(title=f"Глоссарий: {path}", box=box.ROUNDED)
    table.add_column("Язык")
    table.add_column("Терминов", justify="right")
    for lang, count in stats["by_language"].items():
        table.add_row(lang, str(count))
    table.add_row("не переводятся", str(stats["protected"]))
    table.add_row("[bold]всего[/bold]", f"[bold]{stats['total']}[/bold]")
    console.print(table)
    return 0


# ── Парсер ──

def build_parser() -> argparse.ArgumentParser:
    """Строит парсер аргументов."""
    parser = argparse.ArgumentParser(
        prog="i18n-pilot",
        description="Извлечение, перевод и замена непереведённых строк",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Примеры:
  i18n-pilot init --source zh-CN --lang en ja
  i18n-pilot extract --incremental
  i18n-pilot translate --lang en --accept-fuzzy
  i18n-pilot replace --dry-run --output replace_report.json
        """
    )
    parser.add_argument("--config", "-c", default=None, help="Путь к файлу конфигурации")
    parser.add_argument("--verbose", "-v", action="store_true", help="Подробный лог (DEBUG)")
    parser.add_argument("--log-file", default="", help="Дублировать лог в файл")

    subparsers = parser.add_subparsers(dest="command", help="Команда")

    # === init ===
    p_init = subparsers.add_parser("init", help="Создать файл конфигурации")
    p_init.add_argument("--path", default="", help="Куда записать (по умолчанию .translatorrc.yaml)")
    p_init.add_argument("--source", default="", help="Исходный язык")
    p_init.add_argument("--lang", nargs="+", help="Целевые языки")
    p_init.add_argument("--force", action="store_true", help="Перезаписать существующий файл")

    # === extract ===
    p_extract = subparsers.add_parser("extract", help="Извлечь строки")
    p_extract.add_argument("--incremental", action="store_true",
                           help="Сохранить ключи существующего базового каталога")
    p_extract.add_argument("--workers", type=int, default=None, help="Потоков разбора")
    p_extract.add_argument("--report", default="", help="JSON с вхождениями и позициями")

    # === translate ===
    p_trans = subparsers.add_parser("translate", help="Перевести каталог")
    p_trans.add_argument("--lang", nargs="+", help="Целевые языки (по умолчанию из конфига)")
    p_trans.add_argument("--force", action="store_true", help="Перевести заново уже переведённое")
    p_trans.add_argument("--no-memory", action="store_true", help="Не использовать память переводов")
    p_trans.add_argument("--accept-fuzzy", action="store_true",
                         help="Применять нечёткие совпадения из памяти")

    # === validate ===
    p_val = subparsers.add_parser("validate", help="Проверить переводы")
    p_val.add_argument("--lang", nargs="+", help="Языки для проверки")
    p_val.add_argument("--strict", action="store_true", help="Код выхода 1 при ошибках")
    p_val.add_argument("--limit", type=int, default=50, help="Сколько проблем показать")
    p_val.add_argument("--output", default="", help="JSON-отчёт")

    # === replace ===
    p_repl = subparsers.add_parser("replace", help="Заменить строки вызовами t()")
    p_repl.add_argument("--files", nargs="+", help="Только эти файлы")
    p_repl.add_argument("--dry-run", action="store_true", help="Не записывать изменения")
    p_repl.add_argument("--backup", action="store_true", help="Сохранить <file>.backup")
    p_repl.add_argument("--output", default="", help="JSON-отчёт")

    # === export ===
    p_export = subparsers.add_parser("export", help="Выгрузить в .xlsx")
    p_export.add_argument("--output", required=True, help="Выходной .xlsx")
    p_export.add_argument("--lang", nargs="+", help="Языки")
    p_export.add_argument("--template", action="store_true", help="Пустой шаблон")

    # === import ===
    p_import = subparsers.add_parser("import", help="Загрузить переводы из .xlsx")
    p_import.add_argument("--input", required=True, help="Входной .xlsx")
    p_import.add_argument("--lang", nargs="+", help="Только эти языковые колонки")
    p_import.add_argument("--keep-existing", action="store_true",
                          help="Не перезаписывать существующие переводы")

    # === memory ===
    p_mem = subparsers.add_parser("memory", help="Память переводов")
    p_mem.add_argument("action", choices=["stats", "clear"], help="Действие")
    p_mem.add_argument("--lang", default=None, help="Только этот язык (для stats)")

    # === glossary ===
    p_gloss = subparsers.add_parser("glossary", help="Глоссарий терминов")
    p_gloss.add_argument("action", choices=["init", "stats", "export", "import"], help="Действие")
    p_gloss.add_argument("--output", default="", help="Выходной .xlsx (для export)")
    p_gloss.add_argument("--input", default="", help="Входной .xlsx (для import)")
    p_gloss.add_argument("--lang", nargs="+", help="Языковые колонки (для export)")
    p_gloss.add_argument("--force", action="store_true", help="Перезаписать существующий глоссарий")

    return parser


COMMANDS = {
    "init": cmd_init,
    "extract": cmd_extract,
    "translate": cmd_translate,
    "validate": cmd_validate,
    "replace": cmd_replace,
    "export": cmd_export,
    "import": cmd_import,
    "memory": cmd_memory,
    "glossary": cmd_glossary,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Точка входа CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose, args.log_file)
    load_dotenv()

    handler = COMMANDS[args.command]
    try:
        return handler(args)
    except (ConfigError, CatalogNotFound) as e:
        logger.error("%s", e)
        console.print(f"[red]Ошибка: {e}[/red]")
        return 1
    except I18nPilotError as e:
        logger.error("Команда %s завершилась ошибкой: %s", args.command, e)
        console.print(f"[red]Ошибка: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
