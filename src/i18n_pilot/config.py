"""
Конфигурация проекта.

Файл ищется вверх от рабочей директории: .translatorrc.yaml,
.translatorrc.yml, .translatorrc.json, translator.config.yaml.
Значения из файла накладываются на умолчания; секреты провайдеров
берутся из переменных окружения (CLI заранее вызывает load_dotenv()).
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import ConfigError
from .patterns import SCRIPT_RANGES, is_valid_code, normalize_code

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (
    ".translatorrc.yaml",
    ".translatorrc.yml",
    ".translatorrc.json",
    "translator.config.yaml",
)

PROVIDERS = ("google", "deepl", "baidu", "llm")
KEY_STYLES = ("hash", "literal")
CATALOG_FORMATS = ("json", "yaml")


@dataclass
class ExtractConfig:
    include: List[str] = field(default_factory=lambda: [
        "src/**/*.js", "src/**/*.jsx", "src/**/*.ts", "src/**/*.tsx",
        "src/**/*.vue", "src/**/*.py",
    ])
    exclude: List[str] = field(default_factory=lambda: [
        "node_modules", "dist", "build", ".git", "__pycache__", "locales",
        "*.test.*", "*.spec.*",
    ])
    script: str = "han"
    key_style: str = "hash"
    source_root: str = "src"
    workers: int = 4


@dataclass
class OutputConfig:
    dir: str = "src/locales"
    format: str = "json"
    split_by_namespace: bool = False
    minify: bool = False


@dataclass
class ApiConfig:
    provider: str = "google"
    api_key: str = ""
    app_id: str = ""
    secret: str = ""
    model: str = "gemini/gemini-2.0-flash"
    rate_limit: float = 10.0
    batch_size: int = 50
    retries: int = 3
    timeout: float = 30.0


@dataclass
class MemoryConfig:
    enabled: bool = True
    path: str = ".translator/memory.db"
    threshold: float = 0.7
    candidate_limit: int = 100
    accept_fuzzy: bool = False


@dataclass
class ReplaceConfig:
    function: str = "t"
    import_path: str = "i18n"
    add_imports: bool = True
    backup: bool = False


@dataclass
class ValidationConfig:
    check_placeholders: bool = True
    check_html_tags: bool = True
    check_length: bool = True
    max_length: int = 1000


@dataclass
class GlossaryConfig:
    enabled: bool = False
    path: str = ".translator/glossary.yaml"
    entries: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ProjectConfig:
    source_language: str = "zh-CN"
    target_languages: List[str] = field(default_factory=lambda: ["en"])
    extract: ExtractConfig = field(default_factory=ExtractConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    replace: ReplaceConfig = field(default_factory=ReplaceConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    glossary: GlossaryConfig = field(default_factory=GlossaryConfig)
    root: Path = field(default_factory=Path.cwd)
    config_path: Optional[Path] = None

    def resolve(self, path: Union[str, Path]) -> Path:
        """Путь относительно корня проекта."""
        path = Path(path)
        return path if path.is_absolute() else self.root / path

    @property
    def locales_dir(self) -> Path:
        return self.resolve(self.output.dir)

    @property
    def memory_path(self) -> Path:
        return self.resolve(self.memory.path)

    @property
    def glossary_path(self) -> Path:
        return self.resolve(self.glossary.path)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("root", None)
        data.pop("config_path", None)
        data["api"].pop("api_key", None)
        data["api"].pop("secret", None)
        return data


def _build(cls, data: Dict[str, Any], section: str):
    """Собирает dataclass из словаря, ругаясь на неизвестные поля."""
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"Секция {section!r} должна быть словарём")
    known = {f.name: f for f in fields(cls)}
    kwargs = {}
    for name, value in data.items():
        if name not in known:
            logger.warning("Неизвестный параметр конфигурации: %s.%s", section, name)
            continue
        kwargs[name] = value
    return cls(**kwargs)


def config_from_dict(data: Dict[str, Any], root: Optional[Path] = None) -> ProjectConfig:
    """Строит ProjectConfig из словаря (вложенные секции - словари)."""
    data = dict(data or {})
    sections = {
        "extract": ExtractConfig,
        "output": OutputConfig,
        "api": ApiConfig,
        "memory": MemoryConfig,
        "replace": ReplaceConfig,
        "validation": ValidationConfig,
        "glossary": GlossaryConfig,
    }
    kwargs: Dict[str, Any] = {}
    for name, cls in sections.items():
        kwargs[name] = _build(cls, data.pop(name, None), name)

    if "source_language" in data:
        kwargs["source_language"] = data.pop("source_language")
    if "target_languages" in data:
        targets = data.pop("target_languages")
        if isinstance(targets, str):
            targets = [targets]
        kwargs["target_languages"] = list(targets)
    for name in data:
        logger.warning("Неизвестный параметр конфигурации: %s", name)

    config = ProjectConfig(root=Path(root) if root else Path.cwd(), **kwargs)
    _apply_env(config)
    validate_config(config)
    return config


def _apply_env(config: ProjectConfig) -> None:
    """Секреты провайдеров из окружения, если не заданы в файле."""
    config.api.api_key = config.api.api_key or os.environ.get("TRANSLATOR_API_KEY", "")
    config.api.app_id = config.api.app_id or os.environ.get("BAIDU_APPID", "")
    config.api.secret = config.api.secret or os.environ.get("BAIDU_SECRET", "")


def validate_config(config: ProjectConfig) -> None:
    """Проверяет значения и нормализует языковые коды."""
    config.source_language = normalize_code(config.source_language)
    config.target_languages = [normalize_code(code) for code in config.target_languages]
    for code in [config.source_language] + config.target_languages:
        if not is_valid_code(code):
            logger.warning("Код языка %r не входит в список поддерживаемых", code)
    if not config.target_languages:
        raise ConfigError("Не задан ни один целевой язык (target_languages)")

    if config.extract.script not in SCRIPT_RANGES:
        raise ConfigError(f"Неизвестная письменность: {config.extract.script!r}")
    if config.extract.key_style not in KEY_STYLES:
        raise ConfigError(f"key_style должен быть одним из {KEY_STYLES}")
    if config.output.format not in CATALOG_FORMATS:
        raise ConfigError(f"output.format должен быть одним из {CATALOG_FORMATS}")
    if config.api.provider not in PROVIDERS:
        raise ConfigError(f"api.provider должен быть одним из {PROVIDERS}")
    if config.api.batch_size < 1:
        raise ConfigError("api.batch_size должен быть положительным")
    if config.api.retries < 1:
        raise ConfigError("api.retries должен быть не меньше 1")
    if not 0.0 <= config.memory.threshold <= 1.0:
        raise ConfigError("memory.threshold должен лежать в [0, 1]")
    if not config.replace.function.isidentifier():
        raise ConfigError(f"replace.function не является идентификатором: {config.replace.function!r}")
    if not isinstance(config.glossary.entries, list):
        raise ConfigError("glossary.entries должен быть списком")


def find_config(start: Optional[Path] = None) -> Optional[Path]:
    """Первый найденный файл конфигурации вверх по дереву директорий."""
    current = Path(start or Path.cwd()).resolve()
    for directory in [current] + list(current.parents):
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


def load_config(path: Optional[Union[str, Path]] = None,
                start: Optional[Path] = None) -> ProjectConfig:
    """
    Загружает конфигурацию.

    Аргументы:
        path: явный путь к файлу. Если None - поиск find_config().
        start: директория, с которой начинается поиск.

    Возвращает:
        ProjectConfig. Без файла - умолчания с корнем в start/cwd.
    """
    config_path = Path(path) if path else find_config(start)
    if config_path is None:
        logger.info("Файл конфигурации не найден, используются значения по умолчанию")
        return config_from_dict({}, root=Path(start or Path.cwd()))

    if not config_path.is_file():
        raise ConfigError(f"Файл конфигурации не найден: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Ошибка разбора {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: ожидался словарь верхнего уровня")

    config = config_from_dict(data, root=config_path.parent.resolve())
    config.config_path = config_path
    logger.info("Конфигурация загружена из %s", config_path)
    return config


def save_config(config: ProjectConfig, path: Union[str, Path]) -> Path:
    """Сохраняет конфигурацию (без секретов) в YAML или JSON."""
    path = Path(path)
    data = config.to_dict()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        if path.suffix == ".json":
            json.dump(data, f, ensure_ascii=False, indent=2)
        else:
            yaml.safe_dump(data, f, allow_unicode=True, sort_keys=False)
    logger.info("Конфигурация записана в %s", path)
    return path
