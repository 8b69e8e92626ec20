"""
i18n_pilot - извлечение, перевод и замена непереведённых строк в исходниках.

Модули:
- patterns: плейсхолдеры, HTML-теги, поиск текста нужной письменности
- extractor: извлечение строк и присвоение ключей (KeyRegistry)
- replacer: замена строк вызовами t('key')
- memory: память переводов (SQLite)
- catalog: каталоги переводов (JSON / YAML на локаль)
- translator, providers: перевод каталогов
- validator: механическая проверка переводов
- cli: командная строка

Здесь же runtime-функция t() для переписанных .py файлов.
"""

from pathlib import Path
from typing import Union

__version__ = "0.3.0"

_locales_dir = Path("locales")
_current_locale = "en"
_catalog_cache: dict = {}


def set_locales_dir(path: Union[str, Path]) -> None:
    """Каталог с файлами <locale>.json."""
    global _locales_dir, _catalog_cache
    _locales_dir = Path(path)
    _catalog_cache = {}


def set_locale(locale: str) -> None:
    """Устанавливает текущую локаль."""
    global _current_locale, _catalog_cache
    _current_locale = locale
    _catalog_cache = {}


def get_locale() -> str:
    """Возвращает текущую локаль."""
    return _current_locale


def t(key: str, **kwargs) -> str:
    """
    Переводит строку по ключу.

    Args:
        key: Ключ перевода
        **kwargs: Параметры для форматирования

    Returns:
        Переведённая строка или сам ключ если перевод не найден
    """
    if _current_locale not in _catalog_cache:
        from .catalog import CatalogStore
        _catalog_cache[_current_locale] = CatalogStore(_locales_dir).load(_current_locale)

    result = _catalog_cache[_current_locale].get(key, key)

    if kwargs:
        try:
            result = result.format(**kwargs)
        except (KeyError, IndexError):
            pass

    return result
