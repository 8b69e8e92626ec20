"""
Иерархия исключений i18n-pilot.

Ошибки уровня одного файла (ParseFailure, SerializationFailure) ловятся
пакетными операциями и превращаются в результат с success=False.
Фатальными для всего запуска являются только ConfigError и CatalogNotFound.
"""

from pathlib import Path
from typing import Union


class I18nPilotError(Exception):
    """Базовое исключение пакета."""


class ParseFailure(I18nPilotError):
    """Не удалось построить синтаксическое дерево файла."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class SerializationFailure(I18nPilotError):
    """Переписанный текст файла перестал разбираться парсером."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class StoreFailure(I18nPilotError):
    """Хранилище памяти переводов недоступно."""


class ConfigError(I18nPilotError):
    """Некорректная конфигурация."""


class CatalogNotFound(I18nPilotError):
    """Отсутствует обязательный файл каталога."""

    def __init__(self, path: Union[str, Path]):
        self.path = str(path)
        super().__init__(f"Каталог не найден: {self.path}")


class ProviderError(I18nPilotError):
    """Ошибка внешнего сервиса перевода."""
