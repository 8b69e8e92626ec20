"""
Базовый интерфейс провайдера перевода и обёртка с батчингом.

Провайдер переводит один пакет строк. BatchingProvider режет вход на
пакеты, выдерживает паузу между запросами (rate limit), повторяет
упавший пакет с экспоненциальной задержкой и после исчерпания попыток
возвращает по каждой строке результат с ошибкой. Порядок и длина
выхода всегда совпадают со входом.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from ..errors import ProviderError
from ..models import TranslationResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_RETRIES = 3
MAX_BACKOFF = 30.0


def create_batches(items: List, batch_size: int) -> List[List]:
    """Разбивает список на батчи."""
    return [items[i:i + batch_size] for i in range(0, len(items), batch_size)]


class TranslationProvider(ABC):
    """Внешний сервис перевода: пакет строк -> результаты в том же порядке."""

    name: str = "base"
    # Код проекта -> код провайдера
    code_map: Dict[str, str] = {}

    def normalize_code(self, code: str) -> str:
        return self.code_map.get(code, code)

    @abstractmethod
    def translate(self, texts: List[str], source_lang: str,
                  target_lang: str) -> List[TranslationResult]:
        """
        Переводит пакет строк.

        Ошибка всего пакета - исключение (пакет будет повторён),
        ошибка одной строки - TranslationResult с заполненным error.
        """

    def close(self) -> None:
        pass


class BatchingProvider:
    """Батчинг, rate limit и retry поверх любого провайдера."""

    def __init__(
        self,
        provider: TranslationProvider,
        batch_size: int = DEFAULT_BATCH_SIZE,
        rate_limit: Optional[float] = None,
        retries: int = DEFAULT_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Аргументы:
            provider: провайдер, выполняющий запросы.
            batch_size: строк в одном запросе.
            rate_limit: запросов в секунду (None - без паузы).
            retries: попыток на пакет.
            sleep: функция ожидания (подменяется в тестах).
        """
        self.provider = provider
        self.batch_size = max(1, batch_size)
        self.delay = 1.0 / rate_limit if rate_limit else 0.0
        self.retries = max(1, retries)
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.provider.name

    def translate_batch(self, texts: List[str], source_lang: str,
                        target_lang: str) -> List[TranslationResult]:
        """Переводит любой объём строк; один результат на каждую входную строку."""
        results: List[TranslationResult] = []
        batches = create_batches(list(texts), self.batch_size)
        for index, batch in enumerate(batches):
            if index > 0 and self.delay:
                self._sleep(self.delay)
            logger.debug("%s: пакет %d/%d (%d строк)", self.name, index + 1, len(batches), len(batch))
            results.extend(self._translate_with_retry(batch, source_lang, target_lang))
        return results

    def _translate_with_retry(self, batch: List[str], source_lang: str,
                              target_lang: str) -> List[TranslationResult]:
        last_error: Optional[Exception] = None

        for attempt in range(self.retries):
            try:
                results = self.provider.translate(batch, source_lang, target_lang)
                if len(results) != len(batch):
                    raise ProviderError(
                        f"{self.name}: получено {len(results)} результатов на {len(batch)} строк"
                    )
                return results
            except Exception as exc:
                last_error = exc
                if attempt < self.retries - 1:
                    delay = min(2.0 ** attempt, MAX_BACKOFF)
                    logger.warning(
                        'Попытка %d/%d для %s не удалась: %s. Повтор через %.1fс',
                        attempt + 1, self.retries, self.name, exc, delay,
                    )
                    self._sleep(delay)

        logger.error("%s: пакет из %d строк не переведён: %s", self.name, len(batch), last_error)
        return [TranslationResult(original=text, translated=text, error=str(last_error))
                for text in batch]

    def close(self) -> None:
        self.provider.close()
