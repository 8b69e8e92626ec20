"""
Провайдеры перевода.

- google: Google Cloud Translation v2
- deepl: DeepL API (free / pro по суффиксу ключа)
- baidu: Baidu Fanyi
- llm: любая модель через litellm

Общие батчинг, паузы и повторы - в BatchingProvider.
"""

from ..config import ApiConfig
from ..errors import ConfigError, ProviderError
from .base import BatchingProvider, TranslationProvider, create_batches


def create_provider(api: ApiConfig) -> TranslationProvider:
    """Провайдер по конфигурации. Неизвестное имя или нехватка ключей - ConfigError."""
    try:
        if api.provider == "google":
            from .google import GoogleProvider
            return GoogleProvider(api.api_key, timeout=api.timeout)
        if api.provider == "deepl":
            from .deepl import DeepLProvider
            return DeepLProvider(api.api_key, timeout=api.timeout)
        if api.provider == "baidu":
            from .baidu import BaiduProvider
            return BaiduProvider(api.app_id, api.secret, timeout=api.timeout)
        if api.provider == "llm":
            from .llm import LLMProvider
            return LLMProvider(model=api.model)
    except ProviderError as e:
        raise ConfigError(str(e))
    raise ConfigError(f"Неизвестный провайдер перевода: {api.provider!r}")


def create_batching_provider(api: ApiConfig) -> BatchingProvider:
    return BatchingProvider(
        create_provider(api),
        batch_size=api.batch_size,
        rate_limit=api.rate_limit,
        retries=api.retries,
    )


__all__ = [
    "BatchingProvider",
    "TranslationProvider",
    "create_batches",
    "create_batching_provider",
    "create_provider",
]
