"""
Search provider contract and registry.

Every provider subclasses SearchProvider and registers itself in PROVIDERS
under its name. The run manager only calls unified_search(), which uses
SEARCH_PROVIDER and, when that raises, SEARCH_FALLBACK once. No other retries.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Type

from leadloop.config import SEARCH_PROVIDER, SEARCH_FALLBACK, MAX_RESULTS_PER_QUERY
from leadloop.errors import ConfigurationError

logger = logging.getLogger('services.search')


@dataclass
class SearchResult:
    link: str
    title: Optional[str] = None
    snippet: Optional[str] = None
    date: Optional[str] = None
    source: Optional[str] = None


class SearchProvider(ABC):
    """One search backend. Raises ProviderError on a non-success upstream response."""
    name: str = ''

    def check_config(self) -> None:
        """Raise ConfigurationError when credentials or settings are missing."""

    @abstractmethod
    def search(self, query: str, num: int = MAX_RESULTS_PER_QUERY) -> List[SearchResult]:
        ...


PROVIDERS: Dict[str, Type[SearchProvider]] = {}


def register_provider(cls: Type[SearchProvider]) -> Type[SearchProvider]:
    """Class decorator: make a provider selectable by SEARCH_PROVIDER."""
    PROVIDERS[cls.name] = cls
    return cls


def get_provider(name: str) -> SearchProvider:
    provider_cls = PROVIDERS.get(name)
    if not provider_cls:
        raise ConfigurationError(
            f"Unknown search provider '{name}'. Available: {sorted(PROVIDERS)}"
        )
    return provider_cls()


def check_config(primary: str = None, fallback: str = None) -> None:
    """Fail before any work if the configured providers cannot run."""
    get_provider(primary or SEARCH_PROVIDER).check_config()
    fallback = fallback if fallback is not None else SEARCH_FALLBACK
    if fallback:
        get_provider(fallback).check_config()


def _breaker_search(provider, query, num):
    from leadloop.services.circuit_breaker import get_breaker
    return get_breaker('search').call(provider.search, query, num)


def unified_search(query: str, num: int = MAX_RESULTS_PER_QUERY,
                   primary: str = None, fallback: str = None):
    """
    Run query on the primary provider, or the fallback if the primary fails.

    Returns (results, provider_name). The primary's error propagates when no
    fallback is configured; when both fail, the fallback's error propagates.
    """
    primary = primary or SEARCH_PROVIDER
    fallback = fallback if fallback is not None else SEARCH_FALLBACK

    try:
        return _breaker_search(get_provider(primary), query, num), primary
    except Exception as e:
        if not fallback or fallback == primary:
            raise
        logger.warning("Search provider %s failed (%s), falling back to %s", primary, e, fallback)

    return _breaker_search(get_provider(fallback), query, num), fallback


# Built-in providers register on import
from leadloop.pipeline import mock_adapters  # noqa: E402,F401
