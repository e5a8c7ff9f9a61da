"""Tests for leadloop.services.search: provider registry and fallback."""
from unittest.mock import patch

import pytest

from leadloop.errors import ConfigurationError, ProviderError
from leadloop.services import search
from leadloop.services.search import (
    PROVIDERS, SearchProvider, SearchResult, check_config, get_provider, register_provider, unified_search,
)


@pytest.fixture(autouse=True)
def provider_registry():
    """Test providers are registered per test and removed afterwards."""
    saved = dict(PROVIDERS)
    calls = []

    @register_provider
    class Good(SearchProvider):
        name = 'good'

        def search(self, query, num=10):
            calls.append(('good', query, num))
            return [SearchResult(link='https://a.com/1', title=query)]

    @register_provider
    class Broken(SearchProvider):
        name = 'broken'

        def search(self, query, num=10):
            calls.append(('broken', query, num))
            raise ProviderError('broken', 'HTTP 503', status_code=503)

    @register_provider
    class Unconfigured(SearchProvider):
        name = 'unconfigured'

        def check_config(self):
            raise ConfigurationError('UNCONFIGURED_API_KEY is not set')

        def search(self, query, num=10):
            return []

    yield calls
    PROVIDERS.clear()
    PROVIDERS.update(saved)


class TestRegistry:

    def test_mock_registered_on_import(self):
        assert 'mock' in PROVIDERS

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError) as exc_info:
            get_provider('nope')
        assert 'nope' in str(exc_info.value)

    def test_check_config_primary_and_fallback(self):
        check_config('good', 'mock')
        with pytest.raises(ConfigurationError):
            check_config('good', 'unconfigured')
        with pytest.raises(ConfigurationError):
            check_config('unconfigured', '')


class TestUnifiedSearch:

    def test_primary(self, provider_registry):
        results, provider = unified_search('need editor', num=3, primary='good', fallback='')
        assert provider == 'good'
        assert results[0].title == 'need editor'
        assert provider_registry == [('good', 'need editor', 3)]

    def test_fallback_used_once(self, provider_registry):
        results, provider = unified_search('q', primary='broken', fallback='good')
        assert provider == 'good'
        assert [c[0] for c in provider_registry] == ['broken', 'good']

    def test_no_fallback_reraises(self, provider_registry):
        with pytest.raises(ProviderError):
            unified_search('q', primary='broken', fallback='')
        assert len(provider_registry) == 1

    def test_both_fail_raises_fallback_error(self):
        with pytest.raises(ConfigurationError):
            unified_search('q', primary='broken', fallback='missing')

    def test_fallback_same_as_primary_not_retried(self, provider_registry):
        with pytest.raises(ProviderError):
            unified_search('q', primary='broken', fallback='broken')
        assert len(provider_registry) == 1

    def test_failures_counted_on_search_breaker(self):
        from leadloop.services.circuit_breaker import get_breaker
        with pytest.raises(ProviderError):
            unified_search('q', primary='broken', fallback='')
        assert get_breaker('search').get_health()['total_failure'] == 1

    def test_defaults_from_config(self):
        with patch.object(search, 'SEARCH_PROVIDER', 'good'), patch.object(search, 'SEARCH_FALLBACK', None):
            _, provider = unified_search('q')
        assert provider == 'good'


class TestMockProvider:

    def test_canned_results(self):
        results = get_provider('mock').search('anything')
        assert len(results) == 8
        assert all(r.source == 'MOCK' for r in results)

    def test_num_limits_results(self):
        assert len(get_provider('mock').search('anything', num=3)) == 3
