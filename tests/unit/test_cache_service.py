"""
Unit tests for the reference data cache.
"""
from fnmatch import fnmatchcase

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from payables.services.cache_service import ReferenceCache


class _FakeRedis:
    """Just enough of redis.Redis for the cache: strings, SCAN and DEL."""

    def __init__(self):
        self.values = {}
        self.ttls = {}

    def get(self, key):
        return self.values.get(key)

    def setex(self, key, ttl, value):
        self.values[key] = value
        self.ttls[key] = ttl

    def scan(self, cursor, match='*', count=None):
        return 0, [key for key in self.values if fnmatchcase(key, match)]

    def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)
        return len(keys)


class _DownRedis:
    def get(self, key):
        raise RedisConnectionError('connection refused')

    def setex(self, key, ttl, value):
        raise RedisConnectionError('connection refused')

    def scan(self, cursor, match='*', count=None):
        raise RedisConnectionError('connection refused')


def _cache(client):
    cache = ReferenceCache()
    cache.client = client
    cache._enabled = True
    return cache


class TestReadThrough:
    """Values are loaded once and then served from Redis."""

    def test_loader_runs_once(self):
        cache = _cache(_FakeRedis())
        calls = []

        def load():
            calls.append(1)
            return [{'id': 1, 'name': 'Acme', 'rate': '0.21'}]

        first = cache.read_through('ref:suppliers', 'all', load, ttl=300)
        second = cache.read_through('ref:suppliers', 'all', load, ttl=300)

        assert first == second == [{'id': 1, 'name': 'Acme', 'rate': '0.21'}]
        assert len(calls) == 1

    def test_key_and_ttl(self):
        client = _FakeRedis()
        cache = _cache(client)

        cache.store('ref:items', 'active', [], ttl=120)

        assert client.ttls == {'payables:ref:items:active': 120}

    def test_default_ttl_applies(self):
        client = _FakeRedis()
        cache = _cache(client)

        cache.store('ref:items', 'active', [])

        assert client.ttls['payables:ref:items:active'] == 60

    def test_unreadable_entry_is_a_miss(self):
        client = _FakeRedis()
        client.values['payables:ref:sites:supplier:3'] = '{not json'
        cache = _cache(client)

        assert cache.read_through('ref:sites', 'supplier:3', lambda: ['fresh'], ttl=10) == ['fresh']


class TestInvalidate:
    """invalidate(kind) drops every key of that kind and nothing else."""

    def test_only_the_kind_is_dropped(self):
        client = _FakeRedis()
        cache = _cache(client)
        cache.store('ref:sites', 'supplier:1', [], ttl=10)
        cache.store('ref:sites', 'supplier:2', [], ttl=10)
        cache.store('ref:suppliers', 'all', [], ttl=10)

        assert cache.invalidate('ref:sites') == 2
        assert list(client.values) == ['payables:ref:suppliers:all']

    def test_nothing_cached(self):
        assert _cache(_FakeRedis()).invalidate('ref:tax_rates') == 0


class TestDegradation:
    """Without a working Redis every read goes to the loader."""

    def test_disabled_cache_always_loads(self):
        cache = ReferenceCache()
        assert cache.enabled is False
        assert cache.read_through('ref:suppliers', 'all', lambda: ['db'], ttl=10) == ['db']
        assert cache.invalidate('ref:suppliers') == 0

    @pytest.mark.parametrize('op', ['lookup', 'store', 'invalidate'])
    def test_redis_errors_are_not_raised(self, op):
        cache = _cache(_DownRedis())
        if op == 'lookup':
            assert cache.lookup('ref:suppliers', 'all') is None
        elif op == 'store':
            assert cache.store('ref:suppliers', 'all', [], ttl=10) is False
        else:
            assert cache.invalidate('ref:suppliers') == 0

    def test_down_redis_falls_back_to_loader(self):
        cache = _cache(_DownRedis())
        assert cache.read_through('ref:items', 'active', lambda: ['db'], ttl=10) == ['db']
