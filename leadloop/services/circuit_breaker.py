"""
Circuit breakers for the three outbound dependencies: search, page fetch, LLM.

State lives in Redis so every worker sees the same circuit:
  - CLOSED    → calls pass through
  - OPEN      → calls fail fast with CircuitOpenError until reset_timeout passes
  - HALF_OPEN → the next call is a trial; success closes, failure re-opens

A Redis outage never blocks a call: unreadable state is treated as CLOSED.
Per-breaker success/failure counters sit in a Redis hash and feed /health.
"""
import logging
import time
from functools import wraps

from leadloop.errors import LeadLoopError

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'

# name → (failure_threshold, reset_timeout seconds)
DEFAULT_BREAKERS = {
    'search': (3, 300),
    'page_fetch': (10, 120),
    'llm': (5, 60),
}


class CircuitOpenError(LeadLoopError):
    """The named dependency is short-circuited."""

    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN, call skipped")


class CircuitBreaker:
    """
    Redis-backed breaker for one dependency.

        cb = CircuitBreaker('search', redis_client, failure_threshold=3, reset_timeout=300)
        results = cb.call(provider.search, query)

    or wrap a function once with @cb.protect.
    """

    PREFIX = 'leadloop:cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=300):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    def _key(self, suffix):
        return f'{self.PREFIX}:{self.name}:{suffix}'

    # ── State ─────────────────────────────────────────────────────────

    def _opened_at(self):
        raw = self.redis.get(self._key('opened_at'))
        return float(raw) if raw else None

    @property
    def state(self):
        try:
            current = self.redis.get(self._key('state')) or CLOSED
            if current == OPEN:
                opened_at = self._opened_at()
                if opened_at and time.time() - opened_at > self.reset_timeout:
                    self.redis.set(self._key('state'), HALF_OPEN)
                    return HALF_OPEN
            return current
        except Exception:
            return CLOSED

    @property
    def failure_count(self):
        try:
            return int(self.redis.get(self._key('failures')) or 0)
        except Exception:
            return 0

    def retry_after(self):
        try:
            opened_at = self._opened_at()
        except Exception:
            return None
        if not opened_at:
            return None
        return max(0.0, self.reset_timeout - (time.time() - opened_at))

    # ── Calls ─────────────────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        if self.state == OPEN:
            raise CircuitOpenError(self.name, retry_after=self.retry_after())

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def protect(self, func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper

    def _on_success(self):
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.hincrby(self._key('health'), 'success', 1)
            pipe.hset(self._key('health'), 'last_success', str(time.time()))
            pipe.execute()
        except Exception as e:
            logger.debug("Circuit '%s' could not record success: %s", self.name, e)

    def _on_failure(self, error):
        try:
            failures = self.redis.incr(self._key('failures'))
            pipe = self.redis.pipeline()
            pipe.hincrby(self._key('health'), 'failure', 1)
            pipe.hset(self._key('health'), 'last_failure', str(time.time()))
            pipe.hset(self._key('health'), 'last_error', str(error)[:200])
            if failures >= self.failure_threshold:
                pipe.set(self._key('state'), OPEN)
                pipe.set(self._key('opened_at'), str(time.time()))
            pipe.execute()
        except Exception as e:
            logger.debug("Circuit '%s' could not record failure: %s", self.name, e)
            return

        if failures >= self.failure_threshold:
            logger.warning("Circuit '%s' OPEN after %d failures: %s", self.name, failures, error)
        else:
            logger.info("Circuit '%s' failure %d/%d: %s",
                        self.name, failures, self.failure_threshold, error)

    def reset(self):
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.delete(self._key('opened_at'))
            pipe.execute()
            logger.info("Circuit '%s' reset to CLOSED", self.name)
        except Exception as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)

    # ── Health ────────────────────────────────────────────────────────

    def get_health(self):
        health = {
            'name': self.name,
            'state': self.state,
            'failure_count': self.failure_count,
            'failure_threshold': self.failure_threshold,
            'total_success': 0,
            'total_failure': 0,
            'last_error': '',
        }
        try:
            data = self.redis.hgetall(self._key('health')) or {}
        except Exception:
            health['state'] = 'unknown'
            return health
        health['total_success'] = int(data.get('success', 0))
        health['total_failure'] = int(data.get('failure', 0))
        health['last_error'] = data.get('last_error', '')
        return health


# ── Registry ──────────────────────────────────────────────────────────────

_registry = {}


def get_breaker(name, redis_client=None, **kwargs):
    """Named breaker, created on first use with the default thresholds."""
    if name not in _registry:
        if redis_client is None:
            from leadloop.extensions import redis_client as rc
            redis_client = rc
        threshold, timeout = DEFAULT_BREAKERS.get(name, (3, 300))
        kwargs.setdefault('failure_threshold', threshold)
        kwargs.setdefault('reset_timeout', timeout)
        _registry[name] = CircuitBreaker(name, redis_client, **kwargs)
    return _registry[name]


def init_breakers(redis_client):
    """Register the standard breakers against one Redis client."""
    breakers = {
        name: CircuitBreaker(name, redis_client, failure_threshold=threshold, reset_timeout=timeout)
        for name, (threshold, timeout) in DEFAULT_BREAKERS.items()
    }
    _registry.update(breakers)
    return breakers


def health_report():
    return {name: cb.get_health() for name, cb in sorted(_registry.items())}
