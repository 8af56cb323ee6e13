"""
Redis-backed circuit breaker, one per upstream (openai, anthropic, podscan, sheets).

State for each breaker lives in a single Redis hash ``cb:<name>``:
  - state      closed | open
  - failures   consecutive failure count
  - opened_at  epoch seconds when the circuit last opened

An open circuit reports HALF_OPEN once reset_timeout has elapsed and lets the
next call through as a probe. A failed probe re-opens it immediately.

Breakers never retry. When Redis is unreachable they fail open (calls pass).
"""
import logging
import time

import redis

from podmatch.errors import (
    UpstreamError, ValidationError, NotFoundError, ConfigurationError, SheetAccessError,
)

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'

# Caller mistakes say nothing about upstream health
_NOT_UPSTREAM_FAILURES = (ValidationError, NotFoundError, ConfigurationError)


class CircuitOpenError(UpstreamError):
    """Raised instead of calling an upstream whose circuit is open."""

    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Upstream '{name}' is temporarily unavailable")


class CircuitBreaker:
    """
    Usage:
        cb = get_breaker('openai')
        vector = cb.call(client.embeddings.create, model=..., input=...)
    """

    PREFIX = 'cb'

    def __init__(self, name, redis_client, failure_threshold=5, reset_timeout=60, ignored_errors=()):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        # Errors tied to one caller's resource rather than the upstream as a whole
        self.ignored_errors = tuple(ignored_errors)

    @property
    def _key(self):
        return f'{self.PREFIX}:{self.name}'

    @property
    def _health_key(self):
        return f'{self.PREFIX}:{self.name}:health'

    def _snapshot(self):
        try:
            return self.redis.hgetall(self._key) or {}
        except redis.RedisError as e:
            logger.debug("Circuit '%s' state unavailable (%s), failing open", self.name, e)
            return {}

    @property
    def state(self):
        data = self._snapshot()
        current = data.get('state', CLOSED)
        if current == OPEN and self._seconds_open(data) >= self.reset_timeout:
            return HALF_OPEN
        return current

    @property
    def failure_count(self):
        return int(self._snapshot().get('failures', 0) or 0)

    def retry_after(self):
        data = self._snapshot()
        if data.get('state') != OPEN:
            return None
        return max(0.0, self.reset_timeout - self._seconds_open(data))

    @staticmethod
    def _seconds_open(data):
        opened_at = data.get('opened_at')
        return time.time() - float(opened_at) if opened_at else float('inf')

    # ── Core call logic ───────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        current = self.state
        if current == OPEN:
            raise CircuitOpenError(self.name, retry_after=self.retry_after())

        try:
            result = func(*args, **kwargs)
        except _NOT_UPSTREAM_FAILURES:
            raise
        except self.ignored_errors:
            raise
        except Exception as e:
            self._on_failure(e, probing=current == HALF_OPEN)
            raise
        self._on_success()
        return result

    def _on_success(self):
        try:
            pipe = self.redis.pipeline()
            pipe.hset(self._key, mapping={'state': CLOSED, 'failures': 0})
            pipe.hdel(self._key, 'opened_at')
            pipe.hincrby(self._health_key, 'success', 1)
            pipe.hset(self._health_key, 'last_success', str(time.time()))
            pipe.execute()
        except redis.RedisError as e:
            logger.debug("Circuit '%s' could not record success: %s", self.name, e)

    def _on_failure(self, error, probing=False):
        try:
            failures = self.redis.hincrby(self._key, 'failures', 1)
            if probing or failures >= self.failure_threshold:
                self.redis.hset(self._key, mapping={'state': OPEN, 'opened_at': str(time.time())})
                logger.warning(
                    "Circuit '%s' OPENED after %d failures (threshold=%d): %s",
                    self.name, failures, self.failure_threshold, error,
                )
            else:
                logger.info("Circuit '%s' failure %d/%d: %s",
                            self.name, failures, self.failure_threshold, error)
            pipe = self.redis.pipeline()
            pipe.hincrby(self._health_key, 'failure', 1)
            pipe.hset(self._health_key, mapping={
                'last_failure': str(time.time()),
                'last_error': str(error)[:200],
            })
            pipe.execute()
        except redis.RedisError as e:
            logger.debug("Circuit '%s' could not record failure: %s", self.name, e)

    def reset(self):
        """Close the circuit and clear its failure count."""
        try:
            self.redis.delete(self._key)
            logger.info("Circuit '%s' manually reset to CLOSED", self.name)
            return True
        except redis.RedisError as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)
            return False

    def get_health(self):
        """Health metrics for GET /api/health."""
        try:
            health = self.redis.hgetall(self._health_key) or {}
        except redis.RedisError:
            health = {}
        return {
            'name': self.name,
            'state': self.state,
            'failure_count': self.failure_count,
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(health.get('success', 0)),
            'total_failure': int(health.get('failure', 0)),
            'last_success': float(health['last_success']) if health.get('last_success') else None,
            'last_failure': float(health['last_failure']) if health.get('last_failure') else None,
            'last_error': health.get('last_error', ''),
        }


# ── Global registry ───────────────────────────────────────────────────────

_registry = {}

BREAKER_SETTINGS = {
    'openai': dict(failure_threshold=5, reset_timeout=60),
    'anthropic': dict(failure_threshold=5, reset_timeout=60),
    'podscan': dict(failure_threshold=5, reset_timeout=120),
    'sheets': dict(failure_threshold=3, reset_timeout=180, ignored_errors=(SheetAccessError,)),
}


def get_breaker(name, redis_client=None, **kwargs):
    """Get or create a named circuit breaker (singleton per name)."""
    if name not in _registry:
        if redis_client is None:
            from podmatch.extensions import redis_client as rc
            redis_client = rc
        settings = {**BREAKER_SETTINGS.get(name, {}), **kwargs}
        _registry[name] = CircuitBreaker(name, redis_client, **settings)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Register a breaker for every upstream the service talks to."""
    breakers = {
        name: CircuitBreaker(name, redis_client, **settings)
        for name, settings in BREAKER_SETTINGS.items()
    }
    _registry.update(breakers)
    return breakers
