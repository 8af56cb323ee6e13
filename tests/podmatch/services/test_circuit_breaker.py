"""Tests for podmatch.services.circuit_breaker — CircuitBreaker class and registry."""
import time
import pytest
import redis
from unittest.mock import MagicMock

from podmatch.errors import ValidationError, NotFoundError, UpstreamError, SheetAccessError
from podmatch.services.circuit_breaker import (
    CircuitBreaker, CircuitOpenError, CLOSED, OPEN, HALF_OPEN,
    get_breaker, get_all_breakers, init_breakers, BREAKER_SETTINGS,
)


@pytest.fixture
def cb(fake_redis):
    """Fresh circuit breaker with fake Redis."""
    return CircuitBreaker('test_svc', fake_redis, failure_threshold=3, reset_timeout=10)


def _fail():
    raise ValueError("boom")


def _trip(cb, times=3):
    for _ in range(times):
        with pytest.raises(ValueError):
            cb.call(_fail)


def _age(fake_redis, cb, seconds):
    fake_redis.hash_store[cb._key]['opened_at'] = str(time.time() - seconds)


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------

class TestCircuitBreakerStates:
    """CLOSED → OPEN → HALF_OPEN → CLOSED."""

    def test_starts_closed(self, cb):
        assert cb.state == CLOSED
        assert cb.failure_count == 0

    def test_counts_failures_below_threshold(self, cb):
        _trip(cb, times=2)
        assert cb.failure_count == 2
        assert cb.state == CLOSED

    def test_opens_at_threshold(self, cb):
        _trip(cb)
        assert cb.state == OPEN

    def test_open_rejects_without_calling(self, cb):
        _trip(cb)
        func = MagicMock()
        with pytest.raises(CircuitOpenError) as exc_info:
            cb.call(func)
        func.assert_not_called()
        assert exc_info.value.name == 'test_svc'
        assert 0 < exc_info.value.retry_after <= 10

    def test_open_error_is_upstream_error(self, cb):
        _trip(cb)
        with pytest.raises(UpstreamError):
            cb.call(lambda: 'ok')

    def test_half_open_after_timeout(self, cb, fake_redis):
        _trip(cb)
        _age(fake_redis, cb, 20)
        assert cb.state == HALF_OPEN

    def test_successful_probe_closes(self, cb, fake_redis):
        _trip(cb)
        _age(fake_redis, cb, 20)
        assert cb.call(lambda: 'recovered') == 'recovered'
        assert cb.state == CLOSED
        assert cb.failure_count == 0

    def test_failed_probe_reopens(self, cb, fake_redis):
        _trip(cb)
        _age(fake_redis, cb, 20)
        with pytest.raises(ValueError):
            cb.call(_fail)
        assert cb.state == OPEN

    def test_success_resets_failure_count(self, cb):
        _trip(cb, times=2)
        cb.call(lambda: 'ok')
        assert cb.failure_count == 0

    @pytest.mark.parametrize('error', [ValidationError('bad'), NotFoundError('gone')])
    def test_caller_errors_not_counted(self, cb, error):
        def _raise():
            raise error
        with pytest.raises(type(error)):
            cb.call(_raise)
        assert cb.failure_count == 0


# ---------------------------------------------------------------------------
# Redis outages
# ---------------------------------------------------------------------------

class TestRedisUnavailable:
    """Breakers fail open when Redis cannot be reached."""

    @pytest.fixture
    def broken_cb(self):
        broken = MagicMock()
        broken.hgetall.side_effect = redis.ConnectionError('down')
        broken.hincrby.side_effect = redis.ConnectionError('down')
        broken.pipeline.side_effect = redis.ConnectionError('down')
        broken.delete.side_effect = redis.ConnectionError('down')
        return CircuitBreaker('flaky', broken, failure_threshold=1)

    def test_calls_pass_through(self, broken_cb):
        assert broken_cb.call(lambda: 42) == 42
        assert broken_cb.state == CLOSED

    def test_failures_still_raise_original_error(self, broken_cb):
        with pytest.raises(ValueError):
            broken_cb.call(_fail)

    def test_reset_reports_failure(self, broken_cb):
        assert broken_cb.reset() is False


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------

class TestCircuitBreakerReset:
    """Manual circuit breaker reset."""

    def test_reset_closes_circuit(self, cb):
        _trip(cb)
        assert cb.reset() is True
        assert cb.state == CLOSED
        assert cb.failure_count == 0

    def test_reset_allows_calls(self, cb):
        _trip(cb)
        cb.reset()
        assert cb.call(lambda: 'ok') == 'ok'


# ---------------------------------------------------------------------------
# Health metrics
# ---------------------------------------------------------------------------

class TestCircuitBreakerHealth:
    """get_health() returns metrics dict."""

    def test_health_after_success(self, cb):
        cb.call(lambda: 'ok')
        health = cb.get_health()
        assert health['name'] == 'test_svc'
        assert health['state'] == CLOSED
        assert health['total_success'] == 1
        assert health['total_failure'] == 0
        assert health['last_success'] is not None

    def test_health_after_failure(self, cb):
        with pytest.raises(ValueError):
            cb.call(_fail)
        health = cb.get_health()
        assert health['total_failure'] == 1
        assert health['last_error'] == 'boom'
        assert health['failure_count'] == 1

    def test_health_includes_thresholds(self, cb):
        health = cb.get_health()
        assert health['failure_threshold'] == 3
        assert health['reset_timeout'] == 10


class TestIgnoredErrors:
    """Errors scoped to one caller's resource pass through without counting."""

    def test_ignored_error_not_counted(self, fake_redis):
        cb = CircuitBreaker('scoped', fake_redis, failure_threshold=1, ignored_errors=(KeyError,))
        with pytest.raises(KeyError):
            cb.call(_raise_key_error)
        assert cb.failure_count == 0
        assert cb.state == CLOSED

    def test_sheets_breaker_ignores_sheet_access_errors(self, fake_redis):
        cb = get_breaker('sheets')
        for _ in range(cb.failure_threshold + 1):
            with pytest.raises(SheetAccessError):
                cb.call(_raise_sheet_access)
        assert cb.state == CLOSED


def _raise_key_error():
    raise KeyError('missing')


def _raise_sheet_access():
    raise SheetAccessError('Spreadsheet not shared')


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestCircuitBreakerRegistry:
    """init_breakers(), get_breaker() and get_all_breakers()."""

    def test_init_registers_every_upstream(self, fake_redis):
        breakers = init_breakers(fake_redis)
        assert set(breakers) == {'openai', 'anthropic', 'podscan', 'sheets'}
        assert set(get_all_breakers()) >= set(breakers)

    def test_sheets_breaker_settings(self, fake_redis):
        breakers = init_breakers(fake_redis)
        assert breakers['sheets'].failure_threshold == BREAKER_SETTINGS['sheets']['failure_threshold']
        assert breakers['sheets'].reset_timeout == 180

    def test_get_breaker_is_singleton(self, fake_redis):
        assert get_breaker('openai') is get_breaker('openai')

    def test_get_breaker_creates_on_demand(self, fake_redis):
        cb = get_breaker('new_service', fake_redis, failure_threshold=7)
        assert cb.name == 'new_service'
        assert cb.failure_threshold == 7
        assert 'new_service' in get_all_breakers()
