"""
Retry-with-backoff policy shared by every call site that retries.

Only batch jobs (podcast ingest) retry; the request-time matching pipeline
calls upstreams exactly once.
"""
import logging
from dataclasses import dataclass
from typing import Tuple, Type

import requests
from tenacity import (
    Retrying, RetryCallState, retry_if_exception_type, stop_after_attempt,
    wait_exponential, wait_random,
)

logger = logging.getLogger('services.retry')

CONNECTION_ERRORS: Tuple[Type[BaseException], ...] = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    ConnectionResetError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: base_delay * 2**(attempt-1), capped at max_delay, plus up to `jitter` seconds."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: float = 0.5
    retry_on: Tuple[Type[BaseException], ...] = CONNECTION_ERRORS

    def _retrying(self, label: str) -> Retrying:
        def _log_retry(state: RetryCallState):
            logger.warning(
                "%s failed (attempt %d/%d): %s, retrying in %.1fs",
                label, state.attempt_number, self.max_attempts,
                state.outcome.exception(), state.next_action.sleep if state.next_action else 0,
            )

        wait = wait_exponential(multiplier=self.base_delay, max=self.max_delay)
        if self.jitter:
            wait = wait + wait_random(0, self.jitter)
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait,
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=_log_retry,
            reraise=True,
        )

    def call(self, func, *args, label: str = None, **kwargs):
        """Run func under this policy, re-raising the last error once attempts run out."""
        return self._retrying(label or getattr(func, '__name__', 'call'))(func, *args, **kwargs)


INGEST_RETRY = RetryPolicy(max_attempts=3, base_delay=2.0, max_delay=10.0, jitter=1.0)
