"""
Shared client instances — Redis, RQ queue, OpenAI, Anthropic.

Importing this module is always safe: clients whose keys are missing stay None
and the endpoints that need them fail fast through require_config().
"""
import logging
import redis

from podmatch.config import (
    REDIS_URL,
    OPENAI_API_KEY, EMBEDDING_TIMEOUT,
    ANTHROPIC_API_KEY, LLM_TIMEOUT,
)

logger = logging.getLogger('podmatch.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)

# ── OpenAI ────────────────────────────────────────────────────────────────────
# The matching pipeline does not retry, so the SDK's own retries are disabled.
openai_client = None
if OPENAI_API_KEY:
    try:
        from openai import OpenAI
        openai_client = OpenAI(api_key=OPENAI_API_KEY, timeout=EMBEDDING_TIMEOUT, max_retries=0)
        logger.info("OpenAI client initialized successfully")
    except Exception as e:
        logger.error("Error initializing OpenAI client: %s", e)
else:
    logger.warning("OPENAI_API_KEY not set — embedding endpoints will return 500")

# ── Anthropic ─────────────────────────────────────────────────────────────────
anthropic_client = None
if ANTHROPIC_API_KEY:
    try:
        from anthropic import Anthropic
        anthropic_client = Anthropic(api_key=ANTHROPIC_API_KEY, timeout=LLM_TIMEOUT, max_retries=0)
        logger.info("Anthropic client initialized successfully")
    except Exception as e:
        logger.error("Error initializing Anthropic client: %s", e)
else:
    logger.warning("ANTHROPIC_API_KEY not set — quality filter falls back to similarity order")


# ── Lazy RQ queue (no Redis connection until the first enqueue) ──────────────

_queue = None


def get_queue():
    global _queue
    if _queue is None:
        from rq import Queue
        _queue = Queue(connection=redis_client)
    return _queue


def enqueue_background(func, *args, **kwargs):
    """Enqueue a fire-and-forget job. Enqueue failures are logged, never raised."""
    try:
        job = get_queue().enqueue(func, *args, **kwargs)
        logger.debug("Enqueued %s as job %s", getattr(func, '__name__', func), job.id)
        return job
    except Exception as e:
        logger.warning("Failed to enqueue %s: %s", getattr(func, '__name__', func), e)
        return None
