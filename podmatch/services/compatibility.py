"""
Guest/podcast compatibility scoring with Claude.

Every podcast is scored 1–10 independently and in parallel. A reply that is
not valid JSON still yields a score when it contains a bare 1–10 number; a
failed call yields score None for that podcast only.
"""
import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List

from podmatch.config import LLM_MODEL
from podmatch.schemas import CompatibilityScore
from podmatch.services.quality_filter import strip_code_fences

logger = logging.getLogger('services.compatibility')

MAX_WORKERS = 8
_SCORE_RE = re.compile(r'\b(10|[1-9])\b')


def _build_prompt(client_bio: str, podcast: Dict[str, Any]) -> str:
    categories = ', '.join(
        c.get('category_name', '') for c in (podcast.get('podcast_categories') or []) if isinstance(c, dict)
    )
    return (
        "Rate how well this guest fits this podcast on a scale of 1-10.\n\n"
        f"GUEST BIO:\n{client_bio}\n\n"
        f"PODCAST: {podcast.get('podcast_name', '')}\n"
        f"Description: {podcast.get('podcast_description') or 'N/A'}\n"
        f"Categories: {categories or 'N/A'}\n"
        f"Audience size: {podcast.get('audience_size') or 'unknown'}\n\n"
        'Respond with ONLY JSON: {"score": <1-10>, "reasoning": "<one sentence>"}'
    )


def parse_score_reply(raw: str):
    """Return (score, reasoning) from a model reply; score is None when absent."""
    text = strip_code_fences(raw or '')
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _SCORE_RE.search(text)
        return (int(match.group(1)) if match else None), text[:300]

    if not isinstance(data, dict):
        return None, ''
    score = data.get('score')
    try:
        score = int(score)
    except (TypeError, ValueError):
        score = None
    if score is not None and not 1 <= score <= 10:
        score = None
    return score, str(data.get('reasoning') or '')


def _score_one(client_bio: str, podcast: Dict[str, Any]) -> CompatibilityScore:
    from podmatch import extensions
    from podmatch.services.circuit_breaker import get_breaker

    podcast_id = str(podcast.get('podcast_id') or podcast.get('podscan_id') or '')
    try:
        response = get_breaker('anthropic').call(
            extensions.anthropic_client.messages.create,
            model=LLM_MODEL,
            max_tokens=200,
            temperature=0,
            messages=[{"role": "user", "content": _build_prompt(client_bio, podcast)}],
        )
        score, reasoning = parse_score_reply(response.content[0].text)
    except Exception as e:
        logger.warning("Scoring failed for podcast %s: %s", podcast_id, e)
        return CompatibilityScore(podcast_id=podcast_id, score=None, reasoning='')
    return CompatibilityScore(podcast_id=podcast_id, score=score, reasoning=reasoning)


def score_podcasts(client_bio: str, podcasts: List[Dict[str, Any]]) -> List[CompatibilityScore]:
    """Scores in the same order as `podcasts`."""
    if not podcasts:
        return []
    workers = min(MAX_WORKERS, len(podcasts))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        scores = list(pool.map(lambda p: _score_one(client_bio, p), podcasts))
    scored = sum(1 for s in scores if s.score is not None)
    logger.info("Scored %d/%d podcasts", scored, len(podcasts))
    return scores
