"""
LLM re-ranking of similarity candidates.

The filter narrows the candidate list to TARGET_RESULTS podcasts. It never
fails the request: when the LLM is skipped or misbehaves the first
TARGET_RESULTS candidates by similarity are returned instead.
"""
import json
import logging
import re
from typing import List

from podmatch.config import (
    LLM_MODEL, LLM_CANDIDATE_POOL, LLM_DESCRIPTION_MAX_CHARS, TARGET_RESULTS,
)
from podmatch.schemas import FilterResult, SimilarityMatch

logger = logging.getLogger('services.quality_filter')

_FENCE_RE = re.compile(r'^```(?:json)?\s*|\s*```$', re.MULTILINE)


class SelectionParseError(ValueError):
    """LLM reply could not be turned into a list of candidate indices."""


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub('', text.strip()).strip()


def parse_selected_indices(raw: str, candidate_count: int, target: int) -> List[int]:
    """
    Parse a JSON array of indices out of an LLM reply.

    Non-integer, out-of-range and repeated entries are dropped. Raises
    SelectionParseError when nothing usable remains.
    """
    try:
        parsed = json.loads(strip_code_fences(raw))
    except (json.JSONDecodeError, TypeError) as e:
        raise SelectionParseError(f"Reply is not JSON: {e}") from e
    if not isinstance(parsed, list):
        raise SelectionParseError(f"Expected JSON array, got {type(parsed).__name__}")

    indices = []
    for item in parsed:
        if isinstance(item, bool) or not isinstance(item, int):
            continue
        if 0 <= item < candidate_count and item not in indices:
            indices.append(item)
        if len(indices) == target:
            break
    if not indices:
        raise SelectionParseError('Reply contained no valid candidate indices')
    return indices


def build_prompt(profile_text: str, candidates: List[SimilarityMatch], target: int) -> str:
    lines = []
    for i, match in enumerate(candidates):
        description = (match.podcast_description or '')[:LLM_DESCRIPTION_MAX_CHARS]
        audience = match.audience_size if match.audience_size is not None else 'unknown'
        lines.append(f"{i}. {match.podcast_name} (audience: {audience}): {description}")

    return (
        "You are matching a podcast guest to shows where they would be a strong, relevant guest.\n\n"
        f"GUEST PROFILE:\n{profile_text}\n\n"
        f"CANDIDATE PODCASTS:\n" + '\n'.join(lines) + "\n\n"
        f"Pick the TOP {target} podcasts for this guest. Favor topical fit over audience size "
        "and skip shows whose subject has nothing to do with the guest.\n"
        f"Return ONLY a JSON array of the candidate indices, best first, e.g. [3, 0, 12]."
    )


def _call_llm(prompt: str) -> str:
    from podmatch import extensions
    from podmatch.services.circuit_breaker import get_breaker

    response = get_breaker('anthropic').call(
        extensions.anthropic_client.messages.create,
        model=LLM_MODEL,
        max_tokens=2000,
        temperature=0.2,
        messages=[{"role": "user", "content": prompt}],
    )
    return response.content[0].text


def select_top_podcasts(profile_text: str, candidates: List[SimilarityMatch],
                        target: int = TARGET_RESULTS,
                        pool: int = LLM_CANDIDATE_POOL) -> FilterResult:
    """
    Narrow `candidates` (ordered by similarity) to at most `target`.

    The LLM only sees the first `pool` candidates. Any failure returns
    candidates[:target] unchanged.
    """
    from podmatch import extensions

    fallback = list(candidates[:target])
    if len(candidates) <= target:
        return FilterResult(selected=fallback, used_fallback=True, reason='below_target')
    if extensions.anthropic_client is None:
        return FilterResult(selected=fallback, used_fallback=True, reason='llm_not_configured')

    shortlist = list(candidates[:pool])
    try:
        raw = _call_llm(build_prompt(profile_text, shortlist, target))
        indices = parse_selected_indices(raw, len(shortlist), target)
    except SelectionParseError as e:
        logger.warning("Quality filter reply unusable, falling back to similarity order: %s", e)
        return FilterResult(selected=fallback, used_fallback=True, reason='parse_error')
    except Exception as e:
        logger.warning("Quality filter call failed, falling back to similarity order: %s", e)
        return FilterResult(selected=fallback, used_fallback=True, reason='llm_error')

    selected = [shortlist[i] for i in indices]
    logger.info("Quality filter kept %d of %d candidates", len(selected), len(shortlist))
    return FilterResult(selected=selected, used_fallback=False)
