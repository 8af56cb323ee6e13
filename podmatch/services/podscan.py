"""
Podscan API client — podcast detail lookups, audience demographics and
keyword search.

Responses are parsed into PodscanPodcast at this boundary. Calls are not
retried here; batch callers wrap them in a RetryPolicy.
"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import requests

from podmatch import config
from podmatch.errors import PodscanError, ResponseShapeError
from podmatch.schemas import PodscanPodcast

logger = logging.getLogger('services.podscan')

_session = None


def _get_session() -> requests.Session:
    global _session
    if _session is None:
        _session = requests.Session()
        _session.headers.update({'Content-Type': 'application/json'})
    return _session


def _request(path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    from podmatch.services.circuit_breaker import get_breaker

    url = f"{config.PODSCAN_API_URL.rstrip('/')}/{path.lstrip('/')}"
    headers = {'Authorization': f'Bearer {config.PODSCAN_API_KEY}'}

    def _get():
        resp = _get_session().get(url, params=params, headers=headers, timeout=config.PODSCAN_TIMEOUT)
        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise PodscanError(f"Podscan API error {resp.status_code} for {path}", status_code=500)
        try:
            return resp.json()
        except ValueError as e:
            raise ResponseShapeError(f"Podscan returned invalid JSON for {path}") from e

    return get_breaker('podscan').call(_get)


def get_podcast(podcast_id: str) -> Optional[PodscanPodcast]:
    """Fetch one podcast; None when Podscan does not know the id."""
    payload = _request(f'podcasts/{podcast_id}')
    if payload is None:
        return None
    # Detail responses wrap the record in {"podcast": {...}}
    record = payload.get('podcast', payload) if isinstance(payload, dict) else payload
    return PodscanPodcast.from_api(record)


def get_demographics(podcast_id: str) -> Optional[Dict[str, Any]]:
    """Audience demographics for one podcast.

    None when Podscan has no demographics for it: a 404, or a payload that
    analyzed no episodes.
    """
    payload = _request(f'podcasts/{podcast_id}/demographics')
    if payload is None:
        return None
    if not isinstance(payload, dict):
        raise ResponseShapeError(f"Podscan demographics must be an object, got {type(payload).__name__}")
    if not payload.get('episodes_analyzed'):
        return None
    return payload


def search_podcasts(query: str, page: int = 1, per_page: int = 50,
                    active_within_days: int = 730) -> List[PodscanPodcast]:
    """One page of English-language keyword results ordered by audience size.

    Malformed entries are logged and dropped.
    """
    since = (date.today() - timedelta(days=active_within_days)).isoformat()
    payload = _request('podcasts/search', params={
        'q': query,
        'language': 'en',
        'min_last_episode_posted_at': since,
        'per_page': per_page,
        'order_by': 'audience_size',
        'order_dir': 'desc',
        'page': page,
    })
    if payload is None:
        return []
    items = payload.get('podcasts') if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise ResponseShapeError("Podscan search response has no 'podcasts' list")

    podcasts = []
    for item in items:
        try:
            podcasts.append(PodscanPodcast.from_api(item))
        except ResponseShapeError as e:
            logger.warning("Skipping malformed Podscan result: %s", e)
    return podcasts
