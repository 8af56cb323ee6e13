"""
Client outreach list — resolve the podcast ids in a client's sheet to full
podcast records, serving from the central cache and fetching the rest from
Podscan.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from podmatch.config import (
    CREDITS_PER_PODCAST_FETCH, COST_PER_API_CALL, STALE_AFTER_DAYS, require_config,
)
from podmatch.database import get_session
from podmatch.errors import ValidationError
from podmatch.models.client import Client
from podmatch.models.cache_entries import ClientDashboardPodcast
from podmatch.schemas import PodscanPodcast
from podmatch.services import podcast_cache, podscan, sheets

logger = logging.getLogger('pipeline.outreach')

PODSCAN_FETCH_BATCH = 5

# Fields returned to the dashboard for each podcast
_PUBLIC_FIELDS = (
    'podcast_name', 'podcast_description', 'podcast_image_url', 'podcast_url',
    'publisher_name', 'itunes_rating', 'episode_count', 'audience_size',
)


def _public(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'podcast_id': record['podscan_id'],
        **{k: record.get(k) for k in _PUBLIC_FIELDS},
        'demographics': record.get('demographics'),
    }


def _client_sheet_id(client_id: str) -> Optional[str]:
    session = get_session()
    try:
        client = session.get(Client, client_id)
        url = client.google_sheet_url if client else None
    finally:
        session.close()
    if not url:
        return None
    spreadsheet_id = sheets.extract_spreadsheet_id(url)
    if not spreadsheet_id:
        raise ValidationError('Invalid Google Sheet URL')
    return spreadsheet_id


def _fetch_one(podcast_id: str) -> Optional[PodscanPodcast]:
    try:
        return podscan.get_podcast(podcast_id)
    except Exception as e:
        logger.warning("Failed to fetch podcast %s from Podscan: %s", podcast_id, e)
        return None


def fetch_from_podscan(podcast_ids: List[str]) -> List[PodscanPodcast]:
    """Fetch podcasts in parallel batches of five; failures are skipped."""
    fetched = []
    with ThreadPoolExecutor(max_workers=PODSCAN_FETCH_BATCH) as pool:
        for start in range(0, len(podcast_ids), PODSCAN_FETCH_BATCH):
            batch = podcast_ids[start:start + PODSCAN_FETCH_BATCH]
            fetched.extend(p for p in pool.map(_fetch_one, batch) if p is not None)
    return fetched


def _fetch_demographics_one(podcast_id: str) -> Optional[Dict[str, Any]]:
    try:
        return podscan.get_demographics(podcast_id)
    except Exception as e:
        logger.info("No demographics for podcast %s: %s", podcast_id, e)
        return None


def fetch_demographics(podcast_ids: List[str]) -> Dict[str, Dict[str, Any]]:
    """Demographics keyed by podcast id, omitting podcasts Podscan has none for."""
    found = {}
    with ThreadPoolExecutor(max_workers=PODSCAN_FETCH_BATCH) as pool:
        for start in range(0, len(podcast_ids), PODSCAN_FETCH_BATCH):
            batch = podcast_ids[start:start + PODSCAN_FETCH_BATCH]
            for podcast_id, demographics in zip(batch, pool.map(_fetch_demographics_one, batch)):
                if demographics:
                    found[podcast_id] = demographics
    return found


def read_outreach_list(client_id: str) -> Dict[str, Any]:
    """Podcasts on a client's outreach sheet plus cache performance counters."""
    spreadsheet_id = _client_sheet_id(client_id)
    if not spreadsheet_id:
        return {'success': True, 'podcasts': [], 'total': 0}

    podcast_ids = list(dict.fromkeys(sheets.read_podcast_ids(spreadsheet_id)))
    if not podcast_ids:
        return {'success': True, 'podcasts': [], 'total': 0, 'spreadsheetId': spreadsheet_id}

    cache = podcast_cache.get_cached_podcasts(podcast_ids, stale_days=STALE_AFTER_DAYS)
    to_fetch = cache.missing + cache.stale

    fetched, demographics = [], {}
    if to_fetch:
        require_config('PODSCAN_API_KEY')
        fetched = [p.to_record() for p in fetch_from_podscan(to_fetch)]
        if fetched:
            podcast_cache.batch_upsert_podcasts(fetched)
            demographics = fetch_demographics([r['podscan_id'] for r in fetched])
        for record in fetched:
            record['demographics'] = demographics.get(record['podscan_id'])
        for podscan_id, payload in demographics.items():
            podcast_cache.update_podcast_demographics(
                podscan_id, payload, episodes_analyzed=payload.get('episodes_analyzed'),
            )

    by_id = {r['podscan_id']: _public(r) for r in cache.cached + fetched}
    podcasts = [by_id[i] for i in podcast_ids if i in by_id]

    cached_count = len(cache.cached)
    saved = cached_count * CREDITS_PER_PODCAST_FETCH
    logger.info("Outreach list: %d podcasts (%d cached, %d fetched)",
                len(podcasts), cached_count, len(fetched), extra={'client_id': client_id})
    return {
        'success': True,
        'podcasts': podcasts,
        'total': len(podcasts),
        'spreadsheetId': spreadsheet_id,
        'cachePerformance': {
            'cached': cached_count,
            'fetched': len(fetched),
            'demographicsFetched': len(demographics),
            'cacheHitRate': round(cached_count / len(podcast_ids) * 100, 1),
            'apiCallsSaved': saved,
            'apiCallsMade': len(to_fetch) * CREDITS_PER_PODCAST_FETCH,
            'costSavings': round(saved * COST_PER_API_CALL, 2),
        },
    }


def cached_client_podcasts(client_id: str) -> List[Dict[str, Any]]:
    """Fast path: the client's dashboard rows straight from the database, no Sheets call."""
    session = get_session()
    try:
        rows = (
            session.query(ClientDashboardPodcast)
            .filter(ClientDashboardPodcast.client_id == client_id)
            .order_by(ClientDashboardPodcast.created_at.desc(), ClientDashboardPodcast.id.desc())
            .all()
        )
        return [
            {
                'podcast_id': row.podcast_id,
                **{k: getattr(row, k) for k in _PUBLIC_FIELDS},
                'demographics': row.demographics,
            }
            for row in rows
        ]
    finally:
        session.close()
