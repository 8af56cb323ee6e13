"""
Tiered podcast metadata lookup across the three cache tables.

Priority is fixed: client dashboard > prospect dashboard > booking. Only
universal metadata is returned; per-client AI analysis never leaves the
client table.
"""
import logging
from typing import Dict, Iterable, Optional

from sqlalchemy import func

from podmatch.config import CREDITS_PER_PODCAST_FETCH
from podmatch.database import get_session
from podmatch.models.cache_entries import (
    ClientDashboardPodcast, ProspectDashboardPodcast, Booking,
)
from podmatch.schemas import CachedPodcastMetadata

logger = logging.getLogger('services.cache_lookup')


# ── Row → metadata ───────────────────────────────────────────────────────────

def _from_client_row(row: ClientDashboardPodcast) -> CachedPodcastMetadata:
    return CachedPodcastMetadata(
        podcast_id=row.podcast_id,
        podcast_name=row.podcast_name,
        podcast_description=row.podcast_description,
        podcast_image_url=row.podcast_image_url,
        podcast_url=row.podcast_url,
        publisher_name=row.publisher_name,
        itunes_rating=row.itunes_rating,
        episode_count=row.episode_count,
        audience_size=row.audience_size,
        podcast_categories=row.podcast_categories,
        last_posted_at=row.last_posted_at,
        demographics=row.demographics,
        source='client_dashboard',
        source_id=row.client_id,
        cached_at=row.created_at,
        has_demographics=row.demographics_fetched_at is not None,
    )


def _from_prospect_row(row: ProspectDashboardPodcast) -> CachedPodcastMetadata:
    return CachedPodcastMetadata(
        podcast_id=row.podcast_id,
        podcast_name=row.podcast_name,
        podcast_description=row.podcast_description,
        podcast_image_url=row.podcast_image_url,
        podcast_url=row.podcast_url,
        publisher_name=row.publisher_name,
        itunes_rating=row.itunes_rating,
        episode_count=row.episode_count,
        audience_size=row.audience_size,
        podcast_categories=row.podcast_categories,
        last_posted_at=row.last_posted_at,
        source='prospect_dashboard',
        source_id=row.prospect_dashboard_id,
        cached_at=row.created_at,
    )


def _from_booking_row(row: Booking) -> CachedPodcastMetadata:
    return CachedPodcastMetadata(
        podcast_id=row.podcast_id,
        podcast_name=row.podcast_name,
        podcast_description=row.podcast_description,
        podcast_image_url=row.podcast_image_url,
        podcast_url=row.podcast_url,
        itunes_rating=row.itunes_rating,
        itunes_rating_count=row.itunes_rating_count,
        episode_count=row.episode_count,
        audience_size=row.audience_size,
        rss_url=row.rss_url,
        source='booking',
        source_id=row.client_id,
        cached_at=row.created_at,
    )


# Highest priority first
_TIERS = (
    (ClientDashboardPodcast, _from_client_row),
    (ProspectDashboardPodcast, _from_prospect_row),
    (Booking, _from_booking_row),
)


# ── Lookups ──────────────────────────────────────────────────────────────────

def find_cached_podcast(podcast_id: str) -> Optional[CachedPodcastMetadata]:
    """Newest cached snapshot of one podcast from the highest tier holding it, else None."""
    if not podcast_id:
        return None
    session = get_session()
    try:
        for model, convert in _TIERS:
            row = (
                session.query(model)
                .filter(model.podcast_id == podcast_id)
                .order_by(model.created_at.desc(), model.id.desc())
                .first()
            )
            if row is not None:
                return convert(row)
        return None
    finally:
        session.close()


def find_cached_podcasts(podcast_ids: Iterable[str]) -> Dict[str, CachedPodcastMetadata]:
    """
    Batch variant: one set-based query per tier, merged lowest priority first
    so higher tiers overwrite. Ids found nowhere are absent from the result.

    The three queries share one session and run sequentially.
    """
    ids = list(dict.fromkeys(i for i in podcast_ids if i))
    if not ids:
        return {}

    results: Dict[str, CachedPodcastMetadata] = {}
    session = get_session()
    try:
        for model, convert in reversed(_TIERS):
            rows = (
                session.query(model)
                .filter(model.podcast_id.in_(ids))
                .order_by(model.created_at.asc(), model.id.asc())
                .all()
            )
            # Ascending order: within a tier the newest snapshot is written last
            for row in rows:
                results[row.podcast_id] = convert(row)
    finally:
        session.close()

    logger.debug("Cache batch lookup: %d/%d ids resolved", len(results), len(ids))
    return results


# ── Statistics ───────────────────────────────────────────────────────────────

def get_cache_statistics() -> dict:
    session = get_session()
    try:
        by_source = {
            'client_dashboards': session.query(func.count(ClientDashboardPodcast.id)).scalar() or 0,
            'prospect_dashboards': session.query(func.count(ProspectDashboardPodcast.id)).scalar() or 0,
            'bookings': (
                session.query(func.count(Booking.id))
                .filter(Booking.podcast_id.isnot(None))
                .scalar() or 0
            ),
        }
        unique_ids = set()
        for model, _ in _TIERS:
            unique_ids.update(
                pid for (pid,) in session.query(model.podcast_id).filter(model.podcast_id.isnot(None)).distinct()
            )
    finally:
        session.close()

    return {
        'total_cached': len(unique_ids),
        'by_source': by_source,
        'estimated_credits_saved': len(unique_ids) * CREDITS_PER_PODCAST_FETCH,
    }


def get_client_cache_status(client_id: str, podcast_ids: Iterable[str]) -> dict:
    """How a client's podcast list is covered by the cache, by source."""
    ids = list(dict.fromkeys(i for i in podcast_ids if i))
    status = {
        'total': len(ids),
        'cached_in_client': 0,
        'cached_in_other_clients': 0,
        'cached_in_prospects': 0,
        'cached_in_bookings': 0,
        'needs_fetch': 0,
    }
    if not ids:
        return status

    cached = find_cached_podcasts(ids)
    for meta in cached.values():
        if meta.source == 'client_dashboard':
            key = 'cached_in_client' if meta.source_id == client_id else 'cached_in_other_clients'
        elif meta.source == 'prospect_dashboard':
            key = 'cached_in_prospects'
        else:
            key = 'cached_in_bookings'
        status[key] += 1
    status['needs_fetch'] = sum(1 for i in ids if i not in cached)
    return status
