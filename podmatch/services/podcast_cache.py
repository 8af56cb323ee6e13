"""
Central podcast cache — the `podcasts` table used as a shared store of
Podscan metadata so repeat lookups do not spend API credits.

Upserts are keyed on podscan_id and schedule embedding generation for the
touched podcasts in the background.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from podmatch.config import STALE_AFTER_DAYS, CLEANUP_AFTER_DAYS
from podmatch.database import get_session
from podmatch.models.podcast import Podcast

logger = logging.getLogger('services.podcast_cache')


@dataclass
class CacheReadResult:
    cached: List[Dict[str, Any]] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    stale: List[str] = field(default_factory=list)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def is_podcast_stale(last_fetched_at: Optional[datetime], stale_days: int = STALE_AFTER_DAYS) -> bool:
    """Advisory only: never fetched, or fetched more than `stale_days` ago."""
    if last_fetched_at is None:
        return True
    return datetime.now(timezone.utc) - as_utc(last_fetched_at) > timedelta(days=stale_days)


def get_cached_podcasts(podscan_ids: Iterable[str], stale_days: int = STALE_AFTER_DAYS) -> CacheReadResult:
    """
    Split `podscan_ids` into fresh cached records, ids never cached, and ids
    cached but stale. Fresh hits bump cache_hit_count.

    A database error degrades to "everything missing" so callers refetch.
    """
    ids = list(dict.fromkeys(i for i in podscan_ids if i))
    if not ids:
        return CacheReadResult()

    session = get_session()
    try:
        rows = session.query(Podcast).filter(Podcast.podscan_id.in_(ids)).all()
        by_id = {row.podscan_id: row for row in rows}

        result = CacheReadResult()
        for podscan_id in ids:
            row = by_id.get(podscan_id)
            if row is None:
                result.missing.append(podscan_id)
            elif is_podcast_stale(row.podscan_last_fetched_at, stale_days):
                result.stale.append(podscan_id)
            else:
                row.cache_hit_count = (row.cache_hit_count or 0) + 1
                result.cached.append(row.to_dict())
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.error("Podcast cache read failed; treating %d ids as missing", len(ids), exc_info=True)
        return CacheReadResult(missing=ids)
    finally:
        session.close()

    logger.info("Podcast cache: %d cached, %d missing, %d stale",
                len(result.cached), len(result.missing), len(result.stale))
    return result


def _apply(row: Podcast, data: Dict[str, Any], now: datetime):
    for name in Podcast.DATA_FIELDS:
        if name in data:
            setattr(row, name, data[name])
    row.podscan_last_fetched_at = now
    row.podscan_fetch_count = (row.podscan_fetch_count or 0) + 1


def batch_upsert_podcasts(records: Iterable[Dict[str, Any]], generate_embeddings: bool = True) -> int:
    """
    Insert or update podcasts keyed on podscan_id. Returns rows written.

    Records without a podscan_id are skipped. Later duplicates in the same
    batch win.
    """
    by_id = {}
    for record in records:
        podscan_id = record.get('podscan_id')
        if podscan_id:
            by_id[str(podscan_id)] = record
    if not by_id:
        return 0

    now = datetime.now(timezone.utc)
    session = get_session()
    try:
        existing = {
            row.podscan_id: row
            for row in session.query(Podcast).filter(Podcast.podscan_id.in_(list(by_id))).all()
        }
        for podscan_id, data in by_id.items():
            row = existing.get(podscan_id)
            if row is None:
                row = Podcast(podscan_id=podscan_id, cache_hit_count=0, podscan_fetch_count=0)
                session.add(row)
            _apply(row, data, now)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.error("Batch upsert of %d podcasts failed", len(by_id), exc_info=True)
        raise
    finally:
        session.close()

    logger.info("Upserted %d podcasts (%d new)", len(by_id), len(by_id) - len(existing))
    if generate_embeddings:
        _schedule_embeddings(list(by_id))
    return len(by_id)


def _schedule_embeddings(podscan_ids: List[str]):
    from podmatch.extensions import enqueue_background
    from podmatch.services.embeddings import generate_missing_embeddings
    enqueue_background(generate_missing_embeddings, podscan_ids, batch_size=len(podscan_ids))


def update_podcast_demographics(podscan_id: str, demographics: Dict[str, Any],
                                episodes_analyzed: Optional[int] = None) -> bool:
    """Attach audience demographics to a cached podcast. False when it is not cached."""
    session = get_session()
    try:
        row = session.query(Podcast).filter_by(podscan_id=podscan_id).first()
        if row is None:
            return False
        row.demographics = demographics
        row.demographics_episodes_analyzed = episodes_analyzed
        row.demographics_fetched_at = datetime.now(timezone.utc)
        session.commit()
        return True
    except SQLAlchemyError:
        session.rollback()
        logger.error("Failed to store demographics for %s", podscan_id, exc_info=True)
        raise
    finally:
        session.close()


def cleanup_stale_podcasts(stale_days: int = CLEANUP_AFTER_DAYS) -> int:
    """Delete podcasts not refreshed in `stale_days`. Returns the number removed."""
    cutoff = datetime.now(timezone.utc) - timedelta(days=stale_days)
    session = get_session()
    try:
        deleted = (
            session.query(Podcast)
            .filter(Podcast.podscan_last_fetched_at < cutoff)
            .delete(synchronize_session=False)
        )
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.error("Stale podcast cleanup failed", exc_info=True)
        raise
    finally:
        session.close()
    logger.info("Removed %d podcasts not refreshed in %d days", deleted, stale_days)
    return deleted
