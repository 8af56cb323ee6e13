"""
Podcast ingest — page through Podscan keyword searches and upsert results
into the central podcasts table. Runs as an RQ job or from
scripts/ingest_podcasts.py.

Podscan enforces per-minute limits, so pages are fetched a few at a time with
a pause between batches.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List

from podmatch.config import INGEST_UPSERT_BATCH, require_config
from podmatch.schemas import PodscanPodcast
from podmatch.services import podcast_cache, podscan
from podmatch.services.retry import INGEST_RETRY, RetryPolicy

logger = logging.getLogger('pipeline.ingest')

MAX_EMPTY_BATCHES = 3


@dataclass
class IngestStats:
    queries: int = 0
    pages_fetched: int = 0
    pages_failed: int = 0
    podcasts_seen: int = 0
    podcasts_upserted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)


def _fetch_page(query: str, page: int, policy: RetryPolicy) -> List[PodscanPodcast]:
    return policy.call(podscan.search_podcasts, query, page=page, label=f"search '{query}' p{page}")


def _flush(buffer: Dict[str, Dict], stats: IngestStats):
    records = list(buffer.values())
    for start in range(0, len(records), INGEST_UPSERT_BATCH):
        stats.podcasts_upserted += podcast_cache.batch_upsert_podcasts(records[start:start + INGEST_UPSERT_BATCH])
    buffer.clear()


def ingest_podcasts(queries: Iterable[str], max_pages: int = 10, concurrent_pages: int = 5,
                    batch_delay: float = 3.0, policy: RetryPolicy = INGEST_RETRY,
                    sleep: Callable[[float], None] = time.sleep) -> IngestStats:
    """
    For each query, fetch up to `max_pages` result pages, `concurrent_pages`
    at a time, and upsert every podcast seen. A query stops early after
    MAX_EMPTY_BATCHES consecutive batches return nothing new.
    """
    require_config('PODSCAN_API_KEY')
    stats = IngestStats()
    seen = set()

    with ThreadPoolExecutor(max_workers=concurrent_pages) as pool:
        for query in queries:
            stats.queries += 1
            buffer: Dict[str, Dict] = {}
            empty_batches = 0

            for first in range(1, max_pages + 1, concurrent_pages):
                pages = list(range(first, min(first + concurrent_pages, max_pages + 1)))
                futures = [pool.submit(_fetch_page, query, page, policy) for page in pages]

                new_in_batch = 0
                for page, future in zip(pages, futures):
                    try:
                        results = future.result()
                    except Exception as e:
                        stats.pages_failed += 1
                        logger.warning("Page %d of '%s' failed after retries: %s", page, query, e)
                        continue
                    stats.pages_fetched += 1
                    for podcast in results:
                        stats.podcasts_seen += 1
                        if podcast.podscan_id not in seen:
                            seen.add(podcast.podscan_id)
                            buffer[podcast.podscan_id] = podcast.to_record()
                            new_in_batch += 1

                if len(buffer) >= INGEST_UPSERT_BATCH:
                    _flush(buffer, stats)

                empty_batches = empty_batches + 1 if new_in_batch == 0 else 0
                if empty_batches >= MAX_EMPTY_BATCHES:
                    logger.info("'%s': %d empty batches in a row, moving on", query, empty_batches)
                    break
                sleep(batch_delay)

            _flush(buffer, stats)
            logger.info("'%s' done: %d unique podcasts so far", query, len(seen))

    logger.info("Ingest complete: %s", stats.to_dict())
    return stats
