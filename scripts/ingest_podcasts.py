#!/usr/bin/env python3
"""
Fill the central podcasts table from Podscan keyword searches, then embed
anything that still lacks a vector.

Usage:
    python scripts/ingest_podcasts.py marketing "real estate" saas
    python scripts/ingest_podcasts.py --queries-file niches.txt --max-pages 20
    python scripts/ingest_podcasts.py --enqueue marketing        # run as RQ job
    python scripts/ingest_podcasts.py --embed-only               # just backfill embeddings
    python scripts/ingest_podcasts.py --cleanup-days 30          # drop long-unrefreshed podcasts

Requires: PODSCAN_API_KEY, OPENAI_API_KEY (for embeddings), DATABASE_URL.
"""
import argparse
import logging
import sys

from podmatch.logging_config import configure_logging
from podmatch.database import Base, engine, import_models
from podmatch.extensions import get_queue
from podmatch.pipeline.ingest import ingest_podcasts
from podmatch.services.embeddings import generate_missing_embeddings
from podmatch.services.podcast_cache import cleanup_stale_podcasts

logger = logging.getLogger('scripts.ingest_podcasts')


def _load_queries(args):
    queries = list(args.queries)
    if args.queries_file:
        with open(args.queries_file) as f:
            queries.extend(line.strip() for line in f if line.strip() and not line.startswith('#'))
    return list(dict.fromkeys(queries))


def main(argv=None):
    parser = argparse.ArgumentParser(description='Ingest podcasts from Podscan into the central cache')
    parser.add_argument('queries', nargs='*', help='Search keywords')
    parser.add_argument('--queries-file', help='File with one keyword per line')
    parser.add_argument('--max-pages', type=int, default=10)
    parser.add_argument('--concurrent-pages', type=int, default=5)
    parser.add_argument('--batch-delay', type=float, default=3.0, help='Seconds to pause between page batches')
    parser.add_argument('--enqueue', action='store_true', help='Run the ingest as a background RQ job')
    parser.add_argument('--embed-only', action='store_true', help='Skip ingest, only generate missing embeddings')
    parser.add_argument('--embed-batch', type=int, default=200)
    parser.add_argument('--cleanup-days', type=int, help='Delete podcasts not refreshed in this many days')
    args = parser.parse_args(argv)

    configure_logging()
    import_models()
    # Local SQLite has no migrations applied
    if engine.url.get_backend_name() == 'sqlite':
        Base.metadata.create_all(engine)

    if args.cleanup_days:
        cleanup_stale_podcasts(args.cleanup_days)
        return 0

    if not args.embed_only:
        queries = _load_queries(args)
        if not queries:
            parser.error('provide at least one query or --queries-file')
        kwargs = dict(max_pages=args.max_pages, concurrent_pages=args.concurrent_pages,
                      batch_delay=args.batch_delay)
        if args.enqueue:
            job = get_queue().enqueue(ingest_podcasts, queries, job_timeout=14400, **kwargs)
            logger.info("Enqueued ingest job %s for %d queries", job.id, len(queries))
            return 0
        stats = ingest_podcasts(queries, **kwargs)
        logger.info("Ingested %d podcasts", stats.podcasts_upserted)

    generated = generate_missing_embeddings(batch_size=args.embed_batch)
    logger.info("Generated %d embeddings", generated)
    return 0


if __name__ == '__main__':
    sys.exit(main())
