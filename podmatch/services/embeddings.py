"""
OpenAI embedding helpers — profile/podcast text construction, single-shot
embedding calls, and the background job that fills missing podcast vectors.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from podmatch.config import (
    EMBEDDING_MODEL, EMBEDDING_DIMENSIONS, PODCAST_DESCRIPTION_MAX_CHARS,
    MIN_EMBEDDING_TEXT_CHARS,
)
from podmatch.database import get_session
from podmatch.errors import EmbeddingError, ResponseShapeError
from podmatch.models.podcast import Podcast
from podmatch.schemas import ProfileText, parse_embedding_response

logger = logging.getLogger('services.embeddings')


def build_profile_text(name: str, bio: str = '', tagline: str = '') -> str:
    return ProfileText(name=name or '', bio=bio or '', tagline=tagline or '').render()


def build_podcast_text(podcast) -> str:
    """Text a podcast is embedded from: title, description, categories, people, locale."""
    parts = []
    if podcast.podcast_name:
        parts.append(f"Title: {podcast.podcast_name}")
    if podcast.podcast_description:
        parts.append(f"Description: {podcast.podcast_description[:PODCAST_DESCRIPTION_MAX_CHARS]}")
    categories = [c.get('category_name') for c in (podcast.podcast_categories or []) if c.get('category_name')]
    if categories:
        parts.append(f"Categories: {', '.join(categories)}")
    if podcast.host_name:
        parts.append(f"Host: {podcast.host_name}")
    if podcast.publisher_name:
        parts.append(f"Publisher: {podcast.publisher_name}")
    if podcast.language:
        parts.append(f"Language: {podcast.language}")
    if podcast.region:
        parts.append(f"Region: {podcast.region}")
    return '. '.join(parts)


def generate_embedding(text: str) -> List[float]:
    """
    Embed `text` with a single OpenAI call routed through the openai breaker.

    No retry: any API error, timeout or malformed payload raises EmbeddingError.
    """
    from podmatch import extensions
    from podmatch.services.circuit_breaker import get_breaker

    if extensions.openai_client is None:
        raise EmbeddingError()
    if not text or not text.strip():
        raise EmbeddingError('Cannot embed empty text')

    try:
        response = get_breaker('openai').call(
            extensions.openai_client.embeddings.create,
            model=EMBEDDING_MODEL,
            input=text,
            dimensions=EMBEDDING_DIMENSIONS,
        )
        return parse_embedding_response(response)
    except ResponseShapeError as e:
        logger.error("Malformed embedding response: %s", e)
        raise EmbeddingError() from e
    except Exception as e:
        logger.error("Embedding request failed: %s", e)
        raise EmbeddingError() from e


def generate_missing_embeddings(podscan_ids: Optional[List[str]] = None, batch_size: int = 50) -> int:
    """
    Background job: embed podcasts that have no vector yet.

    Restricted to `podscan_ids` when given (the ids an upsert just touched).
    A failure on one podcast is logged and skipped. Returns the number embedded.
    """
    session = get_session()
    generated = 0
    try:
        query = session.query(Podcast).filter(Podcast.embedding.is_(None))
        if podscan_ids:
            query = query.filter(Podcast.podscan_id.in_(podscan_ids))
        podcasts = query.limit(batch_size).all()

        for podcast in podcasts:
            text = build_podcast_text(podcast)
            if len(text) < MIN_EMBEDDING_TEXT_CHARS:
                logger.debug("Skipping %s: not enough text to embed", podcast.podscan_id)
                continue
            try:
                vector = generate_embedding(text)
            except EmbeddingError as e:
                logger.warning("Embedding failed for %s: %s", podcast.podscan_id, e)
                continue
            podcast.embedding = vector
            podcast.embedding_model = EMBEDDING_MODEL
            podcast.embedding_text_length = len(text)
            podcast.embedding_generated_at = datetime.now(timezone.utc)
            generated += 1

        session.commit()
        logger.info("Generated %d/%d missing podcast embeddings", generated, len(podcasts))
        return generated
    except Exception:
        session.rollback()
        logger.error("Missing-embedding job failed", exc_info=True)
        raise
    finally:
        session.close()
