"""
Cosine-similarity search over stored podcast embeddings.
"""
import logging
from typing import List, Sequence

from podmatch.config import MATCH_THRESHOLD, MATCH_COUNT
from podmatch.database import get_session
from podmatch.models.podcast import Podcast
from podmatch.schemas import SimilarityMatch

logger = logging.getLogger('services.similarity')


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 for empty, mismatched or zero vectors."""
    if not vec1 or not vec2 or len(vec1) != len(vec2):
        return 0.0
    dot = sum(a * b for a, b in zip(vec1, vec2))
    norm1 = sum(a * a for a in vec1) ** 0.5
    norm2 = sum(b * b for b in vec2) ** 0.5
    if norm1 == 0 or norm2 == 0:
        return 0.0
    return dot / (norm1 * norm2)


def search_similar_podcasts(query_embedding: Sequence[float],
                            threshold: float = MATCH_THRESHOLD,
                            limit: int = MATCH_COUNT) -> List[SimilarityMatch]:
    """
    Podcasts whose embedding scores at least `threshold` against the query,
    best first, at most `limit`. Podcasts without an embedding are ignored.
    """
    session = get_session()
    try:
        podcasts = (
            session.query(Podcast)
            .filter(Podcast.embedding.isnot(None))
            .filter(Podcast.is_active.isnot(False))
            .all()
        )
        scored = []
        for podcast in podcasts:
            score = cosine_similarity(query_embedding, podcast.embedding)
            if score >= threshold:
                scored.append(SimilarityMatch.from_podcast(podcast, score))
    finally:
        session.close()

    scored.sort(key=lambda m: m.similarity, reverse=True)
    logger.info("Similarity search: %d/%d podcasts above %.2f", len(scored), len(podcasts), threshold)
    return scored[:limit]
