"""
Podcast model — central catalog of podcasts, one row per Podscan podcast id.

Rows double as the shared metadata cache (podscan_last_fetched_at drives
staleness) and as the similarity search corpus (embedding).
"""
from sqlalchemy import Column, Integer, Float, Text, DateTime, JSON, Boolean
from sqlalchemy.sql import func

from podmatch.database import Base


class Podcast(Base):
    __tablename__ = 'podcasts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    podscan_id = Column(Text, nullable=False, unique=True, index=True)
    podcast_name = Column(Text, nullable=False, default='')
    podcast_description = Column(Text, nullable=True)
    podcast_image_url = Column(Text, nullable=True)
    podcast_url = Column(Text, nullable=True)
    publisher_name = Column(Text, nullable=True)
    host_name = Column(Text, nullable=True)
    podcast_categories = Column(JSON(none_as_null=True), nullable=True)  # [{category_id, category_name}]
    language = Column(Text, nullable=True)
    region = Column(Text, nullable=True)
    episode_count = Column(Integer, nullable=True)
    last_posted_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True)
    itunes_rating = Column(Float, nullable=True)
    itunes_rating_count = Column(Integer, nullable=True)
    audience_size = Column(Integer, nullable=True)
    podcast_reach_score = Column(Float, nullable=True)
    podcast_email = Column(Text, nullable=True)
    website = Column(Text, nullable=True)
    rss_url = Column(Text, nullable=True)
    demographics = Column(JSON(none_as_null=True), nullable=True)
    demographics_episodes_analyzed = Column(Integer, nullable=True)
    demographics_fetched_at = Column(DateTime(timezone=True), nullable=True)

    # Semantic search
    embedding = Column(JSON(none_as_null=True), nullable=True)  # list[float], EMBEDDING_DIMENSIONS long
    embedding_model = Column(Text, nullable=True)
    embedding_text_length = Column(Integer, nullable=True)
    embedding_generated_at = Column(DateTime(timezone=True), nullable=True)

    # Cache bookkeeping
    podscan_last_fetched_at = Column(DateTime(timezone=True), nullable=True)
    podscan_fetch_count = Column(Integer, default=0)
    cache_hit_count = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Columns copied verbatim from an upsert payload (bookkeeping is managed separately)
    DATA_FIELDS = (
        'podcast_name', 'podcast_description', 'podcast_image_url', 'podcast_url',
        'publisher_name', 'host_name', 'podcast_categories', 'language', 'region',
        'episode_count', 'last_posted_at', 'is_active', 'itunes_rating',
        'itunes_rating_count', 'audience_size', 'podcast_reach_score',
        'podcast_email', 'website', 'rss_url',
    )

    def to_dict(self, include_embedding=False):
        data = {
            'id': self.id,
            'podscan_id': self.podscan_id,
            **{name: getattr(self, name) for name in self.DATA_FIELDS},
            'demographics': self.demographics,
            'podscan_last_fetched_at': _iso(self.podscan_last_fetched_at),
            'last_posted_at': _iso(self.last_posted_at),
            'cache_hit_count': self.cache_hit_count or 0,
        }
        if include_embedding:
            data['embedding'] = self.embedding
        return data


def _iso(value):
    return value.isoformat() if value is not None else None
