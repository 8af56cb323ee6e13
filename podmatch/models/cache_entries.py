"""
Denormalized podcast snapshots stored alongside client dashboards, prospect
dashboards and bookings. Together they form the tiered metadata cache.
"""
from sqlalchemy import Column, Integer, Float, Text, DateTime, JSON, ForeignKey, Index
from sqlalchemy.sql import func

from podmatch.database import Base


class PodcastSnapshotMixin:
    """Universal podcast columns shared by every cache table."""
    podcast_id = Column(Text, nullable=True, index=True)
    podcast_name = Column(Text, nullable=False, default='')
    podcast_description = Column(Text, nullable=True)
    podcast_image_url = Column(Text, nullable=True)
    podcast_url = Column(Text, nullable=True)
    itunes_rating = Column(Float, nullable=True)
    episode_count = Column(Integer, nullable=True)
    audience_size = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ClientDashboardPodcast(PodcastSnapshotMixin, Base):
    """Most complete variant — may carry demographics."""
    __tablename__ = 'client_dashboard_podcasts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Text, ForeignKey('clients.id'), nullable=False)
    publisher_name = Column(Text, nullable=True)
    podcast_categories = Column(JSON(none_as_null=True), nullable=True)
    last_posted_at = Column(DateTime(timezone=True), nullable=True)
    demographics = Column(JSON(none_as_null=True), nullable=True)
    demographics_fetched_at = Column(DateTime(timezone=True), nullable=True)
    # Personalized AI analysis; never exposed through the shared cache
    ai_analysis = Column(JSON(none_as_null=True), nullable=True)

    __table_args__ = (
        Index('ix_client_dashboard_podcasts_client_podcast', 'client_id', 'podcast_id'),
    )


class ProspectDashboardPodcast(PodcastSnapshotMixin, Base):
    __tablename__ = 'prospect_dashboard_podcasts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    prospect_dashboard_id = Column(Text, ForeignKey('prospect_dashboards.id'), nullable=False)
    publisher_name = Column(Text, nullable=True)
    podcast_categories = Column(JSON(none_as_null=True), nullable=True)
    last_posted_at = Column(DateTime(timezone=True), nullable=True)
    similarity = Column(Float, nullable=True)

    __table_args__ = (
        Index('ix_prospect_dashboard_podcasts_dashboard_podcast', 'prospect_dashboard_id', 'podcast_id'),
    )


class Booking(PodcastSnapshotMixin, Base):
    """Partial data — podcast_id may be null for bookings entered by hand."""
    __tablename__ = 'bookings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Text, ForeignKey('clients.id'), nullable=False)
    itunes_rating_count = Column(Integer, nullable=True)
    rss_url = Column(Text, nullable=True)
    status = Column(Text, nullable=True)
