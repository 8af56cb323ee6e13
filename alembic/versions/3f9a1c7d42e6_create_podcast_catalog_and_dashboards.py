"""Create podcast catalog, dashboards and cache snapshot tables

Revision ID: 3f9a1c7d42e6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c7d42e6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _snapshot_columns():
    return [
        sa.Column('podcast_id', sa.Text(), nullable=True),
        sa.Column('podcast_name', sa.Text(), nullable=False, server_default=''),
        sa.Column('podcast_description', sa.Text(), nullable=True),
        sa.Column('podcast_image_url', sa.Text(), nullable=True),
        sa.Column('podcast_url', sa.Text(), nullable=True),
        sa.Column('itunes_rating', sa.Float(), nullable=True),
        sa.Column('episode_count', sa.Integer(), nullable=True),
        sa.Column('audience_size', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # -- Central podcast catalog --
    op.create_table(
        'podcasts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('podscan_id', sa.Text(), nullable=False),
        sa.Column('podcast_name', sa.Text(), nullable=False, server_default=''),
        sa.Column('podcast_description', sa.Text(), nullable=True),
        sa.Column('podcast_image_url', sa.Text(), nullable=True),
        sa.Column('podcast_url', sa.Text(), nullable=True),
        sa.Column('publisher_name', sa.Text(), nullable=True),
        sa.Column('host_name', sa.Text(), nullable=True),
        sa.Column('podcast_categories', sa.JSON(), nullable=True),
        sa.Column('language', sa.Text(), nullable=True),
        sa.Column('region', sa.Text(), nullable=True),
        sa.Column('episode_count', sa.Integer(), nullable=True),
        sa.Column('last_posted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('itunes_rating', sa.Float(), nullable=True),
        sa.Column('itunes_rating_count', sa.Integer(), nullable=True),
        sa.Column('audience_size', sa.Integer(), nullable=True),
        sa.Column('podcast_reach_score', sa.Float(), nullable=True),
        sa.Column('podcast_email', sa.Text(), nullable=True),
        sa.Column('website', sa.Text(), nullable=True),
        sa.Column('rss_url', sa.Text(), nullable=True),
        sa.Column('demographics', sa.JSON(), nullable=True),
        sa.Column('demographics_episodes_analyzed', sa.Integer(), nullable=True),
        sa.Column('demographics_fetched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('embedding', sa.JSON(), nullable=True),
        sa.Column('embedding_model', sa.Text(), nullable=True),
        sa.Column('embedding_text_length', sa.Integer(), nullable=True),
        sa.Column('embedding_generated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('podscan_last_fetched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('podscan_fetch_count', sa.Integer(), server_default='0'),
        sa.Column('cache_hit_count', sa.Integer(), server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_podcasts_podscan_id', 'podcasts', ['podscan_id'], unique=True)

    # -- Owners --
    op.create_table(
        'prospect_dashboards',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('prospect_name', sa.Text(), nullable=False, server_default=''),
        sa.Column('prospect_bio', sa.Text(), nullable=True),
        sa.Column('prospect_tagline', sa.Text(), nullable=True),
        sa.Column('spreadsheet_id', sa.Text(), nullable=True),
        sa.Column('spreadsheet_url', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'clients',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False, server_default=''),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('tagline', sa.Text(), nullable=True),
        sa.Column('google_sheet_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # -- Cache tiers --
    op.create_table(
        'client_dashboard_podcasts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('client_id', sa.Text(), sa.ForeignKey('clients.id'), nullable=False),
        *_snapshot_columns(),
        sa.Column('publisher_name', sa.Text(), nullable=True),
        sa.Column('podcast_categories', sa.JSON(), nullable=True),
        sa.Column('last_posted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('demographics', sa.JSON(), nullable=True),
        sa.Column('demographics_fetched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ai_analysis', sa.JSON(), nullable=True),
    )
    op.create_index('ix_client_dashboard_podcasts_podcast_id', 'client_dashboard_podcasts', ['podcast_id'])
    op.create_index('ix_client_dashboard_podcasts_client_podcast', 'client_dashboard_podcasts',
                    ['client_id', 'podcast_id'])

    op.create_table(
        'prospect_dashboard_podcasts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('prospect_dashboard_id', sa.Text(), sa.ForeignKey('prospect_dashboards.id'), nullable=False),
        *_snapshot_columns(),
        sa.Column('publisher_name', sa.Text(), nullable=True),
        sa.Column('podcast_categories', sa.JSON(), nullable=True),
        sa.Column('last_posted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('similarity', sa.Float(), nullable=True),
    )
    op.create_index('ix_prospect_dashboard_podcasts_podcast_id', 'prospect_dashboard_podcasts', ['podcast_id'])
    op.create_index('ix_prospect_dashboard_podcasts_dashboard_podcast', 'prospect_dashboard_podcasts',
                    ['prospect_dashboard_id', 'podcast_id'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('client_id', sa.Text(), sa.ForeignKey('clients.id'), nullable=False),
        *_snapshot_columns(),
        sa.Column('itunes_rating_count', sa.Integer(), nullable=True),
        sa.Column('rss_url', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=True),
    )
    op.create_index('ix_bookings_podcast_id', 'bookings', ['podcast_id'])


def downgrade() -> None:
    op.drop_index('ix_bookings_podcast_id', 'bookings')
    op.drop_table('bookings')
    op.drop_index('ix_prospect_dashboard_podcasts_dashboard_podcast', 'prospect_dashboard_podcasts')
    op.drop_index('ix_prospect_dashboard_podcasts_podcast_id', 'prospect_dashboard_podcasts')
    op.drop_table('prospect_dashboard_podcasts')
    op.drop_index('ix_client_dashboard_podcasts_client_podcast', 'client_dashboard_podcasts')
    op.drop_index('ix_client_dashboard_podcasts_podcast_id', 'client_dashboard_podcasts')
    op.drop_table('client_dashboard_podcasts')
    op.drop_table('clients')
    op.drop_table('prospect_dashboards')
    op.drop_index('ix_podcasts_podscan_id', 'podcasts')
    op.drop_table('podcasts')
