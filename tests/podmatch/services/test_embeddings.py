"""Tests for podmatch.services.embeddings."""
import pytest
from unittest.mock import patch, MagicMock

from podmatch.errors import EmbeddingError
from podmatch.models.podcast import Podcast
from podmatch.services.embeddings import (
    build_profile_text, build_podcast_text, generate_embedding, generate_missing_embeddings,
)


class TestBuildProfileText:

    def test_all_parts(self):
        text = build_profile_text('Jane Doe', 'Founder of a SaaS startup.', 'Growth nerd')
        assert text == 'Guest: Jane Doe\nTagline: Growth nerd\nBackground: Founder of a SaaS startup.'

    def test_bio_truncated_to_1000_chars(self):
        text = build_profile_text('Jane', 'x' * 5000)
        assert text.endswith('x' * 1000)
        assert 'x' * 1001 not in text

    def test_missing_parts_omitted(self):
        assert build_profile_text('Jane', None, None) == 'Guest: Jane'


class TestBuildPodcastText:

    def test_joins_available_fields(self):
        podcast = Podcast(
            podscan_id='pd_1', podcast_name='Growth Talks',
            podcast_description='Interviews with founders',
            podcast_categories=[{'category_id': 'c1', 'category_name': 'Business'},
                                {'category_id': 'c2', 'category_name': 'Marketing'}],
            host_name='Sam', language='en',
        )
        text = build_podcast_text(podcast)
        assert text == ('Title: Growth Talks. Description: Interviews with founders. '
                        'Categories: Business, Marketing. Host: Sam. Language: en')

    def test_description_truncated(self):
        podcast = Podcast(podscan_id='pd_1', podcast_name='T', podcast_description='d' * 900)
        assert 'd' * 500 in build_podcast_text(podcast)
        assert 'd' * 501 not in build_podcast_text(podcast)


class TestGenerateEmbedding:
    """generate_embedding() — single call, no retry, EmbeddingError on any failure."""

    def test_returns_vector(self, mock_openai):
        vector = generate_embedding('Guest: Jane')
        assert len(vector) == 1536
        mock_openai.embeddings.create.assert_called_once_with(
            model='text-embedding-3-small', input='Guest: Jane', dimensions=1536,
        )

    def test_api_error_raises_embedding_error_once(self, mock_openai):
        mock_openai.embeddings.create.side_effect = RuntimeError('401 Unauthorized')
        with pytest.raises(EmbeddingError) as exc_info:
            generate_embedding('Guest: Jane')
        assert exc_info.value.message == 'Failed to generate embedding'
        assert mock_openai.embeddings.create.call_count == 1

    def test_wrong_dimension_raises(self, mock_openai, embedding_response):
        mock_openai.embeddings.create.return_value = embedding_response([0.1] * 10)
        with pytest.raises(EmbeddingError):
            generate_embedding('Guest: Jane')

    def test_empty_data_raises(self, mock_openai):
        mock_openai.embeddings.create.return_value = MagicMock(data=[])
        with pytest.raises(EmbeddingError):
            generate_embedding('Guest: Jane')

    def test_no_client_raises(self):
        with patch('podmatch.extensions.openai_client', None):
            with pytest.raises(EmbeddingError):
                generate_embedding('Guest: Jane')

    def test_blank_text_raises_without_calling(self, mock_openai):
        with pytest.raises(EmbeddingError):
            generate_embedding('   ')
        mock_openai.embeddings.create.assert_not_called()

    def test_failures_recorded_on_breaker(self, mock_openai):
        from podmatch.services.circuit_breaker import get_breaker
        mock_openai.embeddings.create.side_effect = RuntimeError('timeout')
        with pytest.raises(EmbeddingError):
            generate_embedding('Guest: Jane')
        assert get_breaker('openai').failure_count == 1


class TestGenerateMissingEmbeddings:
    """Background job filling podcasts.embedding."""

    def test_embeds_only_podcasts_without_vector(self, mock_openai, make_podcast, db_session):
        make_podcast('pd_new')
        make_podcast('pd_done', embedding=[0.5] * 1536)

        assert generate_missing_embeddings() == 1

        db_session.expire_all()
        row = db_session.query(Podcast).filter_by(podscan_id='pd_new').one()
        assert len(row.embedding) == 1536
        assert row.embedding_model == 'text-embedding-3-small'
        assert row.embedding_generated_at is not None
        assert mock_openai.embeddings.create.call_count == 1

    def test_restricted_to_given_ids(self, mock_openai, make_podcast):
        make_podcast('pd_a')
        make_podcast('pd_b')
        assert generate_missing_embeddings(['pd_b']) == 1

    def test_skips_short_text(self, mock_openai, make_podcast):
        make_podcast('x', podcast_name='A', podcast_description=None)
        assert generate_missing_embeddings() == 0
        mock_openai.embeddings.create.assert_not_called()

    def test_failure_on_one_podcast_skipped(self, mock_openai, make_podcast, embedding_response):
        make_podcast('pd_a')
        make_podcast('pd_b')
        mock_openai.embeddings.create.side_effect = [
            RuntimeError('rate limited'),
            embedding_response([0.2] * 1536),
        ]
        assert generate_missing_embeddings() == 1
