"""Tests for podmatch.services.podcast_cache — central podcasts table."""
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from podmatch.models.podcast import Podcast
from podmatch.services.podcast_cache import (
    is_podcast_stale, get_cached_podcasts, batch_upsert_podcasts,
    update_podcast_demographics, cleanup_stale_podcasts,
)


def _days_ago(days):
    return datetime.now(timezone.utc) - timedelta(days=days)


class TestIsPodcastStale:

    def test_never_fetched(self):
        assert is_podcast_stale(None) is True

    def test_recent(self):
        assert is_podcast_stale(_days_ago(1)) is False

    def test_older_than_threshold(self):
        assert is_podcast_stale(_days_ago(8)) is True

    def test_naive_datetime_treated_as_utc(self):
        assert is_podcast_stale(datetime.utcnow() - timedelta(days=2), stale_days=7) is False


class TestGetCachedPodcasts:

    def test_splits_cached_missing_stale(self, make_podcast):
        make_podcast('fresh', podscan_last_fetched_at=_days_ago(1))
        make_podcast('old', podscan_last_fetched_at=_days_ago(10))

        result = get_cached_podcasts(['fresh', 'old', 'unknown'])

        assert [p['podscan_id'] for p in result.cached] == ['fresh']
        assert result.stale == ['old']
        assert result.missing == ['unknown']

    def test_hit_increments_counter(self, make_podcast, db_session):
        make_podcast('fresh', podscan_last_fetched_at=_days_ago(1), cache_hit_count=2)
        get_cached_podcasts(['fresh'])
        db_session.expire_all()
        assert db_session.query(Podcast).filter_by(podscan_id='fresh').one().cache_hit_count == 3

    def test_db_error_treats_all_as_missing(self):
        with patch('podmatch.services.podcast_cache.get_session') as get_session:
            get_session.return_value.query.side_effect = OperationalError('SELECT', {}, Exception('gone'))
            result = get_cached_podcasts(['a', 'b'])
        assert result.missing == ['a', 'b']
        assert result.cached == []

    def test_empty_ids(self):
        result = get_cached_podcasts([])
        assert result.cached == [] and result.missing == [] and result.stale == []


class TestBatchUpsertPodcasts:

    def test_inserts_then_updates(self, db_session, mock_enqueue):
        assert batch_upsert_podcasts([
            {'podscan_id': 'pd_1', 'podcast_name': 'First', 'audience_size': 10},
            {'podscan_id': 'pd_2', 'podcast_name': 'Second'},
        ]) == 2
        assert batch_upsert_podcasts([{'podscan_id': 'pd_1', 'podcast_name': 'First v2'}]) == 1

        row = db_session.query(Podcast).filter_by(podscan_id='pd_1').one()
        assert row.podcast_name == 'First v2'
        assert row.audience_size == 10
        assert row.podscan_fetch_count == 2
        assert row.podscan_last_fetched_at is not None
        assert db_session.query(Podcast).count() == 2

    def test_schedules_embeddings_for_touched_ids(self, mock_enqueue):
        from podmatch.services.embeddings import generate_missing_embeddings
        batch_upsert_podcasts([{'podscan_id': 'pd_1', 'podcast_name': 'A'}])
        mock_enqueue.assert_called_once_with(generate_missing_embeddings, ['pd_1'], batch_size=1)

    def test_embedding_scheduling_optional(self, mock_enqueue):
        batch_upsert_podcasts([{'podscan_id': 'pd_1'}], generate_embeddings=False)
        mock_enqueue.assert_not_called()

    def test_records_without_id_skipped(self, mock_enqueue):
        assert batch_upsert_podcasts([{'podcast_name': 'No id'}]) == 0
        mock_enqueue.assert_not_called()


class TestDemographicsAndCleanup:

    def test_update_demographics(self, make_podcast, db_session):
        make_podcast('pd_1')
        assert update_podcast_demographics('pd_1', {'age': {'25-34': 0.4}}, episodes_analyzed=12) is True
        db_session.expire_all()
        row = db_session.query(Podcast).filter_by(podscan_id='pd_1').one()
        assert row.demographics == {'age': {'25-34': 0.4}}
        assert row.demographics_episodes_analyzed == 12

    def test_update_demographics_unknown_podcast(self):
        assert update_podcast_demographics('nope', {}) is False

    def test_cleanup_removes_only_old(self, make_podcast, db_session):
        make_podcast('old', podscan_last_fetched_at=_days_ago(45))
        make_podcast('recent', podscan_last_fetched_at=_days_ago(3))
        assert cleanup_stale_podcasts(30) == 1
        assert [p.podscan_id for p in db_session.query(Podcast).all()] == ['recent']
