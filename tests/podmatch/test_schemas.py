"""Tests for podmatch.schemas parse boundaries and serializers."""
from datetime import datetime, timezone

import pytest
from unittest.mock import MagicMock

from podmatch.errors import ResponseShapeError, ValidationError
from podmatch.schemas import (
    BackfillSummary, CachedPodcastMetadata, json_object, parse_embedding_response, outreach_row, require_field,
)


class TestParseEmbeddingResponse:

    def test_valid(self):
        response = MagicMock(data=[MagicMock(embedding=[0] * 1536)])
        assert parse_embedding_response(response) == [0.0] * 1536

    def test_missing_vector(self):
        response = MagicMock(data=[MagicMock(embedding=None)])
        with pytest.raises(ResponseShapeError):
            parse_embedding_response(response)


class TestOutreachRow:

    def test_layout_puts_id_in_column_e(self):
        row = outreach_row({'podcast_name': 'Show', 'podcast_description': 'About',
                            'itunes_rating': 4.2, 'episode_count': 0, 'podcast_id': 'pd_1'})
        assert row == ['Show', 'About', '4.2', '0', 'pd_1']

    def test_blank_cells_for_missing_values(self):
        assert outreach_row({'podscan_podcast_id': 'pd_2'}) == ['', '', '', '', 'pd_2']


class TestBackfillSummary:

    def test_to_dict(self):
        data = BackfillSummary(prospect_name='Jane', candidates=50, selected=15, new_added=12,
                               duplicates_skipped=3, ai_filtered=True).to_dict()
        assert data['success'] is True
        assert data['total'] == 15
        assert data['new_added'] == 12
        assert 'message' not in data


class TestCachedPodcastMetadata:

    def test_unknown_source_rejected(self):
        with pytest.raises(ValueError):
            CachedPodcastMetadata(podcast_id='pd', podcast_name='x', source='crm', source_id=None, cached_at=None)

    def test_dates_serialized(self):
        meta = CachedPodcastMetadata(podcast_id='pd', podcast_name='x', source='booking', source_id='c',
                                     cached_at=datetime(2026, 1, 2, tzinfo=timezone.utc))
        assert meta.to_dict()['cached_at'] == '2026-01-02T00:00:00+00:00'


class TestRequireField:

    @pytest.mark.parametrize('body', [{}, {'prospectId': ''}, {'prospectId': None}])
    def test_missing(self, body):
        with pytest.raises(ValidationError) as exc_info:
            require_field(body, 'prospectId')
        assert exc_info.value.status_code == 400

    def test_present(self):
        assert require_field({'prospectId': 42}, 'prospectId') == 42


class TestJsonObject:

    def test_missing_body_is_empty(self):
        assert json_object(None) == {}

    @pytest.mark.parametrize('payload', [[], ['x'], 'text', 7, True])
    def test_non_object_rejected(self, payload):
        with pytest.raises(ValidationError) as exc_info:
            json_object(payload)
        assert exc_info.value.status_code == 400

    def test_object_passes_through(self):
        body = {'prospectId': 'p-1'}
        assert json_object(body) is body
