"""Tests for the app factory: CORS, preflight and JSON error handling."""
import pytest
from unittest.mock import patch


class TestCors:

    def test_preflight_answered(self, client):
        resp = client.open('/api/backfill-prospect-podcasts', method='OPTIONS')
        assert resp.status_code == 200
        assert resp.get_data(as_text=True) == 'ok'
        assert resp.headers['Access-Control-Allow-Origin'] == '*'
        assert 'content-type' in resp.headers['Access-Control-Allow-Headers']

    def test_headers_on_errors(self, client):
        resp = client.post('/api/backfill-prospect-podcasts', json={})
        assert resp.status_code == 400
        assert resp.headers['Access-Control-Allow-Origin'] == '*'


class TestErrorHandling:

    def test_unknown_route_is_json_404(self, client):
        resp = client.get('/api/does-not-exist')
        assert resp.status_code == 404
        assert resp.get_json() == {'success': False, 'error': 'Not found'}

    def test_wrong_method_is_json_405(self, client):
        resp = client.get('/api/backfill-prospect-podcasts')
        assert resp.status_code == 405
        assert resp.get_json()['success'] is False

    def test_unexpected_error_is_generic_500(self, client):
        with patch('podmatch.routes.cache.get_cache_statistics', side_effect=RuntimeError('db on fire')):
            resp = client.get('/api/podcast-cache/stats')
        assert resp.status_code == 500
        assert resp.get_json() == {'success': False, 'error': 'Internal error'}

    def test_non_json_body_is_validation_error(self, client):
        resp = client.post('/api/score-podcast-compatibility', data='not json', content_type='text/plain')
        assert resp.status_code == 400

    @pytest.mark.parametrize('path', [
        '/api/backfill-prospect-podcasts',
        '/api/append-prospect-sheet',
        '/api/score-podcast-compatibility',
        '/api/podcast-cache/lookup',
        '/api/podcast-cache/client-status',
        '/api/read-outreach-list',
        '/api/client-podcasts',
    ])
    @pytest.mark.parametrize('body', [['x'], 'prospect-1', 42])
    def test_non_object_body_is_validation_error(self, client, path, body):
        resp = client.post(path, json=body)
        assert resp.status_code == 400
        assert resp.get_json() == {'success': False, 'error': 'Request body must be a JSON object'}
