"""
Podcast cache routes — tiered lookups, cache statistics, client outreach lists.
"""
from flask import Blueprint, request, jsonify

from podmatch.config import require_config
from podmatch.errors import ValidationError
from podmatch.pipeline.outreach import read_outreach_list, cached_client_podcasts
from podmatch.schemas import json_object, require_field
from podmatch.services.cache_lookup import (
    find_cached_podcast, find_cached_podcasts, get_cache_statistics, get_client_cache_status,
)

bp = Blueprint('cache', __name__, url_prefix='/api')


def _podcast_ids(data):
    ids = data.get('podcastIds')
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise ValidationError('podcastIds must be a list of strings')
    return ids


@bp.route('/podcast-cache/lookup', methods=['POST'])
def cache_lookup():
    """Single id → {podcast: metadata | null}; list of ids → {podcasts, missing}."""
    data = json_object(request.get_json(silent=True))
    if 'podcastId' in data:
        cached = find_cached_podcast(str(require_field(data, 'podcastId')))
        return jsonify({'success': True, 'podcast': cached.to_dict() if cached else None})

    ids = _podcast_ids(data)
    found = find_cached_podcasts(ids)
    return jsonify({
        'success': True,
        'podcasts': {pid: meta.to_dict() for pid, meta in found.items()},
        'missing': [pid for pid in dict.fromkeys(ids) if pid not in found],
    })


@bp.route('/podcast-cache/stats')
def cache_stats():
    return jsonify({'success': True, **get_cache_statistics()})


@bp.route('/podcast-cache/client-status', methods=['POST'])
def client_cache_status():
    data = json_object(request.get_json(silent=True))
    client_id = str(require_field(data, 'clientId'))
    return jsonify({'success': True, **get_client_cache_status(client_id, _podcast_ids(data))})


@bp.route('/read-outreach-list', methods=['POST'])
def outreach_list():
    data = json_object(request.get_json(silent=True))
    client_id = str(require_field(data, 'clientId'))
    require_config('GOOGLE_SERVICE_ACCOUNT_JSON')
    return jsonify(read_outreach_list(client_id))


@bp.route('/client-podcasts', methods=['POST'])
def client_podcasts():
    """Cache-only read of a client's dashboard podcasts."""
    data = json_object(request.get_json(silent=True))
    client_id = str(require_field(data, 'clientId'))
    podcasts = cached_client_podcasts(client_id)
    return jsonify({'success': True, 'podcasts': podcasts, 'total': len(podcasts), 'cached': True})
