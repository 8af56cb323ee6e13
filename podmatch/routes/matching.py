"""
Matching routes — prospect backfill, manual sheet export, compatibility scoring.
"""
from flask import Blueprint, request, jsonify

from podmatch.config import require_config
from podmatch.errors import ValidationError
from podmatch.pipeline.backfill import backfill_prospect_podcasts, export_to_dashboard_sheet, load_dashboard
from podmatch.schemas import json_object, require_field
from podmatch.services.compatibility import score_podcasts
from podmatch.services.sheets import spreadsheet_url

bp = Blueprint('matching', __name__, url_prefix='/api')


@bp.route('/backfill-prospect-podcasts', methods=['POST'])
def backfill_prospect():
    """Match podcasts to a prospect and append the new ones to their sheet."""
    data = json_object(request.get_json(silent=True))
    prospect_id = require_field(data, 'prospectId')
    require_config('OPENAI_API_KEY')

    summary = backfill_prospect_podcasts(str(prospect_id))
    return jsonify(summary.to_dict())


@bp.route('/append-prospect-sheet', methods=['POST'])
def append_prospect_sheet():
    """Append hand-picked podcasts to a prospect dashboard's sheet, skipping ones already there."""
    data = json_object(request.get_json(silent=True))
    dashboard_id = require_field(data, 'dashboardId', 'Dashboard ID is required')
    podcasts = data.get('podcasts')
    if not isinstance(podcasts, list) or not podcasts:
        raise ValidationError('At least one podcast must be selected for export')
    if not all(isinstance(p, dict) for p in podcasts):
        raise ValidationError('Each podcast must be an object')
    require_config('GOOGLE_SERVICE_ACCOUNT_JSON')

    dashboard = load_dashboard(str(dashboard_id), not_found_message='Dashboard not found')
    if not dashboard.spreadsheet_id:
        raise ValidationError('Dashboard has no spreadsheet')

    result = export_to_dashboard_sheet(dashboard, podcasts, cache_only=bool(data.get('cacheOnly')))
    return jsonify({
        'success': True,
        'spreadsheetUrl': dashboard.spreadsheet_url or spreadsheet_url(dashboard.spreadsheet_id),
        'rowsAdded': result.new_added,
        'duplicatesSkipped': result.duplicates_skipped,
        'updatedRange': result.updated_range,
        'message': f'Added {result.new_added} podcasts to "{dashboard.prospect_name}"\'s sheet',
    })


@bp.route('/score-podcast-compatibility', methods=['POST'])
def score_compatibility():
    data = json_object(request.get_json(silent=True))
    client_bio = data.get('clientBio')
    if not isinstance(client_bio, str) or not client_bio.strip():
        raise ValidationError('Client bio is required for compatibility scoring')
    podcasts = data.get('podcasts')
    if not isinstance(podcasts, list) or not podcasts:
        raise ValidationError('Podcasts array is required')
    require_config('ANTHROPIC_API_KEY')

    scores = score_podcasts(client_bio, podcasts)
    return jsonify({'success': True, 'scores': [s.to_dict() for s in scores]})
