"""
Flask application factory.

Creates the app, opens CORS to every origin, maps the error taxonomy to JSON
responses, and registers all blueprints.
"""
import logging
from flask import Flask, request, jsonify, make_response
from werkzeug.exceptions import HTTPException

logger = logging.getLogger('podmatch')

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
}


def create_app():
    """Create and configure the Flask application."""
    from podmatch.logging_config import configure_logging
    from podmatch.errors import PodmatchError

    app = Flask(__name__)
    configure_logging(app)

    # ── CORS ──────────────────────────────────────────────────────────────
    @app.before_request
    def answer_preflight():
        if request.method == 'OPTIONS':
            return make_response('ok', 200)

    @app.after_request
    def add_cors_headers(response):
        response.headers.update(CORS_HEADERS)
        return response

    # ── Errors → {"success": false, "error": ...} ─────────────────────────
    @app.errorhandler(PodmatchError)
    def handle_podmatch_error(e):
        if e.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, e)
        return jsonify({'success': False, 'error': e.message}), e.status_code

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({'success': False, 'error': 'Method not allowed'}), 405

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({'success': False, 'error': e.description}), e.code
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({'success': False, 'error': 'Internal error'}), 500

    # Register blueprints
    from podmatch.routes.matching import bp as matching_bp
    from podmatch.routes.cache import bp as cache_bp
    from podmatch.routes.health import bp as health_bp

    app.register_blueprint(matching_bp)
    app.register_blueprint(cache_bp)
    app.register_blueprint(health_bp)

    # Circuit breakers for every upstream API
    from podmatch.extensions import redis_client
    from podmatch.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Register models with Base.metadata; schema itself is managed by Alembic
    from podmatch.database import import_models
    import_models()

    return app
