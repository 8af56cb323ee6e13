"""
Health routes — liveness check and upstream circuit breaker status.
"""
from flask import Blueprint, jsonify

from podmatch.services.circuit_breaker import get_all_breakers

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    return jsonify({'status': 'healthy'}), 200


@bp.route('/api/health')
def api_health():
    """Circuit breaker state and call counters for every upstream."""
    services = {name: cb.get_health() for name, cb in get_all_breakers().items()}
    degraded = [name for name, h in services.items() if h['state'] != 'closed']
    return jsonify({
        'success': True,
        'status': 'degraded' if degraded else 'healthy',
        'services': services,
    })


@bp.route('/api/health/<service>/reset', methods=['POST'])
def reset_circuit(service):
    breakers = get_all_breakers()
    if service not in breakers:
        return jsonify({'success': False, 'error': f'Unknown service: {service}'}), 404
    ok = breakers[service].reset()
    return jsonify({'success': ok, 'ok': ok, 'service': service})
