"""Health and adapter introspection endpoints."""

import logging
from datetime import datetime, timezone

import requests
from flask import Blueprint, request, jsonify, current_app

from config import APP_NAME, APP_VERSION

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint('dashboard', __name__)

HEALTH_TIMEOUT = 5


def get_config():
    """Get config from Flask app context."""
    return current_app.config['ADAPTER_CONFIG']


def get_log_manager():
    """Get log manager from Flask app context."""
    return current_app.config['LOG_MANAGER']


def get_process_manager():
    """Get upstream process manager from Flask app context."""
    return current_app.config.get('UPSTREAM_PROCESS')


@dashboard_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint, including upstream reachability."""
    config = get_config()
    process_manager = get_process_manager()

    body = {
        'status': 'ok',
        'adapter': APP_NAME,
        'version': APP_VERSION,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'upstream': {
            'url': config.upstream_url,
        }
    }

    try:
        response = requests.get(f"{config.upstream_url}/health", timeout=HEALTH_TIMEOUT)
        upstream_status = response.json()
        body['upstream']['status'] = (
            upstream_status.get('status', 'unknown') if isinstance(upstream_status, dict) else 'unknown'
        )
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.debug(f"Upstream health check failed: {e}")
        body['status'] = 'degraded'
        body['upstream']['status'] = 'unreachable'
        body['upstream']['error'] = str(e)

    if process_manager:
        body['managed_process'] = process_manager.status()

    return jsonify(body)


@dashboard_bp.route('/adapter/status', methods=['GET'])
def get_status():
    """Get adapter configuration and upstream process status."""
    config = get_config()
    process_manager = get_process_manager()

    return jsonify({
        'config': config.to_dict(),
        'upstreamProcess': process_manager.status() if process_manager else None,
    })


@dashboard_bp.route('/adapter/logs', methods=['GET'])
def get_logs():
    """Get recent API calls and server events."""
    log_manager = get_log_manager()
    limit = request.args.get('limit', 50, type=int)

    return jsonify({
        'apiCalls': log_manager.get_api_calls(limit),
        'serverEvents': log_manager.get_server_events(limit),
    })


@dashboard_bp.route('/adapter/logs', methods=['DELETE'])
def clear_logs():
    """Clear all logs."""
    get_log_manager().clear_logs()

    return jsonify({'success': True, 'message': 'Logs cleared'})


@dashboard_bp.route('/adapter/usage', methods=['GET'])
def get_usage():
    """Get usage statistics."""
    return jsonify(get_log_manager().get_usage_stats())


@dashboard_bp.route('/adapter/usage/reset', methods=['POST'])
def reset_usage():
    """Reset usage statistics."""
    get_log_manager().reset_usage()

    return jsonify({'success': True, 'message': 'Usage statistics reset'})
