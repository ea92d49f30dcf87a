"""
Monitoring API endpoints.

Provides endpoints for:
- POST /api/monitor/add      - Add an airport to the poll cycle
- POST /api/monitor/remove   - Remove an airport
- GET  /api/monitor/list     - List monitored airports
- POST /api/monitor/check    - Run one poll cycle now
- GET|POST|DELETE /api/recipients - Manage SMS recipients
- GET  /api/status           - Pipeline and store status
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request, current_app

from delaywatch.config import config

logger = logging.getLogger(__name__)

monitor_bp = Blueprint('monitor', __name__, url_prefix='/api')


def _airports_payload(airports) -> list:
    return [a.to_dict() for a in airports]


@monitor_bp.route('/monitor/add', methods=['POST'])
def add_airport():
    """
    Add an airport to monitoring.

    Body: {"airportCode": "JFK", "airportName": "John F. Kennedy ..."}
    Adding an airport that is already monitored is a no-op.
    """
    data = request.get_json(silent=True) or {}
    registry = current_app.config['AIRPORT_REGISTRY']
    airports = registry.add(data.get('airportCode', ''), data.get('airportName', ''))
    return jsonify({'success': True, 'airports': _airports_payload(airports)})


@monitor_bp.route('/monitor/remove', methods=['POST'])
def remove_airport():
    """Body: {"airportCode": "JFK"}"""
    data = request.get_json(silent=True) or {}
    registry = current_app.config['AIRPORT_REGISTRY']
    airports = registry.remove(data.get('airportCode', ''))
    return jsonify({'success': True, 'airports': _airports_payload(airports)})


@monitor_bp.route('/monitor/list', methods=['GET'])
def list_airports():
    registry = current_app.config['AIRPORT_REGISTRY']
    return jsonify({'success': True, 'airports': _airports_payload(registry.list())})


@monitor_bp.route('/monitor/check', methods=['POST'])
def run_check():
    """
    Run one poll cycle immediately.

    Waits for a cycle already in progress to finish first.
    """
    pipeline = current_app.config['MONITOR_PIPELINE']
    summary = pipeline.run_cycle()
    return jsonify({'success': True, 'cycle': summary.to_dict()})


@monitor_bp.route('/recipients', methods=['GET', 'POST', 'DELETE'])
def recipients():
    """
    Manage SMS recipients.

    GET: List registered numbers
    POST/DELETE: Body {"phoneNumber": "+1 555 010 9999"}
    """
    registry = current_app.config['RECIPIENT_REGISTRY']

    if request.method == 'GET':
        return jsonify({'success': True, 'recipients': registry.list()})

    data = request.get_json(silent=True) or {}
    number = data.get('phoneNumber', '')

    if request.method == 'POST':
        numbers = registry.add(number)
    else:
        numbers = registry.remove(number)

    return jsonify({'success': True, 'recipients': numbers})


@monitor_bp.route('/status', methods=['GET'])
def get_status():
    """
    Get system status.

    Returns pipeline statistics, store statistics, and configuration.
    """
    start_time = time.perf_counter()

    pipeline = current_app.config.get('MONITOR_PIPELINE')
    store = current_app.config['FLIGHT_STORE']
    pipeline_stats = pipeline.stats if pipeline else {'running': False}

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'status': 'healthy' if pipeline_stats.get('running') else 'degraded',
        'polling': pipeline_stats,
        'store': store.stats,
        'config': {
            'check_interval_minutes': config.monitor.check_interval_minutes,
            'delay_threshold': config.monitor.delay_threshold,
            'flight_api_configured': config.aviationstack.is_configured,
            'sms_configured': config.twilio.is_configured,
        },
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })
