"""
Analytics API endpoints.

Provides endpoints for:
- GET /api/analytics?timeFilter=24h|7d|30d|1y|all - Delay rollup report
"""

import logging
import time

from flask import Blueprint, jsonify, request, current_app

logger = logging.getLogger(__name__)

analytics_bp = Blueprint('analytics', __name__, url_prefix='/api/analytics')


@analytics_bp.route('', methods=['GET'])
def get_analytics():
    """
    Get the analytics rollup for a time window.

    Unknown timeFilter values fall back to the full history.
    """
    start_time = time.perf_counter()

    aggregator = current_app.config['ANALYTICS_AGGREGATOR']
    report = aggregator.generate_report(request.args.get('timeFilter', 'all'))

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'success': True,
        'analytics': report.to_dict(),
        'query_time_ms': round(query_time_ms, 2),
    })
