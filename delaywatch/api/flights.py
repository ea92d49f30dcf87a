"""
Flight board API endpoints.

Provides endpoints for:
- GET /api/flights/<airport_code> - Live departures or arrivals (no detection)
- GET /api/airports/search        - Search the popular airports list
- GET /api/airports/popular       - Popular airports for quick selection
"""

import logging

from flask import Blueprint, jsonify, request, current_app

from delaywatch.registry import normalize_airport_code

logger = logging.getLogger(__name__)

flights_bp = Blueprint('flights', __name__, url_prefix='/api')

# Common airports for quick selection
POPULAR_AIRPORTS = [
    {'code': 'YYZ', 'name': 'Toronto Pearson International Airport', 'city': 'Toronto'},
    {'code': 'YUL', 'name': 'Montreal-Trudeau International Airport', 'city': 'Montreal'},
    {'code': 'YVR', 'name': 'Vancouver International Airport', 'city': 'Vancouver'},
    {'code': 'JFK', 'name': 'John F. Kennedy International Airport', 'city': 'New York'},
    {'code': 'LAX', 'name': 'Los Angeles International Airport', 'city': 'Los Angeles'},
    {'code': 'ORD', 'name': "Chicago O'Hare International Airport", 'city': 'Chicago'},
    {'code': 'LHR', 'name': 'London Heathrow Airport', 'city': 'London'},
    {'code': 'CDG', 'name': 'Charles de Gaulle Airport', 'city': 'Paris'},
]


@flights_bp.route('/flights/<airport_code>', methods=['GET'])
def get_flights(airport_code: str):
    """
    Fetch the current flight board for an airport.

    Query parameters:
    - type: departures|arrivals (default departures)

    This is a manual lookup: it does not touch tracked state or history.
    """
    direction = request.args.get('type', 'departures')
    if direction not in ('departures', 'arrivals'):
        return jsonify({'success': False, 'error': 'type must be departures or arrivals'}), 400

    code = normalize_airport_code(airport_code)
    provider = current_app.config['FLIGHT_PROVIDER']

    logger.info(f'Fetching {direction} for airport: {code}')
    flights = provider.get_flights(code, direction)

    return jsonify({'success': True, 'flights': [f.to_dict() for f in flights]})


@flights_bp.route('/airports/search', methods=['GET'])
def search_airports():
    """Match query against code, name, or city (case-insensitive)."""
    query = request.args.get('query', '').strip().lower()
    matches = [
        a for a in POPULAR_AIRPORTS
        if query in a['code'].lower() or query in a['name'].lower() or query in a['city'].lower()
    ]
    return jsonify({'success': True, 'airports': matches})


@flights_bp.route('/airports/popular', methods=['GET'])
def popular_airports():
    return jsonify({'success': True, 'airports': POPULAR_AIRPORTS})
