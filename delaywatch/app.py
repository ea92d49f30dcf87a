"""
DelayWatch Flask Application.

Main entry point for the web application. Initializes:
- Database schema and stored state
- Airport and recipient registries
- Poll cycle pipeline (background thread)
- API routes

Usage:
    python -m delaywatch.app

Or with gunicorn:
    gunicorn 'delaywatch.app:create_app()'
"""

import logging
from typing import Optional

from flask import Flask
from flask_cors import CORS

from delaywatch.config import config
from delaywatch.errors import ValidationError, ProviderError
from delaywatch.models import init_db
from delaywatch.api import flights_bp, monitor_bp, analytics_bp
from delaywatch.analytics import AnalyticsAggregator, DelayDetector
from delaywatch.ingestion import AviationStackClient, MonitorPipeline
from delaywatch.registry import AirportRegistry, RecipientRegistry
from delaywatch.services import TwilioSmsGateway, NotificationFanout
from delaywatch.store import FlightRecordStore

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def create_app(
    start_polling: bool = True,
    store: Optional[FlightRecordStore] = None,
    provider=None,
    gateway=None,
    fanout: Optional[NotificationFanout] = None,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        start_polling: Whether to start the background poll cycle.
                       Set to False for testing.
        store: Pre-built store (loaded from the default database if None)
        provider: Flight provider (AviationStack client from config if None)
        gateway: SMS gateway (Twilio from config if None)
        fanout: Notification fanout (built around ``gateway`` if None)

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    if store is None:
        logger.info('Initializing database...')
        init_db()
        store = FlightRecordStore()
        store.load()

    provider = provider or AviationStackClient.from_config()
    fanout = fanout or NotificationFanout(gateway or TwilioSmsGateway.from_config())

    airports = AirportRegistry(store)
    recipients = RecipientRegistry(store)

    pipeline = MonitorPipeline(
        provider=provider,
        store=store,
        airports=airports,
        recipients=recipients,
        fanout=fanout,
        detector=DelayDetector(),
    )

    app.config['FLIGHT_STORE'] = store
    app.config['FLIGHT_PROVIDER'] = provider
    app.config['AIRPORT_REGISTRY'] = airports
    app.config['RECIPIENT_REGISTRY'] = recipients
    app.config['ANALYTICS_AGGREGATOR'] = AnalyticsAggregator(store)
    app.config['MONITOR_PIPELINE'] = pipeline

    # Register API blueprints
    app.register_blueprint(flights_bp)
    app.register_blueprint(monitor_bp)
    app.register_blueprint(analytics_bp)

    logger.info(f'Loaded {len(airports.list())} monitored airport(s) from storage')

    if start_polling:
        pipeline.start_background()
        logger.info(f'Checking flights every {config.monitor.check_interval_minutes} minutes')

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok'}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(ValidationError)
    def validation_error(e):
        return {'success': False, 'error': str(e)}, 400

    @app.errorhandler(ProviderError)
    def provider_error(e):
        logger.warning(f'Flight provider error: {e}')
        return {'success': False, 'error': str(e)}, e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return {'success': False, 'error': 'Not found'}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'success': False, 'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    app = create_app()

    logger.info(f'Starting DelayWatch on http://localhost:{config.port}')

    app.run(
        host='0.0.0.0',
        port=config.port,
        debug=config.debug,
        use_reloader=False,  # Disable reloader to prevent duplicate polling threads
    )


if __name__ == '__main__':
    run_development_server()
