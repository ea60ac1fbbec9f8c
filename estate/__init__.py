"""Flask application factory."""
import logging
import os
import traceback
from datetime import date, datetime
from decimal import Decimal

import pydantic
from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from werkzeug.exceptions import HTTPException

from estate.database import init_db


class EstateJSONProvider(DefaultJSONProvider):
    """JSON provider that renders money (Decimal) as numbers and dates as ISO strings."""

    @staticmethod
    def default(o):
        if isinstance(o, Decimal):
            return float(o)
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.json_provider_class = EstateJSONProvider
    app.json = EstateJSONProvider(app)
    app.config.from_object(config_object)

    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    # Sentry error tracking (production only)
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            profiles_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis catalog cache + in-process settings cache
    from estate.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from estate.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust the reverse proxy headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    from estate.middleware import load_user

    @app.before_request
    def before_request_handler():
        """Load user context for each request."""
        load_user()

    # Error Handlers
    from estate.exceptions import EstateError

    @app.errorhandler(EstateError)
    def handle_estate_error(error):
        """Handle application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"EstateError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"EstateError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(pydantic.ValidationError)
    def handle_validation_error(error):
        errors = [
            f"{'.'.join(str(p) for p in e['loc']) or 'body'}: {e['msg']}"
            for e in error.errors()
        ]
        return jsonify({'status': 'error', 'message': 'Invalid request data', 'errors': errors}), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({'status': 'error', 'message': error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception on {request.method} {request.path}: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from estate.blueprints.auth import auth_bp
    from estate.blueprints.catalog import catalog_bp
    from estate.blueprints.cart import cart_bp
    from estate.blueprints.orders import orders_bp
    from estate.blueprints.bookings import bookings_bp
    from estate.blueprints.settings import settings_bp
    from estate.blueprints.admin import admin_bp
    from estate.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from estate.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
