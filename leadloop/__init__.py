"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
from flask import Flask


def create_app():
    """Create and configure the Flask application."""
    from leadloop.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    # Register blueprints
    from leadloop.routes.monitor import bp as monitor_bp
    from leadloop.routes.webhook import bp as webhook_bp

    app.register_blueprint(monitor_bp)
    app.register_blueprint(webhook_bp)

    # Initialize circuit breakers for search, page fetch and LLM calls
    from leadloop.extensions import redis_client
    from leadloop.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Local dev runs on SQLite without migrations; create tables on boot
    from leadloop.database import init_db
    init_db()

    return app
