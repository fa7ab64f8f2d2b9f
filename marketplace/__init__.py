"""Flask application factory."""
import logging
import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from marketplace.database import init_db, get_session


def _configure_logging(app):
    level_name = str(app.config.get('LOG_LEVEL', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    app.logger.setLevel(level)


def _rollback():
    session = get_session()
    if session is not None:
        session.rollback()


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.sort_keys = app.config.get('JSON_SORT_KEYS', False)

    _configure_logging(app)

    # Error tracking in production only
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    init_db(app)

    from marketplace.services.cache_service import init_cache
    init_cache(app)

    from marketplace.services.payment_gateways import init_gateway
    init_gateway(app)

    from marketplace.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    from marketplace.middleware import load_current_user

    @app.before_request
    def before_request_handler():
        """Resolve the bearer token for each request."""
        load_current_user()

    # Error Handlers
    from marketplace.exceptions import MarketplaceError

    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(error):
        """Handle custom application exceptions."""
        _rollback()
        if error.status_code >= 500:
            app.logger.error(f"MarketplaceError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"MarketplaceError [{error.status_code}] {error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'code': 'NOT_FOUND', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({'status': 'error', 'code': 'METHOD_NOT_ALLOWED', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({
            'status': 'error',
            'code': error.name.upper().replace(' ', '_'),
            'message': error.description,
        }), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        _rollback()
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'code': 'INTERNAL_ERROR', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from marketplace.blueprints.health import health_bp
    from marketplace.blueprints.cart import cart_bp
    from marketplace.blueprints.orders import orders_bp
    from marketplace.blueprints.coupons import coupons_bp
    from marketplace.blueprints.payments import payments_bp
    from marketplace.blueprints.webhooks import webhooks_bp
    from marketplace.blueprints.catalog import catalog_bp
    from marketplace.blueprints.search import search_bp
    from marketplace.blueprints.reviews import reviews_bp
    from marketplace.blueprints.users import users_bp
    from marketplace.blueprints.metrics import metrics_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(coupons_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(search_bp)
    app.register_blueprint(reviews_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(metrics_bp)

    from marketplace.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(
        f"App created (env={app.config.get('ENV')}, gateway={app.extensions['payment_gateway'].name})"
    )
    return app
