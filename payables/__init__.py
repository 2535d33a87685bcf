"""Flask application factory."""
import os
import traceback

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from payables.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Sentry error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache for reference data
    from payables.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from payables.blueprints.metrics import setup_metrics_instrumentation, draft_conflicts_total
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    # Error Handlers
    from payables.exceptions import PayablesError, ConflictError

    @app.errorhandler(PayablesError)
    def handle_payables_error(error):
        """Typed application errors -> JSON with the error's status code."""
        if isinstance(error, ConflictError):
            draft_conflicts_total.inc()
            app.logger.warning(f"[CONFLICT] {error.message}")
        elif error.status_code >= 500:
            app.logger.error(f"PayablesError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"PayablesError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from payables.blueprints.invoices import invoices_bp
    from payables.blueprints.payments import payments_bp
    from payables.blueprints.receipts import receipts_bp
    from payables.blueprints.reference import reference_bp
    from payables.blueprints.metrics import metrics_bp

    app.register_blueprint(invoices_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(receipts_bp)
    app.register_blueprint(reference_bp)
    app.register_blueprint(metrics_bp)

    from payables.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"[PAYABLES] Database: {app.config.get('SQLALCHEMY_DATABASE_URI', '').split('@')[-1]}")

    return app
