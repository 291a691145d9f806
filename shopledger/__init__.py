"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from shopledger.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # CSRF protection (JSON clients send X-CSRFToken, see /staff/me)
    CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'Session expired, reload and try again'}), 400

    # Sentry error tracking in production
    sentry_dsn = app.config.get('SENTRY_DSN')
    if sentry_dsn and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache for report rollups
    from shopledger.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from shopledger.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust one reverse proxy for scheme/host
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Load shop/staff context before each request
    from shopledger.middleware import load_shop_context

    @app.before_request
    def before_request_handler():
        load_shop_context()

    # Error Handlers
    from shopledger.exceptions import ShopError

    @app.errorhandler(ShopError)
    def handle_shop_error(error):
        """Domain errors become JSON with the error's status code."""
        if error.status_code >= 500:
            app.logger.error(f"ShopError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"ShopError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception on {request.path}: {error}", exc_info=True)
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from shopledger.blueprints.sales import sales_bp
    from shopledger.blueprints.loans import loans_bp
    from shopledger.blueprints.customers import customers_bp
    from shopledger.blueprints.products import products_bp
    from shopledger.blueprints.reports import reports_bp
    from shopledger.blueprints.staff import staff_bp
    from shopledger.blueprints.metrics import metrics_bp

    app.register_blueprint(sales_bp)
    app.register_blueprint(loans_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(metrics_bp)

    # CLI commands
    from shopledger.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
