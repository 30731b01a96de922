"""
Tourbook Application Factory.
Creates and configures the Flask application instance.
"""
import os
import json
import time
import uuid
import logging
from datetime import datetime, timezone

import click
from flask import Flask, g, jsonify, request
from flask_cors import CORS

from tourbook.config import AuthSettings, config
from tourbook.extensions import init_extensions, db
from tourbook.errors import register_error_handlers


def _init_sentry(app):
    """Initialize Sentry error tracking for production."""
    dsn = app.config.get('SENTRY_DSN')
    if not dsn:
        app.logger.info('SENTRY_DSN not set, error tracking disabled.')
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_RATE', '0.1')),
        environment=os.environ.get('FLASK_ENV', 'production'),
        send_default_pii=False,
    )
    app.logger.info('Sentry error tracking initialized.')


def create_app(config_name=None):
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration to use (development, testing, production)

    Returns:
        Configured Flask application instance
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Initialize Sentry (production only)
    if config_name == 'production':
        _init_sentry(app)

    # Production validation happens here
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Initialize extensions
    init_extensions(app)

    # Enable response compression (gzip)
    from flask_compress import Compress
    Compress(app)

    # Token signing and checkout, built once from the loaded config
    register_services(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Configure logging
    configure_logging(app)

    # Add security headers
    register_security_headers(app)

    # Create database tables (development only)
    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def register_services(app):
    """Attach the token service and checkout gateway to the app."""
    from tourbook.services.checkout_service import CheckoutGateway
    from tourbook.services.token_service import TokenService

    app.extensions['token_service'] = TokenService(AuthSettings.from_config(app.config))
    app.extensions['checkout_gateway'] = CheckoutGateway(
        app.config.get('STRIPE_SECRET_KEY') or '',
        app.config.get('APP_URL', 'http://localhost:5000'),
    )


def register_blueprints(app):
    """Register all application blueprints."""
    # Models must be imported before the first query resolves relationships
    import tourbook.models  # noqa: F401
    from tourbook.blueprints.api import api_bp

    # REST API v1 (JWT auth, no CSRF needed)
    app.register_blueprint(api_bp, url_prefix='/api/v1')
    register_cors(app)

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'}), 200


def register_cors(app):
    """Allow the configured browser origins (comma-separated APP_CORS_ORIGINS) on the API.

    Credentials are allowed so browser clients can send the token cookies.
    """
    origins = [o.strip() for o in app.config['APP_CORS_ORIGINS'].split(',') if o.strip()]
    CORS(app, resources={r"/api/v1/*": {
        "origins": origins,
        "methods": ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        "allow_headers": ["Authorization", "Content-Type"],
        "expose_headers": ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
        "supports_credentials": True,
        "max_age": 600,
    }})


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        db.create_all()
        print("Database initialized.")

    @app.cli.command('create-admin')
    @click.option('--email', prompt='Admin email', help='Admin email', envvar='ADMIN_EMAIL')
    @click.option('--password', prompt='Admin password', hide_input=True, confirmation_prompt=True,
                  help='Admin password', envvar='ADMIN_PASSWORD')
    @click.option('--name', default='Admin', help='Display name')
    def create_admin(email, password, name):
        """Create an admin identity, or promote an existing one."""
        from tourbook.models.user import Role, User

        user = User.query.filter_by(email=email.strip().lower()).first()
        if user is None:
            user = User(name=name, email=email, role=Role.ADMIN)
            user.set_password(password)
            db.session.add(user)
            print(f"Created admin: {user.email}")
        else:
            user.role = Role.ADMIN
            user.active = True
            user.set_password(password, changed=True)
            print(f"Promoted to admin: {user.email}")

        db.session.commit()


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (cloud log aggregation)."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        # Add request_id if available
        try:
            log_entry['request_id'] = g.get('request_id', '-')
        except RuntimeError:
            pass  # Outside request context
        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(app):
    """Configure application logging.

    Production: JSON to stdout.
    Development: plain text.
    """
    if app.testing:
        return

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])
        g.request_started = time.monotonic()

    @app.after_request
    def log_request(response):
        if request.path.startswith('/static'):
            return response
        elapsed_ms = int((time.monotonic() - g.get('request_started', time.monotonic())) * 1000)
        response.headers['X-Request-ID'] = g.get('request_id', '-')
        app.logger.info(
            '%s %s %s %dms',
            request.method,
            request.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    # Module loggers (tourbook.*) share the app's handler
    package_logger = logging.getLogger('tourbook')

    if not app.debug:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(JSONFormatter())
        stream_handler.setLevel(logging.INFO)

        # Clear existing handlers to avoid duplicates
        app.logger.handlers.clear()
        app.logger.addHandler(stream_handler)
        app.logger.setLevel(logging.INFO)
        package_logger.handlers.clear()
        package_logger.addHandler(stream_handler)
        package_logger.setLevel(logging.INFO)
        app.logger.info('Tourbook startup (JSON logging)')
    else:
        app.logger.setLevel(logging.DEBUG)
        package_logger.setLevel(logging.DEBUG)
        app.logger.info('Tourbook startup (development)')


def register_security_headers(app):
    """Register security headers for all responses."""

    @app.after_request
    def add_security_headers(response):
        if request.path.startswith('/static'):
            response.headers['Cache-Control'] = 'public, max-age=31536000, immutable'
            return response

        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['X-Permitted-Cross-Domain-Policies'] = 'none'

        # JSON API: nothing to load, nothing to frame
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"

        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        return response
