import logging
from datetime import timedelta
from typing import Any, Mapping, Optional

from flask import Flask, current_app, flash, g, redirect, render_template, request, session, url_for
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.routing import IntegerConverter

from ellarises import database
from ellarises.app_extensions import csrf, limiter, login_manager
from ellarises.config import (
    DatabaseConfig, get_app_config, get_database_config, get_server_config,
)
from ellarises.config.improved_logging_config import configure_app_logging, get_smart_logger, LogCategory
from ellarises.services.account_guard import account_guard
from ellarises.services.auth_models import SESSION_IDENTITY_KEY, SessionIdentity
from ellarises.services.auth_service import auth_service
from ellarises.utils.redirects import return_to_target
from ellarises.utils.request_parsing import MAX_DB_INT
from ellarises.utils.request_response_logger import setup_flask_request_logging

import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

configure_app_logging()
logger = get_smart_logger(__name__, LogCategory.API)

LOGIN_REQUIRED_MESSAGE = 'Please log in to view this page.'
STORE_FAILURE_MESSAGE = 'Something went wrong while saving your changes. Please try again.'

# Endpoints whose POST has a GET twin on the same path that redisplays the form
FORM_ENDPOINT_SUFFIXES = ('.add', '.edit', '.userdonor_add', '.userdonor_edit', '.login', '.register')


def _init_sentry(dsn: Optional[str]) -> None:
    if not dsn:
        return
    sentry_logging = LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
    sentry_sdk.init(dsn=dsn, integrations=[FlaskIntegration(), sentry_logging], traces_sample_rate=0)


class RecordIdConverter(IntegerConverter):
    """`<int:...>` URL segments, capped at what an INTEGER primary key can hold."""

    def __init__(self, url_map, *args, **kwargs):
        kwargs.setdefault('max', MAX_DB_INT)
        super().__init__(url_map, *args, **kwargs)


def _page_after_store_failure() -> str:
    """Pick where to send the user after a database error.

    POSTs from a form go back to the form. Everything else goes to the
    resource list, or home when the list itself failed.
    """
    endpoint = request.endpoint or ''
    if request.method == 'POST' and endpoint.endswith(FORM_ENDPOINT_SUFFIXES):
        return request.path
    if request.blueprint and request.blueprint != 'home_bp' and not endpoint.endswith('.index'):
        return url_for(f'{request.blueprint}.index')
    return url_for('home_bp.index')


def create_app(overrides: Optional[Mapping[str, Any]] = None):
    """Create and configure the Flask server for the staff portal."""
    server = Flask(__name__)
    # Oversized ids 404 instead of overflowing the database driver
    server.url_map.converters['int'] = RecordIdConverter

    server_config = get_server_config()
    app_config = get_app_config()
    db_config = get_database_config()

    server.secret_key = server_config.secret_key
    server.config['MAX_CONTENT_LENGTH'] = server_config.max_content_length
    server.config['SESSION_COOKIE_NAME'] = 'ellarises_session'
    server.config['SESSION_COOKIE_HTTPONLY'] = True
    server.config['SESSION_COOKIE_SECURE'] = bool(server_config.force_https or server_config.session_cookie_secure)
    server.config['SESSION_COOKIE_SAMESITE'] = server_config.session_cookie_samesite
    server.config['PERMANENT_SESSION_LIFETIME'] = timedelta(seconds=server_config.session_timeout_seconds)
    server.config['SESSION_PROTECTION'] = 'basic'
    if server_config.force_https:
        server.config['PREFERRED_URL_SCHEME'] = 'https'

    server.config.setdefault('WTF_CSRF_ENABLED', True)
    server.config.setdefault('WTF_CSRF_TIME_LIMIT', 3600)

    server.config['PAGE_SIZE'] = app_config.page_size
    server.config['PUBLIC_LISTINGS'] = app_config.public_listings
    server.config['BCRYPT_ROUNDS'] = app_config.bcrypt_rounds
    server.config['LOGIN_MAX_ATTEMPTS'] = app_config.login_max_attempts
    server.config['LOGIN_LOCKOUT_SECONDS'] = app_config.login_lockout_seconds
    server.config['STRICT_TRANSPORT_SECURITY'] = server_config.strict_transport_security
    server.config['DATABASE_URL'] = db_config.url
    server.config['DATABASE_ECHO'] = db_config.echo
    server.config['AUTO_CREATE_SCHEMA'] = db_config.auto_create_schema

    if overrides:
        server.config.update(overrides)

    _init_sentry(app_config.sentry_dsn)

    auth_service.set_rounds(server.config['BCRYPT_ROUNDS'])
    account_guard.configure(server.config['LOGIN_MAX_ATTEMPTS'], server.config['LOGIN_LOCKOUT_SECONDS'])

    database.init_app(server, DatabaseConfig(
        url=server.config['DATABASE_URL'],
        echo=server.config['DATABASE_ECHO'],
        auto_create_schema=server.config['AUTO_CREATE_SCHEMA'],
    ))

    # Initialize extensions that depend on the configured Flask app
    csrf.init_app(server)
    limiter.init_app(server)
    login_manager.init_app(server)

    @login_manager.user_loader
    def load_user(user_id):
        identity = SessionIdentity.from_snapshot(session.get(SESSION_IDENTITY_KEY))
        if identity is None or identity.get_id() != user_id:
            return None
        return identity

    @login_manager.unauthorized_handler
    def unauthorized():
        target = return_to_target(request.full_path.rstrip('?'))
        if target:
            session['return_to'] = target
        flash(LOGIN_REQUIRED_MESSAGE, 'info')
        return redirect(url_for('auth_bp.login'))

    @server.errorhandler(404)
    def not_found(error):
        return render_template('error.html', code=404, message='The requested page was not found.'), 404

    @server.errorhandler(405)
    def method_not_allowed(error):
        return render_template('error.html', code=405, message='That action is not allowed here.'), 405

    @server.errorhandler(SQLAlchemyError)
    def store_failure(error):
        db = g.get('db')
        if db is not None:
            db.rollback()
        logger.error('Store failure', exc_info=True, context={
            'endpoint': request.endpoint,
            'method': request.method,
            'correlation_id': g.get('correlation_id'),
        })
        flash(STORE_FAILURE_MESSAGE, 'error')
        return redirect(_page_after_store_failure())

    @server.errorhandler(500)
    def internal_server_error(error):
        logger.error(f'Internal Server Error: {error}')
        return render_template('error.html', code=500, message='An unexpected error occurred.'), 500

    @server.after_request
    def add_security_headers(response):
        response.headers['Content-Security-Policy'] = (
            "default-src 'self'; "
            "img-src 'self' data:; "
            "frame-ancestors 'none'; "
            "base-uri 'self'; "
            "form-action 'self';"
        )
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        if server.config['STRICT_TRANSPORT_SECURITY']:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    setup_flask_request_logging(server)

    from ellarises.routes.auth import auth_bp
    from ellarises.routes.home import home_bp
    from ellarises.routes.participants import participants_bp
    from ellarises.routes.events import events_bp
    from ellarises.routes.surveys import surveys_bp
    from ellarises.routes.milestones import milestones_bp
    from ellarises.routes.donations import donations_bp
    from ellarises.routes.users import users_bp

    server.register_blueprint(home_bp)
    server.register_blueprint(auth_bp)
    server.register_blueprint(participants_bp, url_prefix='/participants')
    server.register_blueprint(events_bp, url_prefix='/events')
    server.register_blueprint(surveys_bp, url_prefix='/surveys')
    server.register_blueprint(milestones_bp, url_prefix='/milestones')
    server.register_blueprint(donations_bp, url_prefix='/donations')
    server.register_blueprint(users_bp, url_prefix='/users')

    from ellarises.cli import register_cli
    register_cli(server)

    logger.info("Flask server created and configured with security headers and request logging")
    return server


if __name__ == '__main__':
    app = create_app()
    server_config = get_server_config()

    logger.info(f"Starting Flask server on port {server_config.port}")
    app.run(debug=server_config.debug, port=server_config.port, host=server_config.host)
