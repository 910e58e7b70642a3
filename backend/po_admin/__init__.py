from flask import Flask, current_app
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging

load_dotenv()

jwt = JWTManager()


def _error(status: int, title: str, detail: str):
    return {'error': {'status': status, 'title': title, 'detail': detail}}, status


def create_app(config: Optional[Dict[str, Any]] = None, client=None):
    """Build the PO console BFF.

    ``client`` replaces the REST data client (tests pass a fake); otherwise one is built
    from PO_API_URL with its own QueryCache.
    """
    from .config.settings import load_settings, cancel_capability
    from .utils.cache import QueryCache
    from .utils.fsm import StatusTransitionModel
    from .utils.validation import InvalidRecordError, UnknownStatusError
    from .services.po_client import PODataClient, UpstreamError

    app = Flask(__name__)
    app.config.update(load_settings())

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.getLogger('po_admin').setLevel(app.config['LOG_LEVEL'])

    if client is None:
        cache = QueryCache(ttl_seconds=app.config['PO_CACHE_TTL'])
        client = PODataClient(app.config['PO_API_URL'], cache=cache, timeout=app.config['PO_API_TIMEOUT'])
    app.extensions['po_client'] = client
    app.extensions['po_cache'] = getattr(client, 'cache', None)
    app.extensions['po_transitions'] = StatusTransitionModel(
        cancel_capability=cancel_capability(app.config['PO_CANCEL_CAPABILITY'])
    )

    jwt.init_app(app)

    from .routes.session import session_bp
    from .routes.purchase_orders import po_bp
    app.register_blueprint(session_bp, url_prefix='/session')
    app.register_blueprint(po_bp, url_prefix='/po')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.errorhandler(UpstreamError)
    def handle_upstream(e):  # type: ignore
        status = e.status if e.status in (400, 401, 403, 404, 409, 422) else 502
        return _error(status, 'Upstream Error' if status == 502 else 'Upstream Rejected', e.message)

    @app.errorhandler(InvalidRecordError)
    @app.errorhandler(UnknownStatusError)
    def handle_bad_record(e):  # type: ignore
        app.logger.error('Malformed record from PO backend: %s', e)
        return _error(502, 'Bad Gateway', str(e))

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return _error(e.code, e.name, e.description)
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return _error(500, 'Internal Server Error', 'Unexpected error')

    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec(app.extensions['po_transitions'])

    @app.route('/docs')
    def docs_index():
        # Lightweight HTML referencing Redoc CDN (no local install) for quick browsing
        return (
            "<!DOCTYPE html><html><head><title>PO Console API</title>"
            "<link rel=\"stylesheet\" href=\"https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.css\" />"
            "</head><body><redoc spec-url='/openapi.json'></redoc>"
            "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
            "</body></html>"
        )

    return app


def get_client():
    return current_app.extensions['po_client']


def get_transitions():
    return current_app.extensions['po_transitions']
