"""
metaproxy - SEO metadata injecting proxy in front of a hosted web application
"""
import logging
import os
from pathlib import Path

from flask import Flask

from metaproxy.features.proxy.http_session import DEFAULT_METADATA_TIMEOUT, DEFAULT_ORIGIN_TIMEOUT
from metaproxy.models.route_config import RouteRegistry, load_route_config

logger = logging.getLogger(__name__)

DEFAULT_ROUTES_CONFIG = Path(__file__).resolve().parent.parent / "config.json"


def _timeout_from_env(name, default):
    """Parse `"connect,read"` or a single number of seconds from the environment."""
    raw = os.environ.get(name)
    if not raw:
        return default
    parts = [float(p) for p in raw.split(",") if p.strip()]
    return tuple(parts) if len(parts) > 1 else parts[0]


def create_app(config=None):
    """Create and configure the Flask application"""
    # Every path belongs to the origin, including /static/
    app = Flask(__name__, static_folder=None)

    # Configuration
    app.config['ROUTES_CONFIG'] = os.environ.get('METAPROXY_CONFIG', str(DEFAULT_ROUTES_CONFIG))
    # Overrides the origin base URL from the routes file (e.g. a preview deployment)
    app.config['DOMAIN_SOURCE'] = os.environ.get('DOMAIN_SOURCE')
    app.config['ORIGIN_TIMEOUT'] = _timeout_from_env('ORIGIN_TIMEOUT', DEFAULT_ORIGIN_TIMEOUT)
    app.config['METADATA_TIMEOUT'] = _timeout_from_env('METADATA_TIMEOUT', DEFAULT_METADATA_TIMEOUT)
    if config:
        app.config.update(config)

    # Ensure Flask knows it's behind a proxy (for HTTPS detection)
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_for=1,
        x_proto=1,
        x_host=1,
        x_port=1,
        x_prefix=1
    )

    # Route patterns are loaded once and never change while serving
    routes = app.config.get('ROUTES')
    if routes is None:
        registry = load_route_config(app.config['ROUTES_CONFIG'])
    elif isinstance(routes, RouteRegistry):
        registry = routes
    else:
        registry = RouteRegistry.from_mapping(routes)
    if app.config.get('DOMAIN_SOURCE'):
        registry = registry.with_domain_source(app.config['DOMAIN_SOURCE'].rstrip('/'))
    app.extensions['metaproxy.routes'] = registry

    logger.info("Proxying %s with %d route pattern(s)", registry.domain_source, len(registry.patterns))

    from metaproxy.features.proxy.blueprint import bp as proxy_bp
    app.register_blueprint(proxy_bp)

    return app
