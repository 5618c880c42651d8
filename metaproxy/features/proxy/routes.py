"""
Proxy routes: classify each request and forward it to the origin.

A request is, in this order:
1. a dynamic page (path matches a configured route pattern): HTML is streamed
   back with metadata injected;
2. a page-data document (`/public/data/<uuid>.json`): JSON is merged with the
   metadata of the page named by the Referer;
3. anything else: proxied as-is.
`X-Robots-Tag` never reaches the client.
"""

from __future__ import annotations

import json
import logging
import traceback
from urllib.parse import quote, urlparse

import requests
from flask import Response, current_app, request
from werkzeug.http import parse_options_header

from metaproxy.models.route_config import RouteRegistry, normalize_path

from .blueprint import IS_PRODUCTION, bp
from .http_session import _SESSION, DEFAULT_ORIGIN_TIMEOUT
from .services.headers import filter_request_headers, origin_response_headers
from .services.html_rewrite import rewrite_html_stream
from .services.metadata import resolve_metadata
from .services.page_data import is_page_data_path, merge_page_data

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]

CHUNK_SIZE = 8192

# Characters RFC 3986 allows unescaped in a path segment, plus the separator
PATH_SAFE_CHARS = "/:@!$&'()*+,;=~"


def get_registry() -> RouteRegistry:
    return current_app.extensions["metaproxy.routes"]


def raw_request_path() -> str:
    """The request path as the client sent it, percent-encoding intact."""
    raw_uri = request.environ.get("RAW_URI") or request.environ.get("REQUEST_URI")
    if raw_uri and raw_uri.startswith("/"):
        return raw_uri.split("?", 1)[0]
    return quote(request.path, safe=PATH_SAFE_CHARS)


def origin_url(registry: RouteRegistry, path: str) -> str:
    target_url = f"{registry.domain_source}{path}"
    if request.query_string:
        target_url += "?" + request.query_string.decode("latin-1")
    return target_url


def fetch_origin(url: str, method: str = "GET", **kwargs) -> requests.Response:
    return _SESSION.request(
        method=method,
        url=url,
        allow_redirects=False,
        stream=True,
        timeout=current_app.config.get("ORIGIN_TIMEOUT", DEFAULT_ORIGIN_TIMEOUT),
        **kwargs,
    )


def stream_body(resp: requests.Response, chunks=None):
    """Yield the upstream body, closing the upstream response when done or aborted."""
    try:
        for chunk in chunks if chunks is not None else resp.iter_content(chunk_size=CHUNK_SIZE):
            if chunk:
                yield chunk
    finally:
        resp.close()


def is_html(resp: requests.Response) -> bool:
    return "text/html" in resp.headers.get("Content-Type", "").lower()


def declared_charset(resp: requests.Response):
    """Charset named in the Content-Type header, if any."""
    _mimetype, options = parse_options_header(resp.headers.get("Content-Type", ""))
    return options.get("charset")


def proxy_dynamic_page(registry: RouteRegistry, path: str, endpoint_template: str) -> Response:
    logger.info("Dynamic page detected: %s", path)

    source = fetch_origin(origin_url(registry, path))
    headers = origin_response_headers(source)

    try:
        metadata = resolve_metadata(path, endpoint_template)
    except Exception:
        source.close()
        raise

    if is_html(source):
        body = rewrite_html_stream(source.iter_content(chunk_size=CHUNK_SIZE), metadata, declared_charset(source))
    else:
        if not IS_PRODUCTION:
            logger.debug("Origin content for %s is not HTML, streaming unchanged", path)
        body = None

    return Response(stream_body(source, body), status=source.status_code, headers=headers)


def proxy_page_data(registry: RouteRegistry, path: str) -> Response:
    referer = request.headers.get("Referer")
    logger.info("Page data detected: %s", path)
    logger.info("Referer: %s", referer)

    source = fetch_origin(origin_url(registry, path))
    try:
        content = source.content
    finally:
        source.close()

    def unmodified():
        return Response(content, status=source.status_code, headers=origin_response_headers(source))

    if not referer or not source.ok:
        return unmodified()

    referer_path = normalize_path(urlparse(referer).path or "/")
    pattern = registry.match(referer_path)
    if pattern is None:
        if not IS_PRODUCTION:
            logger.debug("Referer %s matches no route pattern, page data unchanged", referer_path)
        return unmodified()

    document = json.loads(content)
    if not isinstance(document, dict):
        logger.warning("Page data %s is not a JSON object, returning it unchanged", path)
        return unmodified()

    metadata = resolve_metadata(referer_path, pattern.endpoint_template)
    merged = merge_page_data(document, metadata)
    if not IS_PRODUCTION:
        logger.debug("Returning page data: %s", merged)
    return Response(json.dumps(merged, ensure_ascii=False), mimetype="application/json")


def proxy_passthrough(registry: RouteRegistry, path: str) -> Response:
    logger.info("Fetching original content for: %s", path)

    data = request.get_data()
    source = fetch_origin(
        origin_url(registry, path),
        method=request.method,
        headers=filter_request_headers(request.headers.items()),
        data=data or None,
    )
    return Response(stream_body(source), status=source.status_code, headers=origin_response_headers(source))


@bp.route("/", defaults={"path": ""}, methods=ALL_METHODS)
@bp.route("/<path:path>", methods=ALL_METHODS)
def proxy_path(path: str):
    """
    Dispatch one request to the dynamic-page, page-data or passthrough handler.

    Classification uses the decoded path; the origin and metadata URLs are
    built from the raw one so encoded `/`, `?` and `#` survive the hop.
    """
    request_path = request.path
    upstream_path = raw_request_path()

    try:
        registry = get_registry()

        pattern = registry.match(request_path)
        if pattern is not None:
            return proxy_dynamic_page(registry, upstream_path, pattern.endpoint_template)

        if is_page_data_path(request_path):
            return proxy_page_data(registry, upstream_path)

        return proxy_passthrough(registry, upstream_path)

    except requests.exceptions.ConnectionError as e:
        logger.error(f"Connection error proxying {request_path}: {e}")
        return "Upstream is not responding.", 503
    except requests.exceptions.Timeout as e:
        logger.error(f"Timeout error proxying {request_path}: {e}")
        return "Request upstream timed out.", 504
    except requests.exceptions.RequestException as e:
        logger.error(f"Request error proxying {request_path}: {e}")
        return f"Error proxying request: {str(e)}", 502
    except ValueError as e:
        logger.error(f"Invalid JSON while proxying {request_path}: {e}")
        return f"Error proxying request: {str(e)}", 502
    except Exception as e:
        error_trace = traceback.format_exc()
        logger.error(f"Unexpected error in proxy route for {request_path}: {e}\n{error_trace}")
        return f"Internal proxy error: {str(e)}. Check server logs for details.", 500
