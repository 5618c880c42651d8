"""
Header filtering for proxied requests and responses.
"""

from __future__ import annotations

from typing import Iterable

ROBOTS_HEADER = "x-robots-tag"

HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Body is re-framed by the WSGI server and already decoded by requests.
EXCLUDED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding", "content-length", ROBOTS_HEADER}

# Encoding is negotiated by requests so bodies arrive decodable.
EXCLUDED_REQUEST_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length", "accept-encoding"}


def filter_request_headers(headers: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Client headers to forward to the origin."""
    forwarded = {}
    for name, value in headers:
        if name.lower() not in EXCLUDED_REQUEST_HEADERS:
            forwarded[name] = value
    return forwarded


def filter_response_headers(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Origin headers to return to the client; `X-Robots-Tag` is always dropped."""
    return [(name, value) for name, value in headers if name.lower() not in EXCLUDED_RESPONSE_HEADERS]


def origin_response_headers(resp) -> list[tuple[str, str]]:
    """Filtered headers of a requests response, keeping repeated Set-Cookie values."""
    try:
        raw_headers = list(resp.raw.headers.items())
    except AttributeError:
        raw_headers = list(resp.headers.items())
    return filter_response_headers(raw_headers)
