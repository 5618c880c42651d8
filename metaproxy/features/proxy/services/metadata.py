"""
Metadata resolution: derive an identifier from a path and fetch its SEO metadata.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from typing import Any, Optional

from flask import current_app, has_app_context

from ..http_session import _SESSION, DEFAULT_METADATA_TIMEOUT

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{([^}]+)\}")


@dataclass(frozen=True)
class MetadataRecord:
    """SEO fields for one page. None means "leave the target alone"."""

    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    keywords: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "MetadataRecord":
        """Keep the known string fields of a decoded JSON payload; ignore the rest."""
        if not isinstance(payload, dict):
            return cls()
        values = {}
        for field in fields(cls):
            value = payload.get(field.name)
            if isinstance(value, str) and value:
                values[field.name] = value
        return cls(**values)

    def is_empty(self) -> bool:
        return not any(getattr(self, field.name) for field in fields(self))


def extract_identifier(path: str) -> str:
    """Return the last path segment, ignoring one trailing slash."""
    trimmed = path[:-1] if path.endswith("/") else path
    return trimmed.split("/")[-1]


def build_metadata_url(endpoint_template: str, identifier: str) -> str:
    """
    Substitute the identifier for the first `{...}` token of the template.

    The identifier comes from the still-encoded request path and is inserted
    as-is, so it is never encoded twice.
    """
    return PLACEHOLDER_PATTERN.sub(lambda _m: identifier, endpoint_template, count=1)


def _metadata_timeout():
    if has_app_context():
        return current_app.config.get("METADATA_TIMEOUT", DEFAULT_METADATA_TIMEOUT)
    return DEFAULT_METADATA_TIMEOUT


def resolve_metadata(path: str, endpoint_template: str) -> MetadataRecord:
    """
    Fetch the metadata record for `path` from the endpoint template.

    Network errors and undecodable bodies propagate to the caller
    (`requests.RequestException` subclasses); there is no retry or fallback.
    """
    url = build_metadata_url(endpoint_template, extract_identifier(path))
    logger.debug("Requesting metadata from %s", url)

    resp = _SESSION.get(url, timeout=_metadata_timeout())
    if not resp.ok:
        logger.warning("Metadata endpoint %s answered %s", url, resp.status_code)

    metadata = MetadataRecord.from_payload(resp.json())
    if metadata.is_empty():
        logger.warning("Metadata endpoint %s returned no usable fields", url)
    else:
        logger.info("Metadata fetched: %s", metadata)
    return metadata
