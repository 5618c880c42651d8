"""
Route configuration model: ordered route patterns and their metadata endpoints.

IMPORTANT: The registry is built once at startup and never mutated afterwards.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple


class RouteConfigError(ValueError):
    """Raised when the route configuration cannot be loaded or compiled."""


def normalize_path(path: str) -> str:
    """Append a trailing slash if absent (`/provider/x` == `/provider/x/`)."""
    return path if path.endswith("/") else path + "/"


@dataclass(frozen=True)
class RoutePattern:
    """A path regex paired with a metadata endpoint template."""

    matcher: re.Pattern
    endpoint_template: str

    def matches(self, path: str) -> bool:
        return self.matcher.search(path) is not None


@dataclass(frozen=True)
class RouteRegistry:
    """Ordered, immutable set of route patterns for one origin."""

    domain_source: str
    patterns: Tuple[RoutePattern, ...] = ()

    def match(self, path: str) -> Optional[RoutePattern]:
        """Return the first pattern matching the normalized path, or None."""
        normalized = normalize_path(path)
        for pattern in self.patterns:
            if pattern.matches(normalized):
                return pattern
        return None

    def with_domain_source(self, domain_source: str) -> "RouteRegistry":
        return RouteRegistry(domain_source=domain_source, patterns=self.patterns)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RouteRegistry":
        """Build a registry from `{"domainSource": ..., "patterns": [...]}`."""
        if not isinstance(data, Mapping):
            raise RouteConfigError("Route configuration must be a JSON object")

        domain_source = data.get("domainSource")
        if not domain_source or not isinstance(domain_source, str):
            raise RouteConfigError("Route configuration is missing 'domainSource'")

        raw_patterns = data.get("patterns", [])
        if not isinstance(raw_patterns, list):
            raise RouteConfigError("'patterns' must be a list")

        patterns = []
        for index, entry in enumerate(raw_patterns):
            if not isinstance(entry, Mapping):
                raise RouteConfigError(f"Pattern #{index} must be an object")
            regex = entry.get("pattern")
            template = entry.get("metaDataEndpoint")
            if not isinstance(regex, str) or not isinstance(template, str):
                raise RouteConfigError(f"Pattern #{index} needs 'pattern' and 'metaDataEndpoint' strings")
            try:
                matcher = re.compile(regex)
            except re.error as e:
                raise RouteConfigError(f"Pattern #{index} is not a valid regular expression: {e}") from e
            patterns.append(RoutePattern(matcher=matcher, endpoint_template=template))

        return cls(domain_source=domain_source.rstrip("/"), patterns=tuple(patterns))


def load_route_config(path) -> RouteRegistry:
    """Load the route registry from a JSON file."""
    config_path = Path(path)
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise RouteConfigError(f"Route configuration not found: {config_path}") from e
    except json.JSONDecodeError as e:
        raise RouteConfigError(f"Route configuration is not valid JSON ({config_path}): {e}") from e
    return RouteRegistry.from_mapping(data)
