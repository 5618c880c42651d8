"""
Helpers for defaulting and writing nested JSON objects by dotted key.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable


def with_defaults(document: dict[str, Any], dotted_keys: Iterable[str]) -> dict[str, Any]:
    """
    Return a deep copy of `document` where every dotted key exists as an object.

    Missing (or non-object) intermediate values are replaced with empty dicts;
    everything else is preserved. The input is never mutated.
    """
    result = copy.deepcopy(document) if isinstance(document, dict) else {}
    for dotted_key in dotted_keys:
        cur = result
        for part in dotted_key.split("."):
            if not isinstance(cur.get(part), dict):
                cur[part] = {}
            cur = cur[part]
    return result


def set_nested(d: dict[str, Any], dotted_key: str, value: Any) -> None:
    """Set a value under a dotted key whose parents already exist as objects."""
    *parents, leaf = dotted_key.split(".")
    cur = d
    for part in parents:
        cur = cur[part]
    cur[leaf] = value
