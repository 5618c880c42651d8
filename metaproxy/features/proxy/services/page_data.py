"""
Page-data (client application JSON) augmentation with SEO metadata.
"""

from __future__ import annotations

import re
from typing import Any

from metaproxy.utils.nested import set_nested, with_defaults

from .metadata import MetadataRecord

PAGE_DATA_PATTERN = re.compile(
    r"/public/data/[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}\.json"
)

LOCALE = "en"

# Objects that must exist before any locale value is written.
PAGE_OBJECTS = (
    "page.title",
    "page.meta.desc",
    "page.meta.keywords",
    "page.socialTitle",
    "page.socialDesc",
)

# metadata field -> dotted targets
PAGE_TARGETS = {
    "title": (f"page.title.{LOCALE}", f"page.socialTitle.{LOCALE}"),
    "description": (f"page.meta.desc.{LOCALE}", f"page.socialDesc.{LOCALE}"),
    "image": ("page.metaImage",),
    "keywords": (f"page.meta.keywords.{LOCALE}",),
}


def is_page_data_path(path: str) -> bool:
    """Return True for `/public/data/<uuid>.json` page-data documents."""
    return PAGE_DATA_PATTERN.search(path) is not None


def merge_page_data(document: dict[str, Any], metadata: MetadataRecord) -> dict[str, Any]:
    """Return a new document with the metadata written into its `page` locale maps."""
    merged = with_defaults(document, PAGE_OBJECTS)
    for field, targets in PAGE_TARGETS.items():
        value = getattr(metadata, field)
        if value is None:
            continue
        for target in targets:
            set_nested(merged, target, value)
    return merged
