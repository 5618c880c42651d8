"""
Streaming HTML rewriting for SEO metadata injection.

The rewriter is fed decoded text incrementally and returns rewritten text as
soon as each construct is complete. Markup that no rule touches is copied from
the raw input spans, so it comes out byte-for-byte as it went in.
"""

from __future__ import annotations

import codecs
import html as _html_module
import logging
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Iterable, Iterator, Optional, Protocol

from .metadata import MetadataRecord

logger = logging.getLogger(__name__)


def encodable_text(text: str, encoding: Optional[str]) -> str:
    """Replace characters `encoding` cannot represent with numeric character references."""
    if encoding is None:
        return text
    out = []
    for ch in text:
        try:
            ch.encode(encoding, errors="surrogateescape")
        except UnicodeEncodeError:
            ch = f"&#{ord(ch)};"
        out.append(ch)
    return "".join(out)


@dataclass(frozen=True)
class MetaRule:
    """`<meta {selector_attribute}="{selector_value}">` gets `{target_attribute}` = metadata.{field}."""

    selector_attribute: str
    selector_value: str
    target_attribute: str
    field: str


META_RULES: tuple[MetaRule, ...] = (
    MetaRule("name", "title", "content", "title"),
    MetaRule("name", "description", "content", "description"),
    MetaRule("name", "image", "content", "image"),
    MetaRule("name", "keywords", "content", "keywords"),
    MetaRule("name", "twitter:title", "content", "title"),
    MetaRule("name", "twitter:description", "content", "description"),
    MetaRule("itemprop", "name", "content", "title"),
    MetaRule("itemprop", "description", "content", "description"),
    MetaRule("itemprop", "image", "content", "image"),
    MetaRule("property", "og:title", "content", "title"),
    MetaRule("property", "og:description", "content", "description"),
    MetaRule("property", "og:image", "content", "image"),
)

# <meta> elements dropped whenever all attributes match.
META_REMOVALS: tuple[dict[str, str], ...] = (
    {"name": "robots", "content": "noindex"},
)


class StreamedElement:
    """A start tag seen by the rewriter, with the edits a transform may request."""

    def __init__(self, tag: str, attrs: list[tuple[str, Optional[str]]], self_closing: bool = False):
        self.tag = tag
        self.attrs = list(attrs)
        self.self_closing = self_closing
        self.removed = False
        self.modified = False
        self.inner_content: Optional[str] = None

    def get_attribute(self, name: str) -> Optional[str]:
        for attr_name, value in self.attrs:
            if attr_name == name:
                return value
        return None

    def set_attribute(self, name: str, value: str) -> None:
        for index, (attr_name, current) in enumerate(self.attrs):
            if attr_name == name:
                if current != value:
                    self.attrs[index] = (name, value)
                    self.modified = True
                return
        self.attrs.append((name, value))
        self.modified = True

    def set_inner_content(self, text: str) -> None:
        self.inner_content = text

    def remove(self) -> None:
        self.removed = True

    def render_start_tag(self, encoding: Optional[str] = None) -> str:
        parts = []
        for name, value in self.attrs:
            if value is None:
                parts.append(f" {name}")
            else:
                escaped = encodable_text(_html_module.escape(value, quote=True), encoding)
                parts.append(f' {name}="{escaped}"')
        closing = " />" if self.self_closing else ">"
        return f"<{self.tag}{''.join(parts)}{closing}"


class ElementTransform(Protocol):
    """Anything that can transform a streamed element in place."""

    def element(self, element: StreamedElement) -> None:
        ...


class MetadataElementTransform:
    """Applies a MetadataRecord to `<title>` and `<meta>` elements."""

    def __init__(self, metadata: MetadataRecord, rules: Iterable[MetaRule] = META_RULES,
                 removals: Iterable[dict[str, str]] = META_REMOVALS):
        self.metadata = metadata
        self.rules = tuple(rules)
        self.removals = tuple(removals)

    def element(self, element: StreamedElement) -> None:
        if element.tag == "title":
            if self.metadata.title is not None and not element.self_closing:
                element.set_inner_content(self.metadata.title)
            return

        if element.tag != "meta":
            return

        for rule in self.rules:
            if element.get_attribute(rule.selector_attribute) != rule.selector_value:
                continue
            value = getattr(self.metadata, rule.field)
            if value is not None:
                element.set_attribute(rule.target_attribute, value)

        for removal in self.removals:
            if all(element.get_attribute(name) == value for name, value in removal.items()):
                logger.debug("Removing %s meta tag", removal)
                element.remove()
                break


class StreamingHTMLRewriter(HTMLParser):
    """
    Incremental HTML rewriter driven by an ElementTransform.

    `feed()` and `close()` return the output produced so far. Every consumed
    span of input passes through `updatepos()` exactly once and in order, which
    is where the raw text (or its replacement) is written out.
    """

    def __init__(self, transform: ElementTransform, encoding: Optional[str] = None):
        super().__init__(convert_charrefs=False)
        self._transform = transform
        self._encoding = encoding
        self._out: list[str] = []
        self._replacement: Optional[str] = None
        self._suppress_until: Optional[str] = None

    def feed(self, data: str) -> str:
        super().feed(data)
        return self._drain()

    def close(self) -> str:
        super().close()
        return self._drain()

    def _drain(self) -> str:
        result = "".join(self._out)
        self._out.clear()
        return result

    def updatepos(self, i, j):
        if i < j:
            if self._replacement is not None:
                self._out.append(self._replacement)
                self._replacement = None
            elif self._suppress_until is None:
                self._out.append(self.rawdata[i:j])
        return super().updatepos(i, j)

    def _start(self, tag, attrs, self_closing):
        if self._suppress_until is not None:
            return
        element = StreamedElement(tag, attrs, self_closing=self_closing)
        self._transform.element(element)

        if element.removed:
            self._replacement = ""
            return

        start_tag = element.render_start_tag(self._encoding) if element.modified else self.get_starttag_text()
        if element.inner_content is not None:
            inner = _html_module.escape(element.inner_content, quote=False)
            self._replacement = start_tag + encodable_text(inner, self._encoding)
            self._suppress_until = tag
        elif element.modified:
            self._replacement = start_tag

    def handle_starttag(self, tag, attrs):
        self._start(tag, attrs, self_closing=False)

    def handle_startendtag(self, tag, attrs):
        self._start(tag, attrs, self_closing=True)

    def handle_endtag(self, tag):
        if self._suppress_until == tag:
            self._suppress_until = None


def rewrite_html_stream(chunks: Iterable[bytes], metadata: MetadataRecord,
                        encoding: Optional[str] = None) -> Iterator[bytes]:
    """
    Stream `chunks` of an HTML body through the metadata transform.

    Bytes that do not decode in `encoding` are carried through unchanged;
    inserted metadata the charset cannot hold becomes character references.
    """
    encoding = encoding or "utf-8"
    try:
        codecs.lookup(encoding)
    except LookupError:
        logger.warning("Unknown HTML charset %r, using utf-8", encoding)
        encoding = "utf-8"

    decoder = codecs.getincrementaldecoder(encoding)(errors="surrogateescape")
    rewriter = StreamingHTMLRewriter(MetadataElementTransform(metadata), encoding)

    for chunk in chunks:
        if not chunk:
            continue
        text = rewriter.feed(decoder.decode(chunk))
        if text:
            yield text.encode(encoding, errors="surrogateescape")

    text = rewriter.feed(decoder.decode(b"", final=True)) + rewriter.close()
    if text:
        yield text.encode(encoding, errors="surrogateescape")
