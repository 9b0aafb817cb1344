"""Candidate link extraction from a PageSnapshot.

Two passes feed one ordered, deduplicated set:

1. the DOM pass (anchors read from the live page, or parsed from static HTML);
2. a raw-HTML scan for ``href="..."`` occurrences, which catches links that
   sit in markup but are not live anchors (templates, disabled fragments,
   ``<link>`` tags).

Identity is the normalized absolute URL; the first occurrence wins.
"""

from __future__ import annotations

import html as html_lib
import logging
import re
from typing import Dict, Iterable, List, Optional

from .checker_utils import absolutize, normalize_url
from .models import DiscoverySource, Link, PageSnapshot, RawLink

logger = logging.getLogger(__name__)

HREF_PATTERN = re.compile(r"""\bhref\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE)


def _source_for(raw: RawLink) -> DiscoverySource:
    return DiscoverySource.DOM if raw.via == "href" else DiscoverySource.ATTRIBUTE_SCAN


def scan_raw_hrefs(html: str) -> List[str]:
    """Return every quoted ``href`` value in *html*, entity-decoded, in order."""

    values: List[str] = []
    for match in HREF_PATTERN.finditer(html or ""):
        value = match.group(1) if match.group(1) is not None else match.group(2)
        values.append(html_lib.unescape(value or "").strip())
    return values


class LinkExtractor:
    """Derive the deduplicated absolute link set of a snapshot."""

    def __init__(self, *, scan_raw_html: bool = True) -> None:
        self.scan_raw_html = scan_raw_html

    def extract(self, snapshot: PageSnapshot) -> List[Link]:
        base_url = snapshot.base_url
        seen: Dict[str, Link] = {}

        def _add(href: str, source: DiscoverySource, text: str = "", rel: Optional[str] = None) -> None:
            absolute = absolutize(href, base_url)
            if absolute is None:
                return
            key = normalize_url(absolute)
            if key in seen:
                return
            seen[key] = Link(href=key, text=text, rel=rel, source=source)

        for raw in snapshot.links:
            _add(raw.href, _source_for(raw), raw.text, raw.rel)
        dom_count = len(seen)

        if self.scan_raw_html:
            for href in scan_raw_hrefs(snapshot.html):
                _add(href, DiscoverySource.REGEX)

        logger.debug(
            "extracted %d links from %s (%d dom, %d raw-html)",
            len(seen),
            snapshot.url,
            dom_count,
            len(seen) - dom_count,
        )
        return list(seen.values())


def extract_links(snapshot: PageSnapshot, *, scan_raw_html: bool = True) -> List[Link]:
    return LinkExtractor(scan_raw_html=scan_raw_html).extract(snapshot)


def link_urls(links: Iterable[Link]) -> List[str]:
    return [link.href for link in links]


__all__ = ["HREF_PATTERN", "LinkExtractor", "extract_links", "scan_raw_hrefs", "link_urls"]
