"""Page snapshot capture: one browser load, one immutable PageSnapshot."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup  # type: ignore
from urllib.parse import urljoin

from .browser import BrowserLauncher, describe_browser_error, open_session
from .checker_config import (
    FONT_SIZE_MIN_PX,
    PAGE_TIMEOUT,
    PAGE_VIEWPORT,
    PAGE_WAIT_UNTIL,
    TAP_TARGET_MIN_PX,
)
from .checker_utils import validate_url
from .errors import BrowserUnavailableError, NavigationError
from .models import ImageInfo, PageSnapshot, RawLink

logger = logging.getLogger(__name__)

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
HEAD_LINK_RELS = (
    "canonical",
    "icon",
    "shortcut icon",
    "apple-touch-icon",
    "apple-touch-icon-precomposed",
)

# Evaluated in the page. Reads live anchors (resolved hrefs, with fallback
# attributes for framework markup) and measures layout facts that only a
# rendering engine knows.
DOM_EXTRACT_SCRIPT = """
(opts) => {
  const isPlaceholder = (raw) => {
    const v = (raw || '').trim().toLowerCase();
    return !v || v.startsWith('#') || v.startsWith('javascript:');
  };
  const resolve = (value) => {
    try { return new URL(value, document.baseURI).href; } catch (e) { return ''; }
  };
  const links = Array.from(document.querySelectorAll('a')).map(a => {
    let href = '';
    let via = 'href';
    const raw = a.getAttribute('href');
    if (!isPlaceholder(raw)) {
      href = a.href || '';
    } else {
      if (a.dataset && a.dataset.href) {
        href = resolve(a.dataset.href);
        via = 'data-href';
      }
      if (!href) {
        const label = a.getAttribute('aria-label') || '';
        if (label.startsWith('http')) {
          href = label;
          via = 'aria-label';
        }
      }
      if (!href) {
        for (const attr of Array.from(a.attributes)) {
          if (attr.value && attr.value.startsWith('http')) {
            href = attr.value;
            via = 'attribute';
            break;
          }
        }
      }
      if (!href && raw && raw.trim().toLowerCase().startsWith('javascript:')) {
        href = raw.trim();
      }
    }
    return {
      href: href,
      text: (a.textContent || '').trim(),
      rel: a.getAttribute('rel'),
      via: via
    };
  });

  const visible = (el) => {
    const style = window.getComputedStyle(el);
    return style.display !== 'none' && style.visibility !== 'hidden';
  };
  const interactive = Array.from(
    document.querySelectorAll('a, button, input, select, textarea, [role="button"]')
  );
  const smallTargets = interactive.filter(el => {
    const rect = el.getBoundingClientRect();
    return (rect.width < opts.minTapSize || rect.height < opts.minTapSize) &&
      !(rect.width === 0 && rect.height === 0) && visible(el);
  }).length;
  const textElements = Array.from(document.querySelectorAll(
    'p, span, h1, h2, h3, h4, h5, h6, li, td, th, a, button, label'
  ));
  const smallFonts = textElements.filter(el => {
    const size = parseInt(window.getComputedStyle(el).fontSize, 10);
    return size < opts.minFontSize && visible(el) && (el.textContent || '').trim() !== '';
  }).length;
  let mediaQueries = false;
  try {
    for (const sheet of Array.from(document.styleSheets)) {
      if (sheet.href && !sheet.href.startsWith(window.location.origin)) continue;
      for (const rule of Array.from(sheet.cssRules || [])) {
        const condition = rule.conditionText || (rule.media && rule.media.mediaText) || '';
        if (rule.type === CSSRule.MEDIA_RULE && /(max|min)-width/.test(condition)) {
          mediaQueries = true;
          break;
        }
      }
      if (mediaQueries) break;
    }
  } catch (e) {
    mediaQueries = null;
  }
  return {
    links: links,
    layout: {
      tap_targets: {total: interactive.length, small: smallTargets},
      font_sizes: {total: textElements.length, small: smallFonts},
      media_queries: mediaQueries
    }
  };
}
"""


def _utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _int_attr(value: Any) -> int:
    try:
        return int(str(value).strip().rstrip("px"))
    except (TypeError, ValueError):
        return 0


def _rel_value(tag: Any) -> str:
    rel = tag.get("rel")
    if isinstance(rel, (list, tuple)):
        return " ".join(str(token) for token in rel).strip().lower()
    return str(rel or "").strip().lower()


def parse_headers(soup: BeautifulSoup) -> Dict[str, List[str]]:
    headers: Dict[str, List[str]] = {}
    for tag in soup.find_all(list(HEADING_TAGS)):
        headers.setdefault(tag.name, []).append(tag.get_text(" ", strip=True))
    return headers


def parse_meta(soup: BeautifulSoup) -> Dict[str, str]:
    meta: Dict[str, str] = {}
    for tag in soup.find_all("meta"):
        name = tag.get("name") or tag.get("property")
        content = tag.get("content")
        if name and content:
            meta[str(name)] = str(content)
    return meta


def parse_images(soup: BeautifulSoup, base_url: str) -> List[ImageInfo]:
    images: List[ImageInfo] = []
    for img in soup.find_all("img"):
        src = (img.get("src") or "").strip()
        parent = img.parent
        images.append(
            ImageInfo(
                src=urljoin(base_url, src) if src else "",
                alt=img.get("alt") or "",
                width=_int_attr(img.get("width")),
                height=_int_attr(img.get("height")),
                loading=img.get("loading"),
                srcset=img.get("srcset"),
                sizes=img.get("sizes"),
                lazy_hint=bool(img.get("data-src") or img.get("data-lazy-src")),
                in_picture=bool(parent is not None and parent.name == "picture"),
            )
        )
    return images


def parse_head_links(soup: BeautifulSoup, base_url: str) -> Dict[str, str]:
    found: Dict[str, str] = {}
    for tag in soup.find_all("link"):
        rel = _rel_value(tag)
        href = (tag.get("href") or "").strip()
        if rel in HEAD_LINK_RELS and href and rel not in found:
            found[rel] = urljoin(base_url, href)
    return found


def parse_anchors(soup: BeautifulSoup) -> List[RawLink]:
    """Static counterpart of the in-page anchor read (same fallback order)."""

    anchors: List[RawLink] = []
    for a in soup.find_all("a"):
        raw = (a.get("href") or "").strip()
        rel = _rel_value(a) or None
        text = a.get_text().strip()
        lowered = raw.lower()
        if raw and not raw.startswith("#") and not lowered.startswith("javascript:"):
            anchors.append(RawLink(href=raw, text=text, rel=rel, via="href"))
            continue
        href = ""
        via = "href"
        if a.get("data-href"):
            href, via = str(a.get("data-href")).strip(), "data-href"
        if not href:
            label = str(a.get("aria-label") or "")
            if label.startswith("http"):
                href, via = label, "aria-label"
        if not href:
            for value in a.attrs.values():
                if isinstance(value, str) and value.startswith("http"):
                    href, via = value, "attribute"
                    break
        if not href and lowered.startswith("javascript:"):
            href = raw
        anchors.append(RawLink(href=href, text=text, rel=rel, via=via))
    return anchors


def _soup_title(soup: BeautifulSoup) -> str:
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return ""


def build_snapshot(
    url: str,
    html: str,
    *,
    title: Optional[str] = None,
    links: Optional[Sequence[RawLink]] = None,
    layout: Optional[Dict[str, Any]] = None,
    final_url: Optional[str] = None,
    fetched_at: Optional[str] = None,
) -> PageSnapshot:
    """Assemble a PageSnapshot; anything not supplied is parsed from *html*."""

    base_url = final_url or url
    soup = BeautifulSoup(html or "", "lxml")
    return PageSnapshot(
        url=url,
        html=html or "",
        title=title if title is not None else _soup_title(soup),
        headers=parse_headers(soup),
        meta=parse_meta(soup),
        links=tuple(links) if links is not None else tuple(parse_anchors(soup)),
        images=tuple(parse_images(soup, base_url)),
        head_links=parse_head_links(soup, base_url),
        layout=layout or {},
        final_url=base_url,
        fetched_at=fetched_at or _utc_now(),
    )


def snapshot_from_html(url: str, html: str, *, title: Optional[str] = None) -> PageSnapshot:
    """Build a snapshot from static HTML without a browser (no layout facts)."""

    return build_snapshot(validate_url(url), html, title=title)


def _raw_links(payload: Iterable[Any]) -> List[RawLink]:
    return [RawLink.from_dict(item) for item in payload or [] if isinstance(item, dict)]


class PageFetcher:
    """Load a page in a browser session and capture a PageSnapshot."""

    def __init__(
        self,
        launcher: BrowserLauncher,
        *,
        timeout: float = PAGE_TIMEOUT,
        wait_until: str = PAGE_WAIT_UNTIL,
        viewport: Optional[Dict[str, int]] = None,
    ) -> None:
        self.launcher = launcher
        self.timeout = timeout
        self.wait_until = wait_until
        self.viewport = viewport or dict(PAGE_VIEWPORT)

    async def fetch(self, url: str) -> PageSnapshot:
        url = validate_url(url)
        try:
            async with open_session(self.launcher, viewport=self.viewport) as session:
                try:
                    response = await session.navigate(url, wait_until=self.wait_until, timeout=self.timeout)
                except Exception as exc:
                    raise NavigationError(url, describe_browser_error(exc)) from exc
                final_url = response.url if response is not None and response.url else url
                if response is not None and response.status >= 400:
                    logger.warning("page %s answered HTTP %s", url, response.status)
                try:
                    html = await session.content()
                    title = await session.title()
                    dom = await session.evaluate(
                        DOM_EXTRACT_SCRIPT,
                        {"minTapSize": TAP_TARGET_MIN_PX, "minFontSize": FONT_SIZE_MIN_PX},
                    )
                except Exception as exc:
                    raise NavigationError(url, describe_browser_error(exc)) from exc
        except BrowserUnavailableError as exc:
            raise NavigationError(url, str(exc)) from exc

        dom = dom if isinstance(dom, dict) else {}
        links = _raw_links(dom.get("links") or [])
        logger.debug("captured %s: %d anchors, %d bytes html", url, len(links), len(html or ""))
        return build_snapshot(
            url,
            html,
            title=title,
            links=links,
            layout=dom.get("layout") or {},
            final_url=final_url,
        )


__all__ = [
    "DOM_EXTRACT_SCRIPT",
    "PageFetcher",
    "build_snapshot",
    "snapshot_from_html",
    "parse_anchors",
    "parse_headers",
    "parse_meta",
    "parse_images",
    "parse_head_links",
]
