"""Rule catalog: SEO, branding, image, link, mobile and security checks.

Every rule reads the PageSnapshot and produces CheckResult records. Rules
never raise on missing page features; absence is itself a fail or warning.
Only ``securityChecks`` touches the network (auxiliary origin probes), and
``linkChecker`` runs the full link verification pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

import aiohttp
from bs4 import BeautifulSoup  # type: ignore

from ..core.keys import STATUS_FAIL, STATUS_PASS, STATUS_WARNING
from .browser import BrowserLauncher
from .checker_config import (
    ALT_TEXT_WARN_PCT,
    AUX_PROBE_TIMEOUT,
    FONT_SIZE_MIN_PX,
    LAZY_LOAD_PASS_PCT,
    LAZY_LOAD_WARN_PCT,
    META_DESCRIPTION_LENGTH,
    NOFOLLOW_TOKENS,
    OPEN_GRAPH_TAGS,
    RESPONSIVE_IMAGES_PASS_PCT,
    SMALL_ELEMENT_PASS_PCT,
    SMALL_ELEMENT_WARN_PCT,
    TAP_TARGET_MIN_PX,
    TITLE_LENGTH,
    TWITTER_CARD_TAGS,
)
from .checker_utils import absolutize, origin_of, percent, same_site
from .link_batch import BatchScheduler, ProgressHook
from .link_extract import LinkExtractor
from .link_report import aggregate, to_check_results
from .link_resolve import LinkCheckConfig, LinkResolver
from .models import CheckResult, PageSnapshot

logger = logging.getLogger(__name__)

TAILWIND_CLASS_PATTERNS = tuple(
    re.compile(p)
    for p in (r"\bsm:", r"\bmd:", r"\blg:", r"\bxl:", r"\b2xl:", r"\bhover:", r"\bfocus:", r"\bactive:", r"\bdark:")
)
MEDIA_WIDTH_PATTERN = re.compile(r"@media[^{]*\((?:max|min)-width", re.IGNORECASE)
SITEMAP_PATTERN = re.compile(r"^Sitemap:\s*(.+)$", re.IGNORECASE | re.MULTILINE)


@dataclass
class RuleContext:
    """Collaborators a rule module may need beyond the snapshot."""

    link_config: Optional[LinkCheckConfig] = None
    launcher: Optional[BrowserLauncher] = None
    probe_timeout: float = AUX_PROBE_TIMEOUT
    progress_hook: Optional[ProgressHook] = None


RuleModule = Callable[[PageSnapshot, RuleContext], Awaitable[List[CheckResult]]]


def _result(test: str, status: str, message: str, **details: Any) -> CheckResult:
    return CheckResult(test=test, status=status, message=message, details=dict(details))


def _graded(value: int, pass_at: int, warn_at: int) -> str:
    """Higher is better: pass at >= pass_at, warning at >= warn_at."""
    if value >= pass_at:
        return STATUS_PASS
    if value >= warn_at:
        return STATUS_WARNING
    return STATUS_FAIL


def _graded_small(value: int) -> str:
    """Lower is better (share of too-small elements)."""
    if value <= SMALL_ELEMENT_PASS_PCT:
        return STATUS_PASS
    if value <= SMALL_ELEMENT_WARN_PCT:
        return STATUS_WARNING
    return STATUS_FAIL


# --------------------------------------------------------------------------- basicSeo


def _length_check(
    test: str,
    label: str,
    value: Optional[str],
    bounds: Tuple[int, int],
    detail_key: str,
) -> CheckResult:
    low, high = bounds
    length = len(value or "")
    if not value:
        return _result(test, STATUS_FAIL, f"No {label} found", **{detail_key: value, "length": 0})
    if length < low:
        message = f"{label.capitalize()} is too short ({length} chars). Recommended: {low}-{high} chars."
        return _result(test, STATUS_WARNING, message, **{detail_key: value, "length": length})
    if length > high:
        message = f"{label.capitalize()} is too long ({length} chars). Recommended: {low}-{high} chars."
        return _result(test, STATUS_WARNING, message, **{detail_key: value, "length": length})
    message = f"{label.capitalize()} has good length ({length} chars)"
    return _result(test, STATUS_PASS, message, **{detail_key: value, "length": length})


def basic_seo(snapshot: PageSnapshot) -> List[CheckResult]:
    results = [
        _length_check("Title Tag", "title tag", snapshot.title, TITLE_LENGTH, "title"),
        _length_check(
            "Meta Description",
            "meta description",
            snapshot.meta.get("description"),
            META_DESCRIPTION_LENGTH,
            "description",
        ),
    ]

    h1 = list(snapshot.headers.get("h1", ()))
    if not h1:
        results.append(_result("H1 Tag", STATUS_FAIL, "No H1 tag found", count=0, values=[]))
    elif len(h1) > 1:
        message = f"Multiple H1 tags found ({len(h1)}). Recommended: only one H1 per page."
        results.append(_result("H1 Tag", STATUS_WARNING, message, count=len(h1), values=h1))
    else:
        results.append(_result("H1 Tag", STATUS_PASS, "One H1 tag found (recommended)", count=1, values=h1))

    structure = [
        {"tag": tag, "count": len(values), "values": list(values)} for tag, values in snapshot.headers.items()
    ]
    total_headers = sum(item["count"] for item in structure)
    if structure:
        results.append(_result("Header Structure", STATUS_PASS, f"Found {total_headers} header tags", structure=structure))
    else:
        results.append(_result("Header Structure", STATUS_FAIL, "No header tags (h1-h6) found", structure=[]))

    canonical = snapshot.head_links.get("canonical")
    if canonical:
        results.append(_result("Canonical Tag", STATUS_PASS, f"Canonical tag found: {canonical}", url=canonical))
    else:
        message = "No canonical tag found. This may lead to duplicate content issues."
        results.append(_result("Canonical Tag", STATUS_WARNING, message, url=None))
    return results


# --------------------------------------------------------------------------- brandingAndSocialSharing


def _first_head_link(snapshot: PageSnapshot, rels: Sequence[str]) -> Optional[str]:
    for rel in rels:
        href = snapshot.head_links.get(rel)
        if href:
            return href
    return None


def _tag_set_check(test: str, label: str, snapshot: PageSnapshot, required: Sequence[str]) -> CheckResult:
    values = {tag: snapshot.meta.get(tag) or None for tag in required}
    present = [tag for tag in required if values[tag]]
    missing = [tag for tag in required if not values[tag]]
    if not missing:
        status, message = STATUS_PASS, f"All required {label} tags are present"
    else:
        status = STATUS_WARNING if len(missing) < len(required) / 2 else STATUS_FAIL
        message = f"Missing {len(missing)} {label} tags: {', '.join(missing)}"
    return _result(test, status, message, present=present, missing=missing, values=values)


def branding_and_social_sharing(snapshot: PageSnapshot) -> List[CheckResult]:
    results: List[CheckResult] = []

    favicon = _first_head_link(snapshot, ("icon", "shortcut icon"))
    if favicon:
        results.append(_result("Favicon", STATUS_PASS, "Favicon found", url=favicon))
    else:
        results.append(_result("Favicon", STATUS_FAIL, "No favicon found"))

    touch_icon = _first_head_link(snapshot, ("apple-touch-icon", "apple-touch-icon-precomposed"))
    if touch_icon:
        results.append(_result("Apple Touch Icon", STATUS_PASS, "Apple Touch Icon found", url=touch_icon))
    else:
        results.append(_result("Apple Touch Icon", STATUS_WARNING, "No Apple Touch Icon found for iOS devices"))

    results.append(_tag_set_check("Open Graph Tags", "Open Graph", snapshot, OPEN_GRAPH_TAGS))
    results.append(_tag_set_check("Twitter Card Tags", "Twitter Card", snapshot, TWITTER_CARD_TAGS))
    return results


# --------------------------------------------------------------------------- imageOptimization


def image_optimization(snapshot: PageSnapshot) -> List[CheckResult]:
    images = list(snapshot.images)
    total = len(images)
    if total == 0:
        return [_result("Image Presence", STATUS_WARNING, "No images found on the page", count=0)]

    with_alt = [img for img in images if img.alt.strip()]
    without_alt = [img for img in images if not img.alt.strip()]
    alt_pct = percent(len(with_alt), total)
    if alt_pct == 100:
        alt_status, alt_message = STATUS_PASS, "All images have alt text (excellent)"
    else:
        alt_status = STATUS_WARNING if alt_pct >= ALT_TEXT_WARN_PCT else STATUS_FAIL
        alt_message = f"{alt_pct}% of images have alt text ({len(with_alt)}/{total})"

    lazy = sum(1 for img in images if img.is_lazy)
    lazy_pct = percent(lazy, total)
    if lazy_pct >= LAZY_LOAD_PASS_PCT:
        lazy_message = f"{lazy_pct}% of images use lazy loading (good)"
    else:
        lazy_message = f"Only {lazy_pct}% of images use lazy loading"

    responsive = sum(1 for img in images if img.is_responsive)
    responsive_pct = percent(responsive, total)
    if responsive_pct >= RESPONSIVE_IMAGES_PASS_PCT:
        responsive_message = f"{responsive_pct}% of images use responsive techniques (good)"
    else:
        responsive_message = f"Only {responsive_pct}% of images use responsive techniques"

    return [
        _result(
            "Image Alt Text",
            alt_status,
            alt_message,
            total=total,
            withAlt=len(with_alt),
            withoutAlt=len(without_alt),
            percentage=alt_pct,
            missingAltUrls=[img.src for img in without_alt],
        ),
        _result(
            "Image Lazy Loading",
            _graded(lazy_pct, LAZY_LOAD_PASS_PCT, LAZY_LOAD_WARN_PCT),
            lazy_message,
            total=total,
            lazyLoaded=lazy,
            percentage=lazy_pct,
        ),
        _result(
            "Responsive Images",
            _graded(responsive_pct, RESPONSIVE_IMAGES_PASS_PCT, 1),
            responsive_message,
            total=total,
            responsive=responsive,
            percentage=responsive_pct,
        ),
    ]


# --------------------------------------------------------------------------- linkAnalysis


def _is_nofollow(rel: Optional[str]) -> bool:
    value = (rel or "").lower()
    return any(token in value for token in NOFOLLOW_TOKENS)


def link_analysis(snapshot: PageSnapshot) -> List[CheckResult]:
    entries: List[Dict[str, Any]] = []
    for raw in snapshot.links:
        absolute = absolutize(raw.href, snapshot.base_url)
        if absolute is None:
            continue
        entries.append(
            {
                "url": absolute,
                "text": raw.text,
                "rel": raw.rel or "",
                "internal": same_site(absolute, snapshot.base_url),
            }
        )

    internal = [e for e in entries if e["internal"]]
    external = [e for e in entries if not e["internal"]]
    nofollow = [e for e in entries if _is_nofollow(e["rel"])]
    dofollow = [e for e in entries if not _is_nofollow(e["rel"])]
    nofollow_external = [e for e in external if _is_nofollow(e["rel"])]
    dofollow_external = [e for e in external if not _is_nofollow(e["rel"])]

    if dofollow_external:
        external_status = STATUS_WARNING
        external_message = (
            f"{len(dofollow_external)} external links are dofollow. "
            'Consider adding rel="nofollow" to external links.'
        )
    else:
        external_status = STATUS_PASS
        external_message = "All external links have appropriate rel attributes."

    return [
        _result(
            "Link Count",
            STATUS_PASS,
            f"Found {len(entries)} links: {len(internal)} internal, {len(external)} external",
            total=len(entries),
            internal=len(internal),
            external=len(external),
        ),
        _result(
            "Dofollow/Nofollow Analysis",
            STATUS_PASS,
            f"{len(dofollow)} dofollow links, {len(nofollow)} nofollow links",
            dofollow={
                "total": len(dofollow),
                "internal": sum(1 for e in dofollow if e["internal"]),
                "external": len(dofollow_external),
            },
            nofollow={
                "total": len(nofollow),
                "internal": sum(1 for e in nofollow if e["internal"]),
                "external": len(nofollow_external),
            },
        ),
        _result(
            "External Link Analysis",
            external_status,
            external_message,
            externalDofollow=len(dofollow_external),
            externalNofollow=len(nofollow_external),
        ),
        _result(
            "Nofollow Links List",
            STATUS_PASS,
            f"{len(nofollow)} nofollow links found",
            nofollowLinks=[
                {"url": e["url"], "text": e["text"], "rel": e["rel"], "isExternal": not e["internal"]}
                for e in nofollow
            ],
        ),
    ]


# --------------------------------------------------------------------------- mobileResponsiveness


def _tailwind_signals(html: str) -> Tuple[bool, bool]:
    """Return (responsive classes seen, tailwind stylesheet/script referenced)."""

    soup = BeautifulSoup(html or "", "lxml")
    cdn = False
    for tag in soup.find_all(["link", "script"]):
        if tag.name == "link" and "stylesheet" not in (tag.get("rel") or []):
            continue
        ref = str(tag.get("href") or tag.get("src") or "")
        if "tailwind" in ref or "tw-" in ref:
            cdn = True
            break
    classes = False
    for tag in soup.find_all(class_=True):
        joined = " ".join(tag.get("class") or [])
        if any(pattern.search(joined) for pattern in TAILWIND_CLASS_PATTERNS):
            classes = True
            break
    return classes, cdn


def _inline_media_queries(html: str) -> Optional[bool]:
    soup = BeautifulSoup(html or "", "lxml")
    for style in soup.find_all("style"):
        if MEDIA_WIDTH_PATTERN.search(str(style.string or "")):
            return True
    return None


def _layout_counts(snapshot: PageSnapshot, key: str) -> Optional[Dict[str, int]]:
    block = snapshot.layout.get(key) if snapshot.has_layout else None
    if not isinstance(block, dict):
        return None
    total = int(block.get("total") or 0)
    small = int(block.get("small") or 0)
    return {"total": total, "small": small, "percentage": percent(small, total)}


def mobile_responsiveness(snapshot: PageSnapshot) -> List[CheckResult]:
    results: List[CheckResult] = []

    viewport = snapshot.meta.get("viewport")
    responsive_viewport = bool(viewport) and "width=device-width" in viewport and "initial-scale=1" in viewport
    if responsive_viewport:
        status, message = STATUS_PASS, "Proper responsive viewport meta tag found"
    elif viewport:
        status, message = STATUS_WARNING, "Viewport meta tag found but may not be properly configured for responsiveness"
    else:
        status, message = STATUS_FAIL, "No viewport meta tag found. This is essential for mobile responsiveness."
    results.append(
        _result("Viewport Meta Tag", status, message, exists=bool(viewport), value=viewport, isResponsive=responsive_viewport)
    )

    classes, cdn = _tailwind_signals(snapshot.html)
    if snapshot.has_layout and "media_queries" in snapshot.layout:
        media_queries = snapshot.layout.get("media_queries")
    else:
        media_queries = _inline_media_queries(snapshot.html)
    if media_queries is True or classes or cdn:
        status = STATUS_PASS
        message = "Responsive design techniques detected" + (" (including Tailwind CSS)" if classes else "")
    elif media_queries is None:
        status = STATUS_WARNING
        message = "Could not fully check for responsive design techniques (stylesheets not inspectable)"
    else:
        status = STATUS_FAIL
        message = "No responsive design techniques detected. These are important for mobile-friendly websites."
    results.append(
        _result(
            "Responsive Design Techniques",
            status,
            message,
            mediaQueries=media_queries,
            tailwindCSS={"detected": classes or cdn, "responsiveClasses": classes, "cdnOrImport": cdn},
        )
    )

    taps = _layout_counts(snapshot, "tap_targets")
    if taps is None:
        results.append(
            _result("Tap Target Size", STATUS_WARNING, "Tap target sizes need a rendered page to measure", minSize=TAP_TARGET_MIN_PX)
        )
    else:
        message = (
            "Most tap targets are appropriately sized for mobile users"
            if taps["percentage"] <= SMALL_ELEMENT_PASS_PCT
            else f"{taps['percentage']}% of tap targets may be too small for mobile users"
        )
        results.append(_result("Tap Target Size", _graded_small(taps["percentage"]), message, **taps))

    images = list(snapshot.images)
    responsive = sum(1 for img in images if img.is_responsive)
    responsive_pct = percent(responsive, len(images))
    if responsive_pct >= RESPONSIVE_IMAGES_PASS_PCT:
        message = f"{responsive_pct}% of images use responsive techniques"
    elif responsive_pct > 0:
        message = f"Only {responsive_pct}% of images use responsive techniques"
    else:
        message = "No responsive image techniques detected"
    results.append(
        _result(
            "Responsive Images",
            _graded(responsive_pct, RESPONSIVE_IMAGES_PASS_PCT, 1),
            message,
            total=len(images),
            responsive=responsive,
            percentage=responsive_pct,
        )
    )

    fonts = _layout_counts(snapshot, "font_sizes")
    if fonts is None:
        results.append(
            _result("Font Sizes", STATUS_WARNING, "Font sizes need a rendered page to measure", minSize=FONT_SIZE_MIN_PX)
        )
    else:
        message = (
            "Most text elements have appropriate font sizes for mobile users"
            if fonts["percentage"] <= SMALL_ELEMENT_PASS_PCT
            else f"{fonts['percentage']}% of text elements may have font sizes too small for mobile users"
        )
        results.append(_result("Font Sizes", _graded_small(fonts["percentage"]), message, **fonts))
    return results


# --------------------------------------------------------------------------- securityChecks


async def _probe(session: aiohttp.ClientSession, url: str, timeout: float) -> Tuple[Optional[int], str]:
    """GET *url*; (None, "") on any transport failure."""

    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout), allow_redirects=True) as resp:
            body = await resp.text(errors="replace")
            return resp.status, body
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
        logger.debug("probe %s failed: %s", url, exc)
        return None, ""


async def security_checks(snapshot: PageSnapshot, ctx: Optional[RuleContext] = None) -> List[CheckResult]:
    ctx = ctx or RuleContext()
    timeout = ctx.probe_timeout
    scheme = urlparse(snapshot.url).scheme.lower()
    origin = origin_of(snapshot.url)
    results: List[CheckResult] = []

    if scheme == "https":
        results.append(_result("HTTPS/SSL", STATUS_PASS, "Site loads securely via HTTPS", protocol="https:"))
    else:
        message = "Site is not using HTTPS. This is a security risk and may affect SEO rankings."
        results.append(_result("HTTPS/SSL", STATUS_FAIL, message, protocol=f"{scheme}:"))

    headers = ctx.link_config.headers() if ctx.link_config else None
    async with aiohttp.ClientSession(headers=headers) as session:
        robots_url = f"{origin}/robots.txt"
        robots_status, robots_body = await _probe(session, robots_url, timeout)
        robots_exists = robots_status == 200
        if robots_exists:
            results.append(
                _result("Robots.txt", STATUS_PASS, "Robots.txt file exists", url=robots_url, exists=True, content=robots_body)
            )
        else:
            message = "No robots.txt file found. This file helps control search engine crawling."
            results.append(_result("Robots.txt", STATUS_WARNING, message, url=robots_url, exists=False, content=None))

        sitemap_url: Optional[str] = None
        referenced = False
        if robots_exists and robots_body:
            match = SITEMAP_PATTERN.search(robots_body)
            if match and match.group(1).strip():
                sitemap_url = match.group(1).strip()
                referenced = True
        sitemap_url = sitemap_url or f"{origin}/sitemap.xml"
        sitemap_status, _ = await _probe(session, sitemap_url, timeout)
        if sitemap_status == 200:
            results.append(
                _result(
                    "XML Sitemap",
                    STATUS_PASS,
                    f"XML Sitemap exists at {sitemap_url}",
                    url=sitemap_url,
                    exists=True,
                    referencedInRobots=referenced,
                )
            )
        else:
            message = "No XML Sitemap found. A sitemap helps search engines discover and index your content."
            results.append(
                _result("XML Sitemap", STATUS_WARNING, message, url=sitemap_url, exists=False, referencedInRobots=referenced)
            )

        missing_url = f"{origin}/page-that-does-not-exist-{int(time.time() * 1000)}"
        missing_status, missing_body = await _probe(session, missing_url, timeout)
        detected = missing_status == 404 and bool(missing_body)
        if detected:
            results.append(_result("404 Page", STATUS_PASS, "Custom 404 page detected", testUrl=missing_url, detected=True))
        else:
            message = "Could not detect a custom 404 page. A custom error page improves user experience."
            results.append(_result("404 Page", STATUS_WARNING, message, testUrl=missing_url, detected=False))
    return results


# --------------------------------------------------------------------------- linkChecker


async def link_checker(snapshot: PageSnapshot, ctx: Optional[RuleContext] = None) -> List[CheckResult]:
    ctx = ctx or RuleContext()
    links = LinkExtractor().extract(snapshot)
    resolver = LinkResolver(ctx.link_config, launcher=ctx.launcher)
    results = await BatchScheduler(resolver).run_all(links, progress_hook=ctx.progress_hook)
    return to_check_results(aggregate(results))


# --------------------------------------------------------------------------- registry


def _snapshot_rule(fn: Callable[[PageSnapshot], List[CheckResult]]) -> RuleModule:
    async def run(snapshot: PageSnapshot, ctx: RuleContext) -> List[CheckResult]:
        return fn(snapshot)

    run.__name__ = fn.__name__
    run.__doc__ = fn.__doc__
    return run


RULE_MODULES: Dict[str, RuleModule] = {
    "basicSeo": _snapshot_rule(basic_seo),
    "brandingAndSocialSharing": _snapshot_rule(branding_and_social_sharing),
    "imageOptimization": _snapshot_rule(image_optimization),
    "linkAnalysis": _snapshot_rule(link_analysis),
    "linkChecker": link_checker,
    "mobileResponsiveness": _snapshot_rule(mobile_responsiveness),
    "securityChecks": security_checks,
}


def parse_module_names(value: Union[str, Iterable[str], None]) -> Union[str, List[str]]:
    """'all' stays 'all'; a comma string or iterable becomes a clean name list."""

    if value is None:
        return "all"
    if isinstance(value, str):
        if value.strip().lower() in {"", "all"}:
            return "all"
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


def load_modules(names: Union[str, Iterable[str], None] = "all") -> Dict[str, RuleModule]:
    """Resolve module names to rule modules, preserving the requested order."""

    wanted = parse_module_names(names)
    if wanted == "all":
        return dict(RULE_MODULES)
    selected: Dict[str, RuleModule] = {}
    for name in wanted:
        module = RULE_MODULES.get(name)
        if module is None:
            logger.warning("Module '%s' not found; skipping", name)
            continue
        selected[name] = module
    return selected


async def run_modules(
    snapshot: PageSnapshot,
    modules: Dict[str, RuleModule],
    ctx: Optional[RuleContext] = None,
) -> Dict[str, List[CheckResult]]:
    """Run modules sequentially in registry order."""

    ctx = ctx or RuleContext()
    results: Dict[str, List[CheckResult]] = {}
    for name, module in modules.items():
        logger.debug("running module %s", name)
        results[name] = await module(snapshot, ctx)
    return results


__all__ = [
    "RULE_MODULES",
    "RuleContext",
    "RuleModule",
    "basic_seo",
    "branding_and_social_sharing",
    "image_optimization",
    "link_analysis",
    "link_checker",
    "load_modules",
    "mobile_responsiveness",
    "parse_module_names",
    "run_modules",
    "security_checks",
]
