"""Data models for page snapshots, links, and check outcomes."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..core.keys import K_DETAILS, K_MESSAGE, K_NOT_WORKING, K_STATUS, K_TEST, K_WORKING


class DiscoverySource(str, Enum):
    DOM = "dom"
    REGEX = "regex"
    ATTRIBUTE_SCAN = "attribute-scan"


class LinkOutcome(str, Enum):
    WORKING = "working"
    BROKEN = "broken"


class ResolvedVia(str, Enum):
    FAST_CLIENT = "fast-client"
    BROWSER_FALLBACK = "browser-fallback"


@dataclass(frozen=True)
class RawLink:
    """One anchor as read from the DOM, before filtering and absolutization.

    ``via`` names the attribute the href came from: ``href`` for the anchor's
    own href, otherwise the fallback attribute that supplied it.
    """

    href: str
    text: str = ""
    rel: Optional[str] = None
    via: str = "href"

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RawLink":
        return cls(
            href=str(payload.get("href") or ""),
            text=str(payload.get("text") or ""),
            rel=payload.get("rel") or None,
            via=str(payload.get("via") or "href"),
        )


@dataclass(frozen=True)
class Link:
    """A deduplicated, absolute candidate link."""

    href: str
    text: str = ""
    rel: Optional[str] = None
    source: DiscoverySource = DiscoverySource.DOM


@dataclass(frozen=True)
class ImageInfo:
    src: str
    alt: str = ""
    width: int = 0
    height: int = 0
    loading: Optional[str] = None
    srcset: Optional[str] = None
    sizes: Optional[str] = None
    lazy_hint: bool = False
    in_picture: bool = False

    @property
    def is_lazy(self) -> bool:
        return (self.loading or "").lower() == "lazy" or self.lazy_hint

    @property
    def is_responsive(self) -> bool:
        return bool(self.srcset or self.sizes or self.in_picture)


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class PageSnapshot:
    """Immutable record of one page fetch.

    ``headers`` maps heading tag (``h1`` .. ``h6``) to texts in document order.
    ``meta`` maps a meta ``name``/``property`` to its content; on duplicate
    names the last tag wins. ``head_links`` maps a ``<link rel>`` value to its
    href. ``layout`` holds browser-measured facts and is empty for snapshots
    built from static HTML.
    """

    url: str
    html: str
    title: str = ""
    headers: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    meta: Mapping[str, str] = field(default_factory=dict)
    links: Tuple[RawLink, ...] = ()
    images: Tuple[ImageInfo, ...] = ()
    head_links: Mapping[str, str] = field(default_factory=dict)
    layout: Mapping[str, Any] = field(default_factory=dict)
    final_url: str = ""
    fetched_at: str = ""

    def __post_init__(self) -> None:
        headers = {tag: tuple(values) for tag, values in dict(self.headers or {}).items()}
        object.__setattr__(self, "headers", _freeze(headers))
        object.__setattr__(self, "meta", _freeze(self.meta))
        object.__setattr__(self, "head_links", _freeze(self.head_links))
        object.__setattr__(self, "layout", _freeze(self.layout))
        object.__setattr__(self, "links", tuple(self.links))
        object.__setattr__(self, "images", tuple(self.images))

    @property
    def base_url(self) -> str:
        """URL relative links resolve against (after redirects)."""
        return self.final_url or self.url

    @property
    def has_layout(self) -> bool:
        return bool(self.layout)


@dataclass
class LinkCheckResult:
    """Outcome of resolving one link.

    ``http_status`` is set whenever a request completed, including failure
    statuses. ``error`` is set if and only if the outcome is BROKEN.
    """

    url: str
    outcome: LinkOutcome
    resolved_via: ResolvedVia
    http_status: Optional[int] = None
    redirect_target: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def working(self) -> bool:
        return self.outcome is LinkOutcome.WORKING

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "url": self.url,
            "outcome": self.outcome.value,
            "working": self.working,
            "status": self.http_status,
            "redirect_url": self.redirect_target,
            "resolved_via": self.resolved_via.value,
        }
        if self.error:
            payload["error"] = self.error
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass
class LinkReport:
    """Working / not-working partition of a link check run."""

    working: List[LinkCheckResult] = field(default_factory=list)
    not_working: List[LinkCheckResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.working) + len(self.not_working)

    def to_dict(self) -> Dict[str, Any]:
        return {
            K_WORKING: [result.to_dict() for result in self.working],
            K_NOT_WORKING: [result.to_dict() for result in self.not_working],
        }


@dataclass
class CheckResult:
    """Generic pass/fail/warning record produced by rules and the link check."""

    test: str
    status: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            K_TEST: self.test,
            K_STATUS: self.status,
            K_MESSAGE: self.message,
            K_DETAILS: self.details,
        }


__all__ = [
    "DiscoverySource",
    "LinkOutcome",
    "ResolvedVia",
    "RawLink",
    "Link",
    "ImageInfo",
    "PageSnapshot",
    "LinkCheckResult",
    "LinkReport",
    "CheckResult",
]
