"""High-level exports for the pagehealth workflows."""

from .browser import BrowserLauncher, BrowserSession, NavigationResponse, PlaywrightLauncher
from .errors import (
    AmbiguousStatusError,
    BrowserUnavailableError,
    MalformedInputError,
    NavigationError,
    PageHealthError,
    TransportError,
)
from .link_batch import BatchScheduler
from .link_extract import LinkExtractor
from .link_report import aggregate, summarize, to_check_results
from .link_resolve import AmbiguousStatusPolicy, LinkCheckConfig, LinkResolver, load_link_check_config
from .models import (
    CheckResult,
    DiscoverySource,
    Link,
    LinkCheckResult,
    LinkOutcome,
    LinkReport,
    PageSnapshot,
    ResolvedVia,
)
from .page_fetch import PageFetcher, snapshot_from_html
from .rule_catalog import RULE_MODULES, load_modules

__all__ = [
    "AmbiguousStatusError",
    "AmbiguousStatusPolicy",
    "BatchScheduler",
    "BrowserLauncher",
    "BrowserSession",
    "BrowserUnavailableError",
    "CheckResult",
    "DiscoverySource",
    "Link",
    "LinkCheckConfig",
    "LinkCheckResult",
    "LinkExtractor",
    "LinkOutcome",
    "LinkReport",
    "LinkResolver",
    "MalformedInputError",
    "NavigationError",
    "NavigationResponse",
    "PageFetcher",
    "PageHealthError",
    "PageSnapshot",
    "PlaywrightLauncher",
    "RULE_MODULES",
    "ResolvedVia",
    "TransportError",
    "aggregate",
    "load_link_check_config",
    "load_modules",
    "snapshot_from_html",
    "summarize",
    "to_check_results",
]
