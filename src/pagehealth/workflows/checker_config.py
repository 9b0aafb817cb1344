"""Checker defaults (headers, timeouts, batch constants, rule thresholds).

Centralizes static defaults so the resolver and rule catalog have no embedded
magic numbers. These are baseline constants; callers inject their own
LinkCheckConfig / AmbiguousStatusPolicy to override any of them.
"""

from __future__ import annotations

# Headers
HDR_USER_AGENT = "User-Agent"
HDR_ACCEPT = "Accept"
HDR_ACCEPT_LANGUAGE = "Accept-Language"
HDR_ACCEPT_ENCODING = "Accept-Encoding"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9"
DEFAULT_ACCEPT_ENCODING = "gzip, deflate"

# Timeouts (seconds)
PAGE_TIMEOUT = 30.0
FAST_TIMEOUT = 10.0
FALLBACK_TIMEOUT = 15.0
AUX_PROBE_TIMEOUT = 5.0

# Link verification
MAX_REDIRECTS = 5
BATCH_SIZE = 5
INTER_BATCH_DELAY = 1.0
AMBIGUOUS_STATUSES = frozenset({400, 403})
WORKING_STATUS_MIN = 200
WORKING_STATUS_MAX = 400  # exclusive

# Browser profile
PAGE_VIEWPORT = {"width": 1280, "height": 800}
PAGE_WAIT_UNTIL = "networkidle"
FALLBACK_WAIT_UNTIL = "domcontentloaded"

# Link extraction
SKIPPED_SCHEMES = ("javascript:", "mailto:", "tel:")
ALLOWED_SCHEMES = frozenset({"http", "https"})
NOFOLLOW_TOKENS = ("nofollow", "ugc", "sponsored")

# Rule thresholds
TITLE_LENGTH = (10, 60)
META_DESCRIPTION_LENGTH = (50, 160)
ALT_TEXT_WARN_PCT = 80
LAZY_LOAD_PASS_PCT = 80
LAZY_LOAD_WARN_PCT = 50
RESPONSIVE_IMAGES_PASS_PCT = 50
TAP_TARGET_MIN_PX = 44
FONT_SIZE_MIN_PX = 12
SMALL_ELEMENT_PASS_PCT = 10
SMALL_ELEMENT_WARN_PCT = 25
OPEN_GRAPH_TAGS = ("og:title", "og:description", "og:image", "og:url")
TWITTER_CARD_TAGS = ("twitter:card", "twitter:title", "twitter:description")
