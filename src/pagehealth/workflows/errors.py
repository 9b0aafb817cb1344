"""Error taxonomy for page fetching and link verification."""

from __future__ import annotations

from typing import Optional


class PageHealthError(Exception):
    """Base class for every error raised by pagehealth."""


class MalformedInputError(PageHealthError, ValueError):
    """The URL supplied to a check is not an absolute http(s) URL."""

    def __init__(self, url: str, reason: str = "not an absolute http(s) URL") -> None:
        super().__init__(f"Invalid URL: {url!r} ({reason})")
        self.url = url
        self.reason = reason


class NavigationError(PageHealthError):
    """A page could not be loaded by the browser within its timeout."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Navigation to {url} failed: {reason}")
        self.url = url
        self.reason = reason


class TransportError(PageHealthError):
    """The fast HTTP client could not complete a request (DNS, refused, timeout)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(reason)
        self.url = url
        self.reason = reason


class AmbiguousStatusError(PageHealthError):
    """The fast client got a status that real browsers often do not get.

    Raised inside the resolver to escalate to the browser tier; never a
    terminal failure on its own.
    """

    def __init__(self, url: str, status: int, final_url: Optional[str] = None) -> None:
        super().__init__(f"HTTP status {status}")
        self.url = url
        self.status = status
        self.final_url = final_url


class BrowserUnavailableError(PageHealthError):
    """A browser session could not be started."""
