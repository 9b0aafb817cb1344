"""Two-tier link resolution: fast HTTP client first, browser navigation second.

Many sites answer plain HTTP clients with 403/400 from anti-bot heuristics
while serving real browsers normally. The resolver therefore treats those
statuses (and transport failures) as ambiguous and re-checks the link in an
isolated browser session before calling it broken. Every other status is
final on the fast tier.

``resolve()`` never raises: every failure becomes a BROKEN result.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

import aiohttp

from .browser import BrowserLauncher, describe_browser_error, launcher_from_env
from .checker_config import (
    AMBIGUOUS_STATUSES,
    BATCH_SIZE,
    DEFAULT_ACCEPT,
    DEFAULT_ACCEPT_ENCODING,
    DEFAULT_ACCEPT_LANGUAGE,
    DEFAULT_USER_AGENT,
    FALLBACK_TIMEOUT,
    FALLBACK_WAIT_UNTIL,
    FAST_TIMEOUT,
    HDR_ACCEPT,
    HDR_ACCEPT_ENCODING,
    HDR_ACCEPT_LANGUAGE,
    HDR_USER_AGENT,
    INTER_BATCH_DELAY,
    MAX_REDIRECTS,
    PAGE_TIMEOUT,
    WORKING_STATUS_MAX,
    WORKING_STATUS_MIN,
)
from .checker_utils import _env_bool, _env_float, _env_int, _env_int_set, _env_str, in_status_range, normalize_url
from .errors import AmbiguousStatusError, BrowserUnavailableError, TransportError
from .models import LinkCheckResult, LinkOutcome, ResolvedVia

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AmbiguousStatusPolicy:
    """Decide which fast-tier statuses escalate to the browser tier.

    By default only the configured statuses (400, 403) escalate. With
    ``escalate_all`` every status outside the working range escalates.
    """

    statuses: FrozenSet[int] = AMBIGUOUS_STATUSES
    escalate_all: bool = False

    def __call__(self, status: int) -> bool:
        if in_status_range(status, (WORKING_STATUS_MIN, WORKING_STATUS_MAX)):
            return False
        if self.escalate_all:
            return True
        return status in self.statuses


@dataclass
class LinkCheckConfig:
    """Configuration parameters for link verification."""

    batch_size: int = BATCH_SIZE
    inter_batch_delay: float = INTER_BATCH_DELAY
    fast_timeout: float = FAST_TIMEOUT
    fallback_timeout: float = FALLBACK_TIMEOUT
    page_timeout: float = PAGE_TIMEOUT
    max_redirects: int = MAX_REDIRECTS
    user_agent: str = DEFAULT_USER_AGENT
    accept: str = DEFAULT_ACCEPT
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE
    accept_encoding: str = DEFAULT_ACCEPT_ENCODING
    enable_browser_fallback: bool = True
    ambiguous_policy: AmbiguousStatusPolicy = field(default_factory=AmbiguousStatusPolicy)

    def headers(self) -> Dict[str, str]:
        return {
            HDR_USER_AGENT: self.user_agent,
            HDR_ACCEPT: self.accept,
            HDR_ACCEPT_LANGUAGE: self.accept_language,
            HDR_ACCEPT_ENCODING: self.accept_encoding,
        }


def load_link_check_config() -> LinkCheckConfig:
    """Build a LinkCheckConfig from PAGEHEALTH_* environment variables."""

    return LinkCheckConfig(
        batch_size=max(1, _env_int("PAGEHEALTH_BATCH_SIZE", BATCH_SIZE)),
        inter_batch_delay=max(0.0, _env_float("PAGEHEALTH_BATCH_DELAY", INTER_BATCH_DELAY)),
        fast_timeout=max(0.1, _env_float("PAGEHEALTH_FAST_TIMEOUT", FAST_TIMEOUT)),
        fallback_timeout=max(0.1, _env_float("PAGEHEALTH_FALLBACK_TIMEOUT", FALLBACK_TIMEOUT)),
        page_timeout=max(0.1, _env_float("PAGEHEALTH_PAGE_TIMEOUT", PAGE_TIMEOUT)),
        max_redirects=max(0, _env_int("PAGEHEALTH_MAX_REDIRECTS", MAX_REDIRECTS)),
        user_agent=_env_str("PAGEHEALTH_USER_AGENT", DEFAULT_USER_AGENT),
        enable_browser_fallback=not _env_bool("PAGEHEALTH_DISABLE_BROWSER_FALLBACK", "0"),
        ambiguous_policy=AmbiguousStatusPolicy(
            statuses=_env_int_set("PAGEHEALTH_AMBIGUOUS_STATUSES", AMBIGUOUS_STATUSES),
            escalate_all=_env_bool("PAGEHEALTH_FALLBACK_ALL_STATUSES", "0"),
        ),
    )


def _describe_transport_error(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "Request timed out"
    if isinstance(exc, aiohttp.TooManyRedirects):
        return "Too many redirects"
    if isinstance(exc, aiohttp.ClientConnectorError):
        os_error = getattr(exc, "os_error", None)
        reason = getattr(os_error, "strerror", None) or str(os_error or exc)
        return f"Connection failed: {reason}"
    text = str(exc).strip()
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


def _redirected_to(url: str, final_url: Optional[str]) -> Optional[str]:
    """*final_url* when it is a different resource than *url*, else None.

    Browsers report the percent-encoded form of what was requested, so a
    plain string comparison would mistake ``/a b`` vs ``/a%20b`` for a hop.
    """

    if not final_url or normalize_url(final_url) == normalize_url(url):
        return None
    return final_url


class LinkResolver:
    """Resolve one URL to a LinkCheckResult using the two-tier strategy."""

    def __init__(
        self,
        config: Optional[LinkCheckConfig] = None,
        launcher: Optional[BrowserLauncher] = None,
    ) -> None:
        self.config = config or LinkCheckConfig()
        self.launcher = launcher if launcher is not None else launcher_from_env(self.config.user_agent)

    def is_ambiguous_status(self, status: int) -> bool:
        return self.config.ambiguous_policy(status)

    async def resolve(self, url: str, session: Optional[aiohttp.ClientSession] = None) -> LinkCheckResult:
        start = time.perf_counter()
        if session is None:
            async with aiohttp.ClientSession(headers=self.config.headers()) as own_session:
                result = await self._resolve(url, own_session)
        else:
            result = await self._resolve(url, session)
        result.metadata.setdefault("elapsed_ms", int((time.perf_counter() - start) * 1000))
        return result

    async def _resolve(self, url: str, session: aiohttp.ClientSession) -> LinkCheckResult:
        try:
            status, final_url, redirected = await self._fetch_fast(session, url)
            return self._classify_fast(url, status, final_url if redirected else None)
        except AmbiguousStatusError as exc:
            logger.debug("ambiguous status %s for %s; escalating to browser", exc.status, url)
            return await self._resolve_in_browser(url, origin_status=exc.status)
        except TransportError as exc:
            logger.debug("fast tier failed for %s (%s); escalating to browser", url, exc.reason)
            return await self._resolve_in_browser(url, fast_path_error=exc.reason)
        except Exception as exc:  # pragma: no cover - unexpected client failure
            logger.debug("fast tier raised for %s: %r", url, exc)
            return await self._resolve_in_browser(url, fast_path_error=_describe_transport_error(exc))

    async def _fetch_fast(self, session: aiohttp.ClientSession, url: str) -> Tuple[int, str, bool]:
        """GET *url*; returns (status, final URL, whether any redirect was followed)."""

        try:
            async with session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=self.config.fast_timeout),
                allow_redirects=True,
                max_redirects=self.config.max_redirects,
            ) as resp:
                return resp.status, str(resp.url), bool(resp.history)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise TransportError(url, _describe_transport_error(exc)) from exc

    def _classify_fast(self, url: str, status: int, redirect_url: Optional[str]) -> LinkCheckResult:
        if in_status_range(status, (WORKING_STATUS_MIN, WORKING_STATUS_MAX)):
            return LinkCheckResult(
                url=url,
                outcome=LinkOutcome.WORKING,
                resolved_via=ResolvedVia.FAST_CLIENT,
                http_status=status,
                redirect_target=redirect_url or None,
            )
        if self.config.enable_browser_fallback and self.is_ambiguous_status(status):
            raise AmbiguousStatusError(url, status, redirect_url)
        return LinkCheckResult(
            url=url,
            outcome=LinkOutcome.BROKEN,
            resolved_via=ResolvedVia.FAST_CLIENT,
            http_status=status,
            error=f"HTTP status {status}",
        )

    def _broken_after_fallback(
        self,
        url: str,
        reason: str,
        origin_status: Optional[int],
        fast_path_error: Optional[str],
    ) -> LinkCheckResult:
        metadata: Dict[str, object] = {"fallback_error": reason}
        if origin_status is not None:
            metadata["fallback_from_status"] = origin_status
        if fast_path_error:
            metadata["fast_path_error"] = fast_path_error
        return LinkCheckResult(
            url=url,
            outcome=LinkOutcome.BROKEN,
            resolved_via=ResolvedVia.BROWSER_FALLBACK,
            http_status=origin_status,
            error=f"HTTP status {origin_status}" if origin_status is not None else reason,
            metadata=metadata,
        )

    async def _resolve_in_browser(
        self,
        url: str,
        *,
        origin_status: Optional[int] = None,
        fast_path_error: Optional[str] = None,
    ) -> LinkCheckResult:
        if not self.config.enable_browser_fallback:
            return LinkCheckResult(
                url=url,
                outcome=LinkOutcome.BROKEN,
                resolved_via=ResolvedVia.FAST_CLIENT,
                error=fast_path_error or "Request failed",
            )
        try:
            session = await self.launcher.open()
        except BrowserUnavailableError as exc:
            return self._broken_after_fallback(url, f"Browser unavailable: {exc}", origin_status, fast_path_error)
        except Exception as exc:
            reason = f"Browser unavailable: {describe_browser_error(exc)}"
            return self._broken_after_fallback(url, reason, origin_status, fast_path_error)

        try:
            response = await session.navigate(
                url,
                wait_until=FALLBACK_WAIT_UNTIL,
                timeout=self.config.fallback_timeout,
            )
        except Exception as exc:
            logger.debug("browser navigation failed for %s: %s", url, describe_browser_error(exc))
            return self._broken_after_fallback(url, describe_browser_error(exc), origin_status, fast_path_error)
        finally:
            try:
                await session.close()
            except Exception as exc:
                logger.warning("browser session close failed for %s: %s", url, describe_browser_error(exc))

        if response is None:
            return self._broken_after_fallback(url, "No response received", origin_status, fast_path_error)

        metadata: Dict[str, object] = {}
        if origin_status is not None:
            metadata["fallback_from_status"] = origin_status
        if fast_path_error:
            metadata["fast_path_error"] = fast_path_error
        return LinkCheckResult(
            url=url,
            outcome=LinkOutcome.WORKING,
            resolved_via=ResolvedVia.BROWSER_FALLBACK,
            http_status=response.status,
            redirect_target=_redirected_to(url, response.url),
            metadata=metadata,
        )


__all__ = [
    "AmbiguousStatusPolicy",
    "LinkCheckConfig",
    "LinkResolver",
    "load_link_check_config",
]
