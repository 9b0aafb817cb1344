"""Batched concurrent link verification.

Links are split into consecutive fixed-size batches. Each batch resolves
concurrently; the next batch starts only after the previous one has fully
completed and the inter-batch delay has elapsed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar, Union

import aiohttp

from .checker_config import BATCH_SIZE, INTER_BATCH_DELAY
from .link_resolve import LinkResolver
from .models import Link, LinkCheckResult, LinkOutcome, ResolvedVia

logger = logging.getLogger(__name__)

T = TypeVar("T")
ProgressHook = Callable[[int, int, LinkCheckResult], None]


def _href(link: Union[Link, str]) -> str:
    return link.href if isinstance(link, Link) else str(link)


class BatchScheduler:
    """Drive a LinkResolver over many links with bounded concurrency."""

    def __init__(
        self,
        resolver: LinkResolver,
        *,
        batch_size: Optional[int] = None,
        inter_batch_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        config = resolver.config
        size = batch_size if batch_size is not None else getattr(config, "batch_size", BATCH_SIZE)
        delay = inter_batch_delay
        if delay is None:
            delay = getattr(config, "inter_batch_delay", INTER_BATCH_DELAY)
        if size < 1:
            raise ValueError("batch_size must be >= 1")
        if delay < 0:
            raise ValueError("inter_batch_delay must be >= 0")
        self.resolver = resolver
        self.batch_size = size
        self.inter_batch_delay = delay
        self._sleep = sleep

    def partition(self, items: Sequence[T]) -> List[List[T]]:
        return [list(items[i : i + self.batch_size]) for i in range(0, len(items), self.batch_size)]

    async def _resolve_one(self, url: str, session: aiohttp.ClientSession) -> LinkCheckResult:
        try:
            return await self.resolver.resolve(url, session=session)
        except Exception as exc:  # resolve() is not supposed to raise
            logger.warning("resolver raised for %s: %r", url, exc)
            return LinkCheckResult(
                url=url,
                outcome=LinkOutcome.BROKEN,
                resolved_via=ResolvedVia.FAST_CLIENT,
                error=str(exc) or type(exc).__name__,
            )

    async def run_all(
        self,
        links: Sequence[Union[Link, str]],
        progress_hook: Optional[ProgressHook] = None,
    ) -> List[LinkCheckResult]:
        urls = [_href(link) for link in links]
        if not urls:
            return []

        batches = self.partition(urls)
        results: List[LinkCheckResult] = []
        connector = aiohttp.TCPConnector(limit=self.batch_size)
        async with aiohttp.ClientSession(
            connector=connector,
            headers=self.resolver.config.headers(),
        ) as session:
            for index, batch in enumerate(batches, start=1):
                logger.info("checking batch %d/%d (%d links)", index, len(batches), len(batch))
                batch_results = await asyncio.gather(*(self._resolve_one(url, session) for url in batch))
                for result in batch_results:
                    results.append(result)
                    if progress_hook is not None:
                        try:
                            progress_hook(len(results), len(urls), result)
                        except Exception as exc:
                            logger.warning("progress hook failed: %s", exc)
                if index < len(batches) and self.inter_batch_delay > 0:
                    await self._sleep(self.inter_batch_delay)

        broken = sum(1 for r in results if not r.working)
        logger.info("checked %d links: %d working, %d broken", len(results), len(results) - broken, broken)
        return results


__all__ = ["BatchScheduler", "ProgressHook"]
