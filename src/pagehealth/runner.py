from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from dotenv import load_dotenv

from .core.keys import (
    K_CHECKED_AT,
    K_NOT_WORKING,
    K_RESULTS,
    K_SUMMARY,
    K_URL,
    K_WORKING,
    STATUS_FAIL,
    STATUS_PASS,
    STATUS_WARNING,
)
from .workflows.browser import BrowserLauncher, launcher_from_env
from .workflows.checker_utils import validate_url
from .workflows.link_batch import BatchScheduler, ProgressHook
from .workflows.link_extract import LinkExtractor
from .workflows.link_report import aggregate, summarize
from .workflows.link_resolve import LinkCheckConfig, LinkResolver, load_link_check_config
from .workflows.models import CheckResult, LinkReport, PageSnapshot
from .workflows.page_fetch import PageFetcher
from .workflows.rule_catalog import RuleContext, load_modules, run_modules

load_dotenv(override=False)

logger = logging.getLogger(__name__)

STATUS_ICONS = {STATUS_PASS: "[PASS]", STATUS_FAIL: "[FAIL]", STATUS_WARNING: "[WARN]"}


def _utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


async def fetch_snapshot(
    url: str,
    *,
    launcher: Optional[BrowserLauncher] = None,
    config: Optional[LinkCheckConfig] = None,
) -> PageSnapshot:
    config = config or load_link_check_config()
    launcher = launcher if launcher is not None else launcher_from_env(config.user_agent)
    return await PageFetcher(launcher, timeout=config.page_timeout).fetch(url)


def build_check_summary(results: Dict[str, List[CheckResult]]) -> Dict[str, int]:
    flat = [result for module_results in results.values() for result in module_results]
    return {
        "total": len(flat),
        "passed": sum(1 for r in flat if r.status == STATUS_PASS),
        "failed": sum(1 for r in flat if r.status == STATUS_FAIL),
        "warnings": sum(1 for r in flat if r.status == STATUS_WARNING),
    }


async def run_health_check(
    url: str,
    modules: Union[str, Iterable[str], None] = "all",
    *,
    launcher: Optional[BrowserLauncher] = None,
    config: Optional[LinkCheckConfig] = None,
    snapshot: Optional[PageSnapshot] = None,
    progress_hook: Optional[ProgressHook] = None,
) -> Dict[str, Any]:
    """Fetch *url* once and run the selected rule modules against it.

    Returns ``{"url", "checked_at", "results": {module: [record, ...]},
    "summary": {total, passed, failed, warnings}}``. Raises
    MalformedInputError before any network work, NavigationError when the
    page cannot be loaded.
    """

    url = validate_url(url)
    config = config or load_link_check_config()
    launcher = launcher if launcher is not None else launcher_from_env(config.user_agent)
    selected = load_modules(modules)
    if snapshot is None:
        snapshot = await fetch_snapshot(url, launcher=launcher, config=config)
    ctx = RuleContext(link_config=config, launcher=launcher, progress_hook=progress_hook)
    results = await run_modules(snapshot, selected, ctx)
    return {
        K_URL: url,
        K_CHECKED_AT: _utc_now(),
        K_RESULTS: {name: [r.to_dict() for r in records] for name, records in results.items()},
        K_SUMMARY: build_check_summary(results),
    }


async def run_link_check(
    url: str,
    *,
    launcher: Optional[BrowserLauncher] = None,
    config: Optional[LinkCheckConfig] = None,
    snapshot: Optional[PageSnapshot] = None,
    progress_hook: Optional[ProgressHook] = None,
) -> Tuple[Dict[str, Any], LinkReport]:
    """Run only the link verification pipeline for *url*."""

    url = validate_url(url)
    config = config or load_link_check_config()
    launcher = launcher if launcher is not None else launcher_from_env(config.user_agent)
    if snapshot is None:
        snapshot = await fetch_snapshot(url, launcher=launcher, config=config)
    links = LinkExtractor().extract(snapshot)
    logger.info("found %d unique links on %s", len(links), url)
    resolver = LinkResolver(config, launcher=launcher)
    results = await BatchScheduler(resolver).run_all(links, progress_hook=progress_hook)
    report = aggregate(results)
    payload = report.to_dict()
    summary = {
        K_URL: url,
        K_CHECKED_AT: _utc_now(),
        K_SUMMARY: summarize(report),
        K_WORKING: payload[K_WORKING],
        K_NOT_WORKING: payload[K_NOT_WORKING],
    }
    return summary, report


def render_check_console(report: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append("Webpage Health Check Results:")
    lines.append(f"URL: {report.get(K_URL)}")
    lines.append(f"Date: {report.get(K_CHECKED_AT)}")
    lines.append("")
    for module_name, records in (report.get(K_RESULTS) or {}).items():
        lines.append(f"{module_name}:")
        for record in records:
            icon = STATUS_ICONS.get(record.get("status"), "[????]")
            lines.append(f"  {icon} {record.get('test')}: {record.get('message')}")
        lines.append("")
    summary = report.get(K_SUMMARY) or {}
    lines.append("Summary:")
    lines.append(f"Total tests: {summary.get('total', 0)}")
    lines.append(f"Passed: {summary.get('passed', 0)}")
    lines.append(f"Failed: {summary.get('failed', 0)}")
    lines.append(f"Warnings: {summary.get('warnings', 0)}")
    return "\n".join(lines).rstrip() + "\n"


def render_link_console(summary: Dict[str, Any]) -> str:
    lines: List[str] = []
    counts = summary.get(K_SUMMARY) or {}
    lines.append(f"Link check: {summary.get(K_URL)}")
    lines.append(f"Checked: {summary.get(K_CHECKED_AT)}")
    lines.append("")
    lines.append("| metric | value |")
    lines.append("| --- | --- |")
    for key in ("total", "working", "not_working", "via_fallback", "redirected"):
        lines.append(f"| {key} | {counts.get(key, 0)} |")
    broken = summary.get(K_NOT_WORKING) or []
    if broken:
        lines.append("")
        lines.append("Broken links:")
        for item in broken:
            lines.append(f"- {item.get('url')} ({item.get('error') or 'unknown error'})")
    return "\n".join(lines).rstrip() + "\n"


__all__ = [
    "build_check_summary",
    "fetch_snapshot",
    "render_check_console",
    "render_link_console",
    "run_health_check",
    "run_link_check",
]
