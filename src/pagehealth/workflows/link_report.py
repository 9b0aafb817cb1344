"""Partition link results into working / not-working and summarize them."""

from __future__ import annotations

from typing import Dict, Iterable, List

from ..core.keys import K_LINKS, STATUS_FAIL, STATUS_PASS
from .models import CheckResult, LinkCheckResult, LinkReport, ResolvedVia


def aggregate(results: Iterable[LinkCheckResult]) -> LinkReport:
    """Stable partition: relative order inside each list follows the input."""

    report = LinkReport()
    for result in results:
        if result.working:
            report.working.append(result)
        else:
            report.not_working.append(result)
    return report


def summarize(report: LinkReport) -> Dict[str, int]:
    everything: List[LinkCheckResult] = report.working + report.not_working
    return {
        "total": report.total,
        "working": len(report.working),
        "not_working": len(report.not_working),
        "via_fallback": sum(1 for r in everything if r.resolved_via is ResolvedVia.BROWSER_FALLBACK),
        "redirected": sum(1 for r in report.working if r.redirect_target),
    }


def _link_entry(result: LinkCheckResult) -> Dict[str, object]:
    entry: Dict[str, object] = {"url": result.url, "status": result.http_status}
    if result.redirect_target:
        entry["redirect_url"] = result.redirect_target
    if result.error:
        entry["error"] = result.error
    return entry


def to_check_results(report: LinkReport) -> List[CheckResult]:
    """Render a LinkReport as the two records the link-check module reports."""

    working = CheckResult(
        test="Working Links",
        status=STATUS_PASS,
        message=f"Found {len(report.working)} working links.",
        details={K_LINKS: [_link_entry(r) for r in report.working]},
    )
    if report.not_working:
        broken = CheckResult(
            test="Broken Links",
            status=STATUS_FAIL,
            message=f"Found {len(report.not_working)} broken links.",
            details={K_LINKS: [_link_entry(r) for r in report.not_working]},
        )
    else:
        broken = CheckResult(
            test="Broken Links",
            status=STATUS_PASS,
            message="No broken links found.",
            details={K_LINKS: []},
        )
    return [working, broken]


__all__ = ["aggregate", "summarize", "to_check_results"]
