from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .link_resolve import load_link_check_config


_INT_VARS = ("PAGEHEALTH_BATCH_SIZE", "PAGEHEALTH_MAX_REDIRECTS")
_FLOAT_VARS = (
    "PAGEHEALTH_BATCH_DELAY",
    "PAGEHEALTH_FAST_TIMEOUT",
    "PAGEHEALTH_FALLBACK_TIMEOUT",
    "PAGEHEALTH_PAGE_TIMEOUT",
)


def _check_playwright_available() -> bool:
    try:
        from . import browser
        return getattr(browser, "async_playwright", None) is not None
    except Exception:
        return False


def collect_environment_warnings() -> List[Dict[str, str]]:
    """Flag PAGEHEALTH_* values that will be ignored in favour of defaults."""

    warnings: List[Dict[str, str]] = []
    for name in _INT_VARS:
        raw = os.getenv(name, "").strip()
        if not raw:
            continue
        try:
            int(raw)
        except ValueError:
            warnings.append(
                {"code": name, "message": f"{raw!r} is not an integer; default used", "remedy": f"Unset {name} or set a whole number."}
            )
    for name in _FLOAT_VARS:
        raw = os.getenv(name, "").strip()
        if not raw:
            continue
        try:
            float(raw)
        except ValueError:
            warnings.append(
                {"code": name, "message": f"{raw!r} is not a number; default used", "remedy": f"Unset {name} or set seconds as a number."}
            )
    raw_statuses = os.getenv("PAGEHEALTH_AMBIGUOUS_STATUSES", "").strip()
    if raw_statuses:
        bad = [tok.strip() for tok in raw_statuses.split(",") if tok.strip() and not tok.strip().isdigit()]
        if bad:
            warnings.append(
                {
                    "code": "PAGEHEALTH_AMBIGUOUS_STATUSES",
                    "message": f"ignoring non-numeric entries: {', '.join(bad)}",
                    "remedy": "Use a comma-separated list of HTTP status codes, e.g. 400,403,429.",
                }
            )
    return warnings


def build_doctor_report(*, env_path: Optional[Path] = None) -> Dict[str, Any]:
    report: Dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        "ok": True,
        "checks": [],
        "environment_warnings": collect_environment_warnings(),
    }

    def add_check(
        name: str,
        status: bool,
        *,
        detail: Optional[str] = None,
        remedy: Optional[str] = None,
        level: str = "warn",
        value: Optional[str] = None,
    ) -> None:
        entry = {
            "name": name,
            "status": "ok" if status else "missing",
            "level": level,
            "detail": detail,
        }
        if remedy:
            entry["remedy"] = remedy
        if value is not None:
            entry["value"] = value
        report["checks"].append(entry)
        if not status and level == "warn":
            report["ok"] = False

    playwright_ok = _check_playwright_available()
    add_check(
        "playwright",
        playwright_ok,
        detail="page capture and browser fallback enabled" if playwright_ok else "page capture and browser fallback unavailable",
        remedy="Install Playwright and run `playwright install --with-deps chromium`.",
        level="warn",
    )

    config = load_link_check_config()
    add_check(
        "PAGEHEALTH_DISABLE_BROWSER_FALLBACK",
        config.enable_browser_fallback,
        detail="browser fallback on" if config.enable_browser_fallback else "browser fallback off; 400/403 links count as broken",
        level="info",
    )
    policy = config.ambiguous_policy
    add_check(
        "PAGEHEALTH_AMBIGUOUS_STATUSES",
        True,
        detail="all non-2xx/3xx statuses" if policy.escalate_all else ", ".join(str(s) for s in sorted(policy.statuses)),
        level="info",
    )
    add_check("PAGEHEALTH_USER_AGENT", True, detail="fast client identity", level="info", value=config.user_agent)
    add_check(
        "batching",
        True,
        detail=f"batch size {config.batch_size}, delay {config.inter_batch_delay:g}s",
        level="info",
    )
    add_check(
        "timeouts",
        True,
        detail=(
            f"page {config.page_timeout:g}s, fast {config.fast_timeout:g}s, "
            f"fallback {config.fallback_timeout:g}s, max redirects {config.max_redirects}"
        ),
        level="info",
    )

    dotenv = Path(env_path or Path.cwd() / ".env")
    add_check(
        ".env",
        dotenv.exists(),
        detail=str(dotenv),
        remedy="Optional: put PAGEHEALTH_* overrides in a .env file.",
        level="info",
    )

    return report


_LEVEL_ORDER = {"warn": 0, "info": 1}


def _check_lines(check: Dict[str, Any]) -> List[str]:
    head = f"- [{check.get('level', 'info')}] {check.get('name', 'check')}: {check.get('status', 'unknown')}"
    if check.get("value"):
        head += f" ({check['value']})"
    return [head] + [f"  {key}: {check[key]}" for key in ("detail", "remedy") if check.get(key)]


def format_doctor_report(report: Dict[str, Any]) -> str:
    """Render a doctor report as text: warn-level checks first, then info."""

    verdict = "ok" if report.get("ok", True) else "needs attention"
    lines = [f"pagehealth doctor: {verdict}", f"Generated: {report.get('generated_at')}", ""]
    checks = sorted(report.get("checks", []), key=lambda c: _LEVEL_ORDER.get(c.get("level", "info"), 2))
    for check in checks:
        lines.extend(_check_lines(check))

    warnings = report.get("environment_warnings") or []
    if warnings:
        lines += ["", f"Environment warnings ({len(warnings)}):"]
        for warning in warnings:
            lines.append(f"- {warning.get('code', 'warning')}: {warning.get('message', '')}")
            if warning.get("remedy"):
                lines.append(f"  remedy: {warning['remedy']}")
    return "\n".join(lines).rstrip() + "\n"
