from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import sys
from typing import Optional

import typer

from .runner import render_check_console, render_link_console, run_health_check, run_link_check
from .workflows.doctor import build_doctor_report, format_doctor_report
from .workflows.errors import MalformedInputError
from .workflows.link_resolve import load_link_check_config
from .workflows.rule_catalog import RULE_MODULES, parse_module_names

app = typer.Typer(add_help_option=False, no_args_is_help=False)

EXIT_OK = 0
EXIT_BROKEN_LINKS = 1
EXIT_INVALID_INPUT = 2
EXIT_FATAL = 3


def _minimal_help() -> str:
    return """pagehealth (webpage health checker)

Usage:
  pagehealth check <url> [--modules <CSV>] [--output console|json] [--verbose]
  pagehealth links <url> [--json] [--batch-size N] [--delay S] [--fallback-all-statuses] [--soft-fail]
  pagehealth doctor

Common options:
  --modules <CSV>   Rule modules to run (default: all).
  --output <FMT>    console (default) or json.
  --json            Print the link report JSON to stdout only.
  --soft-fail       Exit 0 even if broken links were found.
  --verbose         Debug logging on stderr.

Discoverability:
  --help-full       Expanded help + modules + env vars.
  --find <query>    Search commands, flags, modules, env vars.
  --doctor          Run environment diagnostics and exit.
"""


def _help_full() -> str:
    modules = "\n".join(f"  {name}" for name in RULE_MODULES)
    return f"""pagehealth CLI

Commands:
  check          Load one page and run the rule catalog against it.
  links          Verify every link on one page (fast HTTP client, browser fallback).
  doctor         Print environment and dependency diagnostics.

Modules (--modules CSV, or 'all'):
{modules}

Link verification:
  Links answering 2xx/3xx are working. 400 and 403 are re-checked in a real
  browser before being reported broken; other 4xx/5xx are broken at once.
  Links are checked in batches with a pause between batches.

Exit codes:
  0  ok
  1  broken links found (links command, without --soft-fail)
  2  invalid input
  3  fatal error (page could not be loaded)

Important env vars (.env is honoured):
  PAGEHEALTH_BATCH_SIZE
  PAGEHEALTH_BATCH_DELAY
  PAGEHEALTH_FAST_TIMEOUT
  PAGEHEALTH_FALLBACK_TIMEOUT
  PAGEHEALTH_PAGE_TIMEOUT
  PAGEHEALTH_MAX_REDIRECTS
  PAGEHEALTH_USER_AGENT
  PAGEHEALTH_AMBIGUOUS_STATUSES
  PAGEHEALTH_FALLBACK_ALL_STATUSES
  PAGEHEALTH_DISABLE_BROWSER_FALLBACK
  PAGEHEALTH_PLAYWRIGHT_HEADED
  PAGEHEALTH_PLAYWRIGHT_BROWSER

Troubleshooting:
  - If Playwright isn't installed, pages cannot be loaded and the browser fallback is skipped.
  - Run `playwright install chromium` after installing the package.
"""


_FIND_INDEX = [
    ("command", "check", "Run the rule catalog against one page."),
    ("command", "links", "Verify every link on one page."),
    ("command", "doctor", "Print environment and dependency diagnostics."),
    ("flag", "--modules", "Rule modules to run (CSV or all)."),
    ("flag", "--output", "console or json."),
    ("flag", "--json", "Print link report JSON to stdout only."),
    ("flag", "--batch-size", "Links checked concurrently per batch."),
    ("flag", "--delay", "Seconds to pause between batches."),
    ("flag", "--fallback-all-statuses", "Re-check every failing status in the browser."),
    ("flag", "--soft-fail", "Exit 0 even if broken links were found."),
    ("flag", "--verbose", "Debug logging on stderr."),
    ("flag", "--help-full", "Expanded help, modules, env vars."),
    ("flag", "--find", "Search commands, flags, modules, env vars."),
    ("flag", "--doctor", "Run environment diagnostics and exit."),
    ("env", "PAGEHEALTH_BATCH_SIZE", "Links per batch (default 5)."),
    ("env", "PAGEHEALTH_BATCH_DELAY", "Seconds between batches (default 1)."),
    ("env", "PAGEHEALTH_FAST_TIMEOUT", "Fast HTTP check timeout (default 10s)."),
    ("env", "PAGEHEALTH_FALLBACK_TIMEOUT", "Browser re-check timeout (default 15s)."),
    ("env", "PAGEHEALTH_PAGE_TIMEOUT", "Page load timeout (default 30s)."),
    ("env", "PAGEHEALTH_MAX_REDIRECTS", "Redirects followed by the fast check (default 5)."),
    ("env", "PAGEHEALTH_USER_AGENT", "User-Agent for HTTP checks and the browser."),
    ("env", "PAGEHEALTH_AMBIGUOUS_STATUSES", "Statuses re-checked in the browser (default 400,403)."),
    ("env", "PAGEHEALTH_FALLBACK_ALL_STATUSES", "Re-check every failing status in the browser."),
    ("env", "PAGEHEALTH_DISABLE_BROWSER_FALLBACK", "Never re-check links in the browser."),
    ("env", "PAGEHEALTH_PLAYWRIGHT_HEADED", "Show the browser window."),
    ("env", "PAGEHEALTH_PLAYWRIGHT_BROWSER", "chromium (default), firefox or webkit."),
] + [("module", name, "Rule module.") for name in RULE_MODULES]


def _run_find(query: str) -> str:
    needle = (query or "").strip().lower()
    if not needle:
        return ""
    lines = []
    for category, name, desc in _FIND_INDEX:
        haystack = f"{category} {name} {desc}".lower()
        if needle in haystack:
            lines.append(f"{category} {name} - {desc}")
    return "\n".join(lines)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show minimal help."),
    help_full: bool = typer.Option(False, "--help-full", is_eager=True, help="Show expanded help."),
    find: Optional[str] = typer.Option(None, "--find", is_eager=True, help="Search commands, flags, modules, env vars."),
    doctor: bool = typer.Option(False, "--doctor", is_eager=True, help="Run environment diagnostics and exit."),
) -> None:
    if help_full:
        typer.echo(_help_full())
        raise typer.Exit(code=0)
    if find is not None:
        output = _run_find(find)
        if output:
            typer.echo(output)
        raise typer.Exit(code=0)
    if doctor:
        report = build_doctor_report()
        typer.echo(format_doctor_report(report))
        raise typer.Exit(code=0 if report.get("ok", True) else 2)
    if help or ctx.invoked_subcommand is None:
        typer.echo(_minimal_help())
        raise typer.Exit(code=0)


@app.command("doctor", add_help_option=True)
def doctor_cmd() -> None:
    """Print environment and dependency diagnostics."""
    report = build_doctor_report()
    typer.echo(format_doctor_report(report))
    raise typer.Exit(code=0 if report.get("ok", True) else 2)


@app.command("check", add_help_option=True)
def check_url(
    url: str = typer.Argument(..., help="URL of the webpage to check."),
    modules: str = typer.Option("all", "--modules", "-m", help="Rule modules to run (CSV or all)."),
    output: str = typer.Option("console", "--output", "-o", help="Output format: console or json."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
) -> None:
    """Load one page and run the rule catalog against it."""
    _configure_logging(verbose)
    fmt = (output or "").strip().lower()
    if fmt not in {"console", "json"}:
        raise typer.BadParameter(f"Unknown output format: {output}")
    try:
        report = asyncio.run(run_health_check(url, parse_module_names(modules)))
    except MalformedInputError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=EXIT_INVALID_INPUT)
    except Exception as exc:
        typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=EXIT_FATAL)
    if fmt == "json":
        sys.stdout.write(json.dumps(report, ensure_ascii=False, indent=2) + "\n")
    else:
        typer.echo(render_check_console(report))
    raise typer.Exit(code=EXIT_OK)


@app.command("links", add_help_option=True)
def check_links(
    url: str = typer.Argument(..., help="URL of the webpage whose links are verified."),
    json_out: bool = typer.Option(False, "--json", help="Print the link report JSON to stdout only."),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", min=1, help="Links checked concurrently per batch."),
    delay: Optional[float] = typer.Option(None, "--delay", min=0.0, help="Seconds to pause between batches."),
    fallback_all: bool = typer.Option(
        False, "--fallback-all-statuses", help="Re-check every failing status in the browser, not just 400/403."
    ),
    soft_fail: bool = typer.Option(False, "--soft-fail", help="Exit 0 even if broken links were found."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
) -> None:
    """Verify every link on one page."""
    _configure_logging(verbose)
    config = load_link_check_config()
    if batch_size is not None:
        config.batch_size = batch_size
    if delay is not None:
        config.inter_batch_delay = delay
    if fallback_all:
        config.ambiguous_policy = dataclasses.replace(config.ambiguous_policy, escalate_all=True)
    try:
        summary, report = asyncio.run(run_link_check(url, config=config))
    except MalformedInputError as exc:
        if not json_out:
            typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=EXIT_INVALID_INPUT)
    except Exception as exc:
        if not json_out:
            typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=EXIT_FATAL)
    if json_out:
        sys.stdout.write(json.dumps(summary, ensure_ascii=False) + "\n")
    else:
        typer.echo(render_link_console(summary))
    exit_code = EXIT_OK
    if report.not_working and not soft_fail:
        exit_code = EXIT_BROKEN_LINKS
    raise typer.Exit(code=exit_code)
