import asyncio
import logging

import pytest
from aiohttp.test_utils import TestServer

from pagehealth.runner import (
    build_check_summary,
    render_check_console,
    render_link_console,
    run_health_check,
    run_link_check,
)
from pagehealth.workflows.errors import MalformedInputError
from pagehealth.workflows.link_resolve import LinkCheckConfig
from pagehealth.workflows.models import CheckResult
from pagehealth.workflows.page_fetch import snapshot_from_html


def test_health_check_runs_only_known_modules(fake_launcher, caplog):
    snapshot = snapshot_from_html(
        "https://example.com/",
        "<html><head><title>Short</title></head><body><h1>One</h1></body></html>",
    )
    launcher = fake_launcher()

    with caplog.at_level(logging.WARNING):
        report = asyncio.run(
            run_health_check("https://example.com/", ["basicSeo", "nope"], launcher=launcher, snapshot=snapshot)
        )

    assert list(report["results"]) == ["basicSeo"]
    assert [r["test"] for r in report["results"]["basicSeo"]] == [
        "Title Tag",
        "Meta Description",
        "H1 Tag",
        "Header Structure",
        "Canonical Tag",
    ]
    assert report["summary"]["total"] == 5
    assert report["summary"]["passed"] + report["summary"]["failed"] + report["summary"]["warnings"] == 5
    assert report["checked_at"].endswith("Z")
    assert "Module 'nope' not found" in caplog.text
    assert launcher.opened == 0


def test_health_check_rejects_bad_url_before_any_work(fake_launcher):
    launcher = fake_launcher()
    with pytest.raises(MalformedInputError):
        asyncio.run(run_health_check("not a url", launcher=launcher))
    assert launcher.opened == 0


def test_link_check_partitions_page_links(site_app, fake_launcher):
    async def run():
        async with TestServer(site_app()) as server:
            url = str(server.make_url("/"))
            snapshot = snapshot_from_html(url, '<a href="/ok">ok</a> <a href="/error">error</a> <a href="mailto:a@b.c">m</a>')
            config = LinkCheckConfig(fast_timeout=5, inter_batch_delay=0)
            return await run_link_check(url, launcher=fake_launcher(), config=config, snapshot=snapshot)

    summary, report = asyncio.run(run())

    assert summary["summary"]["total"] == 2
    assert [item["url"].rsplit("/", 1)[-1] for item in summary["working"]] == ["ok"]
    assert [item["url"].rsplit("/", 1)[-1] for item in summary["notWorking"]] == ["error"]
    assert summary["notWorking"][0]["error"] == "HTTP status 500"
    assert report.total == 2


def test_build_check_summary_counts_statuses():
    results = {
        "a": [CheckResult("x", "pass", ""), CheckResult("y", "fail", "")],
        "b": [CheckResult("z", "warning", "")],
    }
    assert build_check_summary(results) == {"total": 3, "passed": 1, "failed": 1, "warnings": 1}


def test_console_renderers():
    check_text = render_check_console(
        {
            "url": "https://example.com/",
            "checked_at": "2024-01-01T00:00:00Z",
            "results": {"basicSeo": [{"test": "Title Tag", "status": "warning", "message": "too short"}]},
            "summary": {"total": 1, "passed": 0, "failed": 0, "warnings": 1},
        }
    )
    assert "  [WARN] Title Tag: too short" in check_text
    assert "Warnings: 1" in check_text

    link_text = render_link_console(
        {
            "url": "https://example.com/",
            "checked_at": "2024-01-01T00:00:00Z",
            "summary": {"total": 2, "working": 1, "not_working": 1, "via_fallback": 0, "redirected": 0},
            "working": [],
            "notWorking": [{"url": "https://example.com/gone", "error": "HTTP status 404"}],
        }
    )
    assert "| not_working | 1 |" in link_text
    assert "- https://example.com/gone (HTTP status 404)" in link_text
