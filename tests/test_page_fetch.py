import asyncio

import pytest

from pagehealth.workflows.browser import NavigationResponse
from pagehealth.workflows.errors import BrowserUnavailableError, MalformedInputError, NavigationError
from pagehealth.workflows.page_fetch import PageFetcher, snapshot_from_html

HTML = """
<html><head>
<title> Static title </title>
<meta name="description" content="first">
<meta name="description" content="second">
<meta property="og:title" content="OG">
<link rel="icon" href="/favicon.ico">
<link rel="icon" href="/other.ico">
<link rel="apple-touch-icon" href="/touch.png">
</head><body>
<h1>Main</h1><h2>Sub A</h2><h2>Sub B</h2>
<picture><img src="/a.png" alt="A" width="10" height="20px"></picture>
<img src="b.png" loading="lazy" srcset="b-2x.png 2x">
<img data-src="/lazy.png">
</body></html>
"""

DOM = {
    "links": [
        {"href": "https://example.com/a", "text": "A", "rel": "nofollow", "via": "href"},
        {"href": "https://example.com/b", "text": "B", "rel": None, "via": "data-href"},
        "not-a-dict",
    ],
    "layout": {
        "tap_targets": {"total": 10, "small": 1},
        "font_sizes": {"total": 20, "small": 0},
        "media_queries": True,
    },
}


def test_snapshot_from_html_parses_page_facts():
    snapshot = snapshot_from_html("https://example.com/dir/page", HTML)

    assert snapshot.title == "Static title"
    assert snapshot.meta["description"] == "second"
    assert snapshot.meta["og:title"] == "OG"
    assert snapshot.headers["h1"] == ("Main",)
    assert snapshot.headers["h2"] == ("Sub A", "Sub B")
    assert snapshot.head_links["icon"] == "https://example.com/favicon.ico"
    assert snapshot.head_links["apple-touch-icon"] == "https://example.com/touch.png"
    assert not snapshot.has_layout

    first, second, third = snapshot.images
    assert first.src == "https://example.com/a.png"
    assert (first.width, first.height) == (10, 20)
    assert first.in_picture and first.is_responsive and not first.is_lazy
    assert second.src == "https://example.com/dir/b.png"
    assert second.is_lazy and second.is_responsive
    assert third.src == ""
    assert third.is_lazy and not third.is_responsive


def test_snapshot_is_read_only():
    snapshot = snapshot_from_html("https://example.com/", HTML)
    with pytest.raises(TypeError):
        snapshot.meta["description"] = "changed"
    with pytest.raises(Exception):
        snapshot.title = "changed"


def test_snapshot_from_html_rejects_bad_url():
    with pytest.raises(MalformedInputError):
        snapshot_from_html("not a url", HTML)


def test_fetch_builds_snapshot_from_browser(fake_launcher):
    launcher = fake_launcher(
        default=lambda url: NavigationResponse(status=200, url="https://example.com/landing"),
        html=HTML,
        title="Rendered title",
        dom=DOM,
    )

    snapshot = asyncio.run(PageFetcher(launcher, timeout=12).fetch("https://example.com/start"))

    assert snapshot.url == "https://example.com/start"
    assert snapshot.final_url == "https://example.com/landing"
    assert snapshot.title == "Rendered title"
    assert [link.href for link in snapshot.links] == ["https://example.com/a", "https://example.com/b"]
    assert snapshot.links[1].via == "data-href"
    assert snapshot.layout["tap_targets"] == {"total": 10, "small": 1}
    assert snapshot.has_layout
    assert snapshot.fetched_at.endswith("Z")

    assert launcher.navigations == [("https://example.com/start", "networkidle", 12)]
    assert launcher.viewports == [{"width": 1280, "height": 800}]
    assert launcher.evaluations == [{"minTapSize": 44, "minFontSize": 12}]
    assert launcher.closed == 1


def test_fetch_navigation_failure_raises_and_closes(fake_launcher):
    launcher = fake_launcher(default=RuntimeError("Timeout 30000ms exceeded.\n=== logs ==="))

    with pytest.raises(NavigationError) as excinfo:
        asyncio.run(PageFetcher(launcher).fetch("https://example.com/"))

    assert "Timeout 30000ms exceeded." in str(excinfo.value)
    assert "logs" not in str(excinfo.value)
    assert launcher.closed == 1


def test_fetch_without_browser_is_navigation_error(fake_launcher):
    launcher = fake_launcher(open_error=BrowserUnavailableError("Playwright is not installed"))

    with pytest.raises(NavigationError):
        asyncio.run(PageFetcher(launcher).fetch("https://example.com/"))


def test_fetch_validates_before_opening_browser(fake_launcher):
    launcher = fake_launcher()

    with pytest.raises(MalformedInputError):
        asyncio.run(PageFetcher(launcher).fetch("mailto:someone@example.com"))

    assert launcher.opened == 0
