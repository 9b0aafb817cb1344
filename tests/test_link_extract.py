from pagehealth.workflows.link_extract import LinkExtractor, extract_links, link_urls, scan_raw_hrefs
from pagehealth.workflows.models import DiscoverySource, RawLink
from pagehealth.workflows.page_fetch import build_snapshot, snapshot_from_html

PAGE = """
<html>
<head>
  <title>Example page</title>
  <link rel="stylesheet" href="/static/site.css">
  <link rel="canonical" href='https://example.com/about#top'>
</head>
<body>
  <a href="/about">About</a>
  <a href="https://EXAMPLE.com:443/about#team">About again</a>
  <a href="docs/guide.html">Guide</a>
  <a href="//cdn.example.net/lib.js">CDN</a>
  <a href="mailto:hi@example.com">Mail</a>
  <a href="TEL:+123">Call</a>
  <a href="javascript:void(0)">Nothing</a>
  <a href="#section">Jump</a>
  <a href="#" data-href="/spa/route">SPA</a>
  <a href="javascript:void(0)" aria-label="https://partner.example.org/x">Partner</a>
  <a href="ftp://files.example.com/a.zip">FTP</a>
  <!-- <a href="/retired?a=1&amp;b=2">Retired</a> -->
</body>
</html>
"""


def _snapshot():
    return snapshot_from_html("https://example.com/blog/post", PAGE)


def test_extracts_absolute_deduplicated_links_in_order():
    links = LinkExtractor().extract(_snapshot())

    assert link_urls(links) == [
        "https://example.com/about",
        "https://example.com/blog/docs/guide.html",
        "https://cdn.example.net/lib.js",
        "https://example.com/spa/route",
        "https://partner.example.org/x",
        "https://example.com/static/site.css",
        "https://example.com/retired?a=1&b=2",
    ]


def test_sources_reflect_how_each_link_was_found():
    by_url = {link.href: link for link in LinkExtractor().extract(_snapshot())}

    assert by_url["https://example.com/about"].source is DiscoverySource.DOM
    assert by_url["https://example.com/about"].text == "About"
    assert by_url["https://example.com/spa/route"].source is DiscoverySource.ATTRIBUTE_SCAN
    assert by_url["https://partner.example.org/x"].source is DiscoverySource.ATTRIBUTE_SCAN
    assert by_url["https://example.com/static/site.css"].source is DiscoverySource.REGEX
    assert by_url["https://example.com/retired?a=1&b=2"].source is DiscoverySource.REGEX


def test_dom_and_regex_duplicate_collapse_to_one_link():
    snapshot = build_snapshot(
        "https://example.com/",
        '<html><body><a href="https://example.com/x">x</a></body></html>',
        links=[RawLink(href="https://example.com/x", text="x")],
    )

    links = extract_links(snapshot)

    assert len(links) == 1
    assert links[0].source is DiscoverySource.DOM


def test_extraction_is_idempotent():
    snapshot = _snapshot()
    assert LinkExtractor().extract(snapshot) == LinkExtractor().extract(snapshot)


def test_regex_pass_can_be_disabled():
    links = LinkExtractor(scan_raw_html=False).extract(_snapshot())
    urls = link_urls(links)

    assert "https://example.com/static/site.css" not in urls
    assert all(link.source is not DiscoverySource.REGEX for link in links)


def test_relative_links_resolve_against_final_url():
    snapshot = build_snapshot(
        "https://example.com/old",
        "<html><body></body></html>",
        links=[RawLink(href="next")],
        final_url="https://example.com/new/place",
    )

    assert link_urls(extract_links(snapshot, scan_raw_html=False)) == ["https://example.com/new/next"]


def test_scan_raw_hrefs_handles_both_quote_styles_and_entities():
    html = """<a href="/a?x=1&amp;y=2"></a><link HREF='/b'><a href = "/c">"""
    assert scan_raw_hrefs(html) == ["/a?x=1&y=2", "/b", "/c"]


def test_empty_page_has_no_links():
    assert extract_links(snapshot_from_html("https://example.com/", "")) == []


def test_encoded_and_literal_forms_of_one_url_collapse():
    snapshot = build_snapshot(
        "https://example.com/",
        '<html><body><a href="/café">Cafe</a><a href="/a b">Space</a><a href="/menu?q=crème brûlée">Menu</a></body></html>',
        links=[
            RawLink(href="https://example.com/caf%C3%A9", text="Cafe"),
            RawLink(href="https://example.com/a%20b", text="Space"),
        ],
    )

    assert link_urls(extract_links(snapshot)) == [
        "https://example.com/caf%C3%A9",
        "https://example.com/a%20b",
        "https://example.com/menu?q=cr%C3%A8me%20br%C3%BBl%C3%A9e",
    ]


def test_fragment_only_hrefs_behave_like_placeholders():
    snapshot = snapshot_from_html(
        "https://example.com/page",
        '<a href="#details" data-href="/spa/details">Details</a><a href="#top">Top</a>',
    )

    assert [(raw.href, raw.via) for raw in snapshot.links] == [("/spa/details", "data-href"), ("", "href")]
    links = extract_links(snapshot)
    assert link_urls(links) == ["https://example.com/spa/details"]
    assert links[0].source is DiscoverySource.ATTRIBUTE_SCAN
