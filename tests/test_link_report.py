import json

from pagehealth.workflows.link_report import aggregate, summarize, to_check_results
from pagehealth.workflows.models import LinkCheckResult, LinkOutcome, ResolvedVia


def _results():
    return [
        LinkCheckResult("https://a.example/", LinkOutcome.WORKING, ResolvedVia.FAST_CLIENT, http_status=200),
        LinkCheckResult("https://b.example/", LinkOutcome.BROKEN, ResolvedVia.FAST_CLIENT, http_status=500, error="HTTP status 500"),
        LinkCheckResult(
            "https://c.example/",
            LinkOutcome.WORKING,
            ResolvedVia.BROWSER_FALLBACK,
            http_status=200,
            redirect_target="https://c.example/home",
            metadata={"fallback_from_status": 403},
        ),
        LinkCheckResult(
            "https://d.example/",
            LinkOutcome.BROKEN,
            ResolvedVia.BROWSER_FALLBACK,
            error="net::ERR_NAME_NOT_RESOLVED",
        ),
    ]


def test_aggregate_is_a_stable_partition():
    report = aggregate(_results())

    assert [r.url for r in report.working] == ["https://a.example/", "https://c.example/"]
    assert [r.url for r in report.not_working] == ["https://b.example/", "https://d.example/"]
    assert report.total == 4


def test_report_dict_uses_working_and_not_working_keys():
    payload = aggregate(_results()).to_dict()

    assert set(payload) == {"working", "notWorking"}
    assert payload["working"][1]["redirect_url"] == "https://c.example/home"
    assert payload["working"][1]["metadata"] == {"fallback_from_status": 403}
    assert payload["notWorking"][0]["error"] == "HTTP status 500"
    assert payload["notWorking"][1]["status"] is None
    json.dumps(payload)


def test_summarize_counts():
    assert summarize(aggregate(_results())) == {
        "total": 4,
        "working": 2,
        "not_working": 2,
        "via_fallback": 2,
        "redirected": 1,
    }


def test_check_results_for_broken_and_clean_reports():
    working, broken = to_check_results(aggregate(_results()))

    assert (working.status, broken.status) == ("pass", "fail")
    assert broken.message == "Found 2 broken links."
    assert broken.details["links"][1] == {"url": "https://d.example/", "status": None, "error": "net::ERR_NAME_NOT_RESOLVED"}
    assert working.to_dict()["test"] == "Working Links"

    clean_working, clean_broken = to_check_results(aggregate(_results()[:1]))
    assert clean_broken.status == "pass"
    assert clean_broken.details == {"links": []}
    assert clean_working.message == "Found 1 working links."


def test_link_check_result_json():
    result = _results()[0]
    assert json.loads(result.to_json()) == {
        "url": "https://a.example/",
        "outcome": "working",
        "working": True,
        "status": 200,
        "redirect_url": None,
        "resolved_via": "fast-client",
    }
