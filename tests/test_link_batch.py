import asyncio

import pytest

from pagehealth.workflows.link_batch import BatchScheduler
from pagehealth.workflows.link_resolve import LinkCheckConfig
from pagehealth.workflows.models import Link, LinkCheckResult, LinkOutcome, ResolvedVia


class RecordingResolver:
    def __init__(self, *, fail_on=(), raise_on=()):
        self.config = LinkCheckConfig(batch_size=5, inter_batch_delay=1.0)
        self.events = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.sessions = set()
        self.fail_on = set(fail_on)
        self.raise_on = set(raise_on)

    async def resolve(self, url, session=None):
        self.sessions.add(id(session))
        self.events.append(("start", url))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        self.events.append(("end", url))
        if url in self.raise_on:
            raise RuntimeError("resolver blew up")
        if url in self.fail_on:
            return LinkCheckResult(url, LinkOutcome.BROKEN, ResolvedVia.FAST_CLIENT, http_status=500, error="HTTP status 500")
        return LinkCheckResult(url, LinkOutcome.WORKING, ResolvedVia.FAST_CLIENT, http_status=200)


def _links(count):
    return [Link(href=f"https://example.com/page-{i}") for i in range(count)]


def _run(scheduler, links, **kwargs):
    return asyncio.run(scheduler.run_all(links, **kwargs))


def test_twelve_links_run_as_five_five_two_sequentially():
    resolver = RecordingResolver()
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        resolver.events.append(("sleep", seconds))

    scheduler = BatchScheduler(resolver, sleep=fake_sleep)
    links = _links(12)

    assert [len(batch) for batch in scheduler.partition(links)] == [5, 5, 2]

    results = _run(scheduler, links)

    assert len(results) == 12
    assert [r.url for r in results] == [link.href for link in links]
    assert sleeps == [1.0, 1.0]
    assert resolver.max_in_flight <= 5
    assert len(resolver.sessions) == 1

    # every link of a batch finishes before the pause, and the pause comes before the next batch
    sleep_positions = [i for i, event in enumerate(resolver.events) if event[0] == "sleep"]
    first_batch = {link.href for link in links[:5]}
    second_batch = {link.href for link in links[5:10]}
    before_first_sleep = resolver.events[: sleep_positions[0]]
    assert {url for kind, url in before_first_sleep if kind == "end"} == first_batch
    between = resolver.events[sleep_positions[0] + 1 : sleep_positions[1]]
    assert {url for kind, url in between if kind == "start"} == second_batch


def test_no_delay_after_single_batch():
    resolver = RecordingResolver()
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    results = _run(BatchScheduler(resolver, sleep=fake_sleep), _links(3))

    assert len(results) == 3
    assert sleeps == []


def test_empty_input_returns_empty_list():
    assert _run(BatchScheduler(RecordingResolver()), []) == []


def test_resolver_exception_becomes_broken_in_place():
    links = _links(4)
    resolver = RecordingResolver(raise_on={links[1].href})

    async def no_sleep(seconds):
        return None

    results = _run(BatchScheduler(resolver, batch_size=2, sleep=no_sleep), links)

    assert len(results) == 4
    assert results[1].url == links[1].href
    assert results[1].outcome is LinkOutcome.BROKEN
    assert results[1].error == "resolver blew up"
    assert all(r.working for i, r in enumerate(results) if i != 1)


def test_progress_hook_sees_every_result_and_errors_are_ignored():
    seen = []

    def hook(done, total, result):
        seen.append((done, total, result.url))
        if done == 2:
            raise ValueError("hook failure")

    async def no_sleep(seconds):
        return None

    results = _run(BatchScheduler(RecordingResolver(), batch_size=2, sleep=no_sleep), _links(3), progress_hook=hook)

    assert len(results) == 3
    assert [done for done, _, _ in seen] == [1, 2, 3]
    assert all(total == 3 for _, total, _ in seen)


def test_plain_url_strings_are_accepted():
    async def no_sleep(seconds):
        return None

    results = _run(BatchScheduler(RecordingResolver(), sleep=no_sleep), ["https://example.com/a", "https://example.com/b"])

    assert [r.url for r in results] == ["https://example.com/a", "https://example.com/b"]


def test_batch_settings_come_from_resolver_config():
    resolver = RecordingResolver()
    resolver.config = LinkCheckConfig(batch_size=7, inter_batch_delay=0.5)
    scheduler = BatchScheduler(resolver)

    assert scheduler.batch_size == 7
    assert scheduler.inter_batch_delay == 0.5


def test_invalid_batch_settings_rejected():
    with pytest.raises(ValueError):
        BatchScheduler(RecordingResolver(), batch_size=0)
    with pytest.raises(ValueError):
        BatchScheduler(RecordingResolver(), inter_batch_delay=-1)
