from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest
from aiohttp import web

from pagehealth.workflows.browser import NavigationResponse


class FakeSession:
    def __init__(self, launcher: "FakeLauncher") -> None:
        self.launcher = launcher

    async def navigate(self, url: str, *, wait_until: str, timeout: float) -> Optional[NavigationResponse]:
        self.launcher.navigations.append((url, wait_until, timeout))
        outcome = self.launcher.routes.get(url, self.launcher.default)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(url)
        return outcome

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.launcher.evaluations.append(arg)
        return self.launcher.dom

    async def content(self) -> str:
        return self.launcher.html

    async def title(self) -> str:
        return self.launcher.title

    async def close(self) -> None:
        self.launcher.closed += 1


class FakeLauncher:
    """In-memory BrowserLauncher: routes map URL -> response, None, or exception."""

    def __init__(
        self,
        routes: Optional[Dict[str, Any]] = None,
        *,
        default: Any = None,
        html: str = "",
        title: str = "",
        dom: Any = None,
        open_error: Optional[BaseException] = None,
    ) -> None:
        self.routes = dict(routes or {})
        self.default = default
        self.html = html
        self.title = title
        self.dom = dom if dom is not None else {"links": [], "layout": {}}
        self.open_error = open_error
        self.opened = 0
        self.closed = 0
        self.viewports: List[Optional[Dict[str, int]]] = []
        self.navigations: List[Tuple[str, str, float]] = []
        self.evaluations: List[Any] = []

    async def open(self, *, viewport: Optional[Dict[str, int]] = None) -> FakeSession:
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1
        self.viewports.append(viewport)
        return FakeSession(self)


def ok_response(url: str) -> NavigationResponse:
    return NavigationResponse(status=200, url=url)


@pytest.fixture
def fake_launcher():
    return FakeLauncher


@pytest.fixture
def browser_ok():
    return ok_response


def build_site() -> web.Application:
    async def ok(request):
        return web.Response(text="<html><body>ok</body></html>", content_type="text/html")

    async def forbidden(request):
        return web.Response(status=403, text="blocked")

    async def bad_request(request):
        return web.Response(status=400, text="bad")

    async def server_error(request):
        return web.Response(status=500, text="boom")

    async def moved(request):
        raise web.HTTPFound("/ok")

    async def named(request):
        return web.Response(text=f"<html><body>{request.match_info['name']}</body></html>", content_type="text/html")

    async def loop(request):
        raise web.HTTPFound("/loop")

    async def robots(request):
        origin = str(request.url.origin())
        return web.Response(text=f"User-agent: *\nDisallow:\nSitemap: {origin}/custom-sitemap.xml\n")

    async def sitemap(request):
        return web.Response(text="<urlset></urlset>", content_type="application/xml")

    app = web.Application()
    app.router.add_get("/ok", ok)
    app.router.add_get("/forbidden", forbidden)
    app.router.add_get("/bad", bad_request)
    app.router.add_get("/error", server_error)
    app.router.add_get("/moved", moved)
    app.router.add_get("/loop", loop)
    app.router.add_get("/files/{name}", named)
    app.router.add_get("/robots.txt", robots)
    app.router.add_get("/custom-sitemap.xml", sitemap)
    return app


@pytest.fixture
def site_app():
    return build_site
