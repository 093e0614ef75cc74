"""aiohttp application shared by the serve and preview commands.

The server answers the config and index routes itself and forwards every
other request, either to an upstream from the proxy table or to the local
bundler process.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, List
import asyncio
import json
import signal
import tempfile

import aiohttp
from aiohttp import web
from multidict import CIMultiDict, CIMultiDictProxy

from core.command_runner import BackgroundProcess

from .config_resolver import AppConfigResolver, HostConfigLoader, fetch_body
from .context import Console
from .errors import ConfigParseError, ConfigUnreachable
from .proxy import ProxyRoute, ProxyRouteTable, match_proxy_route

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)
# aiohttp decodes upstream bodies, so length and encoding no longer apply
_DROPPED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding", "content-length"}
_CSP_HEADERS = ("Content-Security-Policy", "Content-Security-Policy-Report-Only")

BUNDLER_CLIENT_TAG = '<script type="module" src="/@vite/client"></script>'

CONSOLE_KEY = web.AppKey("console", Console)
SESSION_KEY = web.AppKey("session", aiohttp.ClientSession)


class IndexPage:
    """The HTML page served at ``/``.

    Either a file of the installed host framework or a hosted application's
    index, downloaded once into a temporary file.
    """

    def __init__(
        self,
        *,
        path: Path | None = None,
        hosted_url: str | None = None,
        auth: str | None = None,
        inject_bundler_client: bool = False,
    ) -> None:
        if path is None and hosted_url is None:
            raise ValueError("an index page needs a file or a hosted URL")
        self.path = path
        self.hosted_url = hosted_url
        self._auth = auth
        self._inject = inject_bundler_client
        self.temp_file: Path | None = None

    async def prepare(self, directory: Path | None = None) -> None:
        if self.hosted_url is None or self.temp_file is not None:
            return
        body = await fetch_body(f"{self.hosted_url}/", self._auth)
        with tempfile.NamedTemporaryFile(
            "wb", dir=directory, prefix=".vcmplugin-index-", suffix=".html", delete=False
        ) as handle:
            handle.write(body)
            self.temp_file = Path(handle.name)

    async def html(self) -> str:
        source = self.temp_file or self.path
        if source is None:
            await self.prepare()
            source = self.temp_file
        assert source is not None
        text = await asyncio.to_thread(source.read_text, encoding="utf-8", errors="replace")
        if self._inject and BUNDLER_CLIENT_TAG not in text:
            text = text.replace("</head>", f"  {BUNDLER_CLIENT_TAG}\n</head>", 1)
        return text


@dataclass(slots=True)
class ServerRoutes:
    """Everything :func:`create_app` wires into the application."""

    resolver: AppConfigResolver
    index: IndexPage
    proxy: ProxyRouteTable = field(default_factory=dict)
    bundler_url: str | None = None
    host_configs: HostConfigLoader | None = None
    static: Dict[str, Path] = field(default_factory=dict)
    plugin_assets: Path | None = None
    plugin_assets_base: str | None = None


def _filter_headers(headers: CIMultiDictProxy[str], dropped: frozenset[str]) -> CIMultiDict[str]:
    return CIMultiDict((key, value) for key, value in headers.items() if key.lower() not in dropped)


async def forward_request(
    request: web.Request,
    session: aiohttp.ClientSession,
    route: ProxyRoute,
    console: Console,
) -> web.Response:
    url = route.upstream_url(request.path, request.query_string)
    headers = _filter_headers(request.headers, HOP_BY_HOP_HEADERS)
    if route.change_origin:
        headers.popall("Host", None)
    body = await request.read() if request.can_read_body else None
    console.debug(f"proxy {request.method} {request.path_qs} -> {url}")
    try:
        async with session.request(
            request.method,
            url,
            headers=headers,
            data=body,
            ssl=None if route.secure else False,
            allow_redirects=False,
        ) as upstream:
            payload = await upstream.read()
            response_headers = _filter_headers(upstream.headers, _DROPPED_RESPONSE_HEADERS)
            if route.strip_csp:
                for name in _CSP_HEADERS:
                    response_headers.popall(name, None)
            return web.Response(status=upstream.status, body=payload, headers=response_headers)
    except aiohttp.ClientError as exc:
        console.warning(f"proxy request to {url} failed: {exc}")
        return web.Response(status=502)


def create_app(routes: ServerRoutes, console: Console) -> web.Application:
    app = web.Application()
    app[CONSOLE_KEY] = console

    async def client_session(app: web.Application):
        async with aiohttp.ClientSession(auto_decompress=True) as session:
            app[SESSION_KEY] = session
            yield

    app.cleanup_ctx.append(client_session)

    async def app_config(request: web.Request) -> web.Response:
        try:
            config = await routes.resolver.get_app_config()
        except (ConfigUnreachable, ConfigParseError) as exc:
            console.error(str(exc))
            return web.Response(status=404)
        return web.json_response(config, dumps=lambda value: json.dumps(value, indent=2))

    async def index(request: web.Request) -> web.Response:
        try:
            html = await routes.index.html()
        except (ConfigUnreachable, OSError) as exc:
            console.error(f"cannot load index page: {exc}")
            return web.Response(status=404)
        return web.Response(text=html, content_type="text/html")

    app.router.add_get("/app.config.json", app_config)
    app.router.add_get("/", index)
    app.router.add_get("/index.html", index)

    if routes.host_configs is not None:
        loader = routes.host_configs

        async def host_config(request: web.Request) -> web.Response:
            config = await loader.load(request.path)
            if config is None:
                return web.Response(status=404)
            return web.json_response(config)

        app.router.add_get("/config{tail:.*}", host_config)

    if routes.plugin_assets_base:
        prefix = f"/{routes.plugin_assets_base.strip('/')}"

        async def plugin_assets_redirect(request: web.Request) -> web.Response:
            raise web.HTTPPermanentRedirect(request.path_qs[len(prefix):])

        app.router.add_get(f"{prefix}/plugin-assets{{tail:.*}}", plugin_assets_redirect)

    if routes.plugin_assets is not None and routes.plugin_assets.is_dir():
        app.router.add_static("/plugin-assets", routes.plugin_assets)

    for url_prefix, directory in routes.static.items():
        if directory.is_dir():
            app.router.add_static(url_prefix, directory)
        else:
            console.warning(f"not serving {url_prefix}: {directory} does not exist")

    async def forward(request: web.Request) -> web.StreamResponse:
        match = match_proxy_route(routes.proxy, request.path)
        if match is not None:
            route = match[1]
        elif routes.bundler_url:
            route = ProxyRoute(target=routes.bundler_url, change_origin=False)
        else:
            raise web.HTTPNotFound()
        return await forward_request(request, app[SESSION_KEY], route, console)

    app.router.add_route("*", "/{tail:.*}", forward)
    return app


Step = Callable[[], Awaitable[None]]


class ShutdownSequence:
    """Ordered teardown run once when the process is asked to stop.

    Phases run in this order: stop accepting connections, close open
    connections, stop child processes and background tasks, remove
    temporary files.
    """

    def __init__(self, console: Console) -> None:
        self._console = console
        self._listening: List[Step] = []
        self._connections: List[Step] = []
        self._processes: List[Step] = []
        self._files: List[Path] = []
        self._event: asyncio.Event | None = None
        self._done = False

    def attach_runner(self, runner: web.AppRunner) -> None:
        self._connections.append(runner.cleanup)

    def attach_site(self, site: web.BaseSite) -> None:
        self._listening.append(site.stop)

    def add_process(self, process: BackgroundProcess) -> None:
        self._processes.append(process.stop)

    def add_task(self, step: Step) -> None:
        self._processes.append(step)

    def add_temp_file(self, path: Path | None) -> None:
        if path is not None:
            self._files.append(path)

    def install(self) -> asyncio.Event:
        """Register SIGINT/SIGTERM handlers; calling it again returns the same event."""
        if self._event is not None:
            return self._event
        loop = asyncio.get_running_loop()
        event = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, event.set)
            except NotImplementedError:  # pragma: no cover - windows event loops
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(event.set))
        self._event = event
        return event

    async def run(self) -> None:
        if self._done:
            return
        self._done = True
        for step in [*self._listening, *self._connections, *self._processes]:
            try:
                await step()
            except Exception as exc:
                self._console.error(f"shutdown step failed: {exc}")
        for path in self._files:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                self._console.error(f"failed to remove {path}: {exc}")
        self._console.info("server stopped")


async def run_server(app: web.Application, port: int, shutdown: ShutdownSequence, console: Console) -> None:
    """Serve *app* on *port* until a termination signal arrives."""
    stop = shutdown.install()
    runner = web.AppRunner(app)
    await runner.setup()
    shutdown.attach_runner(runner)
    try:
        site = web.TCPSite(runner, "0.0.0.0", port)
        await site.start()
        shutdown.attach_site(site)
        console.success(f"Server running on port {port}")
        await stop.wait()
    finally:
        await shutdown.run()


__all__ = [
    "IndexPage",
    "ServerRoutes",
    "ShutdownSequence",
    "create_app",
    "forward_request",
    "run_server",
]
