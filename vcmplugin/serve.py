"""The ``serve`` command: a development server in front of the vite dev bundler."""
from __future__ import annotations

from pathlib import Path

from core.command_runner import CommandRunner

from .bundler import start_dev_bundler
from .config_resolver import AppConfigResolver, ConfigCache, ConfigFileWatcher, HostConfigLoader
from .context import PluginContext
from .dev_server import IndexPage, ServerRoutes, ShutdownSequence, create_app, run_server
from .host_framework import HostFramework
from .options import ServeOptions
from .proxy import assemble_proxy_routes

RESERVED_DIRECTORIES = ("assets", "plugins", "config")


def warn_reserved_directories(ctx: PluginContext) -> None:
    for name in RESERVED_DIRECTORIES:
        if ctx.resolve(name).is_dir():
            ctx.console.warning(
                f"The directory '{name}' is shadowed by the host application routes and will not be served"
            )


def plugin_config_path(ctx: PluginContext, options: ServeOptions) -> Path | None:
    if isinstance(options.config, dict):
        return None
    if options.config:
        path = Path(options.config)
        return path if path.is_absolute() else ctx.resolve(options.config)
    return ctx.resolve("config.json")


async def serve(ctx: PluginContext, runner: CommandRunner, options: ServeOptions) -> None:
    host = HostFramework.locate(ctx, runner)
    host.print_version()
    warn_reserved_directories(ctx)
    await host.ensure_types()

    plugin_name = ctx.plugin_name()
    bundler_port = options.port + 1
    bundler_url = f"http://127.0.0.1:{bundler_port}"
    proxy = assemble_proxy_routes(host, plugin_name, bundler_url, options.proxy, ctx.console)

    cache = ConfigCache()
    resolver = AppConfigResolver(
        ctx,
        cache,
        source=options.app_config or host.resolve("app.config.json"),
        auth=options.auth,
        production=False,
        plugin_config=options.config,
    )
    routes = ServerRoutes(
        resolver=resolver,
        index=IndexPage(path=host.resolve("index.html"), inject_bundler_client=True),
        proxy=proxy,
        bundler_url=bundler_url,
        host_configs=HostConfigLoader(ctx, cache, host.root),
        plugin_assets=ctx.resolve("plugin-assets"),
    )

    shutdown = ShutdownSequence(ctx.console)
    ctx.console.info(f"starting bundler on port {bundler_port}")
    bundler = await start_dev_bundler(ctx, runner, port=bundler_port, client_port=bundler_port)
    shutdown.add_process(bundler)

    watched = plugin_config_path(ctx, options)
    if watched is not None:
        def config_changed() -> None:
            ctx.console.info(f"{watched.name} changed, reloading app config")
            resolver.invalidate()

        watcher = ConfigFileWatcher(watched, config_changed)
        watcher.start()
        shutdown.add_task(watcher.stop)

    try:
        await run_server(create_app(routes, ctx.console), options.port, shutdown, ctx.console)
    finally:
        await shutdown.run()


__all__ = ["RESERVED_DIRECTORIES", "plugin_config_path", "serve", "warn_reserved_directories"]
