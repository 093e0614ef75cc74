"""The ``preview`` command: serve a production build of the plugin.

Without ``--vcm`` the locally installed host framework is built and served
next to the plugin. With ``--vcm`` an already hosted application provides the
index page and assets, and the plugin is injected into its app config.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict

from core.command_runner import CommandRunner

from .bundler import BuildOptions, build, start_watch_build
from .config_resolver import AppConfigResolver, ConfigCache, ConfigSource, HostConfigLoader
from .context import PluginContext
from .dev_server import IndexPage, ServerRoutes, ShutdownSequence, create_app, run_server
from .host_framework import HOST_PACKAGE_NAME, HostFramework
from .options import ServeOptions
from .proxy import hosted_proxy_routes
from .serve import warn_reserved_directories


async def preview(ctx: PluginContext, runner: CommandRunner, options: ServeOptions) -> None:
    host: HostFramework | None = None
    if options.vcm:
        ctx.console.info(f"Using hosted VC Map application {options.vcm}")
    else:
        host = HostFramework.locate(ctx, runner)
        host.print_version()
        await host.ensure_built()
    warn_reserved_directories(ctx)

    await build(ctx, runner, BuildOptions(development=False))

    shutdown = ShutdownSequence(ctx.console)
    cache = ConfigCache()
    static: Dict[str, Path] = {"/dist": ctx.resolve("dist")}
    source: ConfigSource

    if host is not None:
        if not host.resolve("plugins", "node_modules").exists():
            ctx.console.info(f"plugins of {HOST_PACKAGE_NAME} are not installed yet")
            await host.setup_plugins()
        await host.build_library()
        static["/assets"] = host.resolve("dist", "assets")
        static["/plugins"] = ctx.resolve("dist", "plugins")
        source = options.app_config or host.resolve("app.config.json")
        index = IndexPage(path=host.resolve("dist", "index.html"))
        proxy = dict(options.proxy)
        host_configs: HostConfigLoader | None = HostConfigLoader(ctx, cache, host.root)
    else:
        assert options.vcm is not None
        source = options.app_config or f"{options.vcm}/app.config.json"
        index = IndexPage(hosted_url=options.vcm, auth=options.auth)
        await index.prepare(ctx.root)
        shutdown.add_temp_file(index.temp_file)
        proxy = hosted_proxy_routes(options.vcm, options.proxy)
        host_configs = None

    resolver = AppConfigResolver(
        ctx,
        cache,
        source=source,
        auth=options.auth,
        production=True,
        plugin_config=options.config,
    )
    routes = ServerRoutes(
        resolver=resolver,
        index=index,
        proxy=proxy,
        host_configs=host_configs,
        static=static,
        plugin_assets=ctx.resolve("plugin-assets"),
        plugin_assets_base="dist",
    )

    watcher = await start_watch_build(ctx, runner, BuildOptions(development=False, keep_output=True))
    shutdown.add_process(watcher)

    try:
        await run_server(create_app(routes, ctx.console), options.port, shutdown, ctx.console)
    finally:
        await shutdown.run()


__all__ = ["preview"]
