"""The ``buildStagingApp`` command: a self-contained static map application."""
from __future__ import annotations

from pathlib import Path
import json
import shutil

from core.command_runner import CommandRunner

from .bundler import BuildOptions, build
from .config_resolver import AppConfigResolver, ConfigCache
from .context import PluginContext
from .host_framework import HostFramework

STAGING_DIR = "dist"


def staging_entry(plugin_name: str) -> str:
    return f"plugins/{plugin_name}/index.js"


def _copy_host_files(host: HostFramework, target: Path) -> None:
    shutil.copy2(host.resolve("dist", "index.html"), target / "index.html")
    shutil.copytree(host.resolve("dist", "assets"), target / "assets", dirs_exist_ok=True)
    config_dir = host.resolve("config")
    if config_dir.is_dir():
        shutil.copytree(config_dir, target / "config", dirs_exist_ok=True)


async def build_staging_app(ctx: PluginContext, runner: CommandRunner) -> Path:
    """Build host and plugin into ``dist/`` so it can be deployed as static files."""
    name = ctx.plugin_name()
    host = HostFramework.locate(ctx, runner)
    host.print_version()

    target = ctx.resolve(STAGING_DIR)
    if target.exists():
        shutil.rmtree(target)
    target.mkdir(parents=True)

    await host.setup_plugins()
    await host.ensure_built()
    await host.build_library()
    await build(
        ctx,
        runner,
        BuildOptions(development=False, output_dir=f"{STAGING_DIR}/plugins/{name}", keep_output=True),
    )

    ctx.console.info("copying host application files")
    _copy_host_files(host, target)

    resolver = AppConfigResolver(
        ctx,
        ConfigCache(),
        source=host.resolve("app.config.json"),
        production=True,
        entry=staging_entry(name),
    )
    config = await resolver.get_app_config()
    (target / "app.config.json").write_text(json.dumps(config, indent=2), encoding="utf-8")
    ctx.console.success(f"staging application written to {target}")
    return target


__all__ = ["build_staging_app", "staging_entry"]
