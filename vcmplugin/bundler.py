"""Bundler (vite) configuration values and invocations."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List
import json

from core.command_runner import BackgroundProcess, CommandRunner

from .context import PluginContext
from .host_framework import SHARED_LIBRARIES
from .manifest import peer_dependency_names

CONFIG_DIR = ("node_modules", ".vcmplugin")

_CONFIG_MODULE = """const config = {config};
const externals = {externals};
if (externals.length > 0) {{
  config.build.rollupOptions.external = (id) => externals.some((name) => id === name || id.startsWith(`${{name}}/`));
}}
export default config;
"""


@dataclass(slots=True)
class BuildOptions:
    development: bool = False
    watch: bool = False
    output_dir: str = "dist"
    keep_output: bool = False
    entry: str | None = None


def _aliases(ctx: PluginContext) -> Dict[str, str]:
    return {
        "@cesium/engine": "@vcmap-cesium/engine",
        "@": str(ctx.resolve("src")),
    }


def library_externals(ctx: PluginContext) -> List[str]:
    names = list(SHARED_LIBRARIES)
    names.extend(name for name in peer_dependency_names(ctx) if name not in names)
    return names


def get_library_config(ctx: PluginContext, options: BuildOptions) -> Dict[str, Any]:
    """vite library-mode config producing ``<output_dir>/index.js`` as an ES module."""
    entry = options.entry or ctx.plugin_entry()
    return {
        "root": str(ctx.root),
        "mode": "development" if options.development else "production",
        "publicDir": False,
        "resolve": {"alias": _aliases(ctx)},
        "build": {
            "outDir": str(ctx.resolve(options.output_dir)),
            "emptyOutDir": not options.keep_output,
            "minify": not options.development,
            "sourcemap": options.development,
            "lib": {
                "entry": str(ctx.resolve(entry)),
                "formats": ["es"],
            },
            "rollupOptions": {
                "output": {
                    "entryFileNames": "index.js",
                    "assetFileNames": "assets/[name][extname]",
                },
            },
        },
    }


def get_dev_server_config(ctx: PluginContext, *, port: int, client_port: int) -> Dict[str, Any]:
    return {
        "root": str(ctx.root),
        "mode": "development",
        "publicDir": False,
        "appType": "custom",
        "resolve": {"alias": _aliases(ctx)},
        "server": {
            "host": "127.0.0.1",
            "port": port,
            "strictPort": True,
            "preTransformRequests": False,
            "hmr": {"clientPort": client_port},
        },
    }


def write_bundler_config(
    ctx: PluginContext,
    config: Dict[str, Any],
    name: str,
    externals: Iterable[str] = (),
) -> Path:
    """Serialize *config* into an ES module vite can load with ``--config``."""
    target = ctx.resolve(*CONFIG_DIR, f"{name}.config.mjs")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        _CONFIG_MODULE.format(
            config=json.dumps(config, indent=2),
            externals=json.dumps(list(externals)),
        ),
        encoding="utf-8",
    )
    return target


async def build(ctx: PluginContext, runner: CommandRunner, options: BuildOptions) -> Path:
    """Build the plugin; in watch mode vite keeps rebuilding until the process ends."""
    name = ctx.plugin_name()
    ctx.console.info(f"compiling {name}")
    config = get_library_config(ctx, options)
    config_path = write_bundler_config(ctx, config, "build", library_externals(ctx))
    command = ["npx", "vite", "build", "--config", str(config_path)]
    if options.watch:
        command.append("--watch")
    await runner.run(command, cwd=ctx.root, note=f"build {name}", stream=True)
    if not options.watch:
        ctx.console.success(f"built {name}")
    return ctx.resolve(options.output_dir)


async def start_watch_build(ctx: PluginContext, runner: CommandRunner, options: BuildOptions) -> BackgroundProcess:
    config = get_library_config(ctx, options)
    config_path = write_bundler_config(ctx, config, "watch", library_externals(ctx))
    return await runner.start(
        ["npx", "vite", "build", "--watch", "--config", str(config_path)],
        cwd=ctx.root,
        note=f"watch {ctx.plugin_name()}",
    )


async def start_dev_bundler(
    ctx: PluginContext,
    runner: CommandRunner,
    *,
    port: int,
    client_port: int,
) -> BackgroundProcess:
    config = get_dev_server_config(ctx, port=port, client_port=client_port)
    config_path = write_bundler_config(ctx, config, "serve")
    return await runner.start(
        ["npx", "vite", "--config", str(config_path)],
        cwd=ctx.root,
        note="start bundler dev server",
    )


__all__ = [
    "BuildOptions",
    "build",
    "get_dev_server_config",
    "get_library_config",
    "library_externals",
    "start_dev_bundler",
    "start_watch_build",
    "write_bundler_config",
]
