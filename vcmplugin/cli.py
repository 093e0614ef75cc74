"""Command line interface for the plugin tooling."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable
import asyncio
import sys

from core.command_runner import CommandError, CommandRunner, SubprocessCommandRunner

from .bundler import BuildOptions, build
from .context import Console, PluginContext
from .create import create_plugin, prompt_answers
from .errors import PluginCliError
from .options import DEFAULT_PREVIEW_PORT, DEFAULT_SERVE_PORT, ServeOptions, load_user_config
from .pack import PackOptions, pack
from .preview import preview
from .serve import serve
from .setup_map_ui import setup_map_ui
from .staging import build_staging_app
from .update import DEFAULT_MAP_VERSION, update

Action = Callable[[Namespace, PluginContext, CommandRunner], Awaitable[Any]]


def apply_default_options(parser: ArgumentParser) -> ArgumentParser:
    parser.add_argument("--context", help="Plugin directory to operate on (defaults to the working directory)")
    parser.add_argument("-n", "--plugin-name", dest="plugin_name", help="Override the name from package.json")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    return parser


def apply_serve_options(parser: ArgumentParser) -> ArgumentParser:
    parser.add_argument("-p", "--port", type=int, help="Port to serve on")
    parser.add_argument("--appConfig", dest="appConfig", help="Application config file or URL to inject the plugin into")
    parser.add_argument("--auth", help="Basic auth credentials for a remote app config (user:password)")
    parser.add_argument("-c", "--config", help="Plugin config file replacing ./config.json")
    return parser


def _build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="vcmplugin", description="Scaffold, build, serve and package VC Map plugins")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = apply_default_options(subparsers.add_parser("create", help="Create a new plugin"))
    create_parser.add_argument("name", nargs="?", help="Name of the new plugin")

    build_parser = apply_default_options(subparsers.add_parser("build", help="Build the plugin into dist/"))
    build_parser.add_argument("--development", action="store_true", help="Unminified build with source maps")
    build_parser.add_argument("--watch", action="store_true", help="Rebuild on changes")

    bundle_parser = apply_default_options(
        subparsers.add_parser("bundle", aliases=["pack"], help="Build and archive the plugin for distribution")
    )
    bundle_parser.add_argument("--format", dest="archive_format", choices=["zip", "tgz"], default="zip")

    apply_serve_options(apply_default_options(subparsers.add_parser("serve", help="Start the development server")))

    preview_parser = apply_serve_options(
        apply_default_options(subparsers.add_parser("preview", help="Serve a production build of the plugin"))
    )
    preview_parser.add_argument("--vcm", help="URL of a hosted VC Map application to preview against")

    apply_default_options(subparsers.add_parser("buildStagingApp", help="Build a standalone map application"))

    update_parser = apply_default_options(subparsers.add_parser("update", help="Update peer dependencies"))
    update_parser.add_argument(
        "--mapVersion",
        dest="map_version",
        default=DEFAULT_MAP_VERSION,
        help="Version range of @vcmap/ui to align with",
    )

    apply_default_options(subparsers.add_parser("setup-map-ui", help="Install the dev plugins of @vcmap/ui"))
    return parser


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    args = _build_parser().parse_args(list(argv))
    if args.command == "pack":
        args.command = "bundle"
    return args


def _serve_options(args: Namespace, ctx: PluginContext, default_port: int) -> ServeOptions:
    cli_values: Dict[str, Any] = {
        "port": args.port,
        "appConfig": args.appConfig,
        "auth": args.auth,
        "config": args.config,
        "vcm": getattr(args, "vcm", None),
    }
    return ServeOptions.from_sources(load_user_config(ctx), cli_values, default_port=default_port)


async def _handle_create(args: Namespace, ctx: PluginContext, runner: CommandRunner) -> Path:
    answers = await prompt_answers(args.name)
    return await create_plugin(ctx.root, answers, runner, ctx.console)


async def _handle_build(args: Namespace, ctx: PluginContext, runner: CommandRunner) -> Path:
    return await build(ctx, runner, BuildOptions(development=args.development, watch=args.watch))


async def _handle_bundle(args: Namespace, ctx: PluginContext, runner: CommandRunner) -> Path:
    return await pack(ctx, runner, PackOptions(archive_format=args.archive_format))


async def _handle_serve(args: Namespace, ctx: PluginContext, runner: CommandRunner) -> None:
    await serve(ctx, runner, _serve_options(args, ctx, DEFAULT_SERVE_PORT))


async def _handle_preview(args: Namespace, ctx: PluginContext, runner: CommandRunner) -> None:
    await preview(ctx, runner, _serve_options(args, ctx, DEFAULT_PREVIEW_PORT))


async def _handle_staging(args: Namespace, ctx: PluginContext, runner: CommandRunner) -> Path:
    return await build_staging_app(ctx, runner)


async def _handle_update(args: Namespace, ctx: PluginContext, runner: CommandRunner) -> Any:
    return await update(ctx, runner, args.map_version)


async def _handle_setup_map_ui(args: Namespace, ctx: PluginContext, runner: CommandRunner) -> Any:
    return await setup_map_ui(ctx, runner)


HANDLERS: Dict[str, Action] = {
    "create": _handle_create,
    "build": _handle_build,
    "bundle": _handle_bundle,
    "serve": _handle_serve,
    "preview": _handle_preview,
    "buildStagingApp": _handle_staging,
    "update": _handle_update,
    "setup-map-ui": _handle_setup_map_ui,
}


def run_action(action: Action, args: Namespace, ctx: PluginContext, runner: CommandRunner) -> int:
    """Run one subcommand; every failure becomes a logged message and a non-zero status."""
    try:
        asyncio.run(action(args, ctx, runner))
    except KeyboardInterrupt:
        ctx.console.info("interrupted")
        return 130
    except (PluginCliError, CommandError, OSError, ValueError) as exc:
        ctx.console.error(str(exc))
        return 1
    return 0


def main(argv: Iterable[str] | None = None, *, runner: CommandRunner | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    console = Console("debug" if args.verbose else "info")
    root = Path(args.context) if args.context else Path.cwd()
    ctx = PluginContext(root, console, plugin_name=args.plugin_name)
    return run_action(HANDLERS[args.command], args, ctx, runner or SubprocessCommandRunner())


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
