"""Packaging of a built plugin into a distributable archive."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

from core.archive import FORMAT_SUFFIXES, ArchiveEntry, ArchiveManager, normalize_format
from core.command_runner import CommandRunner

from .bundler import BuildOptions, build
from .context import PluginContext
from .errors import BuildArtifactMissing
from .manifest import PRODUCTION_ENTRY, ensure_manifest

PACKAGE_FILES: tuple[str, ...] = (
    "package.json",
    "LICENSE.md",
    "README.md",
    "CHANGELOG.md",
    PRODUCTION_ENTRY,
    "dist/config.json",
)
REQUIRED_FILES: tuple[str, ...] = (PRODUCTION_ENTRY, "dist/config.json")
ASSET_DIR = "plugin-assets"


@dataclass(slots=True)
class PackOptions:
    archive_format: str = "zip"


def archive_basename(plugin_name: str) -> str:
    """``@scope/name`` -> ``@scope-name``."""
    return plugin_name.replace("/", "-").replace("\\", "-")


def build_archive(
    ctx: PluginContext,
    plugin_name: str,
    files: Sequence[str],
    asset_dir: str | None = ASSET_DIR,
    *,
    required: Iterable[str] = REQUIRED_FILES,
    archive_format: str = "zip",
    output_dir: str = "dist",
) -> Path:
    """Archive *files* (relative to the plugin root) below a directory named *plugin_name*.

    Files listed in *required* must exist; any other missing file is left out.
    """
    required_set = set(required)
    entries: List[ArchiveEntry] = []
    for relative in files:
        source = ctx.resolve(relative)
        if not source.is_file():
            if relative in required_set:
                raise BuildArtifactMissing(relative)
            ctx.console.debug(f"skipping missing {relative}")
            continue
        entries.append(ArchiveEntry(source=source, arcname=f"{plugin_name}/{Path(relative).name}"))

    if asset_dir and ctx.resolve(asset_dir).is_dir():
        entries.append(ArchiveEntry(source=ctx.resolve(asset_dir), arcname=f"{plugin_name}/{asset_dir}"))

    fmt = normalize_format(archive_format)
    target = ctx.resolve(output_dir, f"{archive_basename(plugin_name)}{FORMAT_SUFFIXES[fmt]}")
    return ArchiveManager(ctx.console).create_archive(entries=entries, target_path=target, format_hint=fmt)


async def pack(ctx: PluginContext, runner: CommandRunner, options: PackOptions | None = None) -> Path:
    options = options or PackOptions()
    name = ctx.plugin_name()
    ctx.console.info(f"building plugin: {name}")
    await build(ctx, runner, BuildOptions(development=False))
    ensure_manifest(ctx)
    ctx.console.info("ensuring config.json")
    archive = build_archive(
        ctx,
        name,
        PACKAGE_FILES,
        ASSET_DIR,
        archive_format=options.archive_format,
    )
    ctx.console.success(f"build finished: {archive}")
    return archive


__all__ = [
    "ASSET_DIR",
    "PACKAGE_FILES",
    "PackOptions",
    "REQUIRED_FILES",
    "archive_basename",
    "build_archive",
    "pack",
]
