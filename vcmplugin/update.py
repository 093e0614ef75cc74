"""The ``update`` command: align peer dependencies with a host framework release."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping
import json

from core.command_runner import CommandRunner

from .context import PluginContext
from .errors import ConfigParseError
from .host_framework import HOST_PACKAGE_NAME
from .manifest import DepType, install_deps

DEFAULT_MAP_VERSION = "latest"


async def fetch_host_release(runner: CommandRunner, map_version: str = DEFAULT_MAP_VERSION) -> Dict[str, Any]:
    """Registry metadata of the newest host framework release matching *map_version*."""
    spec = f"{HOST_PACKAGE_NAME}@{map_version}"
    result = await runner.run(["npm", "view", spec, "--json"], note=f"query {spec}")
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(f"npm view {spec}", str(exc)) from exc
    # a range matching several releases yields a list in ascending order
    if isinstance(data, list):
        if not data:
            raise ConfigParseError(f"npm view {spec}", "no matching release")
        data = data[-1]
    if not isinstance(data, dict):
        raise ConfigParseError(f"npm view {spec}", "unexpected registry response")
    return data


def compute_peer_updates(
    plugin_peers: Mapping[str, str] | None,
    release: Mapping[str, Any],
    map_version: str = DEFAULT_MAP_VERSION,
) -> List[str]:
    """Install specs for the host framework and every plugin peer whose range differs from the release."""
    host_name = str(release.get("name") or HOST_PACKAGE_NAME)
    host_peers: Mapping[str, str] = release.get("peerDependencies") or {}
    updates = [f"{host_name}@{map_version}"]
    for name, current in (plugin_peers or {}).items():
        if name == host_name:
            continue
        wanted = host_peers.get(name)
        if wanted and wanted != current:
            updates.append(f"{name}@{wanted}")
    return updates


async def update_peer_dependencies(
    runner: CommandRunner,
    plugin_peers: Mapping[str, str] | None,
    plugin_path: Path,
    map_version: str = DEFAULT_MAP_VERSION,
) -> List[str]:
    release = await fetch_host_release(runner, map_version)
    updates = compute_peer_updates(plugin_peers, release, map_version)
    await install_deps(runner, updates, DepType.PEER, plugin_path)
    return updates


async def update(ctx: PluginContext, runner: CommandRunner, map_version: str = DEFAULT_MAP_VERSION) -> List[str]:
    manifest = ctx.package_json()
    ctx.console.info(f"Updating peer dependencies to {HOST_PACKAGE_NAME}@{map_version}")
    updates = await update_peer_dependencies(runner, manifest.get("peerDependencies"), ctx.root, map_version)
    ctx.console.success(f"Updated peer dependencies: {', '.join(updates)}")
    ctx.reload_package_json()
    ctx.console.success(f"Updated plugin {ctx.plugin_name()}")
    return updates


__all__ = [
    "DEFAULT_MAP_VERSION",
    "compute_peer_updates",
    "fetch_host_release",
    "update",
    "update_peer_dependencies",
]
