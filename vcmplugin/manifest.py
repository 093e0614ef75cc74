"""package.json helpers: entries, dependency installs and the packaged manifest."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List
import json

from core.command_runner import CommandRunner

from .context import PluginContext
from .errors import UserInputError

PRODUCTION_ENTRY = "dist/index.js"
DEFAULT_SOURCE_ENTRY = "src/index.js"


class DepType(str, Enum):
    DEP = "dep"
    PEER = "peer"
    DEV = "dev"


_SAVE_FLAGS: Dict[DepType, str] = {
    DepType.DEP: "--save",
    DepType.PEER: "--save-peer",
    DepType.DEV: "--save-dev",
}


def resolve_plugin_entry(ctx: PluginContext, production: bool) -> str:
    """Entry the host application should load the plugin from."""
    if production:
        return PRODUCTION_ENTRY
    main = str(ctx.package_json().get("main") or DEFAULT_SOURCE_ENTRY)
    if main.startswith("./"):
        main = main[2:]
    return main


async def install_deps(
    runner: CommandRunner,
    deps: Iterable[str],
    dep_type: DepType,
    cwd: Path,
) -> None:
    packages = ["".join(dep.split()) for dep in deps if dep and dep.strip()]
    if not packages:
        return
    await runner.run(
        ["npm", "i", _SAVE_FLAGS[dep_type], *packages],
        cwd=cwd,
        note=f"install {dep_type.value} dependencies",
    )


def read_json_object(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise UserInputError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise UserInputError(f"{path} must contain a JSON object")
    return data


def ensure_manifest(ctx: PluginContext, output_dir: str = "dist") -> Path:
    """Write the plugin's config.json, completed from package.json, into *output_dir*.

    ``version`` is written as a caret range so the host accepts compatible
    patch and minor releases of the packaged plugin.
    """
    config_path = ctx.resolve("config.json")
    config: Dict[str, Any] = read_json_object(config_path) if config_path.is_file() else {}

    package_json = ctx.package_json()
    if not config.get("version"):
        version = package_json.get("version")
        if version:
            config["version"] = f"^{version}"
    if not config.get("name"):
        config["name"] = ctx.plugin_name()

    target = ctx.resolve(output_dir, "config.json")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(config, indent=2), encoding="utf-8")
    ctx.console.debug(f"wrote {target}")
    return target


def peer_dependency_names(ctx: PluginContext) -> List[str]:
    peers = ctx.package_json().get("peerDependencies") or {}
    return sorted(str(name) for name in peers)


__all__ = [
    "DEFAULT_SOURCE_ENTRY",
    "DepType",
    "PRODUCTION_ENTRY",
    "ensure_manifest",
    "install_deps",
    "peer_dependency_names",
    "read_json_object",
    "resolve_plugin_entry",
]
