"""Access to the installed host map framework (``@vcmap/ui``)."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List
import json

from core.command_runner import CommandResult, CommandRunner

from .context import PluginContext
from .errors import HostFrameworkMissing
from .proxy import ProxyRouteTable, plugin_route

HOST_PACKAGE = ("@vcmap", "ui")
HOST_PACKAGE_NAME = "/".join(HOST_PACKAGE)

# Libraries the host provides at runtime; plugins must not bundle their own copy.
SHARED_LIBRARIES = (
    "@vcmap/ui",
    "@vcmap/core",
    "@vcmap-cesium/engine",
    "ol",
    "vue",
    "vuetify",
)

_PREVIEW_BUILD_SCRIPT = (
    "import { buildPluginsForPreview } from '@vcmap/ui/build/buildHelpers.js';\n"
    "await buildPluginsForPreview({}, true);\n"
)


class HostFramework:
    """Capabilities of the host framework the dev server and builds rely on.

    Resolved once per command through :meth:`locate`; everything else in the
    tool receives the instance instead of probing ``node_modules`` itself.
    """

    def __init__(self, ctx: PluginContext, runner: CommandRunner, root: Path) -> None:
        self._ctx = ctx
        self._runner = runner
        self.root = root
        self._package_json: Dict[str, Any] | None = None

    @classmethod
    def locate(cls, ctx: PluginContext, runner: CommandRunner) -> "HostFramework":
        root = ctx.resolve("node_modules", *HOST_PACKAGE)
        if not (root / "package.json").is_file():
            raise HostFrameworkMissing(
                f"Cannot find the {HOST_PACKAGE_NAME} package in {ctx.root}. Are you sure you installed it?"
            )
        return cls(ctx, runner, root)

    def resolve(self, *parts: str) -> Path:
        return self.root.joinpath(*parts)

    def package_json(self) -> Dict[str, Any]:
        if self._package_json is None:
            try:
                self._package_json = json.loads(self.resolve("package.json").read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                raise HostFrameworkMissing(f"Cannot read {HOST_PACKAGE_NAME}/package.json: {exc}") from exc
        return self._package_json

    def version(self) -> str:
        return str(self.package_json().get("version", "unknown"))

    def print_version(self) -> None:
        self._ctx.console.info(f"Using {HOST_PACKAGE_NAME} version: {self.version()} found in current project.")

    def relative_path(self, *parts: str) -> str:
        """Path below the host root relative to the plugin root, POSIX style."""
        return self.resolve(*parts).relative_to(self._ctx.root).as_posix()

    def installed_plugins(self) -> List[str]:
        manifest = self.resolve("plugins", "package.json")
        if not manifest.is_file():
            return []
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise HostFrameworkMissing(f"Cannot read {manifest}: {exc}") from exc
        return sorted(str(name) for name in (data.get("dependencies") or {}))

    def get_plugin_proxies(self, target: str) -> ProxyRouteTable:
        """Routes for plugins installed as dependencies of the host's plugin workspace."""
        routes: ProxyRouteTable = {}
        base = self.relative_path("plugins", "node_modules")
        for name in self.installed_plugins():
            pattern, route = plugin_route(name, target, base)
            routes[pattern] = route
        return routes

    def get_inline_plugins(self) -> List[str]:
        """Plugin directories living directly inside the host's ``plugins/`` folder."""
        plugins_dir = self.resolve("plugins")
        if not plugins_dir.is_dir():
            return []
        names: List[str] = []
        for candidate in sorted(plugins_dir.iterdir()):
            if not candidate.is_dir() or candidate.name == "node_modules":
                continue
            if candidate.name.startswith("@"):
                names.extend(
                    f"{candidate.name}/{scoped.name}"
                    for scoped in sorted(candidate.iterdir())
                    if (scoped / "package.json").is_file()
                )
            elif (candidate / "package.json").is_file():
                names.append(candidate.name)
        return names

    async def run_npm(self, args: List[str] | None = None, command: str = "run") -> CommandResult:
        result = await self._runner.run(
            ["npm", command, *(args or [])],
            cwd=self.root,
            note=f"npm {command} in {HOST_PACKAGE_NAME}",
        )
        self._ctx.console.output(result.stdout, result.stderr)
        return result

    async def build_library(self) -> None:
        """Build the host's plugins for a production preview using its own build helpers."""
        await self._runner.run(
            ["node", "--input-type=module", "-e", _PREVIEW_BUILD_SCRIPT],
            cwd=self._ctx.root,
            note=f"build {HOST_PACKAGE_NAME} preview",
            stream=True,
        )

    async def ensure_built(self) -> None:
        # a git-linked host ships without dist/
        if not self.resolve("dist").exists():
            self._ctx.console.info(f"building {HOST_PACKAGE_NAME}")
            await self.run_npm(["build"])

    async def setup_plugins(self) -> None:
        self._ctx.console.info(f"installing dev plugins in {HOST_PACKAGE_NAME}")
        await self.run_npm(["install-plugins"])
        self._ctx.console.success("dev plugins installed")

    async def ensure_types(self) -> None:
        dev_dependencies = self._ctx.package_json().get("devDependencies") or {}
        if "typescript" not in dev_dependencies:
            return
        if not self.resolve("index.d.ts").exists():
            self._ctx.console.info("building types")
            await self.run_npm(["build-types", "--", "--skipValidation"])
        self._ctx.console.debug("types ensured")


__all__ = ["HOST_PACKAGE_NAME", "HostFramework", "SHARED_LIBRARIES"]
