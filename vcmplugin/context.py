"""
Console and plugin context shared by all commands.
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, Mapping

from core.archive import ArchiveConsole

from .errors import UserInputError


class Console(ArchiveConsole):
    """Simple console output handler with configurable log level.

    Levels: none < error < info < debug
    Default: 'info'
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "info"):
        self.level_name = level
        self.level = self.LEVELS.get(level, 2)

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[INFO] {message}")

    def success(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[OK] {message}")

    def warning(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[WARN] {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}")

    def output(self, stdout: str, stderr: str = "") -> None:
        """Echo captured subprocess output verbatim."""
        if stdout.strip():
            self.info(stdout.rstrip())
        if stderr.strip():
            self.error(stderr.rstrip())


class PluginContext:
    """The plugin project a command operates on.

    Replaces the current working directory with ``root`` for every path the
    tooling resolves, and caches the parsed ``package.json`` for the lifetime
    of the object.
    """

    def __init__(
        self,
        root: Path,
        console: Console | None = None,
        *,
        plugin_name: str | None = None,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.console = console or Console()
        self._plugin_name_override = plugin_name
        self._package_json: Dict[str, Any] | None = None

    def resolve(self, *parts: str) -> Path:
        return self.root.joinpath(*parts)

    def package_json(self) -> Mapping[str, Any]:
        if self._package_json is None:
            path = self.resolve("package.json")
            if not path.is_file():
                raise UserInputError(f"no package.json found in context {self.root}")
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise UserInputError(f"package.json in {self.root} is not valid JSON: {exc}") from exc
            if not isinstance(data, dict):
                raise UserInputError(f"package.json in {self.root} must contain an object")
            self._package_json = data
        return self._package_json

    def reload_package_json(self) -> Mapping[str, Any]:
        self._package_json = None
        return self.package_json()

    def plugin_name(self) -> str:
        if self._plugin_name_override:
            return self._plugin_name_override
        name = self.package_json().get("name")
        if not name:
            raise UserInputError("please specify the plugin's name in the package.json")
        return str(name)

    def plugin_entry(self) -> str:
        """The declared source entry, relative paths prefixed with ``./``."""
        main = str(self.package_json().get("main") or "src/index.js")
        if Path(main).is_absolute() or main.startswith("."):
            return main
        return f"./{main}"


__all__ = ["Console", "PluginContext"]
