from __future__ import annotations

from pathlib import Path
import json
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner
from vcmplugin.context import Console, PluginContext
from vcmplugin.errors import UserInputError
from vcmplugin.manifest import (
    PRODUCTION_ENTRY,
    DepType,
    ensure_manifest,
    install_deps,
    peer_dependency_names,
    resolve_plugin_entry,
)


class ManifestTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _context(self, package: dict, **kwargs) -> PluginContext:
        (self.root / "package.json").write_text(json.dumps(package), encoding="utf-8")
        return PluginContext(self.root, Console("none"), **kwargs)

    def test_ensure_manifest_backfills_name_and_caret_version(self) -> None:
        ctx = self._context({"name": "foo", "version": "2.3.4"})
        (self.root / "config.json").write_text(json.dumps({"bar": 1}), encoding="utf-8")

        target = ensure_manifest(ctx)

        self.assertEqual(target, self.root / "dist" / "config.json")
        self.assertEqual(json.loads(target.read_text(encoding="utf-8")), {"bar": 1, "version": "^2.3.4", "name": "foo"})
        self.assertEqual(target.read_text(encoding="utf-8"), json.dumps({"bar": 1, "version": "^2.3.4", "name": "foo"}, indent=2))

    def test_ensure_manifest_keeps_existing_values(self) -> None:
        ctx = self._context({"name": "foo", "version": "2.3.4"})
        (self.root / "config.json").write_text(json.dumps({"name": "custom", "version": "1.0.0"}), encoding="utf-8")
        data = json.loads(ensure_manifest(ctx).read_text(encoding="utf-8"))
        self.assertEqual(data, {"name": "custom", "version": "1.0.0"})

    def test_ensure_manifest_without_config_file(self) -> None:
        ctx = self._context({"name": "foo"})
        data = json.loads(ensure_manifest(ctx).read_text(encoding="utf-8"))
        self.assertEqual(data, {"name": "foo"})

    def test_invalid_config_file(self) -> None:
        ctx = self._context({"name": "foo"})
        (self.root / "config.json").write_text("[1]", encoding="utf-8")
        with self.assertRaises(UserInputError):
            ensure_manifest(ctx)

    def test_resolve_plugin_entry(self) -> None:
        ctx = self._context({"name": "foo", "main": "./src/main.js"})
        self.assertEqual(resolve_plugin_entry(ctx, production=False), "src/main.js")
        self.assertEqual(resolve_plugin_entry(ctx, production=True), PRODUCTION_ENTRY)

    def test_resolve_plugin_entry_default(self) -> None:
        ctx = self._context({"name": "foo"})
        self.assertEqual(resolve_plugin_entry(ctx, production=False), "src/index.js")
        self.assertEqual(ctx.plugin_entry(), "./src/index.js")

    def test_plugin_name_override_and_missing(self) -> None:
        ctx = self._context({"version": "1.0.0"}, plugin_name="override")
        self.assertEqual(ctx.plugin_name(), "override")
        with self.assertRaises(UserInputError):
            PluginContext(self.root, Console("none")).plugin_name()

    def test_missing_package_json(self) -> None:
        with self.assertRaises(UserInputError):
            PluginContext(self.root, Console("none")).package_json()

    def test_peer_dependency_names(self) -> None:
        ctx = self._context({"name": "foo", "peerDependencies": {"vue": "^3", "@vcmap/ui": "^6"}})
        self.assertEqual(peer_dependency_names(ctx), ["@vcmap/ui", "vue"])


class InstallDepsTests(unittest.IsolatedAsyncioTestCase):
    async def test_installs_with_flag_and_strips_whitespace(self) -> None:
        runner = RecordingCommandRunner()
        await install_deps(runner, ["@vcmap/ui @latest", " ", "ol@^10"], DepType.PEER, Path("/tmp/p"))
        commands = list(runner.iter_commands())
        self.assertEqual(len(commands), 1)
        self.assertEqual(commands[0].command, ["npm", "i", "--save-peer", "@vcmap/ui@latest", "ol@^10"])
        self.assertEqual(commands[0].cwd, "/tmp/p")

    async def test_empty_list_is_noop(self) -> None:
        runner = RecordingCommandRunner()
        await install_deps(runner, [], DepType.DEV, Path("/tmp/p"))
        self.assertEqual(runner.commands, [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
