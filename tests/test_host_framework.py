from __future__ import annotations

from pathlib import Path
import json
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner
from vcmplugin.bundler import BuildOptions, build, get_library_config, library_externals, start_dev_bundler
from vcmplugin.context import Console, PluginContext
from vcmplugin.errors import HostFrameworkMissing
from vcmplugin.host_framework import HostFramework
from vcmplugin.setup_map_ui import setup_map_ui
from vcmplugin.staging import build_staging_app


def _make_project(root: Path, package: dict) -> Path:
    (root / "package.json").write_text(json.dumps(package), encoding="utf-8")
    host = root / "node_modules" / "@vcmap" / "ui"
    host.mkdir(parents=True)
    (host / "package.json").write_text(json.dumps({"name": "@vcmap/ui", "version": "6.1.0"}), encoding="utf-8")
    return host


class HostFrameworkTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.runner = RecordingCommandRunner()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_locate_without_host_framework(self) -> None:
        (self.root / "package.json").write_text(json.dumps({"name": "p"}), encoding="utf-8")
        with self.assertRaises(HostFrameworkMissing):
            HostFramework.locate(PluginContext(self.root, Console("none")), self.runner)

    def test_version_and_inline_plugins(self) -> None:
        host_root = _make_project(self.root, {"name": "p"})
        (host_root / "plugins" / "node_modules").mkdir(parents=True)
        (host_root / "plugins" / "b").mkdir()
        (host_root / "plugins" / "b" / "package.json").write_text("{}", encoding="utf-8")
        (host_root / "plugins" / "no-manifest").mkdir()
        host = HostFramework.locate(PluginContext(self.root, Console("none")), self.runner)
        self.assertEqual(host.version(), "6.1.0")
        self.assertEqual(host.get_inline_plugins(), ["b"])
        self.assertEqual(host.installed_plugins(), [])

    async def test_ensure_types_only_for_typescript(self) -> None:
        host_root = _make_project(self.root, {"name": "p", "devDependencies": {"typescript": "^5"}})
        host = HostFramework.locate(PluginContext(self.root, Console("none")), self.runner)
        await host.ensure_types()
        self.assertEqual(
            [record.command for record in self.runner.iter_commands()],
            [["npm", "run", "build-types", "--", "--skipValidation"]],
        )
        self.assertEqual(self.runner.commands[0].cwd, str(host_root.resolve()))

    async def test_ensure_built_skips_existing_dist(self) -> None:
        host_root = _make_project(self.root, {"name": "p"})
        (host_root / "dist").mkdir()
        host = HostFramework.locate(PluginContext(self.root, Console("none")), self.runner)
        await host.ensure_built()
        self.assertEqual(self.runner.commands, [])

    async def test_setup_map_ui(self) -> None:
        _make_project(self.root, {"name": "p"})
        await setup_map_ui(PluginContext(self.root, Console("none")), self.runner)
        self.assertEqual([record.command for record in self.runner.iter_commands()], [["npm", "run", "install-plugins"]])


class BundlerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        (self.root / "package.json").write_text(
            json.dumps({"name": "p", "main": "src/index.js", "peerDependencies": {"@vcmap/ui": "^6", "dayjs": "^1"}}),
            encoding="utf-8",
        )
        self.ctx = PluginContext(self.root, Console("none"))

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_library_config(self) -> None:
        config = get_library_config(self.ctx, BuildOptions(development=True))
        self.assertEqual(config["mode"], "development")
        self.assertFalse(config["build"]["minify"])
        self.assertTrue(config["build"]["emptyOutDir"])
        self.assertEqual(config["build"]["lib"]["entry"], str(self.ctx.root / "src" / "index.js"))
        self.assertEqual(config["build"]["rollupOptions"]["output"]["entryFileNames"], "index.js")

    def test_externals_include_peers_once(self) -> None:
        externals = library_externals(self.ctx)
        self.assertIn("dayjs", externals)
        self.assertEqual(externals.count("@vcmap/ui"), 1)

    async def test_build_writes_config_module(self) -> None:
        runner = RecordingCommandRunner()
        await build(self.ctx, runner, BuildOptions(watch=True))
        record = runner.commands[0]
        self.assertEqual(record.command[:3], ["npx", "vite", "build"])
        self.assertEqual(record.command[-1], "--watch")
        config_module = Path(record.command[4]).read_text(encoding="utf-8")
        self.assertIn("export default config;", config_module)
        self.assertIn('"dayjs"', config_module)

    async def test_dev_bundler_starts_in_background(self) -> None:
        runner = RecordingCommandRunner()
        process = await start_dev_bundler(self.ctx, runner, port=8009, client_port=8009)
        self.assertFalse(process.running)
        self.assertTrue(runner.commands[0].background)
        self.assertIn('"port": 8009', Path(runner.commands[0].command[-1]).read_text(encoding="utf-8"))


class StagingAppTests(unittest.IsolatedAsyncioTestCase):
    async def test_builds_standalone_application(self) -> None:
        with tempfile.TemporaryDirectory() as temp:
            root = Path(temp)
            host_root = _make_project(root, {"name": "demo", "version": "1.0.0"})
            (host_root / "dist" / "assets").mkdir(parents=True)
            (host_root / "dist" / "index.html").write_text("<html></html>", encoding="utf-8")
            (host_root / "dist" / "assets" / "ui.js").write_text("ui", encoding="utf-8")
            (host_root / "config").mkdir()
            (host_root / "config" / "base.config.json").write_text("{}", encoding="utf-8")
            (host_root / "app.config.json").write_text(
                json.dumps({"modules": ["config/base.config.json"]}), encoding="utf-8"
            )
            (root / "dist").mkdir()
            (root / "dist" / "stale.txt").write_text("old", encoding="utf-8")
            runner = RecordingCommandRunner()

            target = await build_staging_app(PluginContext(root, Console("none")), runner)

            self.assertFalse((target / "stale.txt").exists())
            self.assertTrue((target / "index.html").is_file())
            self.assertTrue((target / "assets" / "ui.js").is_file())
            self.assertTrue((target / "config" / "base.config.json").is_file())
            config = json.loads((target / "app.config.json").read_text(encoding="utf-8"))
            self.assertEqual(config["modules"][0]["plugins"], [{"name": "demo", "entry": "plugins/demo/index.js"}])
            self.assertEqual(config["modules"][1], "config/base.config.json")
            executables = [record.command[0] for record in runner.iter_commands()]
            self.assertEqual(executables, ["npm", "node", "npx"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
