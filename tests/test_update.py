from __future__ import annotations

from pathlib import Path
import json
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner
from vcmplugin.context import Console, PluginContext
from vcmplugin.errors import ConfigParseError
from vcmplugin.update import compute_peer_updates, fetch_host_release, update

RELEASE = {
    "name": "@vcmap/ui",
    "version": "6.1.0",
    "peerDependencies": {"@vcmap/core": "^6.1.0", "ol": "^10.0.0", "vue": "~3.4.0"},
}


class PeerUpdateTests(unittest.TestCase):
    def test_only_differing_known_peers(self) -> None:
        plugin_peers = {"@vcmap/ui": "^5.0.0", "@vcmap/core": "^5.0.0", "ol": "^10.0.0", "dayjs": "^1.0.0"}
        self.assertEqual(compute_peer_updates(plugin_peers, RELEASE), ["@vcmap/ui@latest", "@vcmap/core@^6.1.0"])

    def test_without_plugin_peers(self) -> None:
        self.assertEqual(compute_peer_updates(None, RELEASE, "^6.0.0"), ["@vcmap/ui@^6.0.0"])


class UpdateCommandTests(unittest.IsolatedAsyncioTestCase):
    async def test_release_list_uses_latest_entry(self) -> None:
        older = dict(RELEASE, version="6.0.0")
        runner = RecordingCommandRunner({"npm view '@vcmap/ui@^6' --json": json.dumps([older, RELEASE])})
        release = await fetch_host_release(runner, "^6")
        self.assertEqual(release["version"], "6.1.0")

    async def test_unparsable_registry_output(self) -> None:
        runner = RecordingCommandRunner({"npm view @vcmap/ui@latest --json": "not json"})
        with self.assertRaises(ConfigParseError):
            await fetch_host_release(runner)

    async def test_update_installs_peers(self) -> None:
        with tempfile.TemporaryDirectory() as temp:
            root = Path(temp)
            (root / "package.json").write_text(
                json.dumps({"name": "demo", "peerDependencies": {"@vcmap/ui": "^5.0.0", "vue": "~3.3.0"}}),
                encoding="utf-8",
            )
            runner = RecordingCommandRunner({"npm view @vcmap/ui@latest --json": json.dumps(RELEASE)})

            updates = await update(PluginContext(root, Console("none")), runner)

            self.assertEqual(updates, ["@vcmap/ui@latest", "vue@~3.4.0"])
            self.assertEqual(
                [(record.command, record.cwd) for record in runner.iter_commands()],
                [
                    (["npm", "view", "@vcmap/ui@latest", "--json"], None),
                    (["npm", "i", "--save-peer", "@vcmap/ui@latest", "vue@~3.4.0"], str(root.resolve())),
                ],
            )


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
