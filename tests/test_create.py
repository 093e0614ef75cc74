from __future__ import annotations

from pathlib import Path
import json
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner
from vcmplugin.context import Console
from vcmplugin.create import PluginAnswers, create_plugin, parse_license, prompt_answers, scaffold_files, validate_plugin_name
from vcmplugin.errors import UserInputError
from vcmplugin.licenses import LicenseType, license_text

RELEASE = json.dumps({"name": "@vcmap/ui", "peerDependencies": {"@vcmap/core": "^6.0.0", "ol": "^10.0.0"}})


class ScriptedSession:
    """Answers prompts from a list, falling back to the offered default."""

    def __init__(self, answers: list[str]) -> None:
        self.answers = list(answers)
        self.prompts = 0

    async def prompt_async(self, message, default: str = "") -> str:
        self.prompts += 1
        answer = self.answers.pop(0) if self.answers else ""
        return answer or default


class PromptTests(unittest.IsolatedAsyncioTestCase):
    async def test_collects_answers(self) -> None:
        session = ScriptedSession(["demo", "", "A demo", "Jane", "isc", "^6.0.0", "y"])
        answers = await prompt_answers(session=session)
        self.assertEqual(answers.name, "demo")
        self.assertEqual(answers.version, "1.0.0")
        self.assertEqual(answers.license, LicenseType.ISC)
        self.assertEqual(answers.map_version, "^6.0.0")
        self.assertTrue(answers.typescript)
        self.assertEqual(answers.entry, "src/index.ts")

    async def test_name_argument_skips_prompt(self) -> None:
        session = ScriptedSession([])
        answers = await prompt_answers("given", session=session)
        self.assertEqual(answers.name, "given")
        self.assertEqual(session.prompts, 6)
        self.assertEqual(answers.license, LicenseType.MIT)
        self.assertFalse(answers.typescript)

    async def test_empty_name_is_rejected(self) -> None:
        with self.assertRaises(UserInputError):
            await prompt_answers(session=ScriptedSession(["   "]))


class ScaffoldTests(unittest.TestCase):
    def test_validate_plugin_name(self) -> None:
        self.assertEqual(validate_plugin_name(" @scope/my-plugin "), "@scope/my-plugin")
        with self.assertRaises(UserInputError):
            validate_plugin_name("")
        with self.assertRaises(UserInputError):
            validate_plugin_name("Has Spaces")

    def test_parse_license(self) -> None:
        self.assertEqual(parse_license("apache-2.0"), LicenseType.APACHE)
        self.assertEqual(parse_license(""), LicenseType.MIT)
        with self.assertRaises(UserInputError):
            parse_license("BSD")

    def test_package_json_from_template(self) -> None:
        files = scaffold_files(PluginAnswers(name="demo", version="2.0.0", author="Jane", license=LicenseType.GPL3))
        package = json.loads(files["package.json"])
        self.assertEqual(package["name"], "demo")
        self.assertEqual(package["version"], "2.0.0")
        self.assertEqual(package["license"], "GPL-3.0")
        self.assertEqual(package["main"], "src/index.js")
        self.assertEqual(package["exports"]["."], "./src/index.js")
        self.assertEqual(package["keywords"], ["vcmap", "plugin"])
        self.assertIn("# demo", files["README.md"])
        self.assertIn("export default function plugin(config, baseUrl) {", files["src/index.js"])
        self.assertNotIn("tsconfig.json", files)
        self.assertIn("GNU General Public License", files["LICENSE.md"])

    def test_license_text_year(self) -> None:
        self.assertTrue(license_text("MIT", "Jane", 2020).startswith("Copyright 2020 Jane"))
        with self.assertRaises(ValueError):
            license_text("WTFPL", "Jane")


class CreatePluginTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.base = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    async def test_scaffolds_and_installs(self) -> None:
        runner = RecordingCommandRunner({"npm view @vcmap/ui@latest --json": RELEASE})
        answers = PluginAnswers(name="@scope/demo", author="Jane", typescript=True)

        target = await create_plugin(self.base, answers, runner, Console("none"))

        self.assertEqual(target, self.base / "@scope-demo")
        for relative in ("package.json", "README.md", "CHANGELOG.md", "config.json", "LICENSE.md", "src/index.ts", "tsconfig.json"):
            self.assertTrue((target / relative).is_file(), relative)
        installs = [record.command for record in runner.iter_commands() if record.command[:2] == ["npm", "i"]]
        self.assertEqual(
            installs,
            [
                ["npm", "i", "--save-peer", "@vcmap/ui@latest", "@vcmap/core@^6.0.0", "ol@^10.0.0"],
                ["npm", "i", "--save-dev", "vite", "typescript"],
            ],
        )

    async def test_existing_directory_is_rejected(self) -> None:
        (self.base / "demo").mkdir()
        runner = RecordingCommandRunner()
        with self.assertRaises(UserInputError):
            await create_plugin(self.base, PluginAnswers(name="demo"), runner, Console("none"))
        self.assertEqual(runner.commands, [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
