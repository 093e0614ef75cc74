from __future__ import annotations

from pathlib import Path
import tempfile
import textwrap
import unittest

from core.config_loader import find_config_file, load_config_file


class ConfigLoaderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_supports_json_toml_and_yaml(self) -> None:
        (self.root / "a.json").write_text('{"port": 1}', encoding="utf-8")
        (self.root / "b.toml").write_text("port = 2\n", encoding="utf-8")
        (self.root / "c.yml").write_text(
            textwrap.dedent(
                """
                port: 3
                proxy:
                  /api: http://localhost
                """
            ),
            encoding="utf-8",
        )
        self.assertEqual(load_config_file(self.root / "a.json"), {"port": 1})
        self.assertEqual(load_config_file(self.root / "b.toml"), {"port": 2})
        self.assertEqual(load_config_file(self.root / "c.yml"), {"port": 3, "proxy": {"/api": "http://localhost"}})

    def test_empty_yaml_is_empty_mapping(self) -> None:
        (self.root / "empty.yaml").write_text("", encoding="utf-8")
        self.assertEqual(load_config_file(self.root / "empty.yaml"), {})

    def test_rejects_unknown_suffix_and_non_mapping(self) -> None:
        (self.root / "conf.ini").write_text("", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_config_file(self.root / "conf.ini")
        (self.root / "list.json").write_text("[1, 2]", encoding="utf-8")
        with self.assertRaises(TypeError):
            load_config_file(self.root / "list.json")

    def test_find_config_file(self) -> None:
        self.assertIsNone(find_config_file(self.root, "vcs.config"))
        (self.root / "vcs.config.toml").write_text("", encoding="utf-8")
        self.assertEqual(find_config_file(self.root, "vcs.config"), self.root / "vcs.config.toml")
        (self.root / "vcs.config.json").write_text("{}", encoding="utf-8")
        with self.assertRaises(ValueError):
            find_config_file(self.root, "vcs.config")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
