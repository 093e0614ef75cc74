from __future__ import annotations

import unittest

from core.template import TemplateError, TemplateResolver


class TemplateResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.context = {
            "plugin": {"name": "demo", "version": "1.0.0", "keywords": ["vcmap", "plugin"], "author": None},
            "files": [{"path": "src/index.js"}],
        }
        self.resolver = TemplateResolver(self.context)

    def test_resolve_placeholder(self) -> None:
        self.assertEqual(self.resolver.resolve("{{plugin.name}}@{{plugin.version}}"), "demo@1.0.0")

    def test_single_placeholder_keeps_value_type(self) -> None:
        self.assertEqual(self.resolver.resolve("{{plugin.keywords}}"), ["vcmap", "plugin"])
        self.assertEqual(self.resolver.resolve({"k": ["{{ plugin.name }}"]}), {"k": ["demo"]})

    def test_render_stringifies(self) -> None:
        self.assertEqual(self.resolver.render("tags: {{plugin.keywords}}"), 'tags: ["vcmap", "plugin"]')
        self.assertEqual(self.resolver.render("by {{plugin.author}}"), "by ")

    def test_list_index_lookup(self) -> None:
        self.assertEqual(self.resolver.resolve("{{files.0.path}}"), "src/index.js")

    def test_unknown_path(self) -> None:
        with self.assertRaises(TemplateError):
            self.resolver.resolve("{{plugin.missing}}")

    def test_plain_values_pass_through(self) -> None:
        self.assertEqual(self.resolver.resolve(3), 3)
        self.assertEqual(self.resolver.resolve("{ not a placeholder }"), "{ not a placeholder }")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
