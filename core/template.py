"""Placeholder resolution for scaffolded text and data templates."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping
import json
import re


_PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")
_SINGLE_PLACEHOLDER_PATTERN = re.compile(r"^\s*\{\{([^{}]+)\}\}\s*$")


class TemplateError(ValueError):
    """Raised when template resolution fails."""


@dataclass(slots=True)
class TemplateResolver:
    """Resolves ``{{dotted.path}}`` placeholders against a nested mapping.

    Strings consisting of a single placeholder resolve to the referenced
    value itself, so ``"{{plugin.keywords}}"`` inside a data template yields a
    list rather than its string form. Placeholders embedded in longer text are
    converted with :func:`str` (mappings and sequences as JSON).
    """

    context: Mapping[str, Any]
    _cache: dict[str, Any] = field(default_factory=dict, init=False, repr=False)

    def resolve(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._resolve_string(value)
        if isinstance(value, list):
            return [self.resolve(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.resolve(item) for item in value)
        if isinstance(value, dict):
            return {key: self.resolve(val) for key, val in value.items()}
        return value

    def render(self, text: str) -> str:
        """Substitute every placeholder in *text*, always returning a string."""
        return _PLACEHOLDER_PATTERN.sub(lambda match: self._stringify(self._lookup(match.group(1).strip())), text)

    def _resolve_string(self, value: str) -> Any:
        single = _SINGLE_PLACEHOLDER_PATTERN.match(value)
        if single:
            return self._lookup(single.group(1).strip())
        if not _PLACEHOLDER_PATTERN.search(value):
            return value
        return self.render(value)

    def _lookup(self, path: str) -> Any:
        if path in self._cache:
            return self._cache[path]
        current: Any = self.context
        for part in path.split("."):
            if isinstance(current, Mapping) and part in current:
                current = current[part]
                continue
            if isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
                continue
            raise TemplateError(f"Cannot resolve path '{path}' in template context")
        self._cache[path] = current
        return current

    @staticmethod
    def _stringify(value: Any) -> str:
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(value)
        if value is None:
            return ""
        return str(value)


__all__ = ["TemplateError", "TemplateResolver"]
