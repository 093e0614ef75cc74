"""Error types raised by the plugin tooling."""
from __future__ import annotations


class PluginCliError(RuntimeError):
    """Base class for failures reported to the user by the CLI wrapper."""


class UserInputError(PluginCliError):
    """Missing or conflicting input such as an absent plugin name."""


class ConfigUnreachable(PluginCliError):
    """A base configuration could not be fetched or read."""

    def __init__(self, source: str, reason: str, *, status: int | None = None) -> None:
        super().__init__(f"Cannot load configuration from {source}: {reason}")
        self.source = source
        self.status = status


class ConfigParseError(PluginCliError):
    """A configuration document is not valid JSON or not a JSON object."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Failed to parse configuration {source}: {reason}")
        self.source = source


class HostFrameworkMissing(PluginCliError):
    """The host map framework is not installed where it is expected."""


class BuildArtifactMissing(PluginCliError):
    """The bundler did not produce a file required for packaging."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Required build artifact '{path}' is missing. Did the build succeed?")
        self.path = path


__all__ = [
    "BuildArtifactMissing",
    "ConfigParseError",
    "ConfigUnreachable",
    "HostFrameworkMissing",
    "PluginCliError",
    "UserInputError",
]
