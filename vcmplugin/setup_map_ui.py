"""The ``setup-map-ui`` command."""
from __future__ import annotations

from core.command_runner import CommandRunner

from .context import PluginContext
from .host_framework import HostFramework


async def setup_map_ui(ctx: PluginContext, runner: CommandRunner) -> HostFramework:
    """Install the plugins the host framework declares for development."""
    host = HostFramework.locate(ctx, runner)
    host.print_version()
    await host.setup_plugins()
    return host


__all__ = ["setup_map_ui"]
