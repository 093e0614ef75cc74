"""User level defaults for the serve and preview commands."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from core.config_loader import find_config_file, load_config_file

from .context import PluginContext
from .errors import UserInputError
from .proxy import ProxyRouteTable, parse_proxy_table

USER_CONFIG_STEM = "vcs.config"
DEFAULT_SERVE_PORT = 8008
DEFAULT_PREVIEW_PORT = 5005


def load_user_config(ctx: PluginContext) -> Mapping[str, Any]:
    try:
        path = find_config_file(ctx.root, USER_CONFIG_STEM)
        if path is None:
            return {}
        ctx.console.debug(f"using user config {path}")
        return load_config_file(path)
    except (ValueError, TypeError) as exc:
        raise UserInputError(str(exc)) from exc


@dataclass(slots=True)
class ServeOptions:
    port: int
    app_config: str | None = None
    auth: str | None = None
    config: str | Dict[str, Any] | None = None
    vcm: str | None = None
    proxy: ProxyRouteTable = field(default_factory=dict)

    @classmethod
    def from_sources(
        cls,
        user_config: Mapping[str, Any],
        cli_values: Mapping[str, Any],
        *,
        default_port: int,
    ) -> "ServeOptions":
        """Merge the user config with CLI values; CLI values that were given win."""
        merged: Dict[str, Any] = dict(user_config)
        merged.update({key: value for key, value in cli_values.items() if value is not None})

        try:
            port = int(merged.get("port") or default_port)
        except (TypeError, ValueError) as exc:
            raise UserInputError(f"invalid port {merged.get('port')!r}") from exc
        try:
            proxy = parse_proxy_table(merged.get("proxy"))
        except ValueError as exc:
            raise UserInputError(str(exc)) from exc
        auth = merged.get("auth")
        if auth is not None and ":" not in str(auth):
            raise UserInputError("auth must be given as <user>:<password>")

        config = merged.get("config")
        return cls(
            port=port,
            app_config=str(merged["appConfig"]) if merged.get("appConfig") else None,
            auth=str(auth) if auth else None,
            config=config if isinstance(config, dict) else (str(config) if config else None),
            vcm=str(merged["vcm"]).rstrip("/") if merged.get("vcm") else None,
            proxy=proxy,
        )


__all__ = [
    "DEFAULT_PREVIEW_PORT",
    "DEFAULT_SERVE_PORT",
    "ServeOptions",
    "load_user_config",
]
