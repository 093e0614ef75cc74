"""Resolution of the application config served to the running map.

The effective config is the host's base config (a local file or a remote
``app.config.json``) with the plugin under development injected as the
first module, so the host registers the local build instead of any copy
listed further down.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping
from urllib.parse import urljoin
import asyncio
import copy
import json
import re

import aiohttp

from .context import PluginContext
from .errors import ConfigParseError, ConfigUnreachable
from .manifest import resolve_plugin_entry

PLUGIN_MODULE_ID = "plugin-cli-module"
APP_CONFIG_KEY = "app.config.json"
BASE_CONFIG_KEY = f"base:{APP_CONFIG_KEY}"

_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)

ConfigSource = Mapping[str, Any] | str | Path


def is_url(value: Any) -> bool:
    return isinstance(value, str) and bool(_URL_PATTERN.match(value))


@dataclass(slots=True)
class PluginDescriptor:
    """The entry for one plugin inside an application config module."""

    name: str
    entry: str
    config: Dict[str, Any] = field(default_factory=dict)

    def to_mapping(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.config)
        data["name"] = self.name
        data["entry"] = self.entry
        return data


class ConfigCache:
    """Parsed configs keyed by logical name, shared by all request handlers."""

    def __init__(self) -> None:
        self._entries: Dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries


def basic_auth(auth: str | None) -> aiohttp.BasicAuth | None:
    if not auth:
        return None
    user, _, password = auth.partition(":")
    return aiohttp.BasicAuth(user, password)


def _parse_config(body: bytes, source: str) -> Dict[str, Any]:
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigParseError(source, str(exc)) from exc
    if not isinstance(data, dict):
        raise ConfigParseError(source, "root element must be an object")
    return data


async def fetch_body(url: str, auth: str | None = None) -> bytes:
    """GET *url* and return the raw body, raising :class:`ConfigUnreachable` on failure."""
    try:
        async with aiohttp.ClientSession(auth=basic_auth(auth)) as session:
            async with session.get(url) as response:
                if response.status >= 400:
                    raise ConfigUnreachable(url, f"status code {response.status}", status=response.status)
                return await response.read()
    except aiohttp.ClientError as exc:
        raise ConfigUnreachable(url, str(exc)) from exc


async def load_base_config(source: ConfigSource, auth: str | None = None) -> Dict[str, Any]:
    if isinstance(source, Mapping):
        return copy.deepcopy(dict(source))

    if is_url(source):
        body = await fetch_body(str(source), auth)
        return _parse_config(body, str(source))

    path = Path(source)
    try:
        body = await asyncio.to_thread(path.read_bytes)
    except OSError as exc:
        raise ConfigUnreachable(str(path), exc.strerror or str(exc)) from exc
    return _parse_config(body, str(path))


async def read_plugin_config(ctx: PluginContext, source: ConfigSource | None = None) -> Dict[str, Any]:
    """The plugin's own config; an absent file means an empty config."""
    if isinstance(source, Mapping):
        return copy.deepcopy(dict(source))
    path = Path(source) if source else ctx.resolve("config.json")
    if not path.is_absolute():
        path = ctx.resolve(str(path))
    if not path.is_file():
        return {}
    body = await asyncio.to_thread(path.read_bytes)
    return _parse_config(body, str(path))


def merge_plugin_into_config(config: Mapping[str, Any], descriptor: Mapping[str, Any]) -> Dict[str, Any]:
    """Return *config* with *descriptor* as the only plugin of its name.

    Existing descriptors with the same name are removed from every module and
    a synthetic module holding *descriptor* is prepended, since the host
    resolves plugins first match wins.
    """
    merged = copy.deepcopy(dict(config))
    name = descriptor.get("name")
    modules: List[Any] = list(merged.get("modules") or [])
    for module in modules:
        if isinstance(module, dict) and isinstance(module.get("plugins"), list):
            module["plugins"] = [
                plugin for plugin in module["plugins"]
                if not (isinstance(plugin, Mapping) and plugin.get("name") == name)
            ]
    merged["modules"] = [{"_id": PLUGIN_MODULE_ID, "plugins": [dict(descriptor)]}, *modules]
    return merged


def absolutize_module_urls(config: Dict[str, Any], base_url: str) -> Dict[str, Any]:
    """Resolve relative string modules against the URL the config came from."""
    config["modules"] = [
        urljoin(base_url, module) if isinstance(module, str) and not is_url(module) else module
        for module in config.get("modules") or []
    ]
    return config


class AppConfigResolver:
    """Produces the effective application config and caches it in a :class:`ConfigCache`."""

    def __init__(
        self,
        ctx: PluginContext,
        cache: ConfigCache,
        *,
        source: ConfigSource,
        auth: str | None = None,
        production: bool = False,
        plugin_config: ConfigSource | None = None,
        entry: str | None = None,
    ) -> None:
        self._ctx = ctx
        self._cache = cache
        self._source = source
        self._auth = auth
        self._production = production
        self._plugin_config = plugin_config
        self._entry = entry

    async def descriptor(self) -> PluginDescriptor:
        config = await read_plugin_config(self._ctx, self._plugin_config)
        config.pop("name", None)
        config.pop("entry", None)
        return PluginDescriptor(
            name=self._ctx.plugin_name(),
            entry=self._entry or resolve_plugin_entry(self._ctx, self._production),
            config=config,
        )

    async def base_config(self) -> Dict[str, Any]:
        base = self._cache.get(BASE_CONFIG_KEY)
        if base is None:
            base = await load_base_config(self._source, self._auth)
            self._cache.set(BASE_CONFIG_KEY, base)
        return base

    async def get_app_config(self) -> Dict[str, Any]:
        cached = self._cache.get(APP_CONFIG_KEY)
        if cached is not None:
            return cached
        base = await self.base_config()
        descriptor = await self.descriptor()
        merged = merge_plugin_into_config(base, descriptor.to_mapping())
        if is_url(self._source):
            absolutize_module_urls(merged, str(self._source))
        self._cache.set(APP_CONFIG_KEY, merged)
        return merged

    def invalidate(self) -> None:
        self._cache.invalidate(APP_CONFIG_KEY)


class HostConfigLoader:
    """Serves module configs shipped in the host framework's ``config/`` directory."""

    def __init__(self, ctx: PluginContext, cache: ConfigCache, host_root: Path) -> None:
        self._ctx = ctx
        self._cache = cache
        self._host_root = host_root

    async def load(self, url_path: str) -> Dict[str, Any] | None:
        key = url_path
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        parts = [part for part in url_path.lstrip("/").split("/") if part]
        if not parts or any(part == ".." for part in parts):
            return None
        path = self._host_root.joinpath(*parts)
        if not path.is_file():
            return None
        try:
            body = await asyncio.to_thread(path.read_bytes)
            config = _parse_config(body, str(path))
        except ConfigParseError:
            self._cache.invalidate(key)
            self._ctx.console.warning(f"Failed to parse config {url_path}")
            return None
        name = self._ctx.plugin_name()
        if isinstance(config.get("plugins"), list):
            config["plugins"] = [
                plugin for plugin in config["plugins"]
                if not (isinstance(plugin, Mapping) and plugin.get("name") == name)
            ]
        self._cache.set(key, config)
        return config


class ConfigFileWatcher:
    """Polls a file's modification time and reports changes."""

    def __init__(
        self,
        path: Path,
        on_change: Callable[[], Awaitable[None] | None],
        *,
        interval: float = 0.5,
    ) -> None:
        self.path = path
        self._on_change = on_change
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self._last = self._mtime()

    def _mtime(self) -> float | None:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    async def check(self) -> bool:
        current = self._mtime()
        if current == self._last:
            return False
        self._last = current
        result = self._on_change()
        if asyncio.iscoroutine(result):
            await result
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.check()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


__all__ = [
    "APP_CONFIG_KEY",
    "AppConfigResolver",
    "BASE_CONFIG_KEY",
    "ConfigCache",
    "ConfigFileWatcher",
    "HostConfigLoader",
    "PLUGIN_MODULE_ID",
    "PluginDescriptor",
    "absolutize_module_urls",
    "basic_auth",
    "fetch_body",
    "is_url",
    "load_base_config",
    "merge_plugin_into_config",
    "read_plugin_config",
]
