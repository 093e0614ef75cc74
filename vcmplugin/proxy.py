"""Proxy route tables for the dev and preview servers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping
import re

from .errors import HostFrameworkMissing

if TYPE_CHECKING:
    from .context import Console
    from .host_framework import HostFramework

EXAMPLE_DATA_HOST = "https://raw.githubusercontent.com"
EXAMPLE_DATA_PATH = "/virtualcitySYSTEMS/map-ui/main/exampleData/"
ENGINE_ASSETS_PATH = "/node_modules/@vcmap-cesium/engine/Build/"


@dataclass(frozen=True, slots=True)
class PathRewrite:
    """Replace the first match of ``pattern`` in a request path.

    When the rewritten path ends in ``/`` and ``default_file`` is set, the
    default file is appended (``/plugins/x/`` -> ``.../x/index.js``).
    """

    pattern: str
    replacement: str
    default_file: str | None = None

    def apply(self, path: str) -> str:
        rewritten = re.sub(self.pattern, self.replacement, path, count=1)
        if self.default_file and rewritten.endswith("/"):
            rewritten = f"{rewritten}{self.default_file}"
        return rewritten


@dataclass(frozen=True, slots=True)
class ProxyRoute:
    target: str
    rewrite: PathRewrite | None = None
    change_origin: bool = True
    secure: bool = True
    strip_csp: bool = False

    @classmethod
    def from_mapping(cls, value: Any) -> "ProxyRoute":
        """Build a route from a user config entry (a target URL or an options object)."""
        if isinstance(value, str):
            return cls(target=value)
        if not isinstance(value, Mapping) or not value.get("target"):
            raise ValueError(f"proxy entries need a target, got {value!r}")
        rewrite = value.get("rewrite")
        path_rewrite = None
        if isinstance(rewrite, Mapping):
            path_rewrite = PathRewrite(
                pattern=str(rewrite.get("pattern", "")),
                replacement=str(rewrite.get("replacement", "")),
                default_file=rewrite.get("defaultFile"),
            )
        elif rewrite is not None:
            raise ValueError("proxy rewrite must be an object with pattern and replacement")
        return cls(
            target=str(value["target"]),
            rewrite=path_rewrite,
            change_origin=bool(value.get("changeOrigin", True)),
            secure=bool(value.get("secure", True)),
            strip_csp=bool(value.get("stripCsp", False)),
        )

    def rewrite_path(self, path: str) -> str:
        return self.rewrite.apply(path) if self.rewrite else path

    def upstream_url(self, path: str, query: str = "") -> str:
        url = f"{self.target.rstrip('/')}{self.rewrite_path(path)}"
        return f"{url}?{query}" if query else url


ProxyRouteTable = Dict[str, ProxyRoute]


def parse_proxy_table(entries: Mapping[str, Any] | None) -> ProxyRouteTable:
    table: ProxyRouteTable = {}
    for pattern, value in (entries or {}).items():
        pattern = str(pattern)
        if pattern.startswith("^"):
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"invalid proxy pattern {pattern!r}: {exc}") from exc
        table[pattern] = ProxyRoute.from_mapping(value)
    return table


def _pattern_matches(pattern: str, path: str) -> bool:
    if pattern.startswith("^"):
        return re.match(pattern, path) is not None
    return path.startswith(pattern)


def route_targets_plugin(pattern: str, plugin_name: str) -> bool:
    """Whether *pattern* would catch any request for *plugin_name*'s own files."""
    prefix = f"/plugins/{plugin_name}"
    return any(_pattern_matches(pattern, path) for path in (prefix, f"{prefix}/", f"{prefix}/index.js"))


def match_proxy_route(table: ProxyRouteTable, path: str) -> tuple[str, ProxyRoute] | None:
    """First route in table order matching *path*; ``^`` patterns are regular expressions."""
    for pattern, route in table.items():
        if _pattern_matches(pattern, path):
            return pattern, route
    return None


def plugin_route(name: str, target: str, base: str) -> tuple[str, ProxyRoute]:
    """Route ``/plugins/<name>/...`` to ``/<base>/<name>/...`` on *target*."""
    prefix = f"^/plugins/{re.escape(name)}/"
    return f"{prefix}.*", ProxyRoute(
        target=target,
        rewrite=PathRewrite(pattern=prefix, replacement=f"/{base}/{name}/", default_file="index.js"),
    )


def assemble_proxy_routes(
    host: "HostFramework",
    plugin_name: str,
    target: str,
    custom_proxy: ProxyRouteTable | None = None,
    console: "Console | None" = None,
) -> ProxyRouteTable:
    """Compute the dev server's proxy table.

    Order: host plugin routes, inline plugin routes, removal of the plugin
    under development, fixed routes, then caller entries (which win on equal
    patterns). Caller entries for the plugin under development are dropped
    afterwards so its files always come from the local bundler.
    """
    try:
        routes: ProxyRouteTable = dict(host.get_plugin_proxies(target))
        inline_plugins = host.get_inline_plugins()
    except HostFrameworkMissing:
        raise
    except (OSError, ValueError) as exc:
        raise HostFrameworkMissing(f"Failed to query the host framework for plugin routes: {exc}") from exc

    inline_base = host.relative_path("plugins")
    for name in inline_plugins:
        pattern, route = plugin_route(name, target, inline_base)
        routes[pattern] = route

    for pattern in [key for key in routes if route_targets_plugin(key, plugin_name)]:
        del routes[pattern]

    routes["^/exampleData/.*"] = ProxyRoute(
        target=EXAMPLE_DATA_HOST,
        rewrite=PathRewrite(pattern="^/exampleData/", replacement=EXAMPLE_DATA_PATH),
    )
    routes["^/assets/cesium/.*"] = ProxyRoute(
        target=target,
        rewrite=PathRewrite(pattern="^/assets/cesium/", replacement=ENGINE_ASSETS_PATH),
    )

    routes.update(custom_proxy or {})

    for pattern in [key for key in routes if route_targets_plugin(key, plugin_name)]:
        if console is not None:
            console.warning(f"ignoring proxy entry {pattern}: {plugin_name} is served from local source")
        del routes[pattern]

    return routes


def hosted_proxy_routes(vcm: str, custom_proxy: ProxyRouteTable | None = None) -> ProxyRouteTable:
    """Preview routes forwarding host assets to a hosted map application."""
    upstream = ProxyRoute(target=vcm, change_origin=True, secure=False, strip_csp=True)
    routes: ProxyRouteTable = {
        "^/style.css": upstream,
        "^/assets": upstream,
        "^/plugins": upstream,
    }
    routes.update(custom_proxy or {})
    return routes


__all__ = [
    "PathRewrite",
    "ProxyRoute",
    "ProxyRouteTable",
    "assemble_proxy_routes",
    "hosted_proxy_routes",
    "match_proxy_route",
    "parse_proxy_table",
    "plugin_route",
    "route_targets_plugin",
]
