"""The ``create`` command: scaffold a new plugin project."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping
import asyncio
import json
import re

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML

from core.command_runner import CommandRunner
from core.template import TemplateResolver

from .context import Console
from .errors import UserInputError
from .host_framework import HOST_PACKAGE_NAME
from .licenses import LicenseType, license_text
from .manifest import DepType, install_deps
from .update import fetch_host_release

PLUGIN_NAME_PATTERN = re.compile(r"^(@[a-z0-9-~][a-z0-9-._~]*/)?[a-z0-9-~][a-z0-9-._~]*$")

PACKAGE_TEMPLATE: Dict[str, Any] = {
    "name": "{{plugin.name}}",
    "version": "{{plugin.version}}",
    "description": "{{plugin.description}}",
    "type": "module",
    "main": "{{plugin.entry}}",
    "scripts": {
        "prepublishOnly": "vcmplugin build",
        "build": "vcmplugin build",
        "bundle": "vcmplugin bundle",
        "start": "vcmplugin serve",
        "preview": "vcmplugin preview",
        "buildStagingApp": "vcmplugin buildStagingApp",
    },
    "author": "{{plugin.author}}",
    "license": "{{plugin.license}}",
    "keywords": ["vcmap", "plugin"],
    "files": ["src/", "dist/", "plugin-assets/", "LICENSE.md", "README.md", "CHANGELOG.md"],
    "exports": {
        ".": "./{{plugin.entry}}",
        "./dist": "./dist/index.js",
    },
}

README_TEMPLATE = """# {{plugin.name}}

> Part of the [VC Map Project](https://vcmap.virtualcitysystems.de/)

{{plugin.description}}

## Development

- `npm start` serves the plugin inside the map application
- `npm run preview` serves a production build
- `npm run bundle` packages the plugin for deployment
"""

CHANGELOG_TEMPLATE = """### {{plugin.version}}

- Initial release of {{plugin.name}}
"""

INDEX_TEMPLATE = """import {{ version, name }} from '../package.json';

/**
 * @param {{T}} config - the configuration of this plugin instance, passed in from the app.
 * @param {{string}} baseUrl - the absolute URL from which the plugin was loaded (without filename, ending on /)
 * @template {{Object}} T
 */
export default function plugin(config, baseUrl) {{
  return {{
    get name() {{
      return name;
    }},
    get version() {{
      return version;
    }},
    initialize: async (vcsUiApp, state) => {{
      console.log('{welcome}', config, baseUrl, vcsUiApp, state);
    }},
    onVcsAppMounted: async (vcsUiApp) => {{
      console.log('Called when the root UI component is mounted', vcsUiApp);
    }},
    toJSON() {{
      return {{}};
    }},
    destroy() {{
      console.log('hook to cleanup');
    }},
  }};
}}
"""

TSCONFIG: Dict[str, Any] = {
    "compilerOptions": {
        "target": "ESNext",
        "module": "ESNext",
        "moduleResolution": "bundler",
        "resolveJsonModule": True,
        "strict": True,
        "skipLibCheck": True,
        "noEmit": True,
    },
    "include": ["src/**/*.ts"],
}

GITIGNORE = "node_modules/\ndist/\n.idea/\n"


@dataclass(slots=True)
class PluginAnswers:
    name: str
    version: str = "1.0.0"
    description: str = ""
    author: str = ""
    license: LicenseType = LicenseType.MIT
    map_version: str = "latest"
    typescript: bool = False

    @property
    def entry(self) -> str:
        return "src/index.ts" if self.typescript else "src/index.js"

    @property
    def directory_name(self) -> str:
        return self.name.replace("/", "-")

    def template_context(self) -> Dict[str, Any]:
        values = asdict(self)
        values["license"] = self.license.value
        values["entry"] = self.entry
        return {"plugin": values}


def validate_plugin_name(name: str | None) -> str:
    value = (name or "").strip()
    if not value:
        raise UserInputError("please provide a plugin name")
    if not PLUGIN_NAME_PATTERN.match(value):
        raise UserInputError(f"'{value}' is not a valid npm package name")
    return value


def parse_license(value: str) -> LicenseType:
    try:
        return LicenseType(value.strip().upper() or LicenseType.MIT.value)
    except ValueError as exc:
        choices = ", ".join(item.value for item in LicenseType)
        raise UserInputError(f"unknown license '{value}', choose one of {choices}") from exc


async def prompt_answers(name: str | None = None, session: PromptSession | None = None) -> PluginAnswers:
    session = session or PromptSession()

    async def ask(label: str, default: str = "") -> str:
        answer = await session.prompt_async(HTML(f"<b>{label}</b> "), default=default)
        return answer.strip()

    plugin_name = validate_plugin_name(name or await ask("Name:"))
    version = await ask("Version:", "1.0.0")
    description = await ask("Description:")
    author = await ask("Author:")
    license_value = await ask(f"License ({', '.join(item.value for item in LicenseType)}):", LicenseType.MIT.value)
    map_version = await ask(f"{HOST_PACKAGE_NAME} version:", "latest")
    typescript = await ask("Use TypeScript? [y/N]")
    return PluginAnswers(
        name=plugin_name,
        version=version or "1.0.0",
        description=description,
        author=author,
        license=parse_license(license_value),
        map_version=map_version or "latest",
        typescript=typescript.lower() in {"y", "yes"},
    )


def scaffold_files(answers: PluginAnswers) -> Dict[str, str]:
    """Relative path to content of every file of a fresh plugin."""
    resolver = TemplateResolver(answers.template_context())
    files = {
        "package.json": json.dumps(resolver.resolve(PACKAGE_TEMPLATE), indent=2) + "\n",
        "README.md": resolver.render(README_TEMPLATE),
        "CHANGELOG.md": resolver.render(CHANGELOG_TEMPLATE),
        "config.json": "{}\n",
        ".gitignore": GITIGNORE,
        "LICENSE.md": license_text(answers.license, answers.author or answers.name),
        answers.entry: INDEX_TEMPLATE.format(
            welcome="Called before loading the rest of the current context",
        ),
    }
    if answers.typescript:
        files["tsconfig.json"] = json.dumps(TSCONFIG, indent=2) + "\n"
    return files


async def write_files(root: Path, files: Mapping[str, str]) -> List[Path]:
    targets = {relative: root / relative for relative in files}
    for path in targets.values():
        path.parent.mkdir(parents=True, exist_ok=True)
    await asyncio.gather(
        *(asyncio.to_thread(path.write_text, files[relative], encoding="utf-8") for relative, path in targets.items())
    )
    return sorted(targets.values())


async def create_plugin(
    base_dir: Path,
    answers: PluginAnswers,
    runner: CommandRunner,
    console: Console,
) -> Path:
    name = validate_plugin_name(answers.name)
    target = base_dir / answers.directory_name
    if target.exists():
        raise UserInputError(f"plugin with the name {name} already exists in {base_dir}")
    console.info(f"creating new plugin: {name}")
    target.mkdir(parents=True)
    written = await write_files(target, scaffold_files(answers))
    for path in written:
        console.debug(f"created {path.relative_to(target).as_posix()}")

    release = await fetch_host_release(runner, answers.map_version)
    peers = [f"{HOST_PACKAGE_NAME}@{answers.map_version}"]
    peers.extend(f"{dep}@{version}" for dep, version in (release.get("peerDependencies") or {}).items())
    console.info("installing peer dependencies")
    await install_deps(runner, peers, DepType.PEER, target)

    dev_dependencies = ["vite"]
    if answers.typescript:
        dev_dependencies.append("typescript")
    console.info("installing dev dependencies")
    await install_deps(runner, dev_dependencies, DepType.DEV, target)

    console.success(f"created plugin {name}")
    return target


__all__ = [
    "PluginAnswers",
    "create_plugin",
    "parse_license",
    "prompt_answers",
    "scaffold_files",
    "validate_plugin_name",
    "write_files",
]
