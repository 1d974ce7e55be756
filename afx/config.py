"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError, format_field_error
from .packages import (
    HTTP,
    AssetSpec,
    Build,
    Command,
    Gist,
    GitHub,
    GitHubOption,
    GitHubRelease,
    Link,
    Local,
    Package,
    Plugin,
    ReleaseSpec,
)
from .paths import expand_path

_logging = logging.getLogger(__name__)

SECTIONS = ("github", "gist", "http", "local")

_COMMON_FIELDS = {"name", "description", "plugin", "command", "depends-on"}
FIELDS = {
    "github": _COMMON_FIELDS | {"owner", "repo", "branch", "with", "release"},
    "gist": _COMMON_FIELDS | {"owner", "id"},
    "http": _COMMON_FIELDS | {"url", "output", "templates"},
    "local": _COMMON_FIELDS | {"directory"},
}
REQUIRED = {
    "github": ("name", "owner", "repo"),
    "gist": ("name", "owner", "id"),
    "http": ("name", "url"),
    "local": ("name", "directory"),
}


def _type_name(value: Any) -> str:
    return "null" if value is None else type(value).__name__


def _check_keys(data: dict, allowed: set[str], where: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigError(f"{where}: unknown field '{unknown[0]}'")


def _mapping(value: Any, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{where} must be a mapping, got {_type_name(value)}")
    return value


def _string(value: Any, where: str, required: bool = False) -> str:
    if value is None:
        if required:
            raise ConfigError(f"{where} is required")
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigError(f"{where} must be a string, got {_type_name(value)}")
    value = str(value)
    if required and not value:
        raise ConfigError(f"{where} is required")
    return value


def _string_list(value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{where} must be a list, got {_type_name(value)}")
    return [_string(v, f"{where}[{i}]") for i, v in enumerate(value)]


def _string_map(value: Any, where: str) -> dict[str, str]:
    return {str(k): _string(v, f"{where}.{k}") for k, v in _mapping(value, where).items()}


def parse_plugin(data: Any, where: str) -> Plugin | None:
    if data is None:
        return None
    data = _mapping(data, where)
    _check_keys(data, {"sources", "env", "load", "snippet", "snippet-prepare", "if"}, where)
    load = _mapping(data.get("load"), f"{where}.load")
    _check_keys(load, {"scripts"}, f"{where}.load")
    sources = _string_list(data.get("sources"), f"{where}.sources")
    if not sources:
        raise ConfigError(f"{where}.sources is required")
    return Plugin(
        sources=[expand_path(s) for s in sources],
        env=_string_map(data.get("env"), f"{where}.env"),
        scripts=_string_list(load.get("scripts"), f"{where}.load.scripts"),
        snippet=_string(data.get("snippet"), f"{where}.snippet"),
        snippet_prepare=_string(data.get("snippet-prepare"), f"{where}.snippet-prepare"),
        if_=_string(data.get("if"), f"{where}.if"),
    )


def parse_command(data: Any, where: str) -> Command | None:
    if data is None:
        return None
    data = _mapping(data, where)
    _check_keys(data, {"link", "build", "env", "alias", "snippet", "if"}, where)

    links = []
    raw_links = data.get("link") or []
    if not isinstance(raw_links, list):
        raise ConfigError(f"{where}.link must be a list, got {_type_name(raw_links)}")
    for i, raw in enumerate(raw_links):
        link_where = f"{where}.link[{i}]"
        raw = _mapping(raw, link_where)
        _check_keys(raw, {"from", "to"}, link_where)
        to = _string(raw.get("to"), f"{link_where}.to")
        links.append(
            Link(
                from_=_string(raw.get("from"), f"{link_where}.from", required=True),
                to=expand_path(to) if to else "",
            )
        )

    build = None
    if data.get("build") is not None:
        raw_build = _mapping(data.get("build"), f"{where}.build")
        _check_keys(raw_build, {"steps", "env", "directory"}, f"{where}.build")
        build = Build(
            steps=_string_list(raw_build.get("steps"), f"{where}.build.steps"),
            env=_string_map(raw_build.get("env"), f"{where}.build.env"),
            directory=_string(raw_build.get("directory"), f"{where}.build.directory"),
        )

    return Command(
        link=links,
        build=build,
        env=_string_map(data.get("env"), f"{where}.env"),
        alias=_string_map(data.get("alias"), f"{where}.alias"),
        snippet=_string(data.get("snippet"), f"{where}.snippet"),
        if_=_string(data.get("if"), f"{where}.if"),
    )


def parse_release(data: Any, where: str) -> ReleaseSpec:
    data = _mapping(data, where)
    _check_keys(data, {"name", "tag", "asset"}, where)
    asset = _mapping(data.get("asset"), f"{where}.asset")
    _check_keys(asset, {"filename", "replacements"}, f"{where}.asset")
    return ReleaseSpec(
        name=_string(data.get("name"), f"{where}.name", required=True),
        tag=_string(data.get("tag"), f"{where}.tag"),
        asset=AssetSpec(
            filename=_string(asset.get("filename"), f"{where}.asset.filename"),
            replacements=_string_map(asset.get("replacements"), f"{where}.asset.replacements"),
        ),
    )


def parse_package(section: str, data: Any, where: str) -> Package:
    """Turn one config block into a package of the matching kind."""
    if not isinstance(data, dict):
        raise ConfigError(f"{where} must be a mapping, got {_type_name(data)}")
    _check_keys(data, FIELDS[section], where)
    for field_name in REQUIRED[section]:
        _string(data.get(field_name), f"{where}.{field_name}", required=True)

    common = dict(
        name=_string(data.get("name"), f"{where}.name"),
        description=_string(data.get("description"), f"{where}.description"),
        plugin=parse_plugin(data.get("plugin"), f"{where}.plugin"),
        command=parse_command(data.get("command"), f"{where}.command"),
        depends_on=_string_list(data.get("depends-on"), f"{where}.depends-on"),
    )

    if section == "github":
        option = None
        if data.get("with") is not None:
            raw = _mapping(data.get("with"), f"{where}.with")
            _check_keys(raw, {"depth"}, f"{where}.with")
            depth = raw.get("depth", 0)
            if isinstance(depth, bool) or not isinstance(depth, int) or depth < 0:
                raise ConfigError(format_field_error(where, "with.depth", "must be a non-negative integer"))
            option = GitHubOption(depth=depth)
        coords = dict(
            owner=_string(data.get("owner"), f"{where}.owner"),
            repo=_string(data.get("repo"), f"{where}.repo"),
            branch=_string(data.get("branch"), f"{where}.branch"),
            option=option,
        )
        if data.get("release") is not None:
            return GitHubRelease(
                release=parse_release(data.get("release"), f"{where}.release"),
                **coords,
                **common,
            )
        return GitHub(**coords, **common)

    if section == "gist":
        return Gist(
            owner=_string(data.get("owner"), f"{where}.owner"),
            gist_id=_string(data.get("id"), f"{where}.id"),
            **common,
        )

    if section == "http":
        templates = _mapping(data.get("templates"), f"{where}.templates")
        _check_keys(templates, {"replacements"}, f"{where}.templates")
        return HTTP(
            url=_string(data.get("url"), f"{where}.url"),
            output=_string(data.get("output"), f"{where}.output"),
            replacements=_string_map(templates.get("replacements"), f"{where}.templates.replacements"),
            **common,
        )

    return Local(directory=_string(data.get("directory"), f"{where}.directory"), **common)


def validate_config(data: Any, source: str = "<config>") -> list[Package]:
    """Validate one decoded YAML document and build its packages.

    Raises:
        ConfigError: naming the file and the offending field
    """
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: config must be a mapping, got {_type_name(data)}")

    unknown = sorted(set(data) - set(SECTIONS))
    if unknown:
        raise ConfigError(f"{source}: unknown section '{unknown[0]}'")

    packages = []
    for section in SECTIONS:
        blocks = data.get(section)
        if blocks is None:
            continue
        if not isinstance(blocks, list):
            raise ConfigError(f"{source}: {section} must be a list, got {_type_name(blocks)}")
        for i, block in enumerate(blocks):
            packages.append(parse_package(section, block, f"{source}: {section}[{i}]"))
    return packages


def resolve_dependencies(packages: list[Package]) -> list[list[str]]:
    """Group package names into layers where each layer only depends on earlier ones.

    Raises:
        ConfigError: on an unknown dependency or a circular one
    """
    names = {pkg.name for pkg in packages}
    pending: dict[str, set[str]] = {}
    for pkg in packages:
        for dep in pkg.depends_on:
            if dep not in names:
                raise ConfigError(f"{pkg.name}: depends on unknown package '{dep}'")
        pending[pkg.name] = set(pkg.depends_on)

    layers = []
    while pending:
        ready = sorted(name for name, deps in pending.items() if not deps)
        if not ready:
            raise ConfigError(f"circular dependency found: {', '.join(sorted(pending))}")
        layers.append(ready)
        for name in ready:
            del pending[name]
        for deps in pending.values():
            deps.difference_update(ready)
    return layers


def validate(packages: list[Package]) -> None:
    seen: set[str] = set()
    for pkg in packages:
        if pkg.name in seen:
            raise ConfigError(f"{pkg.name}: duplicated")
        seen.add(pkg.name)
    resolve_dependencies(packages)


def find_config_files(root: str | os.PathLike) -> list[Path]:
    root = Path(root)
    if root.is_file():
        return [root]
    if not root.is_dir():
        return []
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix in (".yaml", ".yml"))


def load_packages(root: str | os.PathLike) -> list[Package]:
    """Load every package declared in YAML files under ``root``."""
    packages = []
    for path in find_config_files(root):
        _logging.debug(f"config: loading {path}")
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"{path}: failed to read config: {e}") from e
        try:
            documents = list(yaml.safe_load_all(content))
        except yaml.YAMLError as e:
            raise ConfigError(f"{path}: failed to parse YAML: {e}") from e
        for document in documents:
            packages.extend(validate_config(document, str(path)))

    validate(packages)
    _logging.debug(f"config: {len(packages)} packages loaded")
    return packages


__all__ = [
    "SECTIONS",
    "find_config_files",
    "load_packages",
    "parse_package",
    "resolve_dependencies",
    "validate",
    "validate_config",
]
