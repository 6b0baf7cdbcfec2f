"""Workspace and manifest YAML loading, validation and serialization."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, TextIO
import re

import yaml

from .cmake import CMakeOption, parse_options
from .codesource import CodeSource, parse_code_source
from .errors import ConfigurationError

WORKSPACE_FILE_NAME = "cbuild_workspace.yml"
MANIFEST_NAMES = ("csetup.yml", "csetuplists.yml", "CSetup.yml", "CSetupLists.yml")
DEFAULT_CONFIGURATIONS = ("Debug", "Release")
DEFAULT_CXX_VERSION = "20"


class WorkspaceLoader(yaml.SafeLoader):
    """Safe loader that leaves ``ON``, ``off``, ``20`` and ``1.10`` as strings.

    Only null, ``true``/``false`` and merge keys are resolved implicitly.
    """


WorkspaceLoader.yaml_implicit_resolvers = {}
WorkspaceLoader.add_implicit_resolver(
    "tag:yaml.org,2002:null",
    re.compile(r"^(?:~|null|Null|NULL|)$"),
    ["~", "n", "N", ""],
)
WorkspaceLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)
WorkspaceLoader.add_implicit_resolver(
    "tag:yaml.org,2002:merge",
    re.compile(r"^(?:<<)$"),
    ["<"],
)


class FlowStringList(list):
    """List dumped as ``["a", "b"]`` on a single line."""


class WorkspaceDumper(yaml.SafeDumper):
    def ignore_aliases(self, data: Any) -> bool:
        return True


def _represent_flow_list(dumper: yaml.SafeDumper, data: FlowStringList) -> yaml.Node:
    items = [dumper.represent_scalar("tag:yaml.org,2002:str", str(item), style='"') for item in data]
    return yaml.SequenceNode("tag:yaml.org,2002:seq", items, flow_style=True)


WorkspaceDumper.add_representer(FlowStringList, _represent_flow_list)


def load_yaml(stream: str | TextIO) -> Any:
    return yaml.load(stream, Loader=WorkspaceLoader)


def dump_yaml(data: Any, stream: TextIO | None = None) -> str | None:
    return yaml.dump(
        data,
        stream,
        Dumper=WorkspaceDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )


def _optional_str(value: Any, *, field_name: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, (Mapping, list, tuple)):
        raise ConfigurationError(f"{field_name} must be a string")
    return str(value)


def _str_list(value: Any, *, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        result: List[str] = []
        for item in value:
            if isinstance(item, (Mapping, list, tuple)):
                raise ConfigurationError(f"{field_name} entries must be strings")
            result.append(str(item))
        return result
    raise ConfigurationError(f"{field_name} must be a list of strings")


@dataclass(slots=True)
class TargetConfiguration:
    source: str = ""
    root_path: str = ""
    depends: List[str] = field(default_factory=list)
    project_type: str = ""
    cmake_package_name: str = ""
    find_package_root: str | None = None
    staged: bool = False
    external_source_override: str | None = None
    override_cmake_config_path: str | None = None
    extra_cmake_configure_args: List[str] = field(default_factory=list)
    cmake_options: Dict[str, CMakeOption] = field(default_factory=dict)
    cxx_standard: str | None = None

    @classmethod
    def from_mapping(cls, name: str, data: Any) -> "TargetConfiguration":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Target '{name}' definition must be a mapping")
        allowed_keys = {
            "source",
            "root_path",
            "depends",
            "project_type",
            "cmake_package_name",
            "find_package_root",
            "staged",
            "external_source_override",
            "override_cmake_config_path",
            "extra_cmake_configure_args",
            "cmake_options",
            "cxx_standard",
        }
        unknown = {str(key) for key in data.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigurationError(f"Target '{name}' contains unknown keys: {joined}")

        staged = data.get("staged")
        if staged is not None and not isinstance(staged, bool):
            raise ConfigurationError(f"Target '{name}': staged must be true or false")

        try:
            options = parse_options(data.get("cmake_options"))
        except ConfigurationError as exc:
            raise ConfigurationError(f"Target '{name}': {exc}") from exc

        return cls(
            source=_optional_str(data.get("source"), field_name="source") or "",
            root_path=_optional_str(data.get("root_path"), field_name="root_path") or "",
            depends=_str_list(data.get("depends"), field_name="depends"),
            project_type=_optional_str(data.get("project_type"), field_name="project_type") or "",
            cmake_package_name=_optional_str(data.get("cmake_package_name"), field_name="cmake_package_name") or "",
            find_package_root=_optional_str(data.get("find_package_root"), field_name="find_package_root"),
            staged=bool(staged),
            external_source_override=_optional_str(
                data.get("external_source_override"), field_name="external_source_override"
            ),
            override_cmake_config_path=_optional_str(
                data.get("override_cmake_config_path"), field_name="override_cmake_config_path"
            ),
            extra_cmake_configure_args=_str_list(
                data.get("extra_cmake_configure_args"), field_name="extra_cmake_configure_args"
            ),
            cmake_options=options,
            cxx_standard=_optional_str(data.get("cxx_standard"), field_name="cxx_standard"),
        )

    def to_mapping(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.source:
            data["source"] = self.source
        if self.root_path:
            data["root_path"] = self.root_path
        data["depends"] = list(self.depends)
        data["project_type"] = self.project_type
        if self.cmake_package_name:
            data["cmake_package_name"] = self.cmake_package_name
        if self.find_package_root is not None:
            data["find_package_root"] = self.find_package_root
        if self.staged:
            data["staged"] = True
        if self.external_source_override is not None:
            data["external_source_override"] = self.external_source_override
        if self.override_cmake_config_path is not None:
            data["override_cmake_config_path"] = self.override_cmake_config_path
        if self.extra_cmake_configure_args:
            data["extra_cmake_configure_args"] = FlowStringList(self.extra_cmake_configure_args)
        if self.cmake_options:
            data["cmake_options"] = {name: option.to_yaml() for name, option in self.cmake_options.items()}
        if self.cxx_standard is not None:
            data["cxx_standard"] = self.cxx_standard
        return data

    def copy(self) -> "TargetConfiguration":
        return TargetConfiguration(
            source=self.source,
            root_path=self.root_path,
            depends=list(self.depends),
            project_type=self.project_type,
            cmake_package_name=self.cmake_package_name,
            find_package_root=self.find_package_root,
            staged=self.staged,
            external_source_override=self.external_source_override,
            override_cmake_config_path=self.override_cmake_config_path,
            extra_cmake_configure_args=list(self.extra_cmake_configure_args),
            cmake_options=dict(self.cmake_options),
            cxx_standard=self.cxx_standard,
        )

    def effective_source(self, target_name: str) -> str:
        return self.source or target_name


@dataclass(slots=True)
class WorkspaceConfig:
    sources: Dict[str, CodeSource] = field(default_factory=dict)
    targets: Dict[str, TargetConfiguration] = field(default_factory=dict)
    cmake_binary: str | None = None
    cxx_version: str = ""
    configurations: List[str] = field(default_factory=lambda: list(DEFAULT_CONFIGURATIONS))

    @classmethod
    def from_mapping(cls, data: Any) -> "WorkspaceConfig":
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ConfigurationError("Workspace configuration must contain a mapping at the root")
        allowed_keys = {"sources", "targets", "cmake_binary", "cxx_version", "configurations"}
        unknown = {str(key) for key in data.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigurationError(f"Workspace configuration contains unknown keys: {joined}")

        sources_raw = data.get("sources") or {}
        targets_raw = data.get("targets") or {}
        if not isinstance(sources_raw, Mapping):
            raise ConfigurationError("sources must be a mapping")
        if not isinstance(targets_raw, Mapping):
            raise ConfigurationError("targets must be a mapping")

        sources = {str(name): parse_code_source(str(name), entry) for name, entry in sources_raw.items()}
        targets = {
            str(name): TargetConfiguration.from_mapping(str(name), entry)
            for name, entry in targets_raw.items()
        }
        configurations = _str_list(data.get("configurations"), field_name="configurations")
        return cls(
            sources=sources,
            targets=targets,
            cmake_binary=_optional_str(data.get("cmake_binary"), field_name="cmake_binary"),
            cxx_version=_optional_str(data.get("cxx_version"), field_name="cxx_version") or "",
            configurations=configurations or list(DEFAULT_CONFIGURATIONS),
        )

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "sources": {name: source.to_mapping() for name, source in self.sources.items()},
            "targets": {name: target.to_mapping() for name, target in self.targets.items()},
            "cmake_binary": self.cmake_binary,
            "cxx_version": self.cxx_version,
            "configurations": list(self.configurations),
        }


@dataclass(slots=True)
class SetupManifest:
    """Per-source defaults and suggested dependencies (``csetup.yml``)."""

    path: Path
    default_configuration: TargetConfiguration = field(default_factory=TargetConfiguration)
    suggested_dep_sources: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, path: Path, data: Any) -> "SetupManifest":
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Manifest '{path}' must contain a mapping at the root")
        unknown = {str(key) for key in data.keys()} - {"default_configuration", "suggested_dep_sources"}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigurationError(f"Manifest '{path}' contains unknown keys: {joined}")
        suggestions = data.get("suggested_dep_sources") or {}
        if not isinstance(suggestions, Mapping):
            raise ConfigurationError(f"Manifest '{path}': suggested_dep_sources must be a mapping")
        return cls(
            path=path,
            default_configuration=TargetConfiguration.from_mapping(
                "default_configuration", data.get("default_configuration")
            ),
            # Suggestions stay raw until resolution so validation errors name the dependency.
            suggested_dep_sources={str(name): entry for name, entry in suggestions.items()},
        )


def find_manifest(source_dir: Path) -> Path | None:
    for name in MANIFEST_NAMES:
        candidate = Path(source_dir) / name
        if candidate.is_file():
            return candidate
    return None


def load_manifest(source_dir: Path) -> SetupManifest | None:
    path = find_manifest(source_dir)
    if path is None:
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = load_yaml(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"failed to parse manifest {path}: {exc}") from exc
    return SetupManifest.from_mapping(path, data)


def load_workspace_config(path: Path) -> WorkspaceConfig:
    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            data = load_yaml(handle)
    except FileNotFoundError:
        raise ConfigurationError(f"failed to read config file: {path} does not exist") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"failed to parse config file {path}: {exc}") from exc
    return WorkspaceConfig.from_mapping(data)


def save_workspace_config(path: Path, config: WorkspaceConfig) -> None:
    with Path(path).open("w", encoding="utf-8") as handle:
        dump_yaml(config.to_mapping(), handle)


__all__ = [
    "DEFAULT_CONFIGURATIONS",
    "DEFAULT_CXX_VERSION",
    "FlowStringList",
    "MANIFEST_NAMES",
    "SetupManifest",
    "TargetConfiguration",
    "WORKSPACE_FILE_NAME",
    "WorkspaceConfig",
    "WorkspaceDumper",
    "WorkspaceLoader",
    "dump_yaml",
    "find_manifest",
    "load_manifest",
    "load_workspace_config",
    "load_yaml",
    "save_workspace_config",
]
