"""Toolchain descriptors stored as ``toolchains/<name>/toolchain.yml``."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from .cmake import CompilerType
from .errors import ConfigurationError

TOOLCHAIN_FILE_NAME = "toolchain.yml"


def _string_list(value: Any, *, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    raise ConfigurationError(f"{field_name} must be a list of strings")


@dataclass(slots=True)
class GenerateOptions:
    c_compiler: str
    cxx_compiler: str
    linker: str = ""
    compiler_type: CompilerType = CompilerType.UNKNOWN
    extra_compiler_flags: List[str] = field(default_factory=list)
    extra_c_flags: List[str] = field(default_factory=list)
    extra_cxx_flags: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Any) -> "GenerateOptions":
        if not isinstance(data, Mapping):
            raise ConfigurationError("generate entry must be a mapping")
        allowed_keys = {
            "c_compiler",
            "cxx_compiler",
            "linker",
            "compiler_type",
            "extra_compiler_flags",
            "extra_c_flags",
            "extra_cxx_flags",
        }
        unknown = {str(key) for key in data.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigurationError(f"generate entry contains unknown keys: {joined}")
        return cls(
            c_compiler=str(data.get("c_compiler") or ""),
            cxx_compiler=str(data.get("cxx_compiler") or ""),
            linker=str(data.get("linker") or ""),
            compiler_type=CompilerType.parse(data.get("compiler_type")),
            extra_compiler_flags=_string_list(data.get("extra_compiler_flags"), field_name="extra_compiler_flags"),
            extra_c_flags=_string_list(data.get("extra_c_flags"), field_name="extra_c_flags"),
            extra_cxx_flags=_string_list(data.get("extra_cxx_flags"), field_name="extra_cxx_flags"),
        )

    def to_mapping(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"c_compiler": self.c_compiler, "cxx_compiler": self.cxx_compiler}
        if self.linker:
            data["linker"] = self.linker
        if self.compiler_type is not CompilerType.UNKNOWN:
            data["compiler_type"] = self.compiler_type.value
        if self.extra_compiler_flags:
            data["extra_compiler_flags"] = list(self.extra_compiler_flags)
        if self.extra_c_flags:
            data["extra_c_flags"] = list(self.extra_c_flags)
        if self.extra_cxx_flags:
            data["extra_cxx_flags"] = list(self.extra_cxx_flags)
        return data


@dataclass(slots=True)
class ToolchainEntry:
    """One host-specific entry: a literal toolchain file or generation inputs."""

    cmake_toolchain_file: str | None = None
    generate: GenerateOptions | None = None

    @classmethod
    def from_mapping(cls, host: str, data: Any) -> "ToolchainEntry":
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"cmake_toolchain entry '{host}' must be a mapping")
        unknown = {str(key) for key in data.keys()} - {"cmake_toolchain_file", "generate"}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigurationError(f"cmake_toolchain entry '{host}' contains unknown keys: {joined}")
        toolchain_file = data.get("cmake_toolchain_file")
        generate = data.get("generate")
        return cls(
            cmake_toolchain_file=str(toolchain_file) if toolchain_file else None,
            generate=GenerateOptions.from_mapping(generate) if generate is not None else None,
        )

    def to_mapping(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.cmake_toolchain_file:
            data["cmake_toolchain_file"] = self.cmake_toolchain_file
        if self.generate is not None:
            data["generate"] = self.generate.to_mapping()
        return data


@dataclass(slots=True)
class Toolchain:
    name: str
    target_arch: str = ""
    target_system: str = ""
    cmake_toolchain: Dict[str, ToolchainEntry] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Any) -> "Toolchain":
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Toolchain '{name}' definition must be a mapping")
        allowed_keys = {"cmake_toolchain", "target_arch", "target_system"}
        unknown = {str(key) for key in data.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigurationError(f"Toolchain '{name}' contains unknown keys: {joined}")
        entries_raw = data.get("cmake_toolchain") or {}
        if not isinstance(entries_raw, Mapping):
            raise ConfigurationError(f"Toolchain '{name}': cmake_toolchain must be a mapping")
        entries = {
            str(host): ToolchainEntry.from_mapping(str(host), entry)
            for host, entry in entries_raw.items()
        }
        return cls(
            name=name,
            target_arch=str(data.get("target_arch") or ""),
            target_system=str(data.get("target_system") or ""),
            cmake_toolchain=entries,
        )

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "cmake_toolchain": {host: entry.to_mapping() for host, entry in self.cmake_toolchain.items()},
            "target_arch": self.target_arch,
            "target_system": self.target_system,
        }

    def entry_for_host(self, host: str) -> ToolchainEntry | None:
        return self.cmake_toolchain.get(host)


def toolchain_dir(workspace: Path, name: str) -> Path:
    return Path(workspace) / "toolchains" / name


def load_toolchain(workspace: Path, name: str) -> Toolchain:
    path = toolchain_dir(workspace, name) / TOOLCHAIN_FILE_NAME
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError:
        raise ConfigurationError(f"failed to load toolchain {name}: {path} does not exist") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"failed to parse toolchain {name} ({path}): {exc}") from exc
    return Toolchain.from_mapping(name, data)


def save_toolchain(workspace: Path, toolchain: Toolchain) -> Path:
    path = toolchain_dir(workspace, toolchain.name) / TOOLCHAIN_FILE_NAME
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(toolchain.to_mapping(), handle, sort_keys=False)
    return path


__all__ = [
    "GenerateOptions",
    "TOOLCHAIN_FILE_NAME",
    "Toolchain",
    "ToolchainEntry",
    "load_toolchain",
    "save_toolchain",
    "toolchain_dir",
]
