"""Path resolution and configure arguments for a single target."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List, Sequence
import os

from .config_loader import TargetConfiguration
from .errors import ConfigurationError

if TYPE_CHECKING:  # pragma: no cover
    from .workspace import WorkspaceContext

CMAKE_GENERATOR = "Ninja"
SUPPORTED_PROJECT_TYPE = "CMake"


@dataclass(frozen=True, slots=True)
class BuildParameters:
    toolchain: str
    configuration: str
    dry_run: bool = False


def dependency_target_name(entry: str) -> str:
    """``fmt/include`` names the target ``fmt``; the suffix is only a sub-path."""
    return entry.split("/", 1)[0]


def _absolute(path: Path) -> Path:
    return Path(os.path.abspath(path))


def validate_project_type(name: str, project_type: str) -> None:
    if project_type and project_type.lower() != SUPPORTED_PROJECT_TYPE.lower():
        raise ConfigurationError(f"unsupported project type for target {name}: {project_type}")


@dataclass(slots=True)
class TargetContext:
    """A target name paired with a private copy of its configuration.

    Changes made here are not persisted unless written back into the
    workspace's target map.
    """

    name: str
    config: TargetConfiguration

    @property
    def staged(self) -> bool:
        return self.config.staged

    def source_name(self) -> str:
        return self.config.effective_source(self.name)

    def source_path(self, workspace: "WorkspaceContext") -> Path:
        override = self.config.external_source_override
        if override is not None:
            path = Path(override)
            if path.is_absolute():
                return path
            return workspace.sources_dir / path
        path = workspace.sources_dir / self.source_name()
        if self.config.root_path:
            path = path / self.config.root_path
        return path

    def build_path(self, workspace: "WorkspaceContext", params: BuildParameters) -> Path:
        return workspace.root / "buildspaces" / params.toolchain / self.name / params.configuration

    def staging_path(self, workspace: "WorkspaceContext", params: BuildParameters) -> Path:
        return workspace.root / "staging" / params.toolchain / params.configuration / self.name

    def export_path(self, workspace: "WorkspaceContext", params: BuildParameters) -> Path:
        return workspace.root / "exports" / params.toolchain / self.name / params.configuration

    def config_path(self, workspace: "WorkspaceContext", params: BuildParameters) -> Path:
        path = self.build_path(workspace, params)
        if self.config.override_cmake_config_path is not None:
            path = path / self.config.override_cmake_config_path
        return path

    def package_name(self) -> str:
        return self.config.cmake_package_name or self.name

    def dependency_args(self, workspace: "WorkspaceContext", params: BuildParameters) -> List[str]:
        """Arguments a dependent target passes to cmake to find this one."""
        if self.staged:
            staging = _absolute(self.staging_path(workspace, params))
            return [f"-DCMAKE_PREFIX_PATH={staging}", f"-DCMAKE_MODULE_PATH={staging}"]

        args = [f"-D{self.package_name()}_DIR={_absolute(self.config_path(workspace, params))}"]
        if self.config.find_package_root is not None:
            source = _absolute(self.source_path(workspace))
            args.append(f"-D{self.config.find_package_root}_ROOT={source}")
        return args

    def dependencies(self, workspace: "WorkspaceContext") -> List["TargetContext"]:
        return [workspace.get_target(dependency_target_name(entry)) for entry in self.config.depends]

    def cxx_standard(self, workspace: "WorkspaceContext") -> str:
        if self.config.cxx_standard is not None:
            return self.config.cxx_standard
        return workspace.config.cxx_version

    def configure_args(self, workspace: "WorkspaceContext", params: BuildParameters) -> List[str]:
        args = [
            "-S",
            str(_absolute(self.source_path(workspace))),
            "-B",
            str(_absolute(self.build_path(workspace, params))),
            "-G",
            CMAKE_GENERATOR,
            f"-DCMAKE_BUILD_TYPE={params.configuration}",
        ]

        cxx_standard = self.cxx_standard(workspace)
        if cxx_standard:
            args.append(f"-DCMAKE_CXX_STANDARD={cxx_standard}")

        toolchain_file = workspace.toolchain_file_path(params)
        if toolchain_file is not None:
            args.append(f"-DCMAKE_TOOLCHAIN_FILE={toolchain_file}")

        dependencies = self.dependencies(workspace)
        staged = [str(_absolute(dep.staging_path(workspace, params))) for dep in dependencies if dep.staged]
        joined = ";".join(staged)
        args.append(f"-DCMAKE_PREFIX_PATH={joined}")
        args.append(f"-DCMAKE_MODULE_PATH={joined}")

        for dep in dependencies:
            if not dep.staged:
                args.extend(dep.dependency_args(workspace, params))

        args.extend(self.config.extra_cmake_configure_args)
        args.extend(option.define(name) for name, option in self.config.cmake_options.items())
        return args


def strip_source_and_build_dirs(args: Sequence[str]) -> List[str]:
    """Drop the ``-S <path>`` and ``-B <path>`` pairs from configure arguments."""
    filtered: List[str] = []
    skip = False
    for arg in args:
        if skip:
            skip = False
            continue
        if arg in ("-S", "-B"):
            skip = True
            continue
        filtered.append(arg)
    return filtered


__all__ = [
    "BuildParameters",
    "CMAKE_GENERATOR",
    "TargetContext",
    "dependency_target_name",
    "strip_source_and_build_dirs",
    "validate_project_type",
]
