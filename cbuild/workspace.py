"""Workspace state: the loaded config plus every operation that mutates it."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List
import os
import shutil

from .console import Console
from .config_loader import (
    DEFAULT_CXX_VERSION,
    WORKSPACE_FILE_NAME,
    TargetConfiguration,
    WorkspaceConfig,
    load_workspace_config,
    save_workspace_config,
)
from .errors import ConfigurationError, UnknownNameError
from .system import host_key
from .targets import BuildParameters, TargetContext, strip_source_and_build_dirs
from .toolchains import Toolchain, load_toolchain, toolchain_dir

GENERATED_TOOLCHAIN_NAME = "generated_toolchain.cmake"
REINIT_DIRECTORIES = ("toolchains", "sources", "buildspaces")


@dataclass(slots=True)
class SourceStatus:
    name: str
    status: str

    def __str__(self) -> str:
        return f"{self.name} {self.status}"


def find_workspace_root(start: Path | None = None) -> Path:
    """Walk up from ``start`` to the first directory holding a workspace file.

    Falls back to ``start`` itself when no ancestor has one.
    """
    start = Path(os.path.abspath(start or Path.cwd()))
    for candidate in (start, *start.parents):
        if (candidate / WORKSPACE_FILE_NAME).is_file():
            return candidate
    return start


class WorkspaceContext:
    def __init__(
        self,
        root: Path,
        config: WorkspaceConfig | None = None,
        *,
        console: Console | None = None,
        host: str | None = None,
    ) -> None:
        self.root = Path(os.path.abspath(root))
        self.config = config if config is not None else WorkspaceConfig()
        self.console = console or Console()
        self._host_key = host

    @classmethod
    def load(cls, root: Path, *, console: Console | None = None, host: str | None = None) -> "WorkspaceContext":
        root = Path(os.path.abspath(root))
        config = load_workspace_config(root / WORKSPACE_FILE_NAME)
        return cls(root, config, console=console, host=host)

    @classmethod
    def init(
        cls,
        root: Path,
        *,
        reinit: bool = False,
        console: Console | None = None,
    ) -> "WorkspaceContext":
        workspace = cls(root, console=console)
        workspace.root.mkdir(parents=True, exist_ok=True)
        if workspace.config_file.exists():
            if not reinit:
                raise ConfigurationError(f"{workspace.config_file} already exists. Use --reinit to overwrite")
            for name in REINIT_DIRECTORIES:
                path = workspace.root / name
                workspace.console.info(f"Cleaning {path}...")
                shutil.rmtree(path, ignore_errors=True)
        workspace.config = WorkspaceConfig(cxx_version=DEFAULT_CXX_VERSION)
        workspace.save()
        return workspace

    def save(self) -> None:
        save_workspace_config(self.config_file, self.config)

    # --- Layout -------------------------------------------------------------

    @property
    def config_file(self) -> Path:
        return self.root / WORKSPACE_FILE_NAME

    @property
    def sources_dir(self) -> Path:
        return self.root / "sources"

    @property
    def toolchains_dir(self) -> Path:
        return self.root / "toolchains"

    @property
    def buildspaces_dir(self) -> Path:
        return self.root / "buildspaces"

    @property
    def host_key(self) -> str:
        return self._host_key or host_key()

    @property
    def cmake_binary(self) -> str:
        return self.config.cmake_binary or "cmake"

    def source_dir(self, name: str) -> Path:
        return self.sources_dir / name

    def generated_toolchain_path(self, toolchain: str) -> Path:
        return self.buildspaces_dir / toolchain / GENERATED_TOOLCHAIN_NAME

    # --- Lookup -------------------------------------------------------------

    def get_target(self, name: str) -> TargetContext:
        try:
            config = self.config.targets[name]
        except KeyError:
            raise UnknownNameError("target", name) from None
        return TargetContext(name=name, config=config.copy())

    def _target_config(self, name: str) -> TargetConfiguration:
        try:
            return self.config.targets[name]
        except KeyError:
            raise UnknownNameError("target", name) from None

    def targets_using_source(self, source: str) -> List[str]:
        return [
            name
            for name, target in self.config.targets.items()
            if target.effective_source(name) == source
        ]

    def list_targets(self) -> List[str]:
        return list(self.config.targets)

    def list_toolchains(self) -> List[str]:
        if not self.toolchains_dir.is_dir():
            return []
        return sorted(entry.name for entry in self.toolchains_dir.iterdir() if entry.is_dir())

    def load_toolchain(self, name: str) -> Toolchain:
        return load_toolchain(self.root, name)

    def toolchain_file_path(self, params: BuildParameters) -> Path | None:
        """Toolchain file for the current host, or ``None`` when the toolchain has no entry."""
        toolchain = self.load_toolchain(params.toolchain)
        entry = toolchain.entry_for_host(self.host_key)
        if entry is None:
            return None
        if entry.generate is not None:
            return self.generated_toolchain_path(params.toolchain)
        if entry.cmake_toolchain_file:
            return Path(os.path.abspath(toolchain_dir(self.root, params.toolchain) / entry.cmake_toolchain_file))
        return None

    def get_build_args(self, target: str, params: BuildParameters) -> List[str]:
        return strip_source_and_build_dirs(self.get_target(target).configure_args(self, params))

    def source_status(self) -> List[SourceStatus]:
        statuses: List[SourceStatus] = []
        tracked: set[str] = set()
        sources_dir = self.sources_dir
        for name, config in self.config.targets.items():
            context = TargetContext(name=name, config=config)
            path = context.source_path(self)
            if path.is_dir():
                status = "[OK EXTERNAL]" if config.external_source_override is not None else "[OK]"
            else:
                status = "[MISSING]"
            statuses.append(SourceStatus(name, status))

            if config.external_source_override is None:
                tracked.add(context.source_name())
                continue
            try:
                relative = Path(os.path.abspath(path)).relative_to(sources_dir)
            except ValueError:
                continue
            if relative.parts:
                tracked.add(relative.parts[0])

        if sources_dir.is_dir():
            for entry in sorted(sources_dir.iterdir()):
                if entry.is_dir() and entry.name not in tracked:
                    statuses.append(SourceStatus(entry.name, "[UNTRACKED]"))
        return statuses

    # --- Mutations ----------------------------------------------------------

    def add_dependency(self, target: str, dependency: str) -> None:
        config = self._target_config(target)
        if dependency in config.depends:
            self.console.info(f"Dependency {dependency} already exists for {target}")
            return
        config.depends.append(dependency)
        self.save()
        self.console.info(f"Added dependency {dependency} to {target}")

    def remove_dependency(self, target: str, dependency: str) -> None:
        config = self._target_config(target)
        if dependency not in config.depends:
            self.console.info(f"Dependency {dependency} not found for {target}")
            return
        config.depends = [entry for entry in config.depends if entry != dependency]
        self.save()
        self.console.info(f"Removed dependency {dependency} from {target}")

    def _delete_source_folder(self, name: str) -> None:
        path = self.source_dir(name)
        if path.exists():
            self.console.info(f"Deleting source folder: {path}")
            shutil.rmtree(path)
        else:
            self.console.info(f"Source folder {path} not found, skipping deletion.")

    def remove_source(self, name: str, *, delete_files: bool = False) -> None:
        if name not in self.config.sources:
            raise UnknownNameError("source", name)
        del self.config.sources[name]
        self.save()
        self.console.info(f"Removed source {name} from workspace")
        if delete_files:
            self._delete_source_folder(name)
        else:
            self.console.info(f"Note: files in sources/{name} were NOT deleted. Use -D to delete them.")

    def remove_target(self, name: str) -> None:
        if name not in self.config.targets:
            raise UnknownNameError("target", name)
        del self.config.targets[name]
        self.save()
        self.console.info(f"Removed target {name} from workspace")

    def remove_project(self, source: str, *, delete_files: bool = False) -> None:
        """Remove a source together with every target built from it."""
        source_found = self.config.sources.pop(source, None) is not None
        removed = self.targets_using_source(source)
        for name in removed:
            del self.config.targets[name]
        if not source_found and not removed:
            raise UnknownNameError("source or targets for", source)
        self.save()

        if source_found:
            self.console.info(f"Removed source {source} from workspace")
        for name in removed:
            self.console.info(f"Removed target {name} from workspace")
        if delete_files:
            self._delete_source_folder(source)
        elif source_found:
            self.console.info(f"Note: files in sources/{source} were NOT deleted. Use -D to delete them.")

    def drop_source_files(self, name: str) -> None:
        if name not in self.config.sources:
            raise UnknownNameError("source", name)
        path = self.source_dir(name)
        if path.is_dir():
            self.console.info(f"Deleting source folder: {path}")
            shutil.rmtree(path)

    def set_cxx_version(self, version: str, target: str | None = None) -> None:
        if target:
            self._target_config(target).cxx_standard = version
            self.console.info(f"Set CXX version for {target} to {version}")
        else:
            self.config.cxx_version = version
            self.console.info(f"Set global CXX version to {version}")
        self.save()

    def set_staging(self, target: str, enabled: bool) -> None:
        self._target_config(target).staged = enabled
        self.save()
        state = "Enabled" if enabled else "Disabled"
        self.console.info(f"{state} staging for {target}")

    def add_configuration(self, name: str) -> None:
        if name in self.config.configurations:
            self.console.info(f"Configuration {name} already exists")
            return
        self.config.configurations.append(name)
        self.save()
        self.console.info(f"Added configuration {name}")

    def remove_configuration(self, name: str) -> None:
        if name not in self.config.configurations:
            raise UnknownNameError("configuration", name)
        self.config.configurations = [entry for entry in self.config.configurations if entry != name]
        self.save()
        self.console.info(f"Removed configuration {name}")


__all__ = [
    "GENERATED_TOOLCHAIN_NAME",
    "SourceStatus",
    "WorkspaceContext",
    "find_workspace_root",
]
