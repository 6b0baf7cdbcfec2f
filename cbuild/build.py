"""Dependency-ordered configure/build/install driver."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Set
import os
import shutil

from .cmake import GenerateToolchainFileOptions, generate_toolchain_file, render_toolchain_file
from .command_runner import CommandError, CommandRunner, SubprocessCommandRunner, format_command
from .console import Console
from .errors import BuildError, ConfigurationError, DependencyCycleError, ToolchainError
from .system import Platform, Processor, detect_host_platform, detect_host_processor
from .targets import BuildParameters, TargetContext, dependency_target_name, validate_project_type
from .toolchains import Toolchain, ToolchainEntry
from .workspace import WorkspaceContext


@dataclass(slots=True)
class _BuildRun:
    built: Set[str] = field(default_factory=set)
    stack: List[str] = field(default_factory=list)


def _toolchain_system(toolchain: Toolchain) -> tuple[Platform, Processor]:
    platform = Platform.parse(toolchain.target_system) if toolchain.target_system else detect_host_platform()
    processor = Processor.parse(toolchain.target_arch) if toolchain.target_arch else detect_host_processor()
    return platform, processor


class BuildEngine:
    def __init__(
        self,
        workspace: WorkspaceContext,
        runner: CommandRunner | None = None,
        *,
        console: Console | None = None,
    ) -> None:
        self.workspace = workspace
        self.runner = runner or SubprocessCommandRunner()
        self.console = console or workspace.console

    # --- Toolchain ----------------------------------------------------------

    def generate_options(self, toolchain: Toolchain, entry: ToolchainEntry, output: Path) -> GenerateToolchainFileOptions:
        generate = entry.generate
        if generate is None:
            raise ConfigurationError(f"toolchain {toolchain.name} has no generate entry")
        try:
            platform, processor = _toolchain_system(toolchain)
        except ConfigurationError as exc:
            raise ConfigurationError(f"toolchain {toolchain.name}: {exc}") from exc
        return GenerateToolchainFileOptions(
            output_file=output,
            system_platform=platform,
            system_processor=processor,
            workspace_dir=self.workspace.root,
            c_compiler=generate.c_compiler,
            cxx_compiler=generate.cxx_compiler,
            linker=generate.linker,
            compiler_type=generate.compiler_type,
            extra_compiler_flags=list(generate.extra_compiler_flags),
            extra_c_flags=list(generate.extra_c_flags),
            extra_cxx_flags=list(generate.extra_cxx_flags),
        )

    def prebuild(self, params: BuildParameters) -> Path | None:
        """Materialize the toolchain file for the current host, if any."""
        toolchain = self.workspace.load_toolchain(params.toolchain)
        entry = toolchain.entry_for_host(self.workspace.host_key)
        if entry is None:
            self.console.debug(
                f"Toolchain {params.toolchain} has no entry for {self.workspace.host_key}; no toolchain file"
            )
            return None
        path = self.workspace.toolchain_file_path(params)
        if entry.generate is None:
            self.console.debug(f"Using toolchain file {path}")
            return path

        options = self.generate_options(toolchain, entry, path)
        try:
            if params.dry_run:
                render_toolchain_file(options, self.console)
                self.console.dry(f"Would generate toolchain file {path}")
            else:
                generate_toolchain_file(options, self.console)
                self.console.debug(f"Generated toolchain file {path}")
        except ToolchainError as exc:
            raise ToolchainError(f"failed to generate toolchain file for {params.toolchain}: {exc}") from exc
        return path

    # --- Build --------------------------------------------------------------

    def build_all(self, params: BuildParameters) -> None:
        self.prebuild(params)
        run = _BuildRun()
        for name in self.workspace.list_targets():
            try:
                self._build(name, params, run)
            except BuildError as exc:
                raise BuildError(exc.target, f"failed to build module {name}: {exc}") from exc

    def build_target(self, name: str, params: BuildParameters) -> None:
        self.prebuild(params)
        self._build(name, params, _BuildRun())

    def build_dependencies(self, name: str, params: BuildParameters) -> None:
        """Build the direct dependencies of ``name`` (and theirs), but not ``name``."""
        self.prebuild(params)
        target = self.workspace.get_target(name)
        run = _BuildRun(stack=[name])
        for entry in target.config.depends:
            dependency = dependency_target_name(entry)
            try:
                self._build(dependency, params, run)
            except BuildError as exc:
                raise BuildError(exc.target, f"failed to build dependency {dependency}: {exc}") from exc

    def _build(self, name: str, params: BuildParameters, run: _BuildRun) -> None:
        if name in run.built:
            return
        if name in run.stack:
            start = run.stack.index(name)
            raise DependencyCycleError([*run.stack[start:], name])

        target = self.workspace.get_target(name)
        run.stack.append(name)
        try:
            for entry in target.config.depends:
                dependency = dependency_target_name(entry)
                try:
                    self._build(dependency, params, run)
                except BuildError as exc:
                    raise BuildError(exc.target, f"failed to build dependency {dependency}: {exc}") from exc
            validate_project_type(name, target.config.project_type)
            self._build_module(target, params)
        finally:
            run.stack.pop()
        run.built.add(name)

    def _build_module(self, target: TargetContext, params: BuildParameters) -> None:
        cmake = self.workspace.cmake_binary
        build_dir = Path(os.path.abspath(target.build_path(self.workspace, params)))

        self._execute(
            target.name,
            [cmake, *target.configure_args(self.workspace, params)],
            params,
            f"failed to configure module {target.name}",
        )
        self._execute(
            target.name,
            [cmake, "--build", str(build_dir), "--config", params.configuration],
            params,
            f"failed to build module {target.name}",
        )
        if target.staged:
            staging = Path(os.path.abspath(target.staging_path(self.workspace, params)))
            self._execute(
                target.name,
                [cmake, "--install", str(build_dir), "--prefix", str(staging), "--config", params.configuration],
                params,
                f"failed to install module {target.name} to staging",
            )

    def _execute(self, target: str, command: Sequence[str], params: BuildParameters, context: str) -> None:
        line = format_command(command)
        if params.dry_run:
            self.console.dry(f"Executing: {line}")
            return
        self.console.info(f"Executing: {line}")
        try:
            self.runner.run(command, stream=True, note=context)
        except CommandError as exc:
            raise BuildError(target, f"{context}: {exc}") from exc

    # --- Clean --------------------------------------------------------------

    def _remove(self, path: Path, dry_run: bool) -> None:
        if dry_run:
            self.console.dry(f"Would delete {path}")
            return
        self.console.info(f"Cleaning: {path}")
        shutil.rmtree(path, ignore_errors=True)

    def clean(self, toolchain: str = "all", configuration: str | None = None, *, dry_run: bool = False) -> None:
        buildspaces = self.workspace.buildspaces_dir
        if toolchain in ("", "all"):
            if not buildspaces.is_dir():
                return
            toolchains = sorted(entry.name for entry in buildspaces.iterdir() if entry.is_dir())
        else:
            toolchains = [toolchain]

        for name in toolchains:
            toolchain_dir = buildspaces / name
            if not configuration:
                self._remove(toolchain_dir, dry_run)
                continue
            if not toolchain_dir.is_dir():
                continue
            for target_dir in sorted(entry for entry in toolchain_dir.iterdir() if entry.is_dir()):
                config_dir = target_dir / configuration
                if config_dir.exists():
                    self._remove(config_dir, dry_run)

    def clean_target(self, name: str, params: BuildParameters) -> None:
        target = self.workspace.get_target(name)
        self._remove(target.build_path(self.workspace, params), params.dry_run)


__all__ = ["BuildEngine"]
