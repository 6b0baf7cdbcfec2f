"""Command line interface for cbuild workspaces."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Callable, Dict, Iterable, List
import os
import sys

from .build import BuildEngine
from .command_runner import CommandError, SubprocessCommandRunner
from .console import Console
from .detect import ToolchainDetector
from .errors import CBuildError, ConfigurationError
from .git_manager import GitManager
from .sources import AutoConfirm, PromptConfirm, SourceResolver
from .targets import BuildParameters
from .workspace import WorkspaceContext, find_workspace_root

DEFAULT_BUILD_TOOLCHAIN = "all"
DEFAULT_ARGS_TOOLCHAIN = "default"
DEFAULT_ARGS_CONFIGURATION = "Debug"


def _common_parser() -> ArgumentParser:
    common = ArgumentParser(add_help=False)
    common.add_argument("-w", "--workspace", help="Path to the workspace directory")
    common.add_argument("--log", choices=sorted(Console.LEVELS), help="Console log level (default: info)")
    common.add_argument("-v", "--verbose", action="store_true", help="Shorthand for --log debug")
    return common


def _add_build_selection(parser: ArgumentParser, *, toolchain_default: str | None) -> None:
    parser.add_argument("-T", "--toolchain", default=toolchain_default, help="Toolchain to use ('all' for every toolchain)")
    parser.add_argument("-c", "--config", help="Build configuration(s), comma separated")


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    common = _common_parser()
    parser = ArgumentParser(prog="cbuild", description="Meta-build orchestrator for CMake workspaces")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", parents=[common], help="Initialize a new workspace")
    init_parser.add_argument("path", nargs="?", help="Workspace directory (default: current directory)")
    init_parser.add_argument("--reinit", action="store_true", help="Reinitialize an existing workspace")

    build_parser = subparsers.add_parser("build", parents=[common], help="Build one target or the whole workspace")
    build_parser.add_argument("-t", "--target", help="Specific target to build")
    _add_build_selection(build_parser, toolchain_default=DEFAULT_BUILD_TOOLCHAIN)
    build_parser.add_argument("--dry-run", action="store_true", help="Show commands without executing them")

    deps_parser = subparsers.add_parser("build-deps", parents=[common], help="Build the dependencies of a target")
    deps_parser.add_argument("target", help="Target whose dependencies are built")
    _add_build_selection(deps_parser, toolchain_default=DEFAULT_BUILD_TOOLCHAIN)
    deps_parser.add_argument("--dry-run", action="store_true", help="Show commands without executing them")

    clean_parser = subparsers.add_parser("clean", parents=[common], help="Delete build directories")
    _add_build_selection(clean_parser, toolchain_default=DEFAULT_BUILD_TOOLCHAIN)
    clean_parser.add_argument("--dry-run", action="store_true", help="Show what would be deleted")

    clean_target_parser = subparsers.add_parser("clean-target", parents=[common], help="Delete one target's build directories")
    clean_target_parser.add_argument("target", help="Target to clean")
    _add_build_selection(clean_target_parser, toolchain_default=DEFAULT_BUILD_TOOLCHAIN)
    clean_target_parser.add_argument("--dry-run", action="store_true", help="Show what would be deleted")

    clone_parser = subparsers.add_parser("git-clone", parents=[common], help="Clone a git repository into the workspace")
    clone_parser.add_argument("url", help="Repository URL")
    clone_parser.add_argument("name", nargs="?", help="Source name (default: repository name)")
    _add_fetch_flags(clone_parser)

    download_parser = subparsers.add_parser("download", parents=[common], help="Download missing sources")
    download_parser.add_argument("source", nargs="?", help="Source to download (default: every missing source)")
    _add_fetch_flags(download_parser)

    defaults_parser = subparsers.add_parser(
        "load-defaults", parents=[common], help="Load a source's default configuration from its csetup file"
    )
    defaults_parser.add_argument("source", help="Source name")
    defaults_parser.add_argument("--download-deps", action="store_true", help="Download suggested dependencies without asking")
    defaults_parser.add_argument("--submodule", action="store_true", help="Add suggested sources as git submodules")

    add_dep_parser = subparsers.add_parser("add-dependency", parents=[common], help="Add a dependency to a target")
    add_dep_parser.add_argument("target")
    add_dep_parser.add_argument("dependency")

    remove_dep_parser = subparsers.add_parser("remove-dependency", parents=[common], help="Remove a dependency from a target")
    remove_dep_parser.add_argument("target")
    remove_dep_parser.add_argument("dependency")

    remove_source_parser = subparsers.add_parser("remove-source", parents=[common], help="Remove a source from the workspace")
    remove_source_parser.add_argument("source")
    remove_source_parser.add_argument("-D", "--delete", action="store_true", help="Delete the source files too")

    remove_target_parser = subparsers.add_parser("remove-target", parents=[common], help="Remove a target from the workspace")
    remove_target_parser.add_argument("target")

    remove_project_parser = subparsers.add_parser(
        "remove-project", parents=[common], help="Remove a source and all of its targets"
    )
    remove_project_parser.add_argument("source")
    remove_project_parser.add_argument("-D", "--delete", action="store_true", help="Delete the source files too")

    drop_parser = subparsers.add_parser(
        "drop-files", parents=[common], help="Delete a source's files but keep its configuration"
    )
    drop_parser.add_argument("source")

    cxx_parser = subparsers.add_parser("set-cxx-version", parents=[common], help="Set the C++ standard")
    cxx_parser.add_argument("version")
    cxx_parser.add_argument("-t", "--target", help="Target to change (default: the whole workspace)")

    for name, help_text in (("enable-staging", "Enable staging for a target"), ("disable-staging", "Disable staging for a target")):
        staging_parser = subparsers.add_parser(name, parents=[common], help=help_text)
        staging_parser.add_argument("target")

    add_config_parser = subparsers.add_parser("add-config", parents=[common], help="Add a build configuration")
    add_config_parser.add_argument("name")

    remove_config_parser = subparsers.add_parser("remove-config", parents=[common], help="Remove a build configuration")
    remove_config_parser.add_argument("name")

    subparsers.add_parser("list-sources", parents=[common], help="List targets and the state of their sources")
    subparsers.add_parser("list-targets", parents=[common], help="List targets")
    subparsers.add_parser("list-toolchains", parents=[common], help="List toolchains")
    subparsers.add_parser("detect-toolchains", parents=[common], help="Detect compilers installed on this host")

    args_parser = subparsers.add_parser("get-args", parents=[common], help="Print the configure arguments of a target")
    args_parser.add_argument("target")
    args_parser.add_argument("-T", "--toolchain", default=DEFAULT_ARGS_TOOLCHAIN, help="Toolchain to use")
    args_parser.add_argument("-c", "--config", default=DEFAULT_ARGS_CONFIGURATION, help="Build configuration")

    return parser.parse_args(list(argv))


def _add_fetch_flags(parser: ArgumentParser) -> None:
    parser.add_argument("--download-deps", action="store_true", help="Download suggested dependencies without asking")
    parser.add_argument("--submodule", action="store_true", help="Add sources as git submodules of the workspace")
    parser.add_argument("--no-setup", action="store_true", help="Do not process csetup files after fetching")


def _console_for(args: Namespace) -> Console:
    level = "debug" if args.verbose else (args.log or "info")
    return Console(level=level, dry_run=getattr(args, "dry_run", False))


def _workspace_root(args: Namespace) -> Path:
    if args.workspace:
        return Path(os.path.abspath(args.workspace))
    return find_workspace_root()


def _load(args: Namespace, console: Console) -> WorkspaceContext:
    return WorkspaceContext.load(_workspace_root(args), console=console)


def _toolchains(workspace: WorkspaceContext, requested: str | None) -> List[str]:
    if requested and requested != "all":
        return [requested]
    names = workspace.list_toolchains()
    if not names:
        raise ConfigurationError("No toolchains found in toolchains directory")
    return names


def _configurations(workspace: WorkspaceContext, requested: str | None) -> List[str]:
    if requested:
        return [name.strip() for name in requested.split(",") if name.strip()]
    return list(workspace.config.configurations)


def _resolver(workspace: WorkspaceContext, args: Namespace, console: Console) -> SourceResolver:
    confirmation = AutoConfirm() if args.download_deps else PromptConfirm()
    return SourceResolver(
        workspace,
        GitManager(SubprocessCommandRunner(), console),
        confirmation=confirmation,
        submodule=args.submodule,
        console=console,
    )


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    console = _console_for(args)
    handler = _HANDLERS[args.command]
    try:
        return handler(args, console)
    except (CBuildError, CommandError) as exc:
        console.error(f"Error: {exc}")
        return 1


def _handle_init(args: Namespace, console: Console) -> int:
    root = Path(os.path.abspath(args.path or args.workspace or Path.cwd()))
    WorkspaceContext.init(root, reinit=args.reinit, console=console)
    console.result(f"Initialized empty workspace in {root}")
    return 0


def _run_builds(args: Namespace, console: Console, action: Callable[[BuildEngine, BuildParameters], None]) -> None:
    workspace = _load(args, console)
    engine = BuildEngine(workspace, SubprocessCommandRunner(), console=console)
    for toolchain in _toolchains(workspace, args.toolchain):
        for configuration in _configurations(workspace, args.config):
            console.info(f"Building with toolchain: {toolchain}, config: {configuration}")
            params = BuildParameters(toolchain=toolchain, configuration=configuration, dry_run=args.dry_run)
            action(engine, params)


def _handle_build(args: Namespace, console: Console) -> int:
    if args.target:
        _run_builds(args, console, lambda engine, params: engine.build_target(args.target, params))
    else:
        _run_builds(args, console, lambda engine, params: engine.build_all(params))
    console.result("Build completed successfully")
    return 0


def _handle_build_deps(args: Namespace, console: Console) -> int:
    _run_builds(args, console, lambda engine, params: engine.build_dependencies(args.target, params))
    console.result("Build completed successfully")
    return 0


def _handle_clean(args: Namespace, console: Console) -> int:
    workspace = _load(args, console)
    engine = BuildEngine(workspace, SubprocessCommandRunner(), console=console)
    if args.config:
        for configuration in _configurations(workspace, args.config):
            engine.clean(args.toolchain, configuration, dry_run=args.dry_run)
    else:
        engine.clean(args.toolchain, None, dry_run=args.dry_run)
    console.result("Clean completed successfully")
    return 0


def _handle_clean_target(args: Namespace, console: Console) -> int:
    workspace = _load(args, console)
    engine = BuildEngine(workspace, SubprocessCommandRunner(), console=console)
    for toolchain in _toolchains(workspace, args.toolchain):
        for configuration in _configurations(workspace, args.config):
            engine.clean_target(args.target, BuildParameters(toolchain, configuration, dry_run=args.dry_run))
    console.result("Clean completed successfully")
    return 0


def _handle_git_clone(args: Namespace, console: Console) -> int:
    workspace = _load(args, console)
    _resolver(workspace, args, console).git_clone(args.url, args.name, setup=not args.no_setup)
    return 0


def _handle_download(args: Namespace, console: Console) -> int:
    workspace = _load(args, console)
    fetched = _resolver(workspace, args, console).download(args.source, setup=not args.no_setup)
    if not fetched:
        console.info("All sources are present")
    return 0


def _handle_load_defaults(args: Namespace, console: Console) -> int:
    workspace = _load(args, console)
    _resolver(workspace, args, console).load_defaults(args.source)
    return 0


def _handle_add_dependency(args: Namespace, console: Console) -> int:
    _load(args, console).add_dependency(args.target, args.dependency)
    return 0


def _handle_remove_dependency(args: Namespace, console: Console) -> int:
    _load(args, console).remove_dependency(args.target, args.dependency)
    return 0


def _handle_remove_source(args: Namespace, console: Console) -> int:
    _load(args, console).remove_source(args.source, delete_files=args.delete)
    return 0


def _handle_remove_target(args: Namespace, console: Console) -> int:
    _load(args, console).remove_target(args.target)
    return 0


def _handle_remove_project(args: Namespace, console: Console) -> int:
    _load(args, console).remove_project(args.source, delete_files=args.delete)
    return 0


def _handle_drop_files(args: Namespace, console: Console) -> int:
    _load(args, console).drop_source_files(args.source)
    return 0


def _handle_set_cxx_version(args: Namespace, console: Console) -> int:
    _load(args, console).set_cxx_version(args.version, args.target)
    return 0


def _handle_enable_staging(args: Namespace, console: Console) -> int:
    _load(args, console).set_staging(args.target, True)
    return 0


def _handle_disable_staging(args: Namespace, console: Console) -> int:
    _load(args, console).set_staging(args.target, False)
    return 0


def _handle_add_config(args: Namespace, console: Console) -> int:
    _load(args, console).add_configuration(args.name)
    return 0


def _handle_remove_config(args: Namespace, console: Console) -> int:
    _load(args, console).remove_configuration(args.name)
    return 0


def _handle_list_sources(args: Namespace, console: Console) -> int:
    for status in _load(args, console).source_status():
        console.result(str(status))
    return 0


def _handle_list_targets(args: Namespace, console: Console) -> int:
    for name in _load(args, console).list_targets():
        console.result(name)
    return 0


def _handle_list_toolchains(args: Namespace, console: Console) -> int:
    for name in _load(args, console).list_toolchains():
        console.result(name)
    return 0


def _handle_detect_toolchains(args: Namespace, console: Console) -> int:
    workspace = _load(args, console)
    detected = ToolchainDetector(workspace, SubprocessCommandRunner(), console=console).detect()
    if not detected:
        console.info("No working toolchains detected")
    return 0


def _handle_get_args(args: Namespace, console: Console) -> int:
    workspace = _load(args, console)
    params = BuildParameters(toolchain=args.toolchain, configuration=args.config)
    console.result(" ".join(workspace.get_build_args(args.target, params)))
    return 0


_HANDLERS: Dict[str, Callable[[Namespace, Console], int]] = {
    "init": _handle_init,
    "build": _handle_build,
    "build-deps": _handle_build_deps,
    "clean": _handle_clean,
    "clean-target": _handle_clean_target,
    "git-clone": _handle_git_clone,
    "download": _handle_download,
    "load-defaults": _handle_load_defaults,
    "add-dependency": _handle_add_dependency,
    "remove-dependency": _handle_remove_dependency,
    "remove-source": _handle_remove_source,
    "remove-target": _handle_remove_target,
    "remove-project": _handle_remove_project,
    "drop-files": _handle_drop_files,
    "set-cxx-version": _handle_set_cxx_version,
    "enable-staging": _handle_enable_staging,
    "disable-staging": _handle_disable_staging,
    "add-config": _handle_add_config,
    "remove-config": _handle_remove_config,
    "list-sources": _handle_list_sources,
    "list-targets": _handle_list_targets,
    "list-toolchains": _handle_list_toolchains,
    "detect-toolchains": _handle_detect_toolchains,
    "get-args": _handle_get_args,
}


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
