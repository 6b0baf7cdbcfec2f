"""Git operations used to fetch workspace sources."""
from __future__ import annotations

from pathlib import Path

from .command_runner import CommandResult, CommandRunner, format_command
from .console import Console


class GitManager:
    def __init__(self, runner: CommandRunner, console: Console | None = None) -> None:
        self._runner = runner
        self._console = console or Console()

    def clone(self, url: str, destination: Path) -> CommandResult:
        return self._run_command(["git", "clone", url, str(destination)], cwd=None)

    def submodule_add(self, url: str, relative_path: str, *, repo_path: Path) -> CommandResult:
        """Register ``url`` as a submodule of the repository at ``repo_path``."""
        return self._run_command(["git", "submodule", "add", url, relative_path], cwd=repo_path)

    def checkout(self, repo_path: Path, revision: str) -> CommandResult:
        return self._run_command(["git", "checkout", revision], cwd=repo_path)

    def _run_command(self, command: list[str], *, cwd: Path | None) -> CommandResult:
        self._console.info(f"Executing: {format_command(command)}")
        return self._runner.run(command, cwd=cwd, stream=True)


__all__ = ["GitManager"]
