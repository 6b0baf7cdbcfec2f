"""Fetching sources and applying their csetup manifests."""
from __future__ import annotations

from pathlib import Path
from typing import List, Protocol, Set, TextIO, runtime_checkable
import sys

from .codesource import CodeSource, GitSource, LocalSource, parse_remote_code_source
from .command_runner import CommandError
from .config_loader import TargetConfiguration, load_manifest
from .console import Console
from .errors import (
    CBuildError,
    ConfigurationError,
    DependencyCycleError,
    SourceFetchError,
    UnknownNameError,
    ValidationError,
)
from .git_manager import GitManager
from .workspace import WorkspaceContext


@runtime_checkable
class ConfirmationPolicy(Protocol):
    """Decides whether a suggested dependency should be downloaded."""

    def confirm(self, prompt: str) -> bool:
        ...


class AutoConfirm:
    def confirm(self, prompt: str) -> bool:
        return True


class PromptConfirm:
    """Asks on the terminal; an empty answer, ``y`` or ``yes`` accepts."""

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._stdin = stdin
        self._stdout = stdout

    def confirm(self, prompt: str) -> bool:
        stdout = self._stdout or sys.stdout
        stdin = self._stdin or sys.stdin
        print(f"{prompt} ", end="", file=stdout, flush=True)
        line = stdin.readline()
        if not line:
            raise CBuildError("error reading input: end of file")
        return line.strip().lower() in ("", "y", "yes")


def repository_name(url: str) -> str:
    base = url.rstrip("/").rsplit("/", 1)[-1]
    if ":" in base:
        base = base.rsplit(":", 1)[-1]
    if base.endswith(".git"):
        base = base[: -len(".git")]
    return base


class SourceResolver:
    def __init__(
        self,
        workspace: WorkspaceContext,
        git: GitManager,
        *,
        confirmation: ConfirmationPolicy | None = None,
        submodule: bool = False,
        console: Console | None = None,
    ) -> None:
        self.workspace = workspace
        self.git = git
        self.confirmation = confirmation or PromptConfirm()
        self.submodule = submodule
        self.console = console or workspace.console

    # --- Fetch --------------------------------------------------------------

    def fetch(self, name: str, source: CodeSource) -> Path:
        """Clone (or add as a submodule) into ``sources/<name>``, then pin the revision."""
        if isinstance(source, LocalSource):
            raise ValidationError(
                f"source {name} is local ({source.path}); local sources are not downloaded, "
                "use external_source_override instead"
            )
        destination = self.workspace.source_dir(name)
        try:
            if self.submodule:
                self.console.info(f"Adding submodule '{name}' from '{source.repository}'...")
                self.git.submodule_add(source.repository, f"sources/{name}", repo_path=self.workspace.root)
            else:
                self.console.info(f"Downloading '{name}' from '{source.repository}'...")
                self.git.clone(source.repository, destination)
        except CommandError as exc:
            action = "add submodule" if self.submodule else "download"
            raise SourceFetchError(name, f"failed to {action} '{name}': {exc}") from exc

        if source.revision:
            self.console.info(f"Checking out revision '{source.revision}' for '{name}'...")
            try:
                self.git.checkout(destination, source.revision)
            except CommandError as exc:
                raise SourceFetchError(
                    name, f"failed to checkout revision '{source.revision}' for '{name}': {exc}"
                ) from exc
        return destination

    def download_source(self, name: str) -> None:
        try:
            source = self.workspace.config.sources[name]
        except KeyError:
            raise UnknownNameError("source", name) from None
        self.fetch(name, source)
        self.workspace.save()

    def download(self, name: str | None = None, *, setup: bool = True) -> List[str]:
        """Fetch ``name``, or every git source whose directory is missing."""
        if name:
            names = [name]
        else:
            names = []
            for candidate, source in self.workspace.config.sources.items():
                if self.workspace.source_dir(candidate).exists():
                    continue
                if isinstance(source, LocalSource):
                    self.console.info(f"Skipping local source {candidate}")
                    continue
                names.append(candidate)

        for candidate in names:
            self.download_source(candidate)
            if setup:
                self.load_defaults(candidate)
        return names

    def git_clone(self, url: str, name: str | None = None, *, setup: bool = True) -> str:
        name = name or repository_name(url)
        if not self.workspace.config_file.exists():
            raise CBuildError(f"{self.workspace.config_file} not found. csetup must be run in a cbuild workspace")
        source = GitSource(repository=url)
        self.workspace.config.sources[name] = source
        self.fetch(name, source)
        self.workspace.save()
        if setup:
            self.load_defaults(name)
        self.console.info("Repository cloned successfully.")
        return name

    # --- Manifests ----------------------------------------------------------

    def load_defaults(self, source: str) -> None:
        if source not in self.workspace.config.sources:
            raise UnknownNameError("source", source)
        if source not in self.workspace.config.targets:
            self.workspace.config.targets[source] = TargetConfiguration(source=source)
            self.console.info(f"Created target {source} for source {source}")
        self.process_manifest(source)

    def process_manifest(self, source: str) -> None:
        """Apply ``sources/<source>``'s manifest and resolve its suggestions.

        Suggested sources are fetched and processed in turn; a suggestion
        naming a source still being processed is an error, raised before
        anything is prompted for or fetched.
        """
        self._process_manifest(source, set(), [])
        self.workspace.save()

    def _process_manifest(self, source: str, resolving: Set[str], chain: List[str]) -> None:
        manifest = load_manifest(self.workspace.source_dir(source))
        if manifest is None:
            return
        self.console.debug(f"Processing {manifest.path}")

        resolving.add(source)
        chain.append(source)
        try:
            self._apply_defaults(source, manifest.default_configuration)
            for dependency, raw in manifest.suggested_dep_sources.items():
                self._resolve_suggestion(source, dependency, raw, resolving, chain)
        finally:
            resolving.discard(source)
            chain.pop()

    def _apply_defaults(self, source: str, defaults: TargetConfiguration) -> None:
        targets = self.workspace.config.targets
        for name in self.workspace.targets_using_source(source):
            current = targets[name]
            replacement = defaults.copy()
            replacement.external_source_override = current.external_source_override
            replacement.source = current.source
            targets[name] = replacement

    def _resolve_suggestion(
        self,
        source: str,
        dependency: str,
        raw: object,
        resolving: Set[str],
        chain: List[str],
    ) -> None:
        try:
            suggested = parse_remote_code_source(dependency, raw)
        except ValidationError as exc:
            raise ValidationError(f"invalid suggested source for dependency {dependency}: {exc}") from exc

        if dependency in resolving:
            raise DependencyCycleError([*chain[chain.index(dependency):], dependency])
        if dependency in self.workspace.config.targets:
            return
        prompt = (
            f"Dependency '{dependency}' is not present in sources, source '{source}' suggests "
            f"getting it from '{suggested.describe()}', download it? [Y/n]"
        )
        if not self.confirmation.confirm(prompt):
            self.console.info(f"Skipping dependency '{dependency}'")
            return

        self.workspace.config.sources[dependency] = suggested
        try:
            self.download_source(dependency)
        except SourceFetchError:
            raise
        except CBuildError as exc:
            raise SourceFetchError(dependency, f"failed to download '{dependency}': {exc}") from exc

        self.workspace.config.targets[dependency] = TargetConfiguration(source=dependency)
        self.console.info(f"Added target '{dependency}' to workspace.")
        for name in self.workspace.targets_using_source(source):
            config = self.workspace.config.targets[name]
            if dependency not in config.depends:
                config.depends.append(dependency)
                self.console.info(f"Added dependency '{dependency}' to target '{name}'.")

        try:
            self._process_manifest(dependency, resolving, chain)
        except SourceFetchError as exc:
            raise SourceFetchError(exc.source, f"error processing csetup file for {dependency}: {exc}") from exc
        except (ConfigurationError, ValidationError) as exc:
            raise type(exc)(f"error processing csetup file for {dependency}: {exc}") from exc


__all__ = [
    "AutoConfirm",
    "ConfirmationPolicy",
    "PromptConfirm",
    "SourceResolver",
    "repository_name",
]
