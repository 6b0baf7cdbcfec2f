"""Provenance of a source tree: a git repository or a local directory."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from .errors import ValidationError


@dataclass(frozen=True, slots=True)
class GitSource:
    repository: str
    revision: str | None = None

    def describe(self) -> str:
        if self.revision:
            return f"{self.repository}@{self.revision}"
        return self.repository

    def to_mapping(self) -> Dict[str, Any]:
        git: Dict[str, Any] = {"repository": self.repository}
        if self.revision:
            git["revision"] = self.revision
        return {"git": git}

    def validate_remote(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class LocalSource:
    path: str

    def describe(self) -> str:
        return self.path

    def to_mapping(self) -> Dict[str, Any]:
        return {"local": self.path}

    def validate_remote(self) -> None:
        raise ValidationError("local code sources are not allowed in remote context")


CodeSource = GitSource | LocalSource


def _git_from_mapping(name: str, data: Any) -> GitSource:
    if not isinstance(data, Mapping):
        raise ValidationError(f"source '{name}': git entry must be a mapping")
    unknown = {str(key) for key in data.keys()} - {"repository", "revision"}
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ValidationError(f"source '{name}': git entry contains unknown keys: {joined}")
    repository = data.get("repository")
    if not isinstance(repository, str) or not repository.strip():
        raise ValidationError(f"source '{name}': git repository must be a non-empty string")
    revision = data.get("revision")
    if revision is not None and not isinstance(revision, str):
        revision = str(revision)
    return GitSource(repository=repository.strip(), revision=revision or None)


def parse_code_source(name: str, data: Any) -> CodeSource:
    """Parse ``{git: {repository, revision?}}`` or ``{local: path}``.

    Exactly one of the two keys must be present.
    """
    if not isinstance(data, Mapping):
        raise ValidationError(f"source '{name}' must be a mapping with either 'git' or 'local'")
    unknown = {str(key) for key in data.keys()} - {"git", "local"}
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ValidationError(f"source '{name}' contains unknown keys: {joined}")

    git = data.get("git")
    local = data.get("local")
    if git is None and local is None:
        raise ValidationError(f"source '{name}': either git or local must be set")
    if git is not None and local is not None:
        raise ValidationError(f"source '{name}': only one of git or local can be set")
    if git is not None:
        return _git_from_mapping(name, git)
    if not isinstance(local, str) or not local.strip():
        raise ValidationError(f"source '{name}': local path must be a non-empty string")
    return LocalSource(path=local)


def parse_remote_code_source(name: str, data: Any) -> CodeSource:
    source = parse_code_source(name, data)
    source.validate_remote()
    return source


__all__ = [
    "CodeSource",
    "GitSource",
    "LocalSource",
    "parse_code_source",
    "parse_remote_code_source",
]
