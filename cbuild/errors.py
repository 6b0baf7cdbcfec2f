"""Exception hierarchy shared by the workspace, resolver and build driver."""
from __future__ import annotations


class CBuildError(RuntimeError):
    """Base class for every failure reported by cbuild."""


class ConfigurationError(CBuildError, ValueError):
    """Raised when a workspace, toolchain or manifest file is malformed."""


class UnknownNameError(CBuildError, LookupError):
    """Raised when a target, source, configuration or toolchain is not defined."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} {name} not found in workspace")
        self.kind = kind
        self.name = name


class ValidationError(CBuildError, ValueError):
    """Raised when a code source descriptor is not usable."""


class ToolchainError(CBuildError):
    """Raised when a toolchain file cannot be generated."""


class DependencyCycleError(CBuildError):
    """Raised when a target or suggestion graph loops back on itself."""

    def __init__(self, chain: list[str]) -> None:
        super().__init__(f"Dependency cycle detected: {' -> '.join(chain)}")
        self.chain = list(chain)


class BuildError(CBuildError):
    """Raised when configuring, building or installing a target fails."""

    def __init__(self, target: str, message: str) -> None:
        super().__init__(message)
        self.target = target


class SourceFetchError(CBuildError):
    """Raised when a source could not be downloaded."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(message)
        self.source = source


__all__ = [
    "BuildError",
    "CBuildError",
    "ConfigurationError",
    "DependencyCycleError",
    "SourceFetchError",
    "ToolchainError",
    "UnknownNameError",
    "ValidationError",
]
