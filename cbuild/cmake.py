"""CMake vocabulary: configure options, system names and toolchain-file generation."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence
import re

from .console import Console
from .errors import ConfigurationError, ToolchainError
from .system import Platform, Processor


# --- Configure options -------------------------------------------------------


def _scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True, slots=True)
class BareOption:
    """``NAME: value`` in the workspace file; rendered as ``-DNAME=value``."""

    value: str

    @property
    def type(self) -> str:
        return ""

    def define(self, name: str) -> str:
        return f"-D{name}={self.value}"

    def to_yaml(self) -> Any:
        return self.value


@dataclass(frozen=True, slots=True)
class TypedOption:
    """``NAME: {type: BOOL, value: ON}``; rendered as ``-DNAME:BOOL=ON``."""

    type: str
    value: str

    def define(self, name: str) -> str:
        return f"-D{name}:{self.type}={self.value}"

    def to_yaml(self) -> Any:
        return {"type": self.type, "value": self.value}


CMakeOption = BareOption | TypedOption


def parse_option(name: str, raw: Any) -> CMakeOption:
    if isinstance(raw, Mapping):
        unknown = {str(key) for key in raw.keys()} - {"type", "value"}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigurationError(f"cmake option '{name}' contains unknown keys: {joined}")
        option_type = _scalar_text(raw.get("type"))
        value = _scalar_text(raw.get("value"))
        if not option_type:
            return BareOption(value)
        return TypedOption(option_type, value)
    if isinstance(raw, (list, tuple)):
        raise ConfigurationError(f"cmake option '{name}' must be a scalar or a {{type, value}} mapping")
    return BareOption(_scalar_text(raw))


def parse_options(raw: Any) -> Dict[str, CMakeOption]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError("cmake_options must be a mapping")
    return {str(name): parse_option(str(name), value) for name, value in raw.items()}


# --- System names --------------------------------------------------------------


def platform_to_cmake_name(platform: Platform) -> str:
    names = {
        Platform.MAC: "Darwin",
        Platform.LINUX: "Linux",
        Platform.FREEBSD: "FreeBSD",
        Platform.WINDOWS: "Windows",
    }
    try:
        return names[platform]
    except KeyError:
        raise ToolchainError(f"platform not supported: {platform}") from None


_PROCESSOR_NAMES: Dict[Platform, Dict[Processor, str]] = {
    Platform.LINUX: {
        Processor.X86: "i686",
        Processor.X64: "x86_64",
        Processor.ARM32: "armv7l",
        Processor.ARM64: "aarch64",
        Processor.RISCV32: "riscv32",
        Processor.RISCV64: "riscv64",
    },
    Platform.FREEBSD: {
        Processor.X86: "i386",
        Processor.X64: "amd64",
        Processor.ARM32: "armv7l",
        Processor.ARM64: "aarch64",
        Processor.RISCV32: "riscv32",
        Processor.RISCV64: "riscv64",
    },
    Platform.MAC: {
        Processor.X64: "x86_64",
        Processor.ARM64: "arm64",
    },
    Platform.WINDOWS: {
        Processor.X86: "x86",
        Processor.X64: "AMD64",
        Processor.ARM32: "ARM",
        Processor.ARM64: "ARM64",
    },
}


def processor_to_cmake_name(platform: Platform, processor: Processor) -> str:
    name = _PROCESSOR_NAMES.get(platform, {}).get(processor)
    if name is None:
        raise ToolchainError(
            f"unsupported platform/processor combination: {platform.display_name}/{processor}"
        )
    return name


# --- Compiler families and presets ---------------------------------------------


class CompilerType(str, Enum):
    UNKNOWN = "unknown"
    GCC = "gcc"
    CLANG = "clang"
    MSVC = "msvc"

    @classmethod
    def parse(cls, value: object) -> "CompilerType":
        if value is None or value == "":
            return cls.UNKNOWN
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(f"unknown compiler type: {value}") from None


class BuildPreset(str, Enum):
    DEBUG = "Debug"
    RELEASE = "Release"
    REL_WITH_DEB_INFO = "RelWithDebInfo"
    QUICK = "Quick"
    PROFILE = "Profile"
    DEBUG_COVERAGE = "DebugCoverage"
    DEBUG_ASAN = "DebugASAN"
    DEBUG_TSAN = "DebugTSAN"
    RELEASE_ASAN = "ReleaseASAN"
    RELEASE_TSAN = "ReleaseTSAN"


PRESET_CATALOG: tuple[BuildPreset, ...] = tuple(BuildPreset)

_CLANG_RE = re.compile(r"clang(\+\+)?(-\d+)?$")
_GCC_RE = re.compile(r"(gcc|g\+\+)(-\d+)?$")
_MSVC_RE = re.compile(r"^cl(\.exe)?$", re.IGNORECASE)


def _compiler_family(executable: str) -> CompilerType:
    base = Path(executable).name
    if _CLANG_RE.search(base):
        return CompilerType.CLANG
    if _GCC_RE.search(base):
        return CompilerType.GCC
    if _MSVC_RE.search(base):
        return CompilerType.MSVC
    return CompilerType.UNKNOWN


def guess_compiler_type(c_compiler: str | None, cxx_compiler: str | None) -> CompilerType:
    """Infer the family from the C compiler name, falling back to the C++ one."""
    for executable in (c_compiler, cxx_compiler):
        if not executable:
            continue
        family = _compiler_family(executable)
        if family is not CompilerType.UNKNOWN:
            return family
    return CompilerType.UNKNOWN


_GNU_FLAGS = {
    BuildPreset.DEBUG: ["-g", "-Og"],
    BuildPreset.RELEASE: ["-O3", "-DNDEBUG"],
    BuildPreset.QUICK: ["-O1", "-DNDEBUG"],
    BuildPreset.PROFILE: ["-O3", "-g", "-DNDEBUG"],
}
_GNU_ASAN = ["-fsanitize=address", "-fsanitize=undefined"]
_GNU_TSAN = ["-fsanitize=thread", "-fsanitize=undefined"]
_GNU_COVERAGE = ["--coverage"]

# MSVC has no sanitizer or coverage flags wired in; those presets reuse the
# plain Debug/Release flags.
_MSVC_FLAGS = {
    BuildPreset.DEBUG: ["/Zi", "/Od", "/RTC1"],
    BuildPreset.RELEASE: ["/O2", "/DNDEBUG"],
    BuildPreset.QUICK: ["/O1", "/DNDEBUG"],
    BuildPreset.PROFILE: ["/O2", "/Zi", "/DNDEBUG"],
}


def debug_path_remap(compiler_type: CompilerType, workspace_dir: Path) -> List[str]:
    flags: List[str] = []
    if compiler_type is CompilerType.CLANG:
        flags.append("-fdebug-compilation-dir=.")
    if compiler_type in (CompilerType.CLANG, CompilerType.GCC):
        flags.append(f"-fdebug-prefix-map={Path(workspace_dir).resolve()}=.")
    return flags


def preset_flags(compiler_type: CompilerType, workspace_dir: Path) -> Dict[BuildPreset, List[str]]:
    if compiler_type in (CompilerType.GCC, CompilerType.CLANG):
        base, asan, tsan, coverage = _GNU_FLAGS, _GNU_ASAN, _GNU_TSAN, _GNU_COVERAGE
    elif compiler_type is CompilerType.MSVC:
        base, asan, tsan, coverage = _MSVC_FLAGS, [], [], []
    else:
        raise ToolchainError("unknown compiler")

    debug = [*debug_path_remap(compiler_type, workspace_dir), *base[BuildPreset.DEBUG]]
    release = list(base[BuildPreset.RELEASE])
    profile = list(base[BuildPreset.PROFILE])
    return {
        BuildPreset.DEBUG: debug,
        BuildPreset.RELEASE: release,
        BuildPreset.REL_WITH_DEB_INFO: profile,
        BuildPreset.QUICK: list(base[BuildPreset.QUICK]),
        BuildPreset.PROFILE: list(profile),
        BuildPreset.DEBUG_COVERAGE: [*debug, *coverage],
        BuildPreset.DEBUG_ASAN: [*debug, *asan],
        BuildPreset.DEBUG_TSAN: [*debug, *tsan],
        BuildPreset.RELEASE_ASAN: [*release, *asan],
        BuildPreset.RELEASE_TSAN: [*release, *tsan],
    }


# --- Toolchain file ------------------------------------------------------------


@dataclass(slots=True)
class GenerateToolchainFileOptions:
    output_file: Path
    system_platform: Platform
    system_processor: Processor
    workspace_dir: Path = Path(".")
    c_compiler: str = ""
    cxx_compiler: str = ""
    linker: str = ""
    compiler_type: CompilerType = CompilerType.UNKNOWN
    extra_compiler_flags: List[str] = field(default_factory=list)
    extra_c_flags: List[str] = field(default_factory=list)
    extra_cxx_flags: List[str] = field(default_factory=list)


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _join(flags: Sequence[str]) -> str:
    return _quote(" ".join(flags))


def render_toolchain_file(options: GenerateToolchainFileOptions, console: Console | None = None) -> str:
    """Build the toolchain file text; raises before anything touches the disk."""
    compiler_type = options.compiler_type
    if compiler_type is CompilerType.UNKNOWN:
        compiler_type = guess_compiler_type(options.c_compiler, options.cxx_compiler)
        if console is not None:
            console.debug(
                f"Guessing compiler type from {options.c_compiler!r}/{options.cxx_compiler!r}: {compiler_type.value}"
            )
        if compiler_type is CompilerType.UNKNOWN:
            raise ToolchainError("unknown compiler")

    system_name = platform_to_cmake_name(options.system_platform)
    system_processor = processor_to_cmake_name(options.system_platform, options.system_processor)
    flags = preset_flags(compiler_type, options.workspace_dir)

    lines = ["# Automatically generated toolchain file"]
    lines.append(f"set(CMAKE_SYSTEM_NAME {_quote(system_name)})")
    lines.append(f"set(CMAKE_SYSTEM_PROCESSOR {_quote(system_processor)})")
    if options.c_compiler:
        lines.append(f"set(CMAKE_C_COMPILER {_quote(options.c_compiler)})")
    if options.cxx_compiler:
        lines.append(f"set(CMAKE_CXX_COMPILER {_quote(options.cxx_compiler)})")
    if options.linker:
        lines.append(f"set(CMAKE_LINKER {_quote(options.linker)})")

    c_flags = [*options.extra_compiler_flags, *options.extra_c_flags]
    cxx_flags = [*options.extra_compiler_flags, *options.extra_cxx_flags]
    lines.append(f"set(CMAKE_C_FLAGS_INIT {_join(c_flags)})")
    lines.append(f"set(CMAKE_CXX_FLAGS_INIT {_join(cxx_flags)})")

    catalog = ";".join(preset.value for preset in PRESET_CATALOG)
    lines.append(f'set(CMAKE_CONFIGURATION_TYPES {_quote(catalog)} CACHE STRING "" FORCE)')
    for preset in PRESET_CATALOG:
        suffix = preset.value.upper()
        lines.append(f"set(CMAKE_CXX_FLAGS_{suffix}_INIT {_join(flags[preset])})")
        lines.append(f"set(CMAKE_C_FLAGS_{suffix}_INIT {_join(flags[preset])})")

    lines.append("set(CMAKE_FIND_ROOT_PATH_MODE_PACKAGE NEVER)")
    return "\n".join(lines) + "\n"


def generate_toolchain_file(options: GenerateToolchainFileOptions, console: Console | None = None) -> Path:
    content = render_toolchain_file(options, console)
    output = Path(options.output_file)
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise ToolchainError(f"failed to write toolchain file {output}: {exc}") from exc
    return output


__all__ = [
    "BareOption",
    "BuildPreset",
    "CMakeOption",
    "CompilerType",
    "GenerateToolchainFileOptions",
    "PRESET_CATALOG",
    "TypedOption",
    "generate_toolchain_file",
    "guess_compiler_type",
    "parse_option",
    "parse_options",
    "platform_to_cmake_name",
    "preset_flags",
    "processor_to_cmake_name",
    "render_toolchain_file",
]
