"""Operating system and CPU enumerations plus host detection."""
from __future__ import annotations

from enum import Enum
import platform as _platform

from .errors import ConfigurationError


class Platform(str, Enum):
    UNKNOWN = "unknown"
    WINDOWS = "windows"
    MAC = "mac"
    LINUX = "linux"
    FREEBSD = "freebsd"

    @property
    def display_name(self) -> str:
        return _PLATFORM_DISPLAY[self]

    @classmethod
    def parse(cls, value: object) -> "Platform":
        if isinstance(value, Platform):
            return value
        text = str(value).strip().lower()
        try:
            return _PLATFORM_ALIASES[text]
        except KeyError:
            raise ConfigurationError(f"unrecognized platform: {value}") from None

    def __str__(self) -> str:
        return self.value


class Processor(str, Enum):
    UNKNOWN = "unknown"
    X86 = "x86"
    X64 = "x64"
    ARM32 = "arm"
    ARM64 = "arm64"
    RISCV32 = "riscv32"
    RISCV64 = "riscv64"

    @classmethod
    def parse(cls, value: object) -> "Processor":
        """Unrecognized names map to ``UNKNOWN``; name mapping rejects it later."""
        if isinstance(value, Processor):
            return value
        text = str(value).strip().lower()
        return _PROCESSOR_ALIASES.get(text, cls.UNKNOWN)

    def __str__(self) -> str:
        return self.value


_PLATFORM_DISPLAY = {
    Platform.UNKNOWN: "Unknown",
    Platform.WINDOWS: "Windows",
    Platform.MAC: "Mac",
    Platform.LINUX: "Linux",
    Platform.FREEBSD: "FreeBSD",
}

_PLATFORM_ALIASES = {
    "windows": Platform.WINDOWS,
    "mac": Platform.MAC,
    "macos": Platform.MAC,
    "darwin": Platform.MAC,
    "linux": Platform.LINUX,
    "freebsd": Platform.FREEBSD,
    "unknown": Platform.UNKNOWN,
}

_PROCESSOR_ALIASES = {
    "x86": Processor.X86,
    "i386": Processor.X86,
    "i686": Processor.X86,
    "x64": Processor.X64,
    "x86_64": Processor.X64,
    "amd64": Processor.X64,
    "arm": Processor.ARM32,
    "arm32": Processor.ARM32,
    "armv7l": Processor.ARM32,
    "arm64": Processor.ARM64,
    "aarch64": Processor.ARM64,
    "riscv32": Processor.RISCV32,
    "riscv64": Processor.RISCV64,
}


def detect_host_platform() -> Platform:
    try:
        return Platform.parse(_platform.system())
    except ConfigurationError:
        return Platform.UNKNOWN


def detect_host_processor() -> Processor:
    return Processor.parse(_platform.machine())


def host_key(platform: Platform | None = None, processor: Processor | None = None) -> str:
    """Key used in toolchain descriptors, e.g. ``host-linux-x64``."""
    platform = platform or detect_host_platform()
    processor = processor or detect_host_processor()
    return f"host-{platform.value}-{processor.value}"


__all__ = [
    "Platform",
    "Processor",
    "detect_host_platform",
    "detect_host_processor",
    "host_key",
]
