"""Probe the host for working compilers and write toolchain descriptors for them."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Tuple
import shutil
import tempfile

from .cmake import GenerateToolchainFileOptions, generate_toolchain_file
from .command_runner import CommandError, CommandRunner
from .console import Console
from .errors import ToolchainError
from .system import Platform, Processor, detect_host_platform, detect_host_processor, host_key
from .toolchains import GenerateOptions, Toolchain, ToolchainEntry, save_toolchain
from .workspace import WorkspaceContext

HELLO_CMAKELISTS = "cmake_minimum_required(VERSION 3.10)\nproject(test)\nadd_executable(test main.cpp)\n"
HELLO_MAIN = "int main() { return 0; }\n"


@dataclass(frozen=True, slots=True)
class ToolchainCandidate:
    name: str
    c_compiler: str
    cxx_compiler: str
    extra_cxx_flags: Tuple[str, ...] = ()

    @property
    def uses_libcxx(self) -> bool:
        return "-stdlib=libc++" in self.extra_cxx_flags


CANDIDATES: Tuple[ToolchainCandidate, ...] = (
    ToolchainCandidate("system-gcc", "gcc", "g++"),
    ToolchainCandidate("system-clang", "clang", "clang++"),
    ToolchainCandidate("system-clang-libcxx", "clang", "clang++", ("-stdlib=libc++",)),
    ToolchainCandidate("system-gcc-libcxx", "gcc", "g++", ("-stdlib=libc++",)),
)


def gcc_is_real_gcc(runner: CommandRunner, compiler: str) -> bool:
    """``gcc`` on macOS is usually clang in disguise."""
    try:
        result = runner.run([compiler, "--version"])
    except CommandError as exc:
        raise ToolchainError(f"error checking whether {compiler} is gcc: {exc}") from exc
    output = result.stdout.lower()
    if "clang" in output:
        return False
    return "gcc" in output


class ToolchainDetector:
    def __init__(
        self,
        workspace: WorkspaceContext,
        runner: CommandRunner,
        *,
        console: Console | None = None,
        which: Callable[[str], str | None] = shutil.which,
        platform: Platform | None = None,
        processor: Processor | None = None,
    ) -> None:
        self.workspace = workspace
        self.runner = runner
        self.console = console or workspace.console
        self._which = which
        self.platform = platform or detect_host_platform()
        self.processor = processor or detect_host_processor()

    @property
    def host_key(self) -> str:
        return host_key(self.platform, self.processor)

    def generate_options(self, candidate: ToolchainCandidate) -> GenerateOptions:
        return GenerateOptions(
            c_compiler=candidate.c_compiler,
            cxx_compiler=candidate.cxx_compiler,
            extra_cxx_flags=list(candidate.extra_cxx_flags),
        )

    def detect(self) -> List[str]:
        """Return the names of the toolchains written under ``toolchains/``."""
        self.workspace.toolchains_dir.mkdir(parents=True, exist_ok=True)
        detected: List[str] = []
        for candidate in CANDIDATES:
            if self._which(candidate.c_compiler) is None or self._which(candidate.cxx_compiler) is None:
                self.console.info(
                    f"Compilers for {candidate.name} not found "
                    f"(tried {candidate.c_compiler} and {candidate.cxx_compiler}), skipping."
                )
                continue
            if self.platform is Platform.MAC and candidate.uses_libcxx:
                continue
            if candidate.c_compiler == "gcc" and not gcc_is_real_gcc(self.runner, candidate.c_compiler):
                continue
            if not self._builds_hello_world(candidate):
                self.console.info(
                    f"Detected {candidate.cxx_compiler}, but {candidate.name} cannot build a hello world program, skipping."
                )
                continue

            self.console.info(f"Detected {candidate.name}, creating toolchain...")
            toolchain = Toolchain(
                name=candidate.name,
                target_arch=self.processor.value,
                target_system=self.platform.value,
                cmake_toolchain={self.host_key: ToolchainEntry(generate=self.generate_options(candidate))},
            )
            save_toolchain(self.workspace.root, toolchain)
            detected.append(candidate.name)
        return detected

    def _builds_hello_world(self, candidate: ToolchainCandidate) -> bool:
        generate = self.generate_options(candidate)
        with tempfile.TemporaryDirectory(prefix="csetup_detect_test") as temp:
            test_dir = Path(temp)
            build_dir = test_dir / "build"
            build_dir.mkdir()
            (test_dir / "CMakeLists.txt").write_text(HELLO_CMAKELISTS, encoding="utf-8")
            (test_dir / "main.cpp").write_text(HELLO_MAIN, encoding="utf-8")

            toolchain_file = test_dir / "toolchain.cmake"
            generate_toolchain_file(
                GenerateToolchainFileOptions(
                    output_file=toolchain_file,
                    system_platform=self.platform,
                    system_processor=self.processor,
                    workspace_dir=self.workspace.root,
                    c_compiler=generate.c_compiler,
                    cxx_compiler=generate.cxx_compiler,
                    extra_cxx_flags=list(generate.extra_cxx_flags),
                ),
                self.console,
            )
            configure = [
                self.workspace.cmake_binary,
                "-S",
                str(test_dir),
                "-B",
                str(build_dir),
                "-G",
                "Ninja",
                f"-DCMAKE_TOOLCHAIN_FILE={toolchain_file}",
            ]
            build = [self.workspace.cmake_binary, "--build", str(build_dir)]
            for command in (configure, build):
                result = self.runner.run(command, check=False)
                if result.returncode != 0:
                    self.console.debug(f"{candidate.name}: {result.stderr.strip()}")
                    return False
        return True


__all__ = ["CANDIDATES", "ToolchainCandidate", "ToolchainDetector", "gcc_is_real_gcc"]
