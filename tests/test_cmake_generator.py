from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from cbuild.cmake import (
    PRESET_CATALOG,
    CompilerType,
    GenerateToolchainFileOptions,
    generate_toolchain_file,
    guess_compiler_type,
    platform_to_cmake_name,
    processor_to_cmake_name,
    render_toolchain_file,
)
from cbuild.errors import ToolchainError
from cbuild.system import Platform, Processor


class CompilerGuessTests(unittest.TestCase):
    def test_versioned_gcc_is_detected(self) -> None:
        self.assertIs(guess_compiler_type("/usr/bin/gcc-12", "/usr/bin/g++-12"), CompilerType.GCC)

    def test_clang_is_detected(self) -> None:
        self.assertIs(guess_compiler_type("clang-17", "clang++-17"), CompilerType.CLANG)

    def test_msvc_is_case_insensitive(self) -> None:
        self.assertIs(guess_compiler_type("CL.EXE", "cl"), CompilerType.MSVC)

    def test_cxx_compiler_is_checked_when_c_compiler_is_unknown(self) -> None:
        self.assertIs(guess_compiler_type("cc", "clang++"), CompilerType.CLANG)

    def test_unrecognized_pair_is_unknown(self) -> None:
        self.assertIs(guess_compiler_type("cc", "c++"), CompilerType.UNKNOWN)


class NameMappingTests(unittest.TestCase):
    def test_system_names(self) -> None:
        self.assertEqual(platform_to_cmake_name(Platform.MAC), "Darwin")
        self.assertEqual(platform_to_cmake_name(Platform.LINUX), "Linux")
        self.assertEqual(platform_to_cmake_name(Platform.WINDOWS), "Windows")

    def test_processor_names(self) -> None:
        self.assertEqual(processor_to_cmake_name(Platform.LINUX, Processor.ARM64), "aarch64")
        self.assertEqual(processor_to_cmake_name(Platform.MAC, Processor.ARM64), "arm64")
        self.assertEqual(processor_to_cmake_name(Platform.WINDOWS, Processor.X64), "AMD64")
        self.assertEqual(processor_to_cmake_name(Platform.FREEBSD, Processor.X64), "amd64")
        self.assertEqual(processor_to_cmake_name(Platform.LINUX, Processor.X86), "i686")

    def test_unmapped_combination_is_an_error(self) -> None:
        with self.assertRaises(ToolchainError):
            processor_to_cmake_name(Platform.MAC, Processor.X86)
        with self.assertRaises(ToolchainError):
            platform_to_cmake_name(Platform.UNKNOWN)


class ToolchainFileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.workspace = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _options(self, **overrides) -> GenerateToolchainFileOptions:
        values = dict(
            output_file=self.workspace / "out" / "toolchain.cmake",
            system_platform=Platform.LINUX,
            system_processor=Processor.X64,
            workspace_dir=self.workspace,
            c_compiler="/usr/bin/gcc-12",
            cxx_compiler="/usr/bin/g++-12",
        )
        values.update(overrides)
        return GenerateToolchainFileOptions(**values)

    def test_gcc_on_linux_x64(self) -> None:
        content = render_toolchain_file(self._options())
        remap = f"-fdebug-prefix-map={self.workspace.resolve()}=."

        lines = content.splitlines()
        self.assertEqual(lines[0], "# Automatically generated toolchain file")
        self.assertIn('set(CMAKE_SYSTEM_NAME "Linux")', lines)
        self.assertIn('set(CMAKE_SYSTEM_PROCESSOR "x86_64")', lines)
        self.assertIn('set(CMAKE_C_COMPILER "/usr/bin/gcc-12")', lines)
        self.assertIn('set(CMAKE_CXX_COMPILER "/usr/bin/g++-12")', lines)
        self.assertIn(f'set(CMAKE_CXX_FLAGS_DEBUG_INIT "{remap} -g -Og")', lines)
        self.assertIn('set(CMAKE_CXX_FLAGS_RELEASE_INIT "-O3 -DNDEBUG")', lines)
        self.assertIn('set(CMAKE_C_FLAGS_QUICK_INIT "-O1 -DNDEBUG")', lines)
        self.assertIn('set(CMAKE_CXX_FLAGS_RELWITHDEBINFO_INIT "-O3 -g -DNDEBUG")', lines)
        self.assertIn(f'set(CMAKE_CXX_FLAGS_DEBUGCOVERAGE_INIT "{remap} -g -Og --coverage")', lines)
        self.assertIn(
            'set(CMAKE_CXX_FLAGS_RELEASETSAN_INIT "-O3 -DNDEBUG -fsanitize=thread -fsanitize=undefined")',
            lines,
        )
        self.assertNotIn("-fdebug-compilation-dir", content)
        self.assertNotIn("CMAKE_LINKER", content)
        self.assertEqual(lines[-1], "set(CMAKE_FIND_ROOT_PATH_MODE_PACKAGE NEVER)")

    def test_catalog_is_registered(self) -> None:
        content = render_toolchain_file(self._options())
        catalog = ";".join(preset.value for preset in PRESET_CATALOG)
        self.assertIn(f'set(CMAKE_CONFIGURATION_TYPES "{catalog}" CACHE STRING "" FORCE)', content)
        for preset in PRESET_CATALOG:
            self.assertIn(f"CMAKE_CXX_FLAGS_{preset.value.upper()}_INIT", content)
            self.assertIn(f"CMAKE_C_FLAGS_{preset.value.upper()}_INIT", content)

    def test_clang_sets_compilation_directory(self) -> None:
        content = render_toolchain_file(self._options(c_compiler="clang", cxx_compiler="clang++"))
        self.assertIn("-fdebug-compilation-dir=.", content)
        self.assertIn(
            'set(CMAKE_CXX_FLAGS_DEBUGASAN_INIT "-fdebug-compilation-dir=. '
            f'-fdebug-prefix-map={self.workspace.resolve()}=. -g -Og -fsanitize=address -fsanitize=undefined")',
            content,
        )

    def test_msvc_sanitizer_presets_fall_back(self) -> None:
        content = render_toolchain_file(
            self._options(system_platform=Platform.WINDOWS, c_compiler="cl.exe", cxx_compiler="cl.exe")
        )
        self.assertIn('set(CMAKE_SYSTEM_PROCESSOR "AMD64")', content)
        self.assertIn('set(CMAKE_CXX_FLAGS_DEBUG_INIT "/Zi /Od /RTC1")', content)
        self.assertIn('set(CMAKE_CXX_FLAGS_DEBUGASAN_INIT "/Zi /Od /RTC1")', content)
        self.assertIn('set(CMAKE_CXX_FLAGS_RELEASETSAN_INIT "/O2 /DNDEBUG")', content)
        self.assertNotIn("-fdebug-prefix-map", content)

    def test_explicit_compiler_type_skips_guessing(self) -> None:
        content = render_toolchain_file(
            self._options(c_compiler="cc", cxx_compiler="c++", compiler_type=CompilerType.CLANG)
        )
        self.assertIn("-fdebug-compilation-dir=.", content)

    def test_extra_flags_are_split_per_language(self) -> None:
        content = render_toolchain_file(
            self._options(
                linker="ld.lld",
                extra_compiler_flags=["-Wall"],
                extra_c_flags=["-std=c11"],
                extra_cxx_flags=["-stdlib=libc++"],
            )
        )
        self.assertIn('set(CMAKE_LINKER "ld.lld")', content)
        self.assertIn('set(CMAKE_C_FLAGS_INIT "-Wall -std=c11")', content)
        self.assertIn('set(CMAKE_CXX_FLAGS_INIT "-Wall -stdlib=libc++")', content)

    def test_output_is_deterministic(self) -> None:
        self.assertEqual(render_toolchain_file(self._options()), render_toolchain_file(self._options()))

    def test_generate_creates_parent_directories(self) -> None:
        options = self._options()
        path = generate_toolchain_file(options)
        self.assertEqual(path, options.output_file)
        self.assertEqual(path.read_text(encoding="utf-8"), render_toolchain_file(options))

    def test_unknown_compiler_writes_nothing(self) -> None:
        options = self._options(c_compiler="cc", cxx_compiler="c++")
        with self.assertRaisesRegex(ToolchainError, "unknown compiler"):
            generate_toolchain_file(options)
        self.assertFalse(options.output_file.exists())

    def test_unmapped_processor_writes_nothing(self) -> None:
        options = self._options(system_platform=Platform.MAC, system_processor=Processor.X86)
        with self.assertRaises(ToolchainError):
            generate_toolchain_file(options)
        self.assertFalse(options.output_file.parent.exists())


if __name__ == "__main__":
    unittest.main()
