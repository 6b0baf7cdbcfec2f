from __future__ import annotations

from pathlib import Path
import io
import tempfile
import textwrap
import unittest

from cbuild.cmake import BareOption, TypedOption
from cbuild.codesource import GitSource, LocalSource, parse_code_source, parse_remote_code_source
from cbuild.config_loader import (
    SetupManifest,
    TargetConfiguration,
    WorkspaceConfig,
    dump_yaml,
    load_manifest,
    load_workspace_config,
    load_yaml,
    save_workspace_config,
)
from cbuild.errors import ConfigurationError, ValidationError


class CMakeOptionTests(unittest.TestCase):
    def test_bare_and_typed_options_round_trip(self) -> None:
        data = load_yaml(
            textwrap.dedent(
                """
                cmake_options:
                  ENABLE_FEATURE:
                    type: BOOL
                    value: ON
                  SOME_STRING: hello
                  JOBS: 4
                """
            )
        )
        target = TargetConfiguration.from_mapping("hello", data)
        self.assertEqual(target.cmake_options["ENABLE_FEATURE"], TypedOption("BOOL", "ON"))
        self.assertEqual(target.cmake_options["SOME_STRING"], BareOption("hello"))
        self.assertEqual(target.cmake_options["JOBS"], BareOption("4"))

        reloaded = TargetConfiguration.from_mapping("hello", load_yaml(dump_yaml(target.to_mapping())))
        self.assertEqual(reloaded.cmake_options, target.cmake_options)
        for name, option in target.cmake_options.items():
            self.assertEqual(reloaded.cmake_options[name].type, option.type)
            self.assertEqual(reloaded.cmake_options[name].value, option.value)

    def test_bare_option_is_written_as_a_scalar(self) -> None:
        target = TargetConfiguration(cmake_options={"NAME": BareOption("demo"), "FLAG": TypedOption("BOOL", "OFF")})
        mapping = target.to_mapping()
        self.assertEqual(mapping["cmake_options"]["NAME"], "demo")
        self.assertEqual(mapping["cmake_options"]["FLAG"], {"type": "BOOL", "value": "OFF"})

    def test_mapping_without_type_is_bare(self) -> None:
        target = TargetConfiguration.from_mapping("x", {"cmake_options": {"A": {"value": "1"}}})
        self.assertEqual(target.cmake_options["A"], BareOption("1"))

    def test_define_rendering(self) -> None:
        self.assertEqual(TypedOption("BOOL", "ON").define("ENABLE_FEATURE"), "-DENABLE_FEATURE:BOOL=ON")
        self.assertEqual(BareOption("hello").define("SOME_STRING"), "-DSOME_STRING=hello")

    def test_option_with_unknown_keys_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            TargetConfiguration.from_mapping("x", {"cmake_options": {"A": {"kind": "BOOL"}}})


class CodeSourceTests(unittest.TestCase):
    def test_git_source(self) -> None:
        source = parse_code_source("fmt", {"git": {"repository": "https://example.com/fmt.git", "revision": "10.2.1"}})
        self.assertEqual(source, GitSource("https://example.com/fmt.git", "10.2.1"))
        self.assertEqual(source.describe(), "https://example.com/fmt.git@10.2.1")
        self.assertEqual(
            source.to_mapping(),
            {"git": {"repository": "https://example.com/fmt.git", "revision": "10.2.1"}},
        )

    def test_local_source(self) -> None:
        source = parse_code_source("mine", {"local": "/src/mine"})
        self.assertEqual(source, LocalSource("/src/mine"))
        self.assertEqual(source.describe(), "/src/mine")

    def test_exactly_one_variant_is_required(self) -> None:
        with self.assertRaisesRegex(ValidationError, "either git or local"):
            parse_code_source("empty", {})
        with self.assertRaisesRegex(ValidationError, "only one"):
            parse_code_source("both", {"git": {"repository": "https://example.com/a.git"}, "local": "/a"})

    def test_remote_context_rejects_local(self) -> None:
        with self.assertRaisesRegex(ValidationError, "not allowed in remote context"):
            parse_remote_code_source("evil", {"local": "/etc"})
        source = parse_remote_code_source("ok", {"git": {"repository": "https://example.com/ok.git"}})
        self.assertEqual(source.describe(), "https://example.com/ok.git")


class WorkspaceConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_load_keeps_scalars_as_written(self) -> None:
        path = self.root / "cbuild_workspace.yml"
        path.write_text(
            textwrap.dedent(
                """
                sources:
                  fmt:
                    git:
                      repository: https://example.com/fmt.git
                targets:
                  fmt:
                    depends: []
                    project_type: CMake
                    staged: true
                    cxx_standard: 17
                cmake_binary: null
                cxx_version: 20
                configurations: []
                """
            ),
            encoding="utf-8",
        )
        config = load_workspace_config(path)
        self.assertEqual(config.cxx_version, "20")
        self.assertEqual(config.configurations, ["Debug", "Release"])
        self.assertIsNone(config.cmake_binary)
        self.assertTrue(config.targets["fmt"].staged)
        self.assertEqual(config.targets["fmt"].cxx_standard, "17")
        self.assertIsInstance(config.sources["fmt"], GitSource)

    def test_missing_file_is_a_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_workspace_config(self.root / "cbuild_workspace.yml")

    def test_unknown_target_key_is_rejected(self) -> None:
        with self.assertRaisesRegex(ConfigurationError, "unknown keys: bogus"):
            WorkspaceConfig.from_mapping({"targets": {"a": {"bogus": 1}}})

    def test_dump_layout(self) -> None:
        config = WorkspaceConfig(
            sources={"app": GitSource("https://example.com/app.git")},
            targets={
                "app": TargetConfiguration(
                    source="app",
                    extra_cmake_configure_args=["-DFOO=1", "-DBAR=2"],
                )
            },
            cxx_version="20",
        )
        path = self.root / "cbuild_workspace.yml"
        save_workspace_config(path, config)
        text = path.read_text(encoding="utf-8")

        self.assertIn('extra_cmake_configure_args: ["-DFOO=1", "-DBAR=2"]', text)
        self.assertIn("depends: []", text)
        positions = [text.index(key) for key in ("sources:", "targets:", "cmake_binary:", "cxx_version:", "configurations:")]
        self.assertEqual(positions, sorted(positions))
        target_text = text[text.index("targets:"):]
        self.assertLess(target_text.index("source: app"), target_text.index("depends:"))
        self.assertLess(target_text.index("depends:"), target_text.index("project_type:"))

        reloaded = load_workspace_config(path)
        self.assertEqual(reloaded.targets["app"].extra_cmake_configure_args, ["-DFOO=1", "-DBAR=2"])
        self.assertEqual(reloaded.cxx_version, "20")

    def test_dump_to_stream(self) -> None:
        stream = io.StringIO()
        dump_yaml({"a": "ON"}, stream)
        self.assertEqual(load_yaml(stream.getvalue()), {"a": "ON"})


class ManifestTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.source_dir = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_no_manifest(self) -> None:
        self.assertIsNone(load_manifest(self.source_dir))

    def test_alternate_manifest_name(self) -> None:
        (self.source_dir / "CSetupLists.yml").write_text(
            textwrap.dedent(
                """
                default_configuration:
                  project_type: CMake
                  cmake_package_name: Fmt
                suggested_dep_sources:
                  zlib:
                    git:
                      repository: https://example.com/zlib.git
                """
            ),
            encoding="utf-8",
        )
        manifest = load_manifest(self.source_dir)
        self.assertIsInstance(manifest, SetupManifest)
        self.assertEqual(manifest.default_configuration.cmake_package_name, "Fmt")
        self.assertEqual(list(manifest.suggested_dep_sources), ["zlib"])


if __name__ == "__main__":
    unittest.main()
