from __future__ import annotations

from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
import io
import tempfile
import unittest

from cbuild.cli import main
from cbuild.config_loader import load_workspace_config


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _run(self, *argv: str) -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()

    def _init(self) -> None:
        code, stdout, _ = self._run("init", str(self.root))
        self.assertEqual(code, 0)
        self.assertIn(f"Initialized empty workspace in {self.root}", stdout)

    def _add_toolchain(self, name: str = "tc") -> None:
        path = self.root / "toolchains" / name
        path.mkdir(parents=True)
        (path / "toolchain.yml").write_text("cmake_toolchain: {}\n", encoding="utf-8")

    def _add_target(self, name: str, *depends: str) -> None:
        text = (self.root / "cbuild_workspace.yml").read_text(encoding="utf-8")
        entry = f"  {name}:\n    depends: [{', '.join(depends)}]\n"
        text = text.replace("targets: {}\n", "targets:\n", 1)
        text = text.replace("targets:\n", f"targets:\n{entry}", 1)
        (self.root / "cbuild_workspace.yml").write_text(text, encoding="utf-8")

    def test_init_twice_fails(self) -> None:
        self._init()
        code, _, stderr = self._run("init", str(self.root))
        self.assertEqual(code, 1)
        self.assertIn("[ERROR] Error:", stderr)
        self.assertIn("--reinit", stderr)

    def test_dependency_editing(self) -> None:
        self._init()
        self._add_target("app")
        self.assertEqual(self._run("add-dependency", "-w", str(self.root), "app", "fmt")[0], 0)
        self.assertEqual(load_workspace_config(self.root / "cbuild_workspace.yml").targets["app"].depends, ["fmt"])

        code, stdout, _ = self._run("remove-dependency", "-w", str(self.root), "app", "zlib")
        self.assertEqual(code, 0)
        self.assertIn("Dependency zlib not found for app", stdout)

    def test_get_args(self) -> None:
        self._init()
        self._add_toolchain("default")
        self._add_target("app")
        code, stdout, _ = self._run("get-args", "-w", str(self.root), "app")
        self.assertEqual(code, 0)
        self.assertTrue(stdout.startswith("-G Ninja -DCMAKE_BUILD_TYPE=Debug -DCMAKE_CXX_STANDARD=20"))
        self.assertNotIn("-S ", stdout)

    def test_dry_run_build(self) -> None:
        self._init()
        self._add_toolchain()
        self._add_target("app", "lib")
        self._add_target("lib")
        code, stdout, _ = self._run("build", "-w", str(self.root), "-T", "tc", "-c", "Debug", "--dry-run")
        self.assertEqual(code, 0)
        self.assertIn("Building with toolchain: tc, config: Debug", stdout)
        self.assertEqual(stdout.count("[DRY] Executing: cmake -S"), 2)
        self.assertLess(stdout.index("lib/Debug"), stdout.index("app/Debug"))
        self.assertTrue(stdout.rstrip().endswith("Build completed successfully"))
        self.assertFalse((self.root / "buildspaces").exists())

    def test_build_without_toolchains(self) -> None:
        self._init()
        code, _, stderr = self._run("build", "-w", str(self.root), "--dry-run")
        self.assertEqual(code, 1)
        self.assertIn("No toolchains found in toolchains directory", stderr)

    def test_remove_missing_configuration(self) -> None:
        self._init()
        code, _, stderr = self._run("remove-config", "-w", str(self.root), "Profile")
        self.assertEqual(code, 1)
        self.assertIn("configuration Profile not found", stderr)

    def test_list_commands(self) -> None:
        self._init()
        self._add_toolchain("beta")
        self._add_toolchain("alpha")
        self._add_target("app")
        self.assertEqual(self._run("list-toolchains", "-w", str(self.root))[1], "alpha\nbeta\n")
        self.assertEqual(self._run("list-targets", "-w", str(self.root))[1], "app\n")
        self.assertEqual(self._run("list-sources", "-w", str(self.root))[1], "app [MISSING]\n")

    def test_clean_without_configuration_removes_toolchain_dir(self) -> None:
        self._init()
        (self.root / "buildspaces" / "tc" / "app" / "Debug").mkdir(parents=True)
        code, stdout, _ = self._run("clean", "-w", str(self.root), "-T", "tc")
        self.assertEqual(code, 0)
        self.assertFalse((self.root / "buildspaces" / "tc").exists())
        self.assertIn("Clean completed successfully", stdout)


if __name__ == "__main__":
    unittest.main()
