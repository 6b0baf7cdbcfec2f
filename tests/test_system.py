from __future__ import annotations

import unittest
from unittest.mock import patch

from cbuild.errors import ConfigurationError
from cbuild.system import Platform, Processor, detect_host_platform, detect_host_processor, host_key


class PlatformTests(unittest.TestCase):
    def test_parse_accepts_aliases(self) -> None:
        self.assertIs(Platform.parse("Darwin"), Platform.MAC)
        self.assertIs(Platform.parse("macos"), Platform.MAC)
        self.assertIs(Platform.parse("Linux"), Platform.LINUX)
        self.assertIs(Platform.parse("FreeBSD"), Platform.FREEBSD)
        self.assertIs(Platform.parse("windows"), Platform.WINDOWS)

    def test_parse_rejects_unknown_names(self) -> None:
        with self.assertRaises(ConfigurationError):
            Platform.parse("plan9")

    def test_values_are_lowercase(self) -> None:
        for platform in Platform:
            self.assertEqual(platform.value, platform.value.lower())
        self.assertEqual(Platform.MAC.display_name, "Mac")


class ProcessorTests(unittest.TestCase):
    def test_parse_accepts_machine_names(self) -> None:
        self.assertIs(Processor.parse("x86_64"), Processor.X64)
        self.assertIs(Processor.parse("AMD64"), Processor.X64)
        self.assertIs(Processor.parse("aarch64"), Processor.ARM64)
        self.assertIs(Processor.parse("armv7l"), Processor.ARM32)
        self.assertIs(Processor.parse("i686"), Processor.X86)
        self.assertIs(Processor.parse("riscv64"), Processor.RISCV64)

    def test_unrecognized_processor_is_unknown(self) -> None:
        self.assertIs(Processor.parse("sparc64"), Processor.UNKNOWN)


class HostDetectionTests(unittest.TestCase):
    def test_host_key_uses_lowercase_names(self) -> None:
        self.assertEqual(host_key(Platform.LINUX, Processor.X64), "host-linux-x64")
        self.assertEqual(host_key(Platform.MAC, Processor.ARM64), "host-mac-arm64")

    def test_detection_maps_platform_module_values(self) -> None:
        with patch("cbuild.system._platform.system", return_value="Darwin"), patch(
            "cbuild.system._platform.machine", return_value="arm64"
        ):
            self.assertIs(detect_host_platform(), Platform.MAC)
            self.assertIs(detect_host_processor(), Processor.ARM64)
            self.assertEqual(host_key(), "host-mac-arm64")

    def test_unknown_system_is_reported_as_unknown(self) -> None:
        with patch("cbuild.system._platform.system", return_value="Haiku"):
            self.assertIs(detect_host_platform(), Platform.UNKNOWN)


if __name__ == "__main__":
    unittest.main()
