"""
Host platform detection.
"""

import logging
import platform as host_platform
from typing import Callable, Optional

from ..models.target import Architecture, Platform, TargetSpec
from .errors import UnsupportedArchitecture, UnsupportedPlatform

SYSTEM_NAMES = {
    "linux": Platform.LINUX,
    "darwin": Platform.MACOS,
    "windows": Platform.WINDOWS,
}

MACHINE_NAMES = {
    "x86_64": Architecture.X64,
    "amd64": Architecture.X64,
    "x64": Architecture.X64,
    "aarch64": Architecture.ARM64,
    "arm64": Architecture.ARM64,
    "armv8": Architecture.ARM64,
    "armv8l": Architecture.ARM64,
}


class PlatformResolver:
    """Maps the host OS and CPU to a supported TargetSpec."""

    def __init__(self,
                 system: Optional[Callable[[], str]] = None,
                 machine: Optional[Callable[[], str]] = None):
        """
        Initialize the resolver.

        Args:
            system: Returns the OS name; defaults to platform.system
            machine: Returns the CPU name; defaults to platform.machine
        """
        self.logger = logging.getLogger(__name__)
        self._system = system or host_platform.system
        self._machine = machine or host_platform.machine

    def resolve(self) -> TargetSpec:
        """
        Resolve the current host.

        Raises:
            UnsupportedPlatform: OS is not Linux, macOS or Windows
            UnsupportedArchitecture: CPU is not x64 or arm64
        """
        system = self._system()
        machine = self._machine()
        self.logger.info(f"Detected platform: {system}")
        self.logger.info(f"Detected architecture: {machine}")

        platform_name = SYSTEM_NAMES.get(system.strip().lower())
        if platform_name is None:
            raise UnsupportedPlatform(
                f"Unsupported platform: {system}. Copilot CLI supports Linux, macOS, and Windows."
            )

        arch = MACHINE_NAMES.get(machine.strip().lower())
        if arch is None:
            raise UnsupportedArchitecture(
                f"Unsupported architecture: {machine}. Copilot CLI supports x64 and arm64 architectures."
            )

        target = TargetSpec(platform=platform_name, arch=arch)
        self.logger.info(f"Platform: {target.platform.value}, Architecture: {target.arch.value}")
        return target
