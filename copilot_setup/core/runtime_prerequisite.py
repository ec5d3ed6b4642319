"""
Node.js and npm prerequisite check and installation.
"""

import asyncio
import logging
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import List, Optional

from ..models.installation import RuntimeCheck
from ..models.target import Architecture, Platform, TargetSpec
from .command_runner import CommandRunner
from .downloads import archive_root, download_file, extract_archive
from .errors import CommandError, DownloadError, PrerequisiteUnavailable, RuntimeResolutionFailed
from .run_context import RunContext
from .versions import parse_major

ARCHIVE_SUFFIXES = {
    (Platform.LINUX, Architecture.X64): "linux-x64.tar.gz",
    (Platform.LINUX, Architecture.ARM64): "linux-arm64.tar.gz",
    (Platform.MACOS, Architecture.X64): "darwin-x64.tar.gz",
    (Platform.MACOS, Architecture.ARM64): "darwin-arm64.tar.gz",
    (Platform.WINDOWS, Architecture.X64): "win-x64.zip",
    (Platform.WINDOWS, Architecture.ARM64): "win-arm64.zip",
}


def resolve_archive_name(shasums: str, target: TargetSpec) -> str:
    """
    Pick the Node.js archive for a target out of a SHASUMS256.txt manifest.

    Raises:
        RuntimeResolutionFailed: If no manifest entry matches the target
    """
    suffix = ARCHIVE_SUFFIXES[(target.platform, target.arch)]
    for line in shasums.splitlines():
        if f"-{suffix}" in line and "node-v" in line:
            return line.strip().split()[-1]
    raise RuntimeResolutionFailed(
        f"Unable to resolve Node.js binary for {target.platform.value} {target.arch.value}.",
        detail=shasums
    )


class RuntimePrerequisite:
    """Makes sure node and npm meet the minimum major versions."""

    def __init__(self,
                 context: RunContext,
                 runner: CommandRunner,
                 dist_base_url: str = "https://nodejs.org/dist",
                 install_dir: Optional[Path] = None,
                 download_attempts: int = 3,
                 retry_delay: float = 2.0):
        self.logger = logging.getLogger(__name__)
        self.context = context
        self.runner = runner
        self.dist_base_url = dist_base_url.rstrip("/")
        self.install_dir = install_dir
        self.download_attempts = download_attempts
        self.retry_delay = retry_delay

    async def check(self, min_runtime_major: int, min_pkg_mgr_major: int) -> RuntimeCheck:
        """Probe node and npm on the search path."""
        if not self.context.which("node") or not self.context.which("npm"):
            return RuntimeCheck()

        runtime_version = await self._version_of("node")
        pkg_mgr_version = await self._version_of("npm")
        runtime_major = parse_major(runtime_version)
        pkg_mgr_major = parse_major(pkg_mgr_version)

        return RuntimeCheck(
            runtime_version=runtime_version,
            package_manager_version=pkg_mgr_version,
            runtime_major=runtime_major,
            package_manager_major=pkg_mgr_major,
            satisfies_minimums=(
                runtime_major is not None
                and pkg_mgr_major is not None
                and runtime_major >= min_runtime_major
                and pkg_mgr_major >= min_pkg_mgr_major
            )
        )

    async def ensure(self,
                     target: TargetSpec,
                     min_runtime_major: int = 24,
                     min_pkg_mgr_major: int = 10,
                     checks: Optional[List[RuntimeCheck]] = None) -> RuntimeCheck:
        """
        Ensure node and npm are present and recent enough, installing node once if not.

        Args:
            target: Resolved host platform
            min_runtime_major: Minimum node major version
            min_pkg_mgr_major: Minimum npm major version
            checks: List every check is appended to, kept when this raises

        Returns:
            The final runtime check

        Raises:
            RuntimeResolutionFailed: No node archive exists for the target
            PrerequisiteUnavailable: Still unsatisfied after installing
        """
        checks = [] if checks is None else checks
        check = await self.check(min_runtime_major, min_pkg_mgr_major)
        checks.append(check)

        if not check.satisfies_minimums:
            self.logger.info(f"Detected Node.js: {check.runtime_version or 'unknown'}; required: {min_runtime_major}+")
            self.logger.info(f"Detected npm: {check.package_manager_version or 'unknown'}; required: {min_pkg_mgr_major}+")
            self.logger.info("Installing required Node.js/npm versions...")
            await self.install(target, min_runtime_major)
            check = await self.check(min_runtime_major, min_pkg_mgr_major)
            checks.append(check)

        if not check.satisfies_minimums:
            raise PrerequisiteUnavailable(
                f"Node.js {min_runtime_major}+ and npm {min_pkg_mgr_major}+ are required. "
                f"Detected Node.js {check.runtime_version or 'unknown'}, "
                f"npm {check.package_manager_version or 'unknown'}."
            )

        self.logger.info(f"Node.js version OK: {check.runtime_version}")
        self.logger.info(f"npm version OK: {check.package_manager_version}")
        return check

    async def install(self, target: TargetSpec, major: int) -> Path:
        """Download the latest release of a Node.js major line and put it on PATH."""
        base_url = f"{self.dist_base_url}/latest-v{major}.x/"
        self.logger.info(f"Downloading Node.js from {base_url}")

        parent = Path(self.install_dir or self.context.temp_dir)
        parent.mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(prefix="node-", dir=parent))
        try:
            shasums_path = await asyncio.to_thread(
                self._download, f"{base_url}SHASUMS256.txt", workdir / "SHASUMS256.txt"
            )
            filename = resolve_archive_name(shasums_path.read_text(encoding="utf-8"), target)
            self.logger.info(f"Resolved Node.js package: {filename}")

            archive = await asyncio.to_thread(self._download, f"{base_url}{filename}", workdir / filename)
            extracted = await asyncio.to_thread(extract_archive, archive, workdir / "extracted")
        except (DownloadError, OSError, tarfile.TarError, zipfile.BadZipFile) as e:
            raise PrerequisiteUnavailable(f"Failed to install Node.js {major}.x: {e}") from e

        root = archive_root(extracted)
        bin_path = root if target.platform == Platform.WINDOWS else root / "bin"
        self.context.add_path(str(bin_path))
        return bin_path

    def _download(self, url: str, destination: Path) -> Path:
        return download_file(url, destination, attempts=self.download_attempts, retry_delay=self.retry_delay)

    async def _version_of(self, command: str) -> Optional[str]:
        try:
            result = await self.runner.run([command, "--version"], timeout=60)
        except CommandError as e:
            self.logger.warning(f"Could not read {command} version: {e}")
            return None
        return result.stdout.strip() or None
