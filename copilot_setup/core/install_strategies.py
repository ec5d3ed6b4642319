"""
Install strategies, attempted in order until one succeeds.

Each strategy exposes ``name``, ``supports(target)`` and
``attempt(request) -> InstallOutcome`` and never raises for an install
failure: the failure is reported in the outcome so the next strategy can run.
"""

import asyncio
import logging
import shutil
import tempfile
import time
from pathlib import Path
from typing import Optional

from ..models.installation import InstallOutcome, InstallStrategyName
from ..models.target import TargetSpec, VersionKind, VersionRequest
from .command_runner import CommandRunner
from .downloads import download_file
from .errors import CommandError
from .run_context import RunContext


def package_reference(package_name: str, request: VersionRequest) -> str:
    """'@github/copilot', '@github/copilot@prerelease' or '@github/copilot@<version>'."""
    if request.kind == VersionKind.PRERELEASE:
        return f"{package_name}@prerelease"
    if request.is_exact:
        return f"{package_name}@{request.value}"
    return package_name


def _failure_detail(error: Exception) -> str:
    if isinstance(error, CommandError) and error.output:
        return f"{error}\n{error.output}"
    return str(error)


class PackageManagerStrategy:
    """Global install through the npm registry."""

    name = InstallStrategyName.PACKAGE_MANAGER

    def __init__(self,
                 runner: CommandRunner,
                 package_name: str = "@github/copilot",
                 package_manager: str = "npm",
                 timeout: float = 600):
        self.logger = logging.getLogger(__name__)
        self.runner = runner
        self.package_name = package_name
        self.package_manager = package_manager
        self.timeout = timeout

    def supports(self, target: TargetSpec) -> bool:
        return True

    async def attempt(self, request: VersionRequest) -> InstallOutcome:
        self.logger.info("Installing Copilot CLI via npm...")
        reference = package_reference(self.package_name, request)
        self.logger.info(f"Installing package: {reference}")

        start = time.monotonic()
        try:
            await self.runner.run(
                [self.package_manager, "install", "-g", reference],
                timeout=self.timeout,
                echo=True
            )
        except Exception as e:
            self.logger.warning(f"Failed to install via npm: {e}")
            return InstallOutcome(
                strategy=self.name,
                succeeded=False,
                error_detail=_failure_detail(e),
                duration_seconds=time.monotonic() - start
            )

        self.logger.info("Copilot CLI installed successfully via npm")
        return InstallOutcome(strategy=self.name, succeeded=True, duration_seconds=time.monotonic() - start)


class InstallScriptStrategy:
    """Downloads and runs the published install script. Linux and macOS only."""

    name = InstallStrategyName.INSTALL_SCRIPT

    def __init__(self,
                 context: RunContext,
                 runner: CommandRunner,
                 script_url: str = "https://gh.io/copilot-install",
                 prefix: Optional[Path] = None,
                 timeout: float = 600,
                 download_attempts: int = 3,
                 retry_delay: float = 2.0):
        """
        Initialize the script strategy.

        Args:
            context: Run context; receives the <prefix>/bin PATH entry
            runner: Command runner used to execute the script
            script_url: Install script location
            prefix: User-writable install root, ~/.local by default
            timeout: Script timeout in seconds
            download_attempts: Attempts for the script download
            retry_delay: Base delay between download attempts
        """
        self.logger = logging.getLogger(__name__)
        self.context = context
        self.runner = runner
        self.script_url = script_url
        self.prefix = Path(prefix) if prefix else context.home_dir / ".local"
        self.timeout = timeout
        self.download_attempts = download_attempts
        self.retry_delay = retry_delay

    def supports(self, target: TargetSpec) -> bool:
        return target.is_posix

    def script_env(self, request: VersionRequest) -> dict:
        """Environment overrides passed to the install script."""
        env = {"PREFIX": str(self.prefix)}
        if request.is_exact:
            env["VERSION"] = request.value
        return env

    async def attempt(self, request: VersionRequest) -> InstallOutcome:
        self.logger.info("Installing Copilot CLI via install script...")
        start = time.monotonic()
        workdir = None

        try:
            workdir = Path(tempfile.mkdtemp(prefix="copilot-install-", dir=self.context.temp_dir))
            script_path = workdir / "copilot-install.sh"
            self.logger.info(f"Downloading install script from {self.script_url}")
            await asyncio.to_thread(
                download_file, self.script_url, script_path,
                attempts=self.download_attempts, retry_delay=self.retry_delay
            )
            script_path.chmod(0o755)

            env = self.script_env(request)
            for key, value in env.items():
                self.logger.info(f"Setting {key}={value}")

            await self.runner.run(["bash", str(script_path)], env=env, timeout=self.timeout, echo=True)
        except Exception as e:
            self.logger.warning(f"Failed to install via script: {e}")
            return InstallOutcome(
                strategy=self.name,
                succeeded=False,
                error_detail=_failure_detail(e),
                duration_seconds=time.monotonic() - start
            )
        finally:
            if workdir:
                shutil.rmtree(workdir, ignore_errors=True)

        self.context.add_path(str(self.prefix / "bin"))
        self.logger.info("Copilot CLI installed successfully via install script")
        return InstallOutcome(strategy=self.name, succeeded=True, duration_seconds=time.monotonic() - start)
