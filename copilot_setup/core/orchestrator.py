"""
Setup orchestrator: platform, prerequisites, install with fallback, verification.
"""

import logging
from typing import List, Optional, Sequence

from ..models.installation import InstallOutcome, SetupResult
from ..models.target import TargetSpec, VersionRequest
from .artifact_manager import ArtifactManager
from .command_runner import CommandRunner
from .errors import InstallationFailed, SetupError
from .install_strategies import InstallScriptStrategy, PackageManagerStrategy
from .platform_resolver import PlatformResolver
from .run_context import RunContext
from .runtime_prerequisite import RuntimePrerequisite
from .terminal import TerminalProbe
from .verification import VerificationEngine
from .versions import parse_version_request


class SetupOrchestrator:
    """Runs the setup stages strictly in order and records the outcome."""

    def __init__(self,
                 context: RunContext,
                 resolver: PlatformResolver,
                 prerequisite: Optional[RuntimePrerequisite],
                 strategies: Sequence,
                 verifier: VerificationEngine,
                 min_runtime_major: int = 24,
                 min_pkg_mgr_major: int = 10,
                 credential_variable: str = "GH_TOKEN",
                 credential_fallbacks: Sequence[str] = ("GH_TOKEN", "GITHUB_TOKEN"),
                 artifact_manager: Optional[ArtifactManager] = None):
        """
        Initialize the orchestrator.

        Args:
            context: Run context shared by every stage
            resolver: Host platform resolver
            prerequisite: Node.js/npm prerequisite; None skips the stage
            strategies: Install strategies in the order they are attempted
            verifier: Verification engine
            min_runtime_major: Minimum Node.js major version
            min_pkg_mgr_major: Minimum npm major version
            credential_variable: Variable the credential is exported as
            credential_fallbacks: Variables checked when no credential input is given
            artifact_manager: Optional diagnostics writer
        """
        self.logger = logging.getLogger(__name__)
        self.context = context
        self.resolver = resolver
        self.prerequisite = prerequisite
        self.strategies = list(strategies)
        self.verifier = verifier
        self.min_runtime_major = min_runtime_major
        self.min_pkg_mgr_major = min_pkg_mgr_major
        self.credential_variable = credential_variable
        self.credential_fallbacks = list(credential_fallbacks)
        self.artifact_manager = artifact_manager

    @classmethod
    def from_settings(cls, settings, context: RunContext) -> "SetupOrchestrator":
        """Build the default component graph from Settings."""
        runner = CommandRunner(context, default_timeout=settings.install.command_timeout)
        install = settings.install
        verification = settings.verification

        prerequisite = None
        if settings.runtime.enabled:
            prerequisite = RuntimePrerequisite(
                context, runner,
                dist_base_url=settings.runtime.dist_base_url,
                install_dir=settings.runtime.install_dir,
                download_attempts=install.download_attempts,
                retry_delay=install.retry_delay_seconds
            )

        strategies = [
            PackageManagerStrategy(
                runner,
                package_name=install.package_name,
                package_manager=install.package_manager,
                timeout=install.command_timeout
            ),
            InstallScriptStrategy(
                context, runner,
                script_url=install.script_url,
                prefix=install.prefix,
                timeout=install.command_timeout,
                download_attempts=install.download_attempts,
                retry_delay=install.retry_delay_seconds
            ),
        ]

        probe = TerminalProbe(
            dimensions=(verification.terminal_rows, verification.terminal_columns),
            graceful_stop_seconds=verification.graceful_stop_seconds,
            interrupt_gap_seconds=verification.interrupt_gap_seconds,
            hard_stop_seconds=verification.hard_stop_seconds,
            exit_poll_interval=verification.exit_poll_interval,
            reap_grace_seconds=verification.reap_grace_seconds,
            drain_timeout_seconds=verification.drain_timeout_seconds
        )
        verifier = VerificationEngine(
            context, runner,
            probe=probe,
            binary_name=verification.binary_name,
            version_args=tuple(verification.version_args),
            version_timeout=verification.version_timeout
        )

        artifact_manager = None
        if settings.artifacts.base_path:
            artifact_manager = ArtifactManager(settings.artifacts.base_path)

        return cls(
            context=context,
            resolver=PlatformResolver(),
            prerequisite=prerequisite,
            strategies=strategies,
            verifier=verifier,
            min_runtime_major=settings.runtime.min_node_major,
            min_pkg_mgr_major=settings.runtime.min_npm_major,
            credential_variable=verification.credential_variable,
            credential_fallbacks=verification.credential_fallbacks,
            artifact_manager=artifact_manager
        )

    async def run(self, version: str = "latest", credential: Optional[str] = None) -> SetupResult:
        """
        Run every stage and record the result.

        Args:
            version: Requested version input
            credential: Credential input; pre-existing variables are used when empty

        Returns:
            The run result; ``success`` is False when a stage failed
        """
        self.logger.info("Setting up GitHub Copilot CLI...")
        result = SetupResult(requested_version=version)

        try:
            request = parse_version_request(version)
            self.logger.info(f"Requested version: {request}")

            credential = self.export_credential(credential)

            target = self.resolver.resolve()
            result.target = target

            if self.prerequisite:
                await self.prerequisite.ensure(
                    target, self.min_runtime_major, self.min_pkg_mgr_major, checks=result.runtime_checks
                )

            await self.install(request, target, outcomes=result.install_outcomes)

            result.verification = await self.verifier.verify(request, credential, target)
            result.complete(True)
        except SetupError as e:
            self.logger.error(e.describe())
            result.fail(e)

        if result.success:
            self.logger.info("GitHub Copilot CLI setup completed successfully!")
            self.logger.info(f"   Version: {result.verification.resolved_version}")
            self.logger.info(f"   Path: {result.verification.resolved_path}")

        if self.artifact_manager:
            self.artifact_manager.save_run(result)
        return result

    async def install(self,
                      request: VersionRequest,
                      target: TargetSpec,
                      outcomes: Optional[List[InstallOutcome]] = None) -> List[InstallOutcome]:
        """
        Attempt each supported strategy in order, stopping at the first success.

        Args:
            request: Requested version
            target: Host platform
            outcomes: List each attempt is appended to as it finishes, so the
                sequence survives an InstallationFailed

        Raises:
            InstallationFailed: If no strategy succeeded
        """
        outcomes = [] if outcomes is None else outcomes
        for strategy in self.strategies:
            if not strategy.supports(target):
                self.logger.info(f"Skipping {strategy.name.value}: not supported on {target.platform.value}")
                continue
            if outcomes:
                self.logger.info(f"Attempting installation via {strategy.name.value}...")
            outcome = await strategy.attempt(request)
            outcomes.append(outcome)
            if outcome.succeeded:
                return outcomes

        raise InstallationFailed(
            "Failed to install Copilot CLI using any available method",
            outcomes=outcomes
        )

    def export_credential(self, credential: Optional[str]) -> Optional[str]:
        """
        Export the credential under the canonical variable.

        Returns:
            The credential in effect, or None when none is available
        """
        source = "token input"
        if not credential:
            for name in self.credential_fallbacks:
                credential = self.context.get(name)
                if credential:
                    source = name
                    break

        if not credential:
            self.logger.info("No token input provided")
            self.logger.info(f"  Copilot CLI will look for {' or '.join(self.credential_fallbacks)} in the environment")
            return None

        if self.context.runner:
            self.context.runner.mask(credential)
        self.context.export_variable(self.credential_variable, credential)
        self.logger.info(f"{self.credential_variable} environment variable set from {source}")
        return credential
