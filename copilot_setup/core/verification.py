"""
Verification of the installed Copilot CLI.

Static verification resolves the binary and checks its reported version.
When a credential is available the binary is also started in a terminal and
its startup transcript must show a signed-in greeting.
"""

import logging
import re
from typing import Optional

from ..models.installation import VerificationResult
from ..models.target import TargetSpec, VersionRequest
from .command_runner import CommandRunner
from .errors import (
    BinaryNotFound,
    CommandError,
    InteractiveHandshakeNotObserved,
    ProcessStartupFailed,
    VersionMismatch
)
from .run_context import RunContext
from .terminal import TerminalProbe
from .versions import version_satisfies

HANDSHAKE_PATTERN = re.compile(
    r"logged\s+in\s+as\s+@?[\w.-]+"
    r"|welcome\s*,?\s+(?!to\b)@?[\w.-]+",
    re.IGNORECASE
)


def find_handshake(transcript: str) -> Optional[str]:
    """The greeting that shows a signed-in session, if any."""
    match = HANDSHAKE_PATTERN.search(transcript)
    return match.group(0) if match else None


class VerificationEngine:
    """Proves the installed binary is present and working."""

    def __init__(self,
                 context: RunContext,
                 runner: CommandRunner,
                 probe: Optional[TerminalProbe] = None,
                 binary_name: str = "copilot",
                 version_args: tuple = ("-v",),
                 version_timeout: float = 60):
        """
        Initialize the verification engine.

        Args:
            context: Run context used to resolve the binary and build its environment
            runner: Command runner for the version query
            probe: Terminal probe for interactive verification
            binary_name: Name of the installed executable
            version_args: Arguments that make the binary print its version
            version_timeout: Timeout for the version query in seconds
        """
        self.logger = logging.getLogger(__name__)
        self.context = context
        self.runner = runner
        self.probe = probe or TerminalProbe()
        self.binary_name = binary_name
        self.version_args = tuple(version_args)
        self.version_timeout = version_timeout

    async def verify(self,
                     request: VersionRequest,
                     credential: Optional[str] = None,
                     target: Optional[TargetSpec] = None) -> VerificationResult:
        """
        Verify the installation.

        Args:
            request: The version the caller asked for
            credential: Credential; selects interactive verification when present
            target: Host platform, for logging

        Returns:
            Resolved path and version, and whether the interactive session confirmed sign-in
        """
        self.logger.info("Verifying Copilot CLI installation...")
        path = self.resolve_binary()

        transcript = None
        if credential:
            if target is not None:
                self.logger.info(f"Running interactive verification on {target}")
            transcript = await self.verify_interactive(path)
        else:
            self.logger.info("No credential available, verifying statically")

        version = await self.query_version(path)
        self.check_version(request, version)

        return VerificationResult(
            resolved_path=path,
            resolved_version=version,
            interactive_confirmed=transcript is not None,
            transcript=transcript
        )

    def resolve_binary(self) -> str:
        path = self.context.which(self.binary_name)
        if not path:
            raise BinaryNotFound(
                "Copilot CLI not found in PATH",
                detail=f"PATH={self.context.search_path}"
            )
        self.logger.info(f"Copilot CLI found at: {path}")
        return path

    async def query_version(self, path: str) -> str:
        """Run the binary's version flag and return its trimmed output."""
        try:
            result = await self.runner.run([path, *self.version_args], timeout=self.version_timeout)
        except CommandError as e:
            raise ProcessStartupFailed(f"Version query failed: {e}", detail=e.output) from e

        version = result.stdout.strip()
        self.logger.info(f"Copilot CLI version: {version}")
        return version

    def check_version(self, request: VersionRequest, reported: str) -> None:
        if not version_satisfies(request, reported):
            raise VersionMismatch(
                f"Installed Copilot CLI version ({reported}) does not match requested version ({request.value}).",
                detail=reported
            )

    async def verify_interactive(self, path: str) -> str:
        """
        Start the binary in a terminal and look for a signed-in greeting.

        Returns:
            The transcript that contained the greeting

        Raises:
            ProcessStartupFailed: The session never ran
            InteractiveHandshakeNotObserved: No greeting in the transcript
        """
        session = await self.probe.run([path], self.context.child_env())
        transcript = session.text

        if not session.exit.succeeded and not session.stopped_by_probe:
            self.logger.warning(f"Copilot CLI exited on its own with {session.exit}; checking its output anyway")

        greeting = find_handshake(transcript)
        if not greeting:
            raise InteractiveHandshakeNotObserved(
                "Copilot CLI did not report a signed-in session during interactive startup. "
                f"Transcript:\n{transcript}",
                detail=transcript
            )

        self.logger.info(f"Interactive session confirmed: {greeting}")
        return transcript
