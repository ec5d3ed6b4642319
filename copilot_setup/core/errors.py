"""
Error types raised by the setup stages.

Every terminal failure is a SetupError carrying the stage that failed and,
where available, the raw output or transcript needed to triage it.
"""

from typing import List, Optional


class SetupError(Exception):
    """Base class for terminal setup failures."""

    stage = "setup"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    @property
    def error_type(self) -> str:
        return type(self).__name__

    def describe(self) -> str:
        """Full report: type, stage, message and any captured output."""
        text = f"{self.error_type} during {self.stage}: {self.message}"
        if self.detail and self.detail not in self.message:
            text += f"\n--- captured output ---\n{self.detail}\n--- end of captured output ---"
        return text

    def __str__(self) -> str:
        return f"{self.error_type}: {self.message}"


class ConfigurationError(SetupError):
    """Bad input or unsupported host. Never retried."""

    stage = "configuration"


class InvalidVersion(ConfigurationError):
    pass


class UnsupportedPlatform(ConfigurationError):
    pass


class UnsupportedArchitecture(ConfigurationError):
    pass


class PrerequisiteUnavailable(SetupError):
    """Runtime or package manager still below minimum after one install attempt."""

    stage = "prerequisites"


class RuntimeResolutionFailed(PrerequisiteUnavailable):
    """No runtime archive matches the target platform."""


class InstallationFailed(SetupError):
    """Every install strategy failed or was unavailable."""

    stage = "install"

    def __init__(self, message: str, outcomes: Optional[List] = None, detail: Optional[str] = None):
        if detail is None and outcomes:
            detail = "\n".join(
                f"{o.strategy.value}: {o.error_detail or 'failed'}" for o in outcomes
            )
        super().__init__(message, detail)
        self.outcomes = list(outcomes or [])


class VerificationError(SetupError):
    stage = "verification"


class BinaryNotFound(VerificationError):
    pass


class VersionMismatch(VerificationError):
    pass


class ProcessStartupFailed(VerificationError):
    pass


class InteractiveHandshakeNotObserved(VerificationError):
    pass


class CommandError(Exception):
    """A subprocess exited non-zero, timed out or could not be started."""

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result

    @property
    def output(self) -> str:
        if self.result is None:
            return ""
        return self.result.combined_output


class DownloadError(Exception):
    """A download failed after all retry attempts."""
