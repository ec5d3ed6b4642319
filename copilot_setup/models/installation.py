"""
Installation, prerequisite and verification result models.
"""

from enum import Enum
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from pydantic import BaseModel, Field

from .target import TargetSpec


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InstallStrategyName(str, Enum):
    """Installation strategies, in the order they are attempted."""
    PACKAGE_MANAGER = "package_manager"
    INSTALL_SCRIPT = "install_script"


class InstallOutcome(BaseModel):
    """Result of one install strategy attempt."""
    strategy: InstallStrategyName = Field(..., description="Strategy attempted")
    succeeded: bool = Field(..., description="Whether the strategy installed the tool")
    error_detail: Optional[str] = Field(None, description="Failure detail if the attempt failed")
    duration_seconds: Optional[float] = Field(None, description="Attempt duration")

    class Config:
        json_schema_extra = {
            "example": {
                "strategy": "package_manager",
                "succeeded": False,
                "error_detail": "npm install -g @github/copilot exited with code 1",
                "duration_seconds": 12.4
            }
        }


class RuntimeCheck(BaseModel):
    """Detected runtime and package manager versions."""
    runtime_version: Optional[str] = Field(None, description="Reported runtime version")
    package_manager_version: Optional[str] = Field(None, description="Reported package manager version")
    runtime_major: Optional[int] = None
    package_manager_major: Optional[int] = None
    satisfies_minimums: bool = Field(False, description="Both majors meet the minimums")


class VerificationResult(BaseModel):
    """Outcome of verifying the installed binary."""
    resolved_path: str = Field(..., description="Absolute path of the resolved binary")
    resolved_version: str = Field(..., description="Version reported by the binary")
    interactive_confirmed: bool = Field(
        False,
        description="True only when an interactive session showed a signed-in greeting"
    )
    transcript: Optional[str] = Field(None, description="Interactive session transcript")


class SetupResult(BaseModel):
    """Complete record of one setup run."""
    requested_version: str = Field(..., description="Version input as given")
    target: Optional[TargetSpec] = None
    success: bool = False

    runtime_checks: List[RuntimeCheck] = Field(default_factory=list)
    install_outcomes: List[InstallOutcome] = Field(default_factory=list)
    verification: Optional[VerificationResult] = None

    # Failure details
    failed_stage: Optional[str] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_detail: Optional[str] = None

    # Timing
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    @property
    def outputs(self) -> Dict[str, str]:
        """Step outputs published on success."""
        if not self.verification:
            return {}
        return {
            "version": self.verification.resolved_version,
            "path": self.verification.resolved_path,
        }

    def fail(self, error) -> None:
        """Record a terminal SetupError."""
        self.failed_stage = error.stage
        self.error_type = error.error_type
        self.error_message = error.message
        self.error_detail = error.detail
        self.complete(False)

    def complete(self, success: bool) -> None:
        """Mark the run as complete."""
        self.success = success
        self.completed_at = _utcnow()
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def summary(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
