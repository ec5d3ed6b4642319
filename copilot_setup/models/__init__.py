"""
Data models for the Copilot CLI setup step.
"""

from .target import Platform, Architecture, TargetSpec, VersionKind, VersionRequest
from .installation import (
    InstallStrategyName,
    InstallOutcome,
    RuntimeCheck,
    VerificationResult,
    SetupResult
)

__all__ = [
    "Platform",
    "Architecture",
    "TargetSpec",
    "VersionKind",
    "VersionRequest",
    "InstallStrategyName",
    "InstallOutcome",
    "RuntimeCheck",
    "VerificationResult",
    "SetupResult"
]
