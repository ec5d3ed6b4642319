"""
Core modules for the Copilot CLI setup step.
"""

from .orchestrator import SetupOrchestrator
from .platform_resolver import PlatformResolver
from .runtime_prerequisite import RuntimePrerequisite
from .install_strategies import PackageManagerStrategy, InstallScriptStrategy
from .verification import VerificationEngine
from .terminal import TerminalProbe, PtySession
from .run_context import RunContext
from .command_runner import CommandRunner
from .artifact_manager import ArtifactManager

__all__ = [
    "SetupOrchestrator",
    "PlatformResolver",
    "RuntimePrerequisite",
    "PackageManagerStrategy",
    "InstallScriptStrategy",
    "VerificationEngine",
    "TerminalProbe",
    "PtySession",
    "RunContext",
    "CommandRunner",
    "ArtifactManager"
]
