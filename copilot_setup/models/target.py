"""
Target platform and requested version models.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class Platform(str, Enum):
    """Supported operating systems."""
    LINUX = "linux"
    MACOS = "macos"
    WINDOWS = "windows"


class Architecture(str, Enum):
    """Supported CPU architectures."""
    X64 = "x64"
    ARM64 = "arm64"


class TargetSpec(BaseModel):
    """Resolved host platform. Built once per run."""
    platform: Platform = Field(..., description="Host operating system")
    arch: Architecture = Field(..., description="Host CPU architecture")

    @property
    def is_posix(self) -> bool:
        return self.platform in (Platform.LINUX, Platform.MACOS)

    def __str__(self) -> str:
        return f"{self.platform.value}-{self.arch.value}"

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {"platform": "linux", "arch": "x64"}
        }


class VersionKind(str, Enum):
    """Kind of version the caller asked for."""
    LATEST = "latest"
    PRERELEASE = "prerelease"
    EXACT = "exact"


class VersionRequest(BaseModel):
    """A validated version request."""
    kind: VersionKind = Field(..., description="Requested version kind")
    value: Optional[str] = Field(None, description="Exact version string, as given")

    @property
    def is_exact(self) -> bool:
        return self.kind == VersionKind.EXACT

    def __str__(self) -> str:
        return self.value if self.is_exact else self.kind.value

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {"kind": "exact", "value": "v0.0.369"}
        }
