"""
Configuration settings for the Copilot CLI setup step.
"""

from typing import Optional, List
from pathlib import Path
from pydantic import BaseModel, Field, validator
from pydantic_settings import BaseSettings


class RuntimeConfig(BaseModel):
    """Node.js / npm prerequisite configuration."""
    enabled: bool = Field(default=True, description="Check and install Node.js before installing")
    min_node_major: int = Field(default=24, description="Minimum Node.js major version")
    min_npm_major: int = Field(default=10, description="Minimum npm major version")
    dist_base_url: str = Field(default="https://nodejs.org/dist", description="Node.js distribution base URL")
    install_dir: Optional[Path] = Field(None, description="Where Node.js is extracted (runner temp by default)")


class InstallConfig(BaseModel):
    """Install strategy configuration."""
    package_name: str = Field(default="@github/copilot", description="npm package name")
    package_manager: str = Field(default="npm", description="Package manager command")
    script_url: str = Field(default="https://gh.io/copilot-install", description="Install script URL")
    prefix: Optional[Path] = Field(None, description="Install script PREFIX (~/.local by default)")
    command_timeout: int = Field(default=600, description="Install command timeout in seconds")
    download_attempts: int = Field(default=3, ge=1, description="Attempts per download")
    retry_delay_seconds: float = Field(default=2.0, description="Initial retry delay")


class VerificationConfig(BaseModel):
    """Installed binary verification configuration."""
    binary_name: str = Field(default="copilot", description="Installed executable name")
    version_args: List[str] = Field(default_factory=lambda: ["-v"], description="Arguments printing the version")
    version_timeout: int = Field(default=60, description="Version query timeout in seconds")
    credential_variable: str = Field(default="GH_TOKEN", description="Variable the credential is exported as")
    credential_fallbacks: List[str] = Field(
        default_factory=lambda: ["GH_TOKEN", "GITHUB_TOKEN"],
        description="Pre-existing variables checked when no token input is given"
    )
    terminal_columns: int = Field(default=80, description="Pseudo-terminal width")
    terminal_rows: int = Field(default=24, description="Pseudo-terminal height")
    graceful_stop_seconds: float = Field(default=5.0, description="Delay before interrupting the session")
    interrupt_gap_seconds: float = Field(default=0.25, description="Delay between the two interrupts")
    hard_stop_seconds: float = Field(default=8.0, description="Delay before killing the session")
    exit_poll_interval: float = Field(default=0.05, description="Exit polling interval")
    reap_grace_seconds: float = Field(default=2.0, description="Wait after the kill before giving up")
    drain_timeout_seconds: float = Field(default=1.0, description="Wait for trailing output after exit")

    @validator('hard_stop_seconds')
    def validate_hard_stop_after_graceful(cls, v, values):
        graceful = values.get('graceful_stop_seconds')
        if graceful is not None and v <= graceful:
            raise ValueError("hard_stop_seconds must be greater than graceful_stop_seconds")
        return v


class ArtifactConfig(BaseModel):
    """Diagnostics storage configuration."""
    base_path: Optional[Path] = Field(None, description="Directory for run diagnostics; disabled when unset")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Logging level")
    file_path: Optional[Path] = Field(None, description="Optional log file")
    annotate: bool = Field(default=True, description="Render warnings and errors as workflow annotations")
    max_file_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(default=5, description="Number of log backups to keep")


class Settings(BaseSettings):
    """Main application settings."""
    # Inputs
    version: str = Field(default="latest", description="'latest', 'prerelease' or an exact version")
    token: Optional[str] = Field(None, description="Credential exported for the installed CLI")

    # Component configs
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    install: InstallConfig = Field(default_factory=InstallConfig)
    verification: VerificationConfig = Field(default_factory=VerificationConfig)
    artifacts: ArtifactConfig = Field(default_factory=ArtifactConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    class Config:
        env_prefix = "COPILOT_SETUP_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_nested_delimiter = "__"
        extra = "ignore"  # Ignore extra fields from environment

    @validator('version')
    def strip_version(cls, v):
        return (v or "latest").strip() or "latest"
