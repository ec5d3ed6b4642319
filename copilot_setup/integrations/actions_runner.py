"""
CI runner integration: step outputs, path and environment files, workflow commands.
"""

import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Dict, List, Mapping, Optional, TextIO


def escape_command_data(value: str) -> str:
    """Escape a workflow command payload."""
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class ActionsRunner:
    """Talks to the CI runner through its file commands and workflow commands."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None, stream: Optional[TextIO] = None):
        """
        Initialize the runner client.

        Args:
            environ: Environment to read the runner file paths from
            stream: Where workflow commands are written (stdout by default)
        """
        self.logger = logging.getLogger(__name__)
        environ = os.environ if environ is None else environ
        self.output_file = self._file_from(environ, "GITHUB_OUTPUT")
        self.path_file = self._file_from(environ, "GITHUB_PATH")
        self.env_file = self._file_from(environ, "GITHUB_ENV")
        self.stream = stream

    @staticmethod
    def _file_from(environ: Mapping[str, str], name: str) -> Optional[Path]:
        value = environ.get(name)
        return Path(value) if value else None

    @property
    def is_hosted(self) -> bool:
        """True when the runner file commands are available."""
        return self.output_file is not None

    def set_output(self, name: str, value: str) -> None:
        """Publish a step output."""
        if self.output_file:
            self._append_key_value(self.output_file, name, value)
        else:
            self.logger.info(f"Output {name}={value}")

    def add_path(self, path: str) -> None:
        """Prepend a directory to PATH for later steps."""
        if self.path_file:
            with open(self.path_file, "a", encoding="utf-8") as f:
                f.write(f"{path}{os.linesep}")
        self.logger.debug(f"Persisted PATH entry {path}")

    def export_variable(self, name: str, value: str) -> None:
        """Export an environment variable to later steps."""
        if self.env_file:
            self._append_key_value(self.env_file, name, value)
        self.logger.debug(f"Exported {name} for later steps")

    def mask(self, secret: str) -> None:
        """Ask the runner to redact a value from all logs."""
        if secret:
            self._command("add-mask", secret)

    def set_failed(self, message: str) -> None:
        """Emit an error annotation. The caller sets the exit code."""
        self._command("error", message)

    def _command(self, command: str, message: str) -> None:
        stream = self.stream or sys.stdout
        stream.write(f"::{command}::{escape_command_data(message)}{os.linesep}")
        stream.flush()

    def _append_key_value(self, path: Path, name: str, value: str) -> None:
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        if delimiter in name or delimiter in value:
            raise ValueError(f"Unexpected input: value for {name} contains the delimiter")
        with open(path, "a", encoding="utf-8") as f:
            f.write(f"{name}<<{delimiter}{os.linesep}{value}{os.linesep}{delimiter}{os.linesep}")


class MockActionsRunner(ActionsRunner):
    """Records runner interactions in memory for local runs and tests."""

    def __init__(self, *args, **kwargs):
        self.logger = logging.getLogger(__name__)
        self.logger.info("Using mock runner client")
        self.output_file = None
        self.path_file = None
        self.env_file = None
        self.stream = None
        self.outputs: Dict[str, str] = {}
        self.paths: List[str] = []
        self.exported: Dict[str, str] = {}
        self.masked: List[str] = []
        self.failures: List[str] = []

    def set_output(self, name: str, value: str) -> None:
        self.outputs[name] = value
        self.logger.info(f"[MOCK] Output {name}={value}")

    def add_path(self, path: str) -> None:
        self.paths.append(path)
        self.logger.info(f"[MOCK] Added {path} to PATH")

    def export_variable(self, name: str, value: str) -> None:
        self.exported[name] = value
        self.logger.info(f"[MOCK] Exported {name}")

    def mask(self, secret: str) -> None:
        if secret:
            self.masked.append(secret)

    def set_failed(self, message: str) -> None:
        self.failures.append(message)
        self.logger.error(f"[MOCK] Failed: {message}")
