"""
Run context threaded through every setup stage.

Holds the environment seen by child processes and records every search-path
addition and exported variable, mirroring them to the runner so later
workflow steps inherit them.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..integrations.actions_runner import ActionsRunner

PATH_VARIABLE = "PATH"


class RunContext:
    """Environment, search path and exported variables for one run."""

    def __init__(self,
                 environ: Optional[Mapping[str, str]] = None,
                 runner: Optional[ActionsRunner] = None):
        self.logger = logging.getLogger(__name__)
        self.environ: Dict[str, str] = dict(os.environ if environ is None else environ)
        self.runner = runner
        self.added_paths: List[str] = []
        self.exported: Dict[str, str] = {}

    @property
    def search_path(self) -> str:
        return self.environ.get(PATH_VARIABLE, "")

    @property
    def temp_dir(self) -> Path:
        """Runner scratch directory, falling back to the system temp dir."""
        return Path(self.environ.get("RUNNER_TEMP") or tempfile.gettempdir())

    @property
    def home_dir(self) -> Path:
        home = self.environ.get("HOME") or self.environ.get("USERPROFILE")
        return Path(home) if home else Path.home()

    def get(self, name: str) -> Optional[str]:
        value = self.environ.get(name)
        return value if value else None

    def add_path(self, directory: str) -> None:
        """Prepend a directory to the search path."""
        directory = str(directory)
        current = self.search_path
        self.environ[PATH_VARIABLE] = f"{directory}{os.pathsep}{current}" if current else directory
        self.added_paths.append(directory)
        if self.runner:
            self.runner.add_path(directory)
        self.logger.info(f"Added {directory} to PATH")

    def export_variable(self, name: str, value: str) -> None:
        """Set a variable for child processes and later steps."""
        self.environ[name] = value
        self.exported[name] = value
        if self.runner:
            self.runner.export_variable(name, value)

    def which(self, command: str) -> Optional[str]:
        """Resolve a command against the context search path."""
        found = shutil.which(command, path=self.search_path)
        return str(Path(found).absolute()) if found else None

    def child_env(self, overrides: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        env = dict(self.environ)
        if overrides:
            env.update(overrides)
        return env
