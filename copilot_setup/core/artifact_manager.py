"""
Artifact management for storing run diagnostics.
"""

import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List


class ArtifactManager:
    """Writes per-run diagnostics: the run summary and captured transcripts."""

    def __init__(self, base_path: Path, run_id: Optional[str] = None):
        """
        Initialize artifact manager.

        Args:
            base_path: Base directory for storing artifacts
            run_id: Optional run ID; defaults to a UTC timestamp
        """
        self.logger = logging.getLogger(__name__)
        self.base_path = Path(base_path)
        self.run_id = run_id or datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        self.run_base_path = self.base_path / "runs" / self.run_id
        self.run_base_path.mkdir(parents=True, exist_ok=True)

    def save_json(self, filename: str, data: Dict[str, Any],
                  subdirs: Optional[List[str]] = None) -> Path:
        """
        Save JSON data to file.

        Args:
            filename: JSON filename
            data: Data to save
            subdirs: Optional subdirectories under run base path

        Returns:
            Path to saved file
        """
        target_dir = self._target_dir(subdirs)
        json_path = target_dir / filename

        # Add timestamp if not present
        if 'timestamp' not in data:
            data['timestamp'] = datetime.now(timezone.utc).isoformat()

        with open(json_path, 'w') as f:
            json.dump(data, f, indent=2, default=str)

        self.logger.debug(f"Saved JSON to {json_path}")
        return json_path

    def save_text(self, filename: str, content: str,
                  subdirs: Optional[List[str]] = None) -> Path:
        """Save a text artifact such as a terminal transcript."""
        text_path = self._target_dir(subdirs) / filename
        text_path.write_text(content, encoding="utf-8")
        self.logger.debug(f"Saved text to {text_path}")
        return text_path

    def save_run(self, result) -> Path:
        """
        Save the diagnostics for a finished run.

        Args:
            result: SetupResult of the run

        Returns:
            Path to the summary file
        """
        transcript = None
        if result.verification and result.verification.transcript:
            transcript = result.verification.transcript
        elif result.error_type == "InteractiveHandshakeNotObserved":
            transcript = result.error_detail

        if transcript:
            self.save_text("transcript.txt", transcript)

        summary_path = self.save_json("summary.json", result.summary())
        self.logger.info(f"Run diagnostics saved to {self.run_base_path}")
        return summary_path

    def _target_dir(self, subdirs: Optional[List[str]]) -> Path:
        target_dir = self.run_base_path
        for subdir in subdirs or []:
            target_dir = target_dir / subdir
        target_dir.mkdir(parents=True, exist_ok=True)
        return target_dir
