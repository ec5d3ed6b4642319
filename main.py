#!/usr/bin/env python3
"""
Main entry point for the GitHub Copilot CLI setup step.
"""

import asyncio
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional
import json
from dotenv import load_dotenv

from copilot_setup.core.orchestrator import SetupOrchestrator
from copilot_setup.core.run_context import RunContext
from copilot_setup.integrations.actions_runner import ActionsRunner, MockActionsRunner
from copilot_setup.utils.logging import setup_root_logger
from config.settings import Settings


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Install the GitHub Copilot CLI and verify it works"
    )

    parser.add_argument(
        "--version",
        type=str,
        help="'latest', 'prerelease' or an exact version such as v0.0.369 (default: INPUT_VERSION or latest)"
    )

    parser.add_argument(
        "--token",
        type=str,
        help="Credential exported as GH_TOKEN (default: INPUT_TOKEN, GH_TOKEN or GITHUB_TOKEN)"
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file (JSON format)"
    )

    parser.add_argument(
        "--skip-runtime",
        action="store_true",
        help="Do not check or install Node.js/npm"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write logs to this file"
    )

    parser.add_argument(
        "--artifacts-dir",
        type=Path,
        help="Directory for run diagnostics (summary and transcript)"
    )

    parser.add_argument(
        "--local",
        action="store_true",
        help="Record runner outputs in memory instead of writing runner files"
    )

    return parser.parse_args(argv)


def load_config(args, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load configuration from file, runner inputs and command line."""
    environ = os.environ if environ is None else environ
    config_data = {}

    if args.config and args.config.exists():
        with open(args.config) as f:
            config_data = json.load(f)

    # Runner inputs override file values; command line overrides both
    if environ.get("INPUT_VERSION"):
        config_data["version"] = environ["INPUT_VERSION"]
    if environ.get("INPUT_TOKEN"):
        config_data["token"] = environ["INPUT_TOKEN"]

    if args.version:
        config_data["version"] = args.version
    if args.token:
        config_data["token"] = args.token
    if args.skip_runtime:
        config_data.setdefault("runtime", {})["enabled"] = False
    if args.log_level:
        config_data.setdefault("logging", {})["level"] = args.log_level
    if args.log_file:
        config_data.setdefault("logging", {})["file_path"] = str(args.log_file)
    if args.artifacts_dir:
        config_data.setdefault("artifacts", {})["base_path"] = str(args.artifacts_dir)

    return Settings(**config_data)


async def run_setup(settings: Settings,
                    runner: ActionsRunner,
                    context: Optional[RunContext] = None,
                    orchestrator: Optional[SetupOrchestrator] = None) -> int:
    """
    Run the setup and publish its outputs.

    Returns:
        Process exit code
    """
    logger = logging.getLogger(__name__)
    context = context or RunContext(runner=runner)
    orchestrator = orchestrator or SetupOrchestrator.from_settings(settings, context)

    result = await orchestrator.run(settings.version, settings.token)

    if not result.success:
        runner.set_failed(f"Action failed: {result.error_type} during {result.failed_stage}: {result.error_message}")
        return 1

    for name, value in result.outputs.items():
        runner.set_output(name, value)
    logger.info(f"Duration: {result.duration_seconds:.2f} seconds")
    return 0


async def main(argv=None) -> int:
    """Main entry point."""
    load_dotenv()
    args = parse_arguments(argv)

    runner = MockActionsRunner() if args.local else ActionsRunner()

    try:
        settings = load_config(args)
    except Exception as e:
        runner.set_failed(f"Invalid configuration: {e}")
        return 1

    setup_root_logger(
        settings.logging.file_path,
        settings.logging.level,
        annotate=settings.logging.annotate and runner.is_hosted,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count
    )
    logger = logging.getLogger(__name__)

    try:
        return await run_setup(settings, runner)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        runner.set_failed(f"Action failed: {e}")
        return 1


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
