"""Shared fixtures and fakes for the setup tests."""

import asyncio
import os
import signal
import stat
import time
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from copilot_setup.core.command_runner import CommandResult
from copilot_setup.core.errors import CommandError
from copilot_setup.core.run_context import RunContext
from copilot_setup.core.terminal import ProcessExit, TerminalProbe
from copilot_setup.integrations.actions_runner import MockActionsRunner


def ok(stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult(argv=[], returncode=0, stdout=stdout, stderr=stderr)


def failed(returncode: int = 1, stderr: str = "") -> CommandResult:
    return CommandResult(argv=[], returncode=returncode, stderr=stderr)


def make_executable(directory: Path, name: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class FakeCommandRunner:
    """
    Stands in for CommandRunner.

    Responses are keyed by a command line prefix where the command is reduced
    to its basename, e.g. "npm install" or "copilot -v". A response is a
    CommandResult, an exception to raise, or a callable taking (argv, env).
    """

    def __init__(self, responses: Optional[Dict] = None):
        self.responses = dict(responses or {})
        self.calls: List[Dict] = []

    def commands(self) -> List[str]:
        return [call["line"] for call in self.calls]

    async def run(self, argv, env=None, timeout=None, check=True, echo=False):
        argv = [str(a) for a in argv]
        line = " ".join([Path(argv[0]).name] + argv[1:])
        self.calls.append({"argv": argv, "line": line, "env": dict(env or {}), "timeout": timeout})

        response = None
        for key in sorted(self.responses, key=len, reverse=True):
            if line.startswith(key):
                response = self.responses[key]
                break

        if callable(response) and not isinstance(response, CommandResult):
            response = response(argv, env)
        if isinstance(response, Exception):
            raise response

        result = response or ok()
        result = CommandResult(
            argv=argv,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr
        )
        if check and result.returncode != 0:
            raise CommandError(f"{line} failed with exit code {result.returncode}", result)
        return result


class FakeSession:
    """
    Scripted terminal session.

    Emits ``chunks`` immediately, exits on its own after ``exit_after``
    seconds (never when None), exits with SIGINT on the first interrupt unless
    ``ignore_interrupts``, and dies on kill unless ``ignore_kill``.
    """

    def __init__(self,
                 chunks=(),
                 exit_code: int = 0,
                 exit_after: Optional[float] = None,
                 ignore_interrupts: bool = False,
                 ignore_kill: bool = False):
        self.pending = list(chunks)
        self.exit_code = exit_code
        self.exit_after = exit_after
        self.ignore_interrupts = ignore_interrupts
        self.ignore_kill = ignore_kill
        self.started = time.monotonic()
        self.status: Optional[ProcessExit] = None
        self.interrupts = 0
        self.kills = 0
        self.closed = False

    async def read(self) -> bytes:
        while True:
            if self.pending:
                return self.pending.pop(0)
            if self.poll() is not None:
                return b""
            await asyncio.sleep(0.005)

    def poll(self) -> Optional[ProcessExit]:
        if self.status is None and self.exit_after is not None:
            if time.monotonic() - self.started >= self.exit_after:
                self.status = ProcessExit(exit_code=self.exit_code)
        return self.status

    def interrupt(self) -> None:
        self.interrupts += 1
        if not self.ignore_interrupts and self.status is None:
            self.status = ProcessExit(signal_number=signal.SIGINT)

    def kill(self) -> None:
        self.kills += 1
        if not self.ignore_kill and self.status is None:
            self.status = ProcessExit(signal_number=signal.SIGKILL)

    def close(self) -> None:
        self.closed = True


class SessionFactory:
    """Returns a prepared FakeSession and records how it was spawned."""

    def __init__(self, session: FakeSession):
        self.session = session
        self.spawned = []

    def __call__(self, argv, env, dimensions):
        self.spawned.append({"argv": list(argv), "env": dict(env), "dimensions": dimensions})
        return self.session


def fast_probe(session: FakeSession, **overrides) -> TerminalProbe:
    options = dict(
        graceful_stop_seconds=0.05,
        interrupt_gap_seconds=0.02,
        hard_stop_seconds=0.2,
        exit_poll_interval=0.005,
        reap_grace_seconds=0.2,
        drain_timeout_seconds=0.1
    )
    options.update(overrides)
    return TerminalProbe(session_factory=SessionFactory(session), **options)


@pytest.fixture
def bin_dir(tmp_path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def actions() -> MockActionsRunner:
    return MockActionsRunner()


@pytest.fixture
def context(tmp_path, bin_dir, actions) -> RunContext:
    home = tmp_path / "home"
    home.mkdir()
    temp = tmp_path / "tmp"
    temp.mkdir()
    environ = {
        "PATH": str(bin_dir),
        "HOME": str(home),
        "RUNNER_TEMP": str(temp),
    }
    return RunContext(environ=environ, runner=actions)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("COPILOT_SETUP_") or name in ("INPUT_VERSION", "INPUT_TOKEN"):
            monkeypatch.delenv(name, raising=False)
