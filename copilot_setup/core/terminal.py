"""
Pseudo-terminal session driver.

Runs a program inside a real terminal so it behaves as it would for a user,
collects everything it prints, and bounds the session with two timers: a
graceful stop that sends Ctrl-C twice, and a hard stop that kills the process.
All events are scheduled on one event loop and resolve a single completion
future, so exit handling runs once no matter which event fires first.

POSIX hosts get a real pty through pexpect. Windows hosts get a console
session through wexpect, which offers the same read and signal surface.
"""

import asyncio
import logging
import re
import signal
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

import pexpect

if sys.platform == "win32":
    import wexpect

from .errors import ProcessStartupFailed

ANSI_ESCAPE_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"          # CSI sequences
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"  # OSC sequences
    r"|\x1b[@-Z\\-_78=>]"                # two-character escapes
)


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences and carriage returns."""
    return ANSI_ESCAPE_RE.sub("", text).replace("\r", "")


@dataclass
class ProcessExit:
    """How a terminal process ended."""
    exit_code: Optional[int] = None
    signal_number: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def signalled(self) -> bool:
        return self.signal_number is not None

    def __str__(self) -> str:
        if self.signalled:
            return f"terminated by signal {self.signal_number}"
        return f"exit code {self.exit_code}"


class PtySession:
    """A child process attached to a pseudo-terminal, backed by pexpect."""

    def __init__(self, child, poll_interval: float = 0.05, chunk_size: int = 4096):
        self.logger = logging.getLogger(__name__)
        self._child = child
        self.poll_interval = poll_interval
        self.chunk_size = chunk_size

    @classmethod
    def spawn(cls,
              argv: Sequence[str],
              env: Mapping[str, str],
              dimensions: Tuple[int, int] = (24, 80)) -> "PtySession":
        """Start argv in a new pseudo-terminal of (rows, cols)."""
        child = pexpect.spawn(
            argv[0],
            list(argv[1:]),
            env=dict(env),
            dimensions=dimensions,
            timeout=None
        )
        return cls(child)

    @property
    def pid(self) -> int:
        return self._child.pid

    async def read(self) -> bytes:
        """Next available output chunk; empty bytes at end of output."""
        while True:
            try:
                return self._child.read_nonblocking(self.chunk_size, timeout=0)
            except pexpect.TIMEOUT:
                await asyncio.sleep(self.poll_interval)
            except pexpect.EOF:
                return b""

    def poll(self) -> Optional[ProcessExit]:
        """Exit status if the process has exited, else None."""
        if self._child.isalive():
            return None
        return ProcessExit(exit_code=self._child.exitstatus, signal_number=self._child.signalstatus)

    def interrupt(self) -> None:
        """Type Ctrl-C into the terminal."""
        try:
            self._child.sendintr()
        except OSError as e:
            self.logger.debug(f"Interrupt not delivered: {e}")

    def kill(self) -> None:
        try:
            self._child.kill(signal.SIGKILL)
        except ProcessLookupError:
            pass

    def close(self) -> None:
        try:
            self._child.close(force=True)
        except Exception as e:
            self.logger.debug(f"Error closing terminal session: {e}")


class ConsoleSession(PtySession):
    """A child process attached to a Windows console, backed by wexpect."""

    @classmethod
    def spawn(cls,
              argv: Sequence[str],
              env: Mapping[str, str],
              dimensions: Tuple[int, int] = (24, 80)) -> "ConsoleSession":
        """Start argv in a new hidden console. The console keeps its own size."""
        child = wexpect.spawn(
            argv[0],
            list(argv[1:]),
            env=dict(env),
            timeout=None
        )
        return cls(child)

    async def read(self) -> bytes:
        while True:
            try:
                text = self._child.read_nonblocking(self.chunk_size)
            except wexpect.TIMEOUT:
                text = ""
            except wexpect.EOF:
                return b""
            if text:
                return text.encode("utf-8", errors="replace")
            await asyncio.sleep(self.poll_interval)

    def poll(self) -> Optional[ProcessExit]:
        if self._child.isalive():
            return None
        return ProcessExit(exit_code=self._child.exitstatus)

    def interrupt(self) -> None:
        try:
            self._child.send("\x03")
        except OSError as e:
            self.logger.debug(f"Interrupt not delivered: {e}")

    def kill(self) -> None:
        try:
            self._child.terminate(force=True)
        except OSError as e:
            self.logger.debug(f"Kill not delivered: {e}")


def spawn_session(argv: Sequence[str],
                  env: Mapping[str, str],
                  dimensions: Tuple[int, int] = (24, 80)) -> PtySession:
    """Start argv in the terminal backend native to this host."""
    if sys.platform == "win32":
        return ConsoleSession.spawn(argv, env, dimensions)
    return PtySession.spawn(argv, env, dimensions)


class ProbeState(str, Enum):
    """States of a terminal probe."""
    SPAWNING = "spawning"
    COLLECTING = "collecting"
    STOPPING = "stopping"
    KILLED = "killed"
    EXITED = "exited"


@dataclass
class ProbeTranscript:
    """Everything observed during one terminal session."""
    raw: bytes
    exit: ProcessExit
    interrupts_sent: int = 0
    killed: bool = False
    states: List[ProbeState] = field(default_factory=list)

    @property
    def text(self) -> str:
        return strip_ansi(self.raw.decode("utf-8", errors="replace"))

    @property
    def stopped_by_probe(self) -> bool:
        """True when our own interrupt or kill ended the session."""
        return self.killed or (self.interrupts_sent > 0 and not self.exit.succeeded)


class _ProbeRun:
    """Mutable state of a single probe run."""

    def __init__(self, session, loop: asyncio.AbstractEventLoop, interrupt_gap: float):
        self.logger = logging.getLogger(__name__)
        self.session = session
        self.loop = loop
        self.interrupt_gap = interrupt_gap
        self.chunks: List[bytes] = []
        self.states: List[ProbeState] = [ProbeState.SPAWNING, ProbeState.COLLECTING]
        self.interrupts_sent = 0
        self.killed = False
        self.exited: asyncio.Future = loop.create_future()
        self._timers: List[asyncio.TimerHandle] = []

    @property
    def state(self) -> ProbeState:
        return self.states[-1]

    def arm(self, delay: float, callback: Callable[[], None]) -> None:
        self._timers.append(self.loop.call_later(delay, callback))

    def cancel_timers(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    def graceful_stop(self) -> None:
        if self.exited.done():
            return
        self.logger.debug("Graceful stop: interrupting terminal session")
        self.states.append(ProbeState.STOPPING)
        self._interrupt()
        self.arm(self.interrupt_gap, self._interrupt)

    def _interrupt(self) -> None:
        if self.exited.done():
            return
        self.session.interrupt()
        self.interrupts_sent += 1

    def hard_stop(self) -> None:
        if self.exited.done():
            return
        self.logger.warning("Terminal session did not exit after interrupts, killing it")
        self.states.append(ProbeState.KILLED)
        self.killed = True
        self.session.kill()

    def finish(self, status: ProcessExit) -> None:
        if self.exited.done():
            return
        self.cancel_timers()
        self.states.append(ProbeState.EXITED)
        self.exited.set_result(status)

    async def collect(self) -> None:
        while True:
            chunk = await self.session.read()
            if not chunk:
                return
            self.chunks.append(chunk)

    async def watch_exit(self, poll_interval: float) -> None:
        while not self.exited.done():
            status = self.session.poll()
            if status is not None:
                self.finish(status)
                return
            await asyncio.sleep(poll_interval)


class TerminalProbe:
    """
    Drives one interactive session of a program inside a pseudo-terminal.

    The session object returned by ``session_factory(argv, env, dimensions)``
    must provide ``read()`` (coroutine, empty bytes at end of output),
    ``poll()`` (ProcessExit or None), ``interrupt()``, ``kill()`` and
    ``close()``. spawn_session picks PtySession or ConsoleSession.
    """

    def __init__(self,
                 session_factory: Optional[Callable] = None,
                 dimensions: Tuple[int, int] = (24, 80),
                 graceful_stop_seconds: float = 5.0,
                 interrupt_gap_seconds: float = 0.25,
                 hard_stop_seconds: float = 8.0,
                 exit_poll_interval: float = 0.05,
                 reap_grace_seconds: float = 2.0,
                 drain_timeout_seconds: float = 1.0):
        self.logger = logging.getLogger(__name__)
        self.session_factory = session_factory or spawn_session
        self.dimensions = dimensions
        self.graceful_stop_seconds = graceful_stop_seconds
        self.interrupt_gap_seconds = interrupt_gap_seconds
        self.hard_stop_seconds = hard_stop_seconds
        self.exit_poll_interval = exit_poll_interval
        self.reap_grace_seconds = reap_grace_seconds
        self.drain_timeout_seconds = drain_timeout_seconds

    async def run(self, argv: Sequence[str], env: Mapping[str, str]) -> ProbeTranscript:
        """
        Run argv in a terminal until it exits or is stopped.

        Returns:
            The collected transcript and exit status

        Raises:
            ProcessStartupFailed: The program could not be started, exited
                non-zero without printing anything, or survived the hard stop
        """
        loop = asyncio.get_running_loop()
        rows, cols = self.dimensions
        self.logger.info(f"Starting interactive session: {' '.join(argv)} ({cols}x{rows})")

        try:
            session = self.session_factory(argv, env, self.dimensions)
        except Exception as e:
            raise ProcessStartupFailed(f"Unable to start {argv[0]} in a terminal: {e}") from e

        run = _ProbeRun(session, loop, self.interrupt_gap_seconds)
        run.arm(self.graceful_stop_seconds, run.graceful_stop)
        run.arm(self.hard_stop_seconds, run.hard_stop)
        collector = asyncio.ensure_future(run.collect())
        watcher = asyncio.ensure_future(run.watch_exit(self.exit_poll_interval))

        try:
            deadline = self.hard_stop_seconds + self.reap_grace_seconds
            try:
                status = await asyncio.wait_for(asyncio.shield(run.exited), timeout=deadline)
            except asyncio.TimeoutError:
                raise ProcessStartupFailed(
                    f"{argv[0]} did not exit within {deadline} seconds, even after being killed",
                    detail=strip_ansi(b"".join(run.chunks).decode("utf-8", errors="replace"))
                )

            # Output written just before exit may still be buffered
            try:
                await asyncio.wait_for(collector, timeout=self.drain_timeout_seconds)
            except asyncio.TimeoutError:
                self.logger.debug("Stopped draining terminal output after timeout")
        finally:
            run.cancel_timers()
            for task in (collector, watcher):
                task.cancel()
            await asyncio.gather(collector, watcher, return_exceptions=True)
            session.close()

        transcript = ProbeTranscript(
            raw=b"".join(run.chunks),
            exit=status,
            interrupts_sent=run.interrupts_sent,
            killed=run.killed,
            states=list(run.states)
        )
        self.logger.info(
            f"Interactive session ended with {status} after {transcript.interrupts_sent} interrupt(s)"
            f"{' and a forced kill' if transcript.killed else ''}"
        )

        if not status.succeeded and not transcript.raw:
            raise ProcessStartupFailed(f"{argv[0]} exited with {status} without producing any output")

        return transcript
