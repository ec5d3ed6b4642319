"""
Command runner for executing setup commands as subprocesses.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from .errors import CommandError
from .run_context import RunContext


@dataclass
class CommandResult:
    """Captured result of a finished command."""
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    lines: List[str] = field(default_factory=list, repr=False)

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def combined_output(self) -> str:
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


class CommandRunner:
    """Runs commands against the run context's environment and search path."""

    def __init__(self, context: RunContext, default_timeout: float = 600):
        """
        Initialize the command runner.

        Args:
            context: Run context providing environment and PATH
            default_timeout: Timeout in seconds when a call does not give one
        """
        self.logger = logging.getLogger(__name__)
        self.context = context
        self.default_timeout = default_timeout

    async def run(self,
                  argv: Sequence[str],
                  env: Optional[Mapping[str, str]] = None,
                  timeout: Optional[float] = None,
                  check: bool = True,
                  echo: bool = False) -> CommandResult:
        """
        Run a command to completion.

        Args:
            argv: Command and arguments; the command is resolved on the context PATH
            env: Extra environment variables layered over the context environment
            timeout: Seconds before the process is terminated
            check: Raise CommandError on a non-zero exit
            echo: Log each output line as it arrives

        Returns:
            Command result with captured output
        """
        argv = [str(a) for a in argv]
        executable = self.context.which(argv[0]) or argv[0]
        timeout = timeout or self.default_timeout
        self.logger.info(f"[command] {' '.join(argv)}")

        try:
            process = await asyncio.create_subprocess_exec(
                executable, *argv[1:],
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.context.child_env(env)
            )
        except OSError as e:
            raise CommandError(f"Unable to start {argv[0]}: {e}") from e

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        tasks = [
            asyncio.ensure_future(self._pump(process.stdout, stdout_lines, echo)),
            asyncio.ensure_future(self._pump(process.stderr, stderr_lines, echo)),
            asyncio.ensure_future(process.wait()),
        ]

        timed_out = False
        read_error = None
        try:
            await asyncio.wait_for(asyncio.gather(*tasks), timeout=timeout)
        except asyncio.TimeoutError:
            timed_out = True
        except (ValueError, asyncio.LimitOverrunError) as e:
            # A single output line overflowed the stream buffer
            read_error = e
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        result = CommandResult(
            argv=argv,
            returncode=process.returncode if process.returncode is not None else -1,
            stdout="".join(stdout_lines),
            stderr="".join(stderr_lines),
            timed_out=timed_out,
            lines=stdout_lines
        )

        if read_error is not None:
            raise CommandError(f"Unable to read output of {' '.join(argv)}: {read_error}", result) from read_error
        if timed_out:
            raise CommandError(f"{' '.join(argv)} timed out after {timeout} seconds", result)
        if check and result.returncode != 0:
            raise CommandError(
                f"{' '.join(argv)} failed with exit code {result.returncode}", result
            )
        return result

    async def _pump(self, stream: asyncio.StreamReader, sink: List[str], echo: bool) -> None:
        async for raw in stream:
            line = raw.decode(errors="replace")
            sink.append(line)
            if echo:
                self.logger.info(line.rstrip())
