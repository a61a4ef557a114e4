"""Cancellable supervision of the reactive shell command."""

import asyncio
import logging
import os
import signal
from collections.abc import Callable

from filewatch.errors import CommandExecutionError
from filewatch.models import RunState
from filewatch.output import CommandOutput, LoggingOutput

logger = logging.getLogger(__name__)

LINE_LIMIT = 1024 * 1024


def describe_exit(returncode: int) -> str:
    """Format a process return code the way ``sh`` users expect to read it."""
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return f"signal: {name}"
    return f"exit status {returncode}"


def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        # already exited
        pass


async def _pump(stream: asyncio.StreamReader, sink: Callable[[str], None]) -> None:
    """Forward lines from a stream to a sink until EOF."""
    while True:
        try:
            line = await stream.readline()
        except ValueError as e:
            logger.warning(f"Dropping overlong output line: {e}")
            continue
        if not line:
            return
        sink(line.decode(errors="replace").rstrip("\r\n"))


class CommandRun:
    """One execution of the reactive command.

    The run's asyncio task is its cancellation token: cancelling the task
    terminates the process group and abandons output streaming.
    """

    def __init__(self, command: str, output: CommandOutput, kill_grace: float = 2.0):
        """Initialize run.

        Args:
            command: Shell command line
            output: Sink for stdout/stderr lines
            kill_grace: Seconds between SIGTERM and SIGKILL on cancellation
        """
        self.command = command
        self.output = output
        self.kill_grace = kill_grace
        self.state = RunState.IDLE
        self.process: asyncio.subprocess.Process | None = None
        self.task: asyncio.Task | None = None
        self.returncode: int | None = None

    def start(self) -> asyncio.Task:
        """Schedule the run on the current event loop."""
        self.task = asyncio.create_task(self.run())
        return self.task

    def cancel(self) -> None:
        """Request cancellation. Does not wait for the process to exit."""
        if self.task is not None and not self.task.done():
            self.task.cancel()

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    async def wait(self) -> None:
        """Wait for the run's task to finish, however it ends."""
        if self.task is not None:
            await asyncio.wait({self.task})

    async def run(self) -> int | None:
        """Run the command, streaming its output until it exits.

        Returns:
            The process return code, or None if waiting on the process failed

        Raises:
            CommandExecutionError: If the shell cannot be started
        """
        try:
            self.process = await asyncio.create_subprocess_shell(
                self.command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
                limit=LINE_LIMIT,
            )
        except OSError as e:
            raise CommandExecutionError(f"can't start command: {self.command} {e}") from e

        self.state = RunState.RUNNING
        logger.debug(f"Started command (pid {self.process.pid}): {self.command}")
        stderr_task = asyncio.create_task(_pump(self.process.stderr, self.output.stderr))

        try:
            await _pump(self.process.stdout, self.output.stdout)
            await stderr_task
            returncode = await self.process.wait()
        except asyncio.CancelledError:
            self.state = RunState.CANCELLED
            stderr_task.cancel()
            await self._terminate()
            raise
        except OSError as e:
            self.state = RunState.COMPLETED
            stderr_task.cancel()
            await asyncio.gather(stderr_task, return_exceptions=True)
            logger.error(f"can't wait for process: {self.command} {e}")
            return None

        self.state = RunState.COMPLETED
        self.returncode = returncode
        if returncode != 0:
            logger.info(describe_exit(returncode))
        return returncode

    async def _terminate(self) -> None:
        process = self.process
        if process is None or process.returncode is not None:
            return

        logger.debug(f"Terminating command (pid {process.pid})")
        _signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.kill_grace)
        except asyncio.TimeoutError:
            _signal_group(process, signal.SIGKILL)
            await process.wait()


class ProcessSupervisor:
    """Keep at most one CommandRun alive, restarting it on every trigger.

    A failure of a run that is not a cancellation (e.g. the shell cannot be
    started) is delivered through ``failure``.
    """

    def __init__(self, command: str, output: CommandOutput | None = None, kill_grace: float = 2.0):
        """Initialize supervisor.

        Args:
            command: Shell command line. Empty means there is nothing to run.
            output: Sink for command output (default: LoggingOutput)
            kill_grace: Seconds a cancelled run gets before SIGKILL
        """
        self.command = command
        self.output = output or LoggingOutput()
        self.kill_grace = kill_grace
        self.current: CommandRun | None = None
        self._failure: asyncio.Future | None = None

    @property
    def failure(self) -> asyncio.Future:
        """Future that fails with the first fatal run error."""
        if self._failure is None:
            self._failure = asyncio.get_running_loop().create_future()
        return self._failure

    def trigger(self) -> bool:
        """Cancel the current run and start a new one.

        Returns:
            False if no command is configured and watching should stop
        """
        if not self.command:
            logger.debug("No command configured, stopping")
            return False

        if self.current is not None:
            self.current.cancel()

        run = CommandRun(self.command, self.output, kill_grace=self.kill_grace)
        run.start().add_done_callback(self._on_run_done)
        self.current = run
        return True

    def start_initial(self) -> None:
        """Start the run requested before any change is observed."""
        if not self.command:
            logger.debug("No command configured, skipping initial run")
            return
        self.trigger()

    def _on_run_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None and not self.failure.done():
            self.failure.set_exception(exc)

    async def shutdown(self) -> None:
        """Cancel the current run and wait for it to finish."""
        run, self.current = self.current, None
        if run is None:
            return
        run.cancel()
        await run.wait()
