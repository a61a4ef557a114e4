"""Pluggable sinks for command output.

The supervisor writes every line the command prints through a CommandOutput.
Replace the default for testing or embedding.
"""

import logging
from typing import Protocol

command_logger = logging.getLogger("filewatch.command")


class CommandOutput(Protocol):
    """Protocol for receiving command output lines."""

    def stdout(self, line: str) -> None:
        """A line from standard output."""
        ...

    def stderr(self, line: str) -> None:
        """A line from standard error."""
        ...


class LoggingOutput:
    """Log command output, tagging standard error lines."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or command_logger

    def stdout(self, line: str) -> None:
        self.logger.info(line)

    def stderr(self, line: str) -> None:
        self.logger.info(f"[STDERR] {line}")
