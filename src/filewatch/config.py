"""Runtime configuration for filewatch."""

import argparse
from dataclasses import dataclass


@dataclass
class WatchConfig:
    """Configuration for one filewatch session."""

    filenames: str = ""
    """Comma-separated glob patterns to watch."""

    debounce_seconds: int = 0
    """Quiet period before a burst of changes fires the command."""

    verbose: bool = False
    """Emit detailed event and match logging."""

    command: str = ""
    """Shell command to run on change. Empty means exit on the first change."""

    initial: bool = False
    """Run the command once before any change is observed."""

    kill_grace_seconds: float = 2.0
    """Time a cancelled command gets between SIGTERM and SIGKILL."""

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "WatchConfig":
        """Build config from parsed command-line arguments.

        Args:
            args: Namespace produced by ``cli.parse_args``

        Returns:
            WatchConfig with the flag values applied
        """
        return cls(
            filenames=args.filenames,
            debounce_seconds=args.t,
            verbose=args.verbose,
            command=args.command,
            initial=args.initial,
        )
