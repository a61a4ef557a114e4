"""filewatch: re-run a shell command when files matching glob patterns change."""

__version__ = "0.1.0"

# Public API
from filewatch.app import FileWatch
from filewatch.config import WatchConfig
from filewatch.debounce import debounce_then
from filewatch.errors import (
    CommandExecutionError,
    FilewatchError,
    NotificationStreamError,
    PathResolutionError,
    WatchError,
    WatchRegistrationError,
)
from filewatch.event_filter import EventFilter
from filewatch.patterns import ResolvedPatterns, resolve
from filewatch.registry import WatchRegistry
from filewatch.supervisor import CommandRun, ProcessSupervisor

__all__ = [
    "__version__",
    # Driver
    "FileWatch",
    "WatchConfig",
    # Pipeline
    "resolve",
    "ResolvedPatterns",
    "WatchRegistry",
    "EventFilter",
    "debounce_then",
    "ProcessSupervisor",
    "CommandRun",
    # Errors
    "FilewatchError",
    "PathResolutionError",
    "WatchError",
    "WatchRegistrationError",
    "NotificationStreamError",
    "CommandExecutionError",
]
