"""Error taxonomy for filewatch.

Setup-phase errors abort the program; steady-state handling of each kind is
decided by the component that catches it.
"""


class FilewatchError(Exception):
    """Base class for all filewatch errors."""


class PathResolutionError(FilewatchError):
    """A pattern or path could not be made absolute or stat'ed."""


class WatchError(FilewatchError):
    """Adding a path to the watch set failed."""


class WatchPathError(WatchError, PathResolutionError):
    """The path to watch does not exist or cannot be stat'ed."""


class WatchRegistrationError(WatchError):
    """The notification mechanism refused to register a path."""


class NotificationStreamError(FilewatchError):
    """The notification source reported an error or stopped delivering events."""


class CommandExecutionError(FilewatchError):
    """The reactive command could not be started."""
