"""Shared data models for filewatch."""

from dataclasses import dataclass
from enum import Enum


class Op(Enum):
    """Kind of filesystem operation carried by a raw notification."""

    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    CHMOD = "chmod"
    OTHER = "other"


@dataclass(frozen=True)
class RawEvent:
    """A notification as surfaced by the OS mechanism."""

    path: str
    """Path reported by the notification source (may be relative)."""

    op: Op
    """Operation that happened to the path."""

    def __str__(self) -> str:
        return f"{self.op.value.upper()} {self.path!r}"


@dataclass(frozen=True)
class FilteredEvent:
    """A raw event whose path matched a watched pattern."""

    path: str
    """Absolute path of the changed file."""

    op: Op
    """Operation that happened to the path."""

    pattern: str
    """The pattern that matched."""

    def __str__(self) -> str:
        return f"{self.op.value.upper()} {self.path!r}"


@dataclass(frozen=True)
class WatchedPath:
    """A path registered with the notification mechanism."""

    path: str
    """Normalized absolute path."""

    is_dir: bool
    """Whether the path is a directory."""


class RunState(Enum):
    """Lifecycle of a single command run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
