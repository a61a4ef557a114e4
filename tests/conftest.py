"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from filewatch.registry import WatchRegistry  # noqa: E402


class RecordingOutput:
    """CommandOutput that keeps every line."""

    def __init__(self):
        self.stdout_lines: list[str] = []
        self.stderr_lines: list[str] = []

    def stdout(self, line: str) -> None:
        self.stdout_lines.append(line)

    def stderr(self, line: str) -> None:
        self.stderr_lines.append(line)


class FakeRegistry:
    """In-memory registry: events are fed by the test."""

    def __init__(self):
        self.events: asyncio.Queue = asyncio.Queue()
        self.added: list[str] = []
        self.removed: list[str] = []
        self.replaced: list[str] = []
        self.add_error: Exception | None = None

    def add_paths(self, paths, replace=False):
        if self.add_error is not None:
            raise self.add_error
        self.added.extend(paths)
        if replace:
            self.replaced.extend(paths)

    def remove_path(self, path):
        self.removed.append(path)

    async def next_event(self):
        return await self.events.get()


@pytest.fixture
def output():
    return RecordingOutput()


@pytest.fixture
def fake_registry():
    return FakeRegistry()


@pytest.fixture
def mock_observer():
    """Observer stand-in so no OS watches are created."""
    observer = MagicMock()
    observer.is_alive.return_value = True
    return observer


@pytest.fixture
def registry(mock_observer):
    return WatchRegistry(observer=mock_observer, health_interval=0.05)
