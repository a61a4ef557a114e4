"""Turns raw notifications into the filtered event stream."""

import asyncio
import logging
import os
import stat

from filewatch import patterns as pattern_lib
from filewatch.errors import PathResolutionError
from filewatch.models import FilteredEvent, Op, RawEvent

logger = logging.getLogger(__name__)


class EventFilter:
    """Filter raw events against the watched patterns.

    Newly created directories that match a directory pattern are added to the
    registry so their future contents are observed. Files created inside such
    a directory before its registration completes can be missed. Removed
    paths are dropped from the registry so a directory recreated at the same
    path is watched again.
    """

    def __init__(self, registry, patterns: list[str], dir_patterns: list[str]):
        """Initialize filter.

        Args:
            registry: WatchRegistry (or compatible) providing ``next_event``,
                ``add_paths`` and ``remove_path``
            patterns: Absolute patterns an event path must match
            dir_patterns: Patterns for directories that should join the watch set
        """
        self.registry = registry
        self.patterns = patterns
        self.dir_patterns = dir_patterns
        self.output: asyncio.Queue[FilteredEvent] = asyncio.Queue()

    def process(self, event: RawEvent) -> list[FilteredEvent]:
        """Filter a single raw event.

        Args:
            event: Raw event from the notification source

        Returns:
            One FilteredEvent per matching pattern (empty for chmod events)

        Raises:
            PathResolutionError: If the event path cannot be made absolute
            WatchRegistrationError: If a new directory cannot be registered
        """
        try:
            abs_name = os.path.abspath(event.path)
        except OSError as e:
            raise PathResolutionError(f"can't get abs path for event: {event.path} {e}") from e

        if event.op is Op.CREATE:
            self._watch_new_directory(abs_name)
        elif event.op in (Op.REMOVE, Op.RENAME):
            self.registry.remove_path(abs_name)

        filtered = []
        for pattern in self.patterns:
            ok = pattern_lib.match(pattern, abs_name)
            logger.debug(f"will match: {pattern} {abs_name} res: {ok}")
            if not ok or event.op is Op.CHMOD:
                continue
            logger.debug(f"event: {abs_name}")
            filtered.append(FilteredEvent(path=abs_name, op=event.op, pattern=pattern))
        return filtered

    def _watch_new_directory(self, path: str) -> None:
        try:
            st = os.stat(path)
        except OSError as e:
            logger.warning(f"can't get stat for file: {path}, {e}")
            return
        if not stat.S_ISDIR(st.st_mode):
            return

        for pattern in self.dir_patterns:
            if not pattern_lib.match(pattern, path):
                continue
            try:
                # A CREATE means any watch left at this path belongs to an older directory
                self.registry.add_paths([path], replace=True)
            except PathResolutionError as e:
                # Directory vanished between the event and the stat
                logger.warning(str(e))
            return

    async def run(self) -> None:
        """Filter events until the notification source fails."""
        while True:
            event = await self.registry.next_event()
            for filtered in self.process(event):
                await self.output.put(filtered)
