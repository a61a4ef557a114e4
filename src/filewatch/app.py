"""Top-level driver wiring the watch pipeline to the supervisor."""

import asyncio
import logging

from filewatch import __version__
from filewatch.config import WatchConfig
from filewatch.debounce import debounce_then
from filewatch.event_filter import EventFilter
from filewatch.patterns import resolve
from filewatch.registry import WatchRegistry
from filewatch.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


class FileWatch:
    """Watch patterns and re-run the configured command after changes settle.

    Usage:
        exit_code = asyncio.run(FileWatch(config).run())
    """

    def __init__(
        self,
        config: WatchConfig,
        registry: WatchRegistry | None = None,
        supervisor: ProcessSupervisor | None = None,
    ):
        """Initialize driver.

        Args:
            config: Session configuration
            registry: Watch registry (default: watchdog-backed WatchRegistry,
                created inside the event loop)
            supervisor: Command supervisor (default: one for config.command)
        """
        self.config = config
        self._registry = registry
        self.supervisor = supervisor or ProcessSupervisor(config.command, kill_grace=config.kill_grace_seconds)
        self.event_filter: EventFilter | None = None

    async def run(self) -> int:
        """Watch until a fatal error or, with no command, the first change.

        Returns:
            Process exit code (0 on a clean stop)

        Raises:
            FilewatchError: On any fatal setup or steady-state error
        """
        logger.debug(f"filewatch version {__version__}")

        resolved = resolve(self.config.filenames)
        logger.debug(f"watching for files: {resolved.initial_files}")

        registry = self._registry or WatchRegistry()
        with registry:
            registry.add_paths(resolved.initial_files)

            self.event_filter = EventFilter(registry, resolved.patterns, resolved.dir_patterns)
            filter_task = asyncio.create_task(self.event_filter.run(), name="filewatch-filter")
            dispatch_task = asyncio.create_task(self._dispatch(), name="filewatch-dispatch")

            if self.config.initial:
                self.supervisor.start_initial()

            try:
                done, _ = await asyncio.wait(
                    {filter_task, dispatch_task, self.supervisor.failure},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                for finished in done:
                    finished.result()
            finally:
                for task in (filter_task, dispatch_task):
                    task.cancel()
                await asyncio.gather(filter_task, dispatch_task, return_exceptions=True)
                await self.supervisor.shutdown()

        return 0

    async def _dispatch(self) -> None:
        """Alternate between waiting for a debounced burst and triggering."""
        while True:
            restarted = await debounce_then(
                self.event_filter.output,
                self.config.debounce_seconds,
                self.supervisor.trigger,
            )
            if not restarted:
                logger.info("Change detected, exiting")
                return
