"""Watch registry backed by watchdog."""

import asyncio
import logging
import os
import stat
import threading

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from filewatch.errors import NotificationStreamError, WatchPathError, WatchRegistrationError
from filewatch.models import Op, RawEvent, WatchedPath

logger = logging.getLogger(__name__)

_OPS = {
    "created": Op.CREATE,
    "modified": Op.WRITE,
    "deleted": Op.REMOVE,
    "closed": Op.WRITE,
}

# Access without modification is not a change.
_IGNORED = {"opened", "closed_no_write"}


def translate_event(event: FileSystemEvent) -> list[RawEvent]:
    """Translate a watchdog event into raw events.

    A move becomes a RENAME of the source and a CREATE of the destination.

    Args:
        event: Event delivered by the watchdog observer

    Returns:
        Zero or more RawEvents
    """
    if event.event_type in _IGNORED:
        return []

    src = os.fsdecode(event.src_path)
    if event.event_type == "moved":
        events = [RawEvent(src, Op.RENAME)]
        dest = os.fsdecode(getattr(event, "dest_path", "") or "")
        if dest:
            events.append(RawEvent(dest, Op.CREATE))
        return events

    return [RawEvent(src, _OPS.get(event.event_type, Op.OTHER))]


class _ForwardingHandler(FileSystemEventHandler):
    """Hands watchdog events from the observer thread to the registry's loop."""

    def __init__(self, registry: "WatchRegistry"):
        self.registry = registry

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            raw_events = self.registry.translate(event)
        except Exception as e:
            self.registry.post(e)
            return

        for raw in raw_events:
            self.registry.post(raw)


class WatchRegistry:
    """Owns the watchdog observer and the set of watched paths.

    Every watched file has its parent directory scheduled with the observer;
    directories are scheduled themselves. All scheduling is non-recursive and
    idempotent.

    Usage:
        with WatchRegistry() as registry:
            registry.add_paths(files)
            event = await registry.next_event()
    """

    def __init__(self, observer=None, health_interval: float = 1.0):
        """Initialize registry.

        Args:
            observer: watchdog observer to use (default: a new Observer)
            health_interval: Seconds between observer liveness checks while
                no events arrive
        """
        self.observer = observer if observer is not None else Observer()
        self.health_interval = health_interval
        self.events: asyncio.Queue = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handler = _ForwardingHandler(self)
        self._watched: dict[str, WatchedPath] = {}
        # directory -> (watch returned by the observer, (st_dev, st_ino))
        self._scheduled: dict[str, tuple[ObservedWatch, tuple[int, int]]] = {}
        # file -> (st_mtime_ns, st_size) as last seen
        self._snapshots: dict[str, tuple[int, int]] = {}
        self._snapshot_lock = threading.Lock()
        self._started = False

    @property
    def watched(self) -> dict[str, WatchedPath]:
        """Snapshot of watched paths keyed by absolute path."""
        return dict(self._watched)

    def is_watched(self, path: str) -> bool:
        return os.path.normpath(path) in self._watched

    def add_paths(self, paths: list[str], replace: bool = False) -> None:
        """Add paths to the watch set.

        The first failing path aborts the batch. A directory that replaced an
        already watched one at the same path gets a fresh watch.

        Args:
            paths: Files or directories to watch
            replace: Drop any watch already scheduled for a directory in
                ``paths``, e.g. when the directory is known to be newly created

        Raises:
            WatchPathError: If a path does not exist or cannot be stat'ed
            WatchRegistrationError: If the observer refuses a path
        """
        for path in paths:
            self._add(path, replace)

    def _add(self, path: str, replace: bool = False) -> None:
        try:
            path = os.path.abspath(path)
            st = os.stat(path)
        except OSError as e:
            raise WatchPathError(f"can't get stat for file: {path}, {e}") from e

        if stat.S_ISDIR(st.st_mode):
            if replace and path in self._scheduled:
                self._unschedule(path)
            self._schedule(path, st)
            self._watched.setdefault(path, WatchedPath(path, is_dir=True))
            return

        parent = os.path.dirname(path)
        try:
            parent_st = os.stat(parent)
        except OSError as e:
            raise WatchPathError(f"can't get stat for file: {parent}, {e}") from e

        self._schedule(parent, parent_st)
        self._watched.setdefault(parent, WatchedPath(parent, is_dir=True))
        self._watched.setdefault(path, WatchedPath(path, is_dir=False))
        with self._snapshot_lock:
            self._snapshots[path] = (st.st_mtime_ns, st.st_size)

    def _is_current(self, directory: str, st: os.stat_result) -> bool:
        """Whether the scheduled watch still observes the directory now at this path."""
        watch, identity = self._scheduled[directory]
        if identity != (st.st_dev, st.st_ino):
            return False
        for emitter in list(self.observer.emitters):
            if emitter.watch == watch:
                # inotify stops the emitter once its directory is deleted
                return emitter.is_alive()
        return True

    def _schedule(self, directory: str, st: os.stat_result) -> None:
        if directory in self._scheduled:
            if self._is_current(directory, st):
                return
            self._unschedule(directory)

        try:
            watch = self.observer.schedule(self._handler, directory, recursive=False)
        except OSError as e:
            raise WatchRegistrationError(f"can't add file to watch: {directory}, {e}") from e

        self._scheduled[directory] = (watch, (st.st_dev, st.st_ino))
        logger.debug(f"Watching directory {directory}")

    def _unschedule(self, directory: str) -> None:
        watch, _ = self._scheduled.pop(directory)
        for path in [p for p in self._watched if p == directory or os.path.dirname(p) == directory]:
            del self._watched[path]

        try:
            self.observer.unschedule(watch)
        except KeyError:
            logger.debug(f"Watch on {directory} was already gone")
        logger.debug(f"Stopped watching directory {directory}")

    def remove_path(self, path: str) -> None:
        """Forget a path that was removed or renamed away.

        A watched directory that no longer exists at ``path`` is unscheduled,
        so a directory later created at the same path can be watched again.
        """
        path = os.path.normpath(path)
        with self._snapshot_lock:
            self._snapshots.pop(path, None)

        if path not in self._scheduled:
            self._watched.pop(path, None)
            return

        try:
            st = os.stat(path)
        except OSError:
            st = None
        if st is not None and self._is_current(path, st):
            return
        self._unschedule(path)

    def translate(self, event: FileSystemEvent) -> list[RawEvent]:
        """Translate a watchdog event, telling attribute-only changes from writes.

        watchdog reports both as ``modified``. A file modification that leaves
        mtime and size unchanged is classified as CHMOD. Runs on the observer
        thread.
        """
        raw_events = translate_event(event)
        if getattr(event, "is_directory", False):
            return raw_events

        result = []
        for raw in raw_events:
            path = os.path.normpath(raw.path)
            if raw.op in (Op.REMOVE, Op.RENAME):
                with self._snapshot_lock:
                    self._snapshots.pop(path, None)
                result.append(raw)
                continue

            try:
                st = os.stat(path)
            except OSError:
                result.append(raw)
                continue

            current = (st.st_mtime_ns, st.st_size)
            with self._snapshot_lock:
                previous = self._snapshots.get(path)
                self._snapshots[path] = current
            if event.event_type == "modified" and previous == current:
                raw = RawEvent(raw.path, Op.CHMOD)
            result.append(raw)
        return result

    def post(self, item: RawEvent | BaseException) -> None:
        """Queue a raw event or a source error. Safe to call from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(f"Dropping {item}: registry not started")
            return
        loop.call_soon_threadsafe(self.events.put_nowait, item)

    def start(self) -> None:
        """Start delivering events to the running event loop."""
        self._loop = asyncio.get_running_loop()
        self.observer.start()
        self._started = True
        logger.debug("Notification observer started")

    def stop(self) -> None:
        """Stop the observer."""
        if not self._started:
            return

        self._started = False
        self.observer.stop()
        self.observer.join(timeout=2.0)
        logger.debug("Notification observer stopped")

    def __enter__(self) -> "WatchRegistry":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def check_health(self) -> None:
        """Raise if the observer thread has died while the registry is running."""
        if self._started and not self.observer.is_alive():
            raise NotificationStreamError("watch error: notification observer stopped unexpectedly")

    async def next_event(self) -> RawEvent:
        """Wait for the next raw event.

        Raises:
            NotificationStreamError: If the source reported an error or died
        """
        while True:
            try:
                item = await asyncio.wait_for(self.events.get(), timeout=self.health_interval)
            except asyncio.TimeoutError:
                self.check_health()
                continue

            if isinstance(item, BaseException):
                raise NotificationStreamError(f"watch error: {item}") from item
            return item
