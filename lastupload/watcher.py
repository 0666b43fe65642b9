"""Listing file watcher that retriggers scans.

A ``watchdog`` observer watches the directory holding the saved listing.
Create/modify events for the listing file are handed to the asyncio loop
thread-safely and debounced: a burst of saves triggers one rescan.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

log = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.5  # seconds


class Debouncer:
    """Run *callback* once, *delay* seconds after the last :meth:`trigger`.

    Must be triggered from the loop thread.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[], None],
        delay: float = DEFAULT_DEBOUNCE,
    ) -> None:
        self._loop = loop
        self._callback = callback
        self._delay = delay
        self._handle: asyncio.TimerHandle | None = None

    def trigger(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self._loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()


class _ListingEventHandler(FileSystemEventHandler):
    """Watchdog handler that forwards events for one file to the loop."""

    def __init__(
        self,
        target: Path,
        loop: asyncio.AbstractEventLoop,
        notify: Callable[[], None],
    ) -> None:
        super().__init__()
        self._target = target.resolve()
        self._loop = loop
        self._notify = notify

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Editors often save by writing a temp file and renaming it over
        if not event.is_directory:
            self._handle(event.dest_path)

    def _handle(self, path: str | bytes) -> None:
        if isinstance(path, bytes):
            path = path.decode()
        if Path(path).resolve() != self._target:
            return
        log.debug("Listing changed: %s", path)
        self._loop.call_soon_threadsafe(self._notify)


class ListingWatcher:
    """Watch a listing file and call *callback* after changes settle.

    Parameters
    ----------
    path:
        Listing file to watch.
    loop:
        Event loop the callback runs on.
    callback:
        Called on the loop thread once per debounced burst of changes.
    debounce:
        Quiet period in seconds before the callback fires.
    """

    def __init__(
        self,
        path: Path,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[], None],
        debounce: float = DEFAULT_DEBOUNCE,
    ) -> None:
        self._path = Path(path)
        self._debouncer = Debouncer(loop, callback, debounce)
        self._handler = _ListingEventHandler(self._path, loop, self._debouncer.trigger)
        self._observer: Observer | None = None

    def start(self) -> None:
        """Start the filesystem observer."""
        watch_dir = self._path.resolve().parent
        self._observer = Observer()
        self._observer.schedule(self._handler, str(watch_dir), recursive=False)
        self._observer.daemon = True
        self._observer.start()
        log.info("Watching: %s", self._path)

    def stop(self) -> None:
        """Stop the filesystem observer."""
        self._debouncer.cancel()
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
