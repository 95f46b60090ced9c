"""File watching with per-binding serialized, coalescing re-runs.

A `WatchBinding` owns one target (a task name) and never runs it twice at the
same time. A trigger that arrives while the target is running marks the
binding dirty; when the run finishes exactly one follow-up run starts, however
many triggers arrived in between.

`FileWatcher` receives change events from a watchdog observer. Events that
arrive within `interval` seconds of each other form one batch, and every
binding matching the batch is triggered once.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .logging import get_logger
from .utils import match_glob, static_prefix


CREATED = EVENT_TYPE_CREATED
MODIFIED = EVENT_TYPE_MODIFIED
DELETED = EVENT_TYPE_DELETED
MOVED = EVENT_TYPE_MOVED

# open/close notifications never change content
WATCHED_EVENTS = {CREATED, MODIFIED, DELETED, MOVED}


@dataclass(frozen=True)
class FileEvent:
    kind: str
    path: str


def relative_path(path) -> str:
    """Posix path relative to the working directory, as the patterns are written."""
    path = os.fsdecode(path)
    return Path(
        os.path.relpath(os.path.realpath(path), os.path.realpath(os.getcwd()))
    ).as_posix()


class WatchBinding:
    def __init__(
        self,
        patterns: Iterable[str],
        target: str,
        action: Callable[[str], object],
        on_error: Optional[Callable[[str, BaseException], None]] = None,
    ):
        self.patterns = list(patterns)
        self.target = target
        self._action = action
        self._on_error = on_error
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._running = False
        self._pending = False
        self.runs = 0
        self.logger = get_logger(f"watch.{target}")

    def matches(self, path: str) -> bool:
        return any(match_glob(path, pat) for pat in self.patterns)

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._running

    def trigger(self) -> bool:
        """Schedule a run. Returns True if a new worker was started."""
        with self._lock:
            if self._running:
                if not self._pending:
                    self.logger.debug("Queued follow-up run of %s", self.target)
                self._pending = True
                return False
            self._running = True
        worker = threading.Thread(
            target=self._loop, name=f"watch-{self.target}", daemon=True
        )
        worker.start()
        return True

    def _loop(self) -> None:
        while True:
            try:
                self.runs += 1
                self._action(self.target)
            except Exception as e:  # noqa: BLE001
                if self._on_error is None:
                    self.logger.exception("Watched run of %s failed", self.target)
                else:
                    self._on_error(self.target, e)
            with self._lock:
                if self._pending:
                    self._pending = False
                    continue
                self._running = False
                self._idle.notify_all()
                return

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        with self._lock:
            return self._idle.wait_for(lambda: not self._running, timeout=timeout)




class FileWatcher(FileSystemEventHandler):
    def __init__(
        self,
        bindings: List[WatchBinding],
        interval: float = 0.3,
        polling: bool = False,
    ):
        super().__init__()
        self.bindings = list(bindings)
        self.interval = interval
        self.polling = polling
        self.logger = get_logger("watch")
        self._lock = threading.Lock()
        self._batch: list[FileEvent] = []
        self._timer: Optional[threading.Timer] = None
        self._observer = None

    def roots(self) -> list[Path]:
        """Static prefixes of all patterns, without roots nested in another."""
        prefixes = {static_prefix(pat) for b in self.bindings for pat in b.patterns}
        return sorted(
            r for r in prefixes if not any(o != r and o in r.parents for o in prefixes)
        )

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in WATCHED_EVENTS:
            return
        events = [FileEvent(event.event_type, relative_path(event.src_path))]
        if event.dest_path:
            # Editors save by renaming a temp file onto the target
            events.append(FileEvent(CREATED, relative_path(event.dest_path)))
        with self._lock:
            self._batch.extend(events)
            if self._timer is None:
                self._timer = threading.Timer(self.interval, self.flush)
                self._timer.daemon = True
                self._timer.start()

    def flush(self) -> list[WatchBinding]:
        """Dispatch the pending batch now."""
        with self._lock:
            batch, self._batch = self._batch, []
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        return self.dispatch(batch) if batch else []

    def dispatch(self, events: List[FileEvent]) -> list[WatchBinding]:
        """Trigger every binding that matches at least one event."""
        fired = []
        for b in self.bindings:
            hits = [e for e in events if b.matches(e.path)]
            if hits:
                self.logger.info(
                    "%s %s -> %s", hits[0].kind, hits[0].path,
                    b.target if len(hits) == 1 else f"{b.target} (+{len(hits) - 1} more)",
                )
                b.trigger()
                fired.append(b)
        return fired

    def start(self) -> None:
        observer_cls = PollingObserver if self.polling else Observer
        self._observer = observer_cls(timeout=self.interval)
        watched = []
        for root in self.roots():
            if not root.is_dir():
                self.logger.warning("Not watching %s: no such directory", root)
                continue
            self._observer.schedule(self, str(root), recursive=True)
            watched.append(str(root))
        self._observer.start()
        self.logger.info("Watching %s", ", ".join(watched) or "(nothing)")

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=max(self.interval * 2, 1.0))
            self._observer = None
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._batch = []
