import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Set, Tuple

from watchfiles import watch, Change

from .bundler import destination_root, is_output_path
from .walker import Entry, PathWalker, WalkRequest


SinkFactory = Callable[[WalkRequest], Callable[[Entry], Any]]


class FileWatcher:
    """
    Watches the source roots of a set of walk requests and re-runs every
    request when the tree changes.

    Trigger rules:
      - add/delete events always trigger a re-walk
      - modify events trigger only with ``content_changes=True``
      - events on paths ignored by a request never trigger it
      - with ``content_changes=True`` events inside a request's
        destination tree never trigger it

    ``sink_factory`` is called once per request and per run; the returned
    sink receives the entries. When the sink has a ``report()`` method it
    is called after the walk.
    """

    def __init__(
        self,
        requests: Sequence[WalkRequest],
        sink_factory: SinkFactory,
        debounce_seconds: float = 0.5,
        content_changes: bool = False,
        walker: Optional[PathWalker] = None,
    ) -> None:

        if not requests:
            raise ValueError("FileWatcher needs at least one walk request")

        self.requests: List[WalkRequest] = list(requests)
        self.sink_factory = sink_factory
        self.walker = walker or PathWalker()

        self.roots: List[Path] = sorted(
            {Path(r.source).resolve() for r in self.requests}
        )

        self.debounce_seconds = float(debounce_seconds)
        self.content_changes = content_changes
        self._stop_event = threading.Event()
        self._last_trigger_time = 0.0

    # ---------------------------------------------------------
    # Public API
    # ---------------------------------------------------------

    def start(self) -> None:
        print("========================================")
        print("[watcher] Started")
        for root in self.roots:
            print("[watcher] Root      :", root)
        print("[watcher] Walks     :", len(self.requests))
        print("========================================\n")

        for changes in watch(*self.roots, recursive=True, stop_event=self._stop_event):
            if self._stop_event.is_set():
                break

            now = time.time()
            if now - self._last_trigger_time < self.debounce_seconds:
                continue

            triggered = self.triggered_requests(changes)
            if not triggered:
                continue

            self._last_trigger_time = now
            self._handle_changes(changes, triggered)

    def stop(self) -> None:
        self._stop_event.set()

    def run_all(self, requests: Optional[Sequence[WalkRequest]] = None) -> int:
        """
        Walk every request once, in order. Returns the reported entry count.
        """
        total = 0
        for request in requests if requests is not None else self.requests:
            sink = self.sink_factory(request)
            total += self.walker.run([request], sink)
            report = getattr(sink, "report", None)
            if callable(report):
                report()
        return total

    # ---------------------------------------------------------
    # Trigger logic
    # ---------------------------------------------------------

    def triggered_requests(
        self, changes: Set[Tuple[Change, str]]
    ) -> List[WalkRequest]:
        return [
            request for request in self.requests
            if self._should_trigger(request, changes)
        ]

    def _should_trigger(
        self, request: WalkRequest, changes: Set[Tuple[Change, str]]
    ) -> bool:
        root = Path(request.source).resolve()
        output_root = None
        if self.content_changes and request.destination:
            output_root = destination_root(request)

        for change, path_str in changes:
            path = Path(path_str)
            if path != root and root not in path.parents:
                continue
            if output_root is not None and is_output_path(path, root, output_root):
                continue

            # Ignore substrings see the path the way the walk spells it
            rel = os.path.relpath(path_str, root)
            walk_path = request.source if rel == "." else os.path.join(request.source, rel)
            if request.ignore_set.matches(walk_path, request.source, os.path.isdir(path_str)):
                continue

            if change in (Change.added, Change.deleted):
                return True
            if self.content_changes and change == Change.modified:
                return True
        return False

    # ---------------------------------------------------------
    # Handling
    # ---------------------------------------------------------

    def _handle_changes(
        self,
        changes: Set[Tuple[Change, str]],
        triggered: List[WalkRequest],
    ) -> None:

        print("\n----------------------------------------")
        print("[watcher] Change detected at", time.strftime("%H:%M:%S"))
        print("[watcher] Total events:", len(changes))

        for change, path in changes:
            print("  -", change.name, ":", path)

        start = time.time()
        print("\n>>> Walk TRIGGERED")
        count = self.run_all(triggered)
        print(">>> Walk FINISHED")
        print("[watcher] %d entries in %.3f seconds" % (count, time.time() - start))

        print("----------------------------------------\n")
