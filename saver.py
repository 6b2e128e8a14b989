"""Background brain persistence.

Saving a large brain takes a while, so :func:`save` queues the job for a
small pool of worker threads and returns a future right away.  Each job
takes the brain's lock only for the time it takes to serialize it, and
any failure ends up on the returned future as well as in the log.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Tuple

import storage
from brain import Brain

logger = logging.getLogger(__name__)

# Fixed number of background workers processing tasks from ``_TASKS``.
WORKER_LIMIT = 1
_TASKS: "queue.Queue[Tuple[Path, Brain, Future]]" = queue.Queue()


def _worker() -> None:
    """Consume queued save tasks one at a time."""
    while True:
        path, brain, future = _TASKS.get()
        try:
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(storage.write_file(path, brain))
            except Exception as exc:
                logger.exception(f"Saving the brain to {path} failed")
                future.set_exception(exc)
        finally:
            _TASKS.task_done()


# Start the pool of worker threads on module import.
for i in range(WORKER_LIMIT):
    threading.Thread(
        target=_worker, daemon=True, name=f"saver-worker-{i}"
    ).start()


def save(brain: Brain, path: storage.PathLike) -> "Future[Path]":
    """Asynchronously write *brain* to *path*."""
    future: "Future[Path]" = Future()
    _TASKS.put((Path(path), brain, future))
    return future


def wait() -> None:
    """Block until all queued save tasks are processed."""

    _TASKS.join()
