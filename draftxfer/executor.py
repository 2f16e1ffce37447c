"""Run objects repeatedly, each on its own thread, until they finish or stop."""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Iterable, Optional

log = logging.getLogger(__name__)


class Options(enum.IntFlag):
    """Per-runnable behaviour flags."""

    NONE = 0
    DO_FINALIZE = 1


def _step_of(runnable: Any):
    step = getattr(runnable, "run_once", None)
    if callable(step):
        return step
    if callable(runnable):
        return runnable
    raise TypeError(f"{runnable!r} has no run_once method and is not callable")


class _Worker:
    """One runnable driven on a dedicated thread."""

    def __init__(self, runnable: Any, options: Options) -> None:
        self._step = _step_of(runnable)
        self._options = Options(options)
        self._stop = threading.Event()
        self._finished = threading.Event()
        self._lock = threading.Lock()
        self._exception: Optional[BaseException] = None
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        stop = self._stop
        while not stop.is_set():
            try:
                if not self._step(stop):
                    break
            except Exception as exc:
                log.warning("thread %s exception: %s", threading.get_ident(), exc)
                with self._lock:
                    self._exception = exc
                break

        if stop.is_set() and self._options & Options.DO_FINALIZE:
            log.debug("thread runnable finalizing.")
            try:
                self._step(stop)
            except Exception as exc:
                log.warning("thread %s finalizing exception: %s",
                            threading.get_ident(), exc)
                with self._lock:
                    if self._exception is None:
                        self._exception = exc

        self._finished.set()
        log.debug("thread runnable exiting.")

    @property
    def exception(self) -> Optional[BaseException]:
        with self._lock:
            return self._exception

    def finished(self) -> bool:
        return self._finished.is_set()

    def cancel(self) -> None:
        self._stop.set()

    def join(self) -> None:
        self._thread.join()


class ThreadExecutor:
    """Runs each added object's ``run_once(stop_event)`` in a loop on its own thread.

    A runnable's loop ends when ``run_once`` returns a falsy value, raises, or
    the executor is cancelled. Runnables added with ``Options.DO_FINALIZE`` get
    one last ``run_once`` call after cancellation.
    """

    def __init__(self, *args: Any) -> None:
        self._workers: list[_Worker] = []
        for runnable in args:
            self.add(runnable)

    def add(self, runnable: Any, options: Options = Options.NONE) -> "ThreadExecutor":
        """Start running ``runnable``; returns the executor for chaining."""
        self._workers.append(_Worker(runnable, options))
        return self

    def add_all(self, runnables: Iterable[Any],
                options: Options = Options.NONE) -> "ThreadExecutor":
        """Start running each of ``runnables`` with the same options."""
        for runnable in runnables:
            self.add(runnable, options)
        return self

    def run_once(self) -> bool:
        """Return True while any runnable is still running."""
        return any(not worker.finished() for worker in self._workers)

    def finished(self) -> bool:
        """Return True once every runnable has finished."""
        return all(worker.finished() for worker in self._workers)

    def cancel(self) -> None:
        """Ask every runnable to stop."""
        for worker in self._workers:
            worker.cancel()

    def wait_finished(self) -> None:
        """Block until every runnable's thread has ended."""
        for worker in self._workers:
            worker.join()

    def clear_finished(self) -> None:
        """Forget runnables that have finished."""
        self._workers = [w for w in self._workers if not w.finished()]

    def have_exception(self) -> bool:
        """Return True if any runnable ended with an exception."""
        return any(worker.exception is not None for worker in self._workers)

    def __len__(self) -> int:
        return len(self._workers)

    def __enter__(self) -> "ThreadExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()
        self.wait_finished()