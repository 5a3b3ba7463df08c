"""One-way background tasks for persistence side effects.

Mutations commit in memory first, then hand writes to a dispatcher. Nothing
waits on the result; a failed write is logged and dropped.
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


def _run(name: str, fn: Callable[..., Any], *args: Any) -> Any:
    try:
        result = fn(*args)
        logger.debug("Task %s finished", name)
        return result
    except Exception as e:
        logger.warning("Could not %s: %s", name, e)
        return None


class InlineDispatcher:
    """Runs each task immediately in the caller's thread. Used by the CLI and tests."""

    def submit(self, name: str, fn: Callable[..., Any], *args: Any) -> None:
        _run(name, fn, *args)

    def shutdown(self) -> None:
        pass


class BackgroundDispatcher:
    """
    Single worker thread, so tasks start in submission order (the snapshot of
    the previous state is always initiated before the save of the new one).
    """

    def __init__(self):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="famgraph-io")

    def submit(self, name: str, fn: Callable[..., Any], *args: Any) -> Future:
        return self._executor.submit(_run, name, fn, *args)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
