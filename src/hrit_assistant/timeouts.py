"""Bounded waits for calls into external capabilities."""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TypeVar

R = TypeVar("R")

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def _shared_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="hrit-call")
        return _executor


def call_with_timeout(func: Callable[..., R], timeout: float, *args: object) -> R:
    """Run `func(*args)` on a worker thread and wait at most `timeout` seconds.

    Raises `TimeoutError` when the deadline passes. The worker is not killed;
    its eventual result is discarded. Exceptions raised by `func` propagate
    unchanged.
    """

    future: Future[R] = _shared_executor().submit(func, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        raise TimeoutError(f"call exceeded {timeout:.2f}s") from exc
