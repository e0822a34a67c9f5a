"""Per-key coalescing of concurrent calls.

While a call for a key is outstanding, later callers for the same key wait for
it and observe the same result or the same exception instead of starting a
call of their own.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Dict, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InflightCalls:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: Dict[str, Future] = {}

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._calls

    def run(self, key: str, fn: Callable[[], T]) -> T:
        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._calls[key] = future

        if not leader:
            logger.debug("Waiting on in-flight call for %s", key)
            return future.result()

        try:
            result = fn()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._calls.pop(key, None)
