"""Serial background queue used by the persistence stores."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, TypeVar

T = TypeVar("T")


class SerialQueue:
    """Run submitted callables one at a time, in submission order."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)

    def submit(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> Future[T]:
        return self._executor.submit(operation, *args, **kwargs)

    def drain(self) -> None:
        """Block until every previously submitted operation has finished."""
        self._executor.submit(lambda: None).result()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
