"""Split one decode pass into independent consumer branches.

Each value is read from the source exactly once, by whichever branch asks
first, and is queued for every other branch that is still open. Branches
buffer without bound, so a slow or absent reader never blocks the others;
memory is bounded by the lag of the slowest open branch.

A source error is recorded once. Every branch first drains what it had
buffered before the error and then raises it. Closing a branch only stops
buffering for it.

``itertools.tee`` is not enough here: when the source raises, only the
branch that triggered the read sees the error and the others simply stop.
"""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from collections.abc import AsyncIterator, Callable, Iterator
from typing import Generic, TypeVar

from ..errors import StreamInterruptedError
from ..logger import logger

T = TypeVar("T")


def _identity(value: T) -> T:
    return value


class AsyncTee(Generic[T]):
    """Asynchronous tee over an async iterator."""

    def __init__(
        self,
        source: AsyncIterator[T],
        n: int = 2,
        copy: Callable[[T], T] | None = None,
    ) -> None:
        if n < 1:
            raise ValueError("AsyncTee needs at least one branch")
        self._source = source
        self._copy = copy or _identity
        self._buffers: list[deque[T]] = [deque() for _ in range(n)]
        self._open = [True] * n
        self._lock = asyncio.Lock()
        self._done = False
        self._error: BaseException | None = None
        self.branches: tuple[AsyncIterator[T], ...] = tuple(self._branch(i) for i in range(n))

    def __iter__(self):
        return iter(self.branches)

    async def _branch(self, index: int) -> AsyncIterator[T]:
        buffer = self._buffers[index]
        try:
            while True:
                if buffer:
                    yield buffer.popleft()
                    continue
                if self._done:
                    if self._error is not None:
                        raise self._error
                    return
                async with self._lock:
                    # Another branch may have read while we waited for the lock
                    if not buffer and not self._done:
                        await self._pull(index)
        finally:
            self._open[index] = False
            buffer.clear()
            if not any(self._open) and not self._done:
                self._done = True
                aclose = getattr(self._source, "aclose", None)
                if aclose is not None:
                    await aclose()

    async def _pull(self, requester: int) -> None:
        try:
            value = await self._source.__anext__()
        except StopAsyncIteration:
            self._done = True
            return
        except asyncio.CancelledError:
            self._fail(StreamInterruptedError())
            raise
        except Exception as e:
            self._fail(e)
            return

        for index, buffer in enumerate(self._buffers):
            if self._open[index]:
                buffer.append(value if index == requester else self._copy(value))

    def _fail(self, error: BaseException) -> None:
        logger.debug(f"Stream source failed, ending all branches: {error!r}")
        self._error = error
        self._done = True


class Tee(Generic[T]):
    """Synchronous tee over an iterator."""

    def __init__(
        self,
        source: Iterator[T],
        n: int = 2,
        copy: Callable[[T], T] | None = None,
    ) -> None:
        if n < 1:
            raise ValueError("Tee needs at least one branch")
        self._source = source
        self._copy = copy or _identity
        self._buffers: list[deque[T]] = [deque() for _ in range(n)]
        self._open = [True] * n
        self._lock = threading.Lock()
        self._done = False
        self._error: BaseException | None = None
        self.branches: tuple[Iterator[T], ...] = tuple(self._branch(i) for i in range(n))

    def __iter__(self):
        return iter(self.branches)

    def _branch(self, index: int) -> Iterator[T]:
        buffer = self._buffers[index]
        try:
            while True:
                if buffer:
                    yield buffer.popleft()
                    continue
                if self._done:
                    if self._error is not None:
                        raise self._error
                    return
                with self._lock:
                    if not buffer and not self._done:
                        self._pull(index)
        finally:
            self._open[index] = False
            buffer.clear()
            if not any(self._open) and not self._done:
                self._done = True
                close = getattr(self._source, "close", None)
                if close is not None:
                    close()

    def close(self) -> None:
        """Close every branch and the source, started or not."""
        for branch in self.branches:
            branch.close()
        self._open = [False] * len(self._open)
        if not self._done:
            self._done = True
            close = getattr(self._source, "close", None)
            if close is not None:
                close()

    def _pull(self, requester: int) -> None:
        try:
            value = next(self._source)
        except StopIteration:
            self._done = True
            return
        except Exception as e:
            logger.debug(f"Stream source failed, ending all branches: {e!r}")
            self._error = e
            self._done = True
            return

        for index, buffer in enumerate(self._buffers):
            if self._open[index]:
                buffer.append(value if index == requester else self._copy(value))
