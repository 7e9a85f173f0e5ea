"""Cooperative cancellation for in-flight provider requests.

A caller may pass a :class:`CancellationToken` into any provider call. The
provider links a fresh :class:`CancellationSource` to it, registers that
source as its current request, and races every network wait against the
token. :meth:`RequestRegistry.cancel_current` cancels whichever request is
current; it is a no-op when the provider is idle.

Tokens may be cancelled from any thread.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import TypeVar

from llmbridge.providers.errors import RequestCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """A one-way cancelled flag with callbacks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def cancel(self) -> None:
        """Cancel the token; idempotent."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run *callback* on cancellation; returns a function that unregisters it.

        Runs immediately when the token is already cancelled.
        """
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return lambda: self._remove_callback(callback)
        callback()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelledError()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()

        def wake() -> None:
            loop.call_soon_threadsafe(_resolve, waiter)

        remove = self.add_callback(wake)
        try:
            await waiter
        finally:
            remove()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the token is cancelled first.

        Raises:
            RequestCancelledError: if the token wins; the pending work is
                cancelled.
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()
        task.cancel()
        # let the abandoned work unwind before the caller cleans up after it
        await asyncio.gather(task, return_exceptions=True)
        raise RequestCancelledError()

    def _remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


def _resolve(waiter: "asyncio.Future[None]") -> None:
    if not waiter.done():
        waiter.set_result(None)


class CancellationSource:
    """Owns the token for one request, optionally linked to a caller's token."""

    def __init__(self) -> None:
        self.token = CancellationToken()
        self._unlink: Callable[[], None] | None = None

    @classmethod
    def linked(cls, parent: CancellationToken | None) -> "CancellationSource":
        """Create a source that is cancelled whenever *parent* is."""
        source = cls()
        if parent is not None:
            source._unlink = parent.add_callback(source.cancel)
        return source

    def cancel(self) -> None:
        self.token.cancel()

    def close(self) -> None:
        """Detach from the parent token."""
        if self._unlink is not None:
            self._unlink()
            self._unlink = None


class RequestRegistry:
    """Holds the provider's current request under a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: CancellationSource | None = None

    @property
    def current(self) -> CancellationSource | None:
        with self._lock:
            return self._current

    def register(self, source: CancellationSource) -> None:
        with self._lock:
            self._current = source

    def unregister(self, source: CancellationSource) -> None:
        """Clear the slot, but only if *source* is still the current request."""
        with self._lock:
            if self._current is source:
                self._current = None

    def cancel_current(self) -> None:
        with self._lock:
            source = self._current
        if source is not None:
            logger.debug("Cancelling current request")
            source.cancel()
