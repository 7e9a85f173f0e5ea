"""The handle returned by a streaming call."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable
from types import TracebackType

from llmbridge.core.interface.events import StreamEvent
from llmbridge.core.interface.models import Usage

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Usage | None], None]


class StreamCompletion:
    """Per-call completion channel, resolved once with the call's final usage.

    The future is created lazily on the running loop, so a completion that
    happens before anyone asks for the future is still observable.
    """

    def __init__(self, callback: CompletionCallback | None = None) -> None:
        self._callback = callback
        self._future: asyncio.Future[Usage | None] | None = None
        self._usage: Usage | None = None
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def usage(self) -> Usage | None:
        return self._usage

    @property
    def future(self) -> "asyncio.Future[Usage | None]":
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
            if self._done:
                self._future.set_result(self._usage)
        return self._future

    def complete(self, usage: Usage | None) -> None:
        """Resolve the channel; later calls are ignored."""
        if self._done:
            return
        self._done = True
        self._usage = usage
        if self._future is not None and not self._future.done():
            self._future.set_result(usage)
        if self._callback is not None:
            try:
                self._callback(usage)
            except Exception:
                logger.exception("Stream completion callback failed")


class ProviderStream:
    """Async iterator over one streaming call's events.

    Iteration drives the network reads. Leaving an ``async with`` block or
    calling :meth:`aclose` stops the stream early and runs its cleanup.
    """

    def __init__(
        self,
        events: AsyncGenerator[StreamEvent, None],
        completion: StreamCompletion,
    ) -> None:
        self._events = events
        self._completion = completion

    def __aiter__(self) -> "ProviderStream":
        return self

    async def __anext__(self) -> StreamEvent:
        return await self._events.__anext__()

    async def __aenter__(self) -> "ProviderStream":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._events.aclose()

    @property
    def completed(self) -> "asyncio.Future[Usage | None]":
        """Resolved with the final usage (or ``None``) when the stream ends."""
        return self._completion.future

    @property
    def usage(self) -> Usage | None:
        return self._completion.usage
