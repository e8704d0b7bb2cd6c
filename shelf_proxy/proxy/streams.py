"""
Lazy body streaming between the inbound request and the outbound request.

``BodySink`` is the destination an outbound httpx request reads its content
from; ``store`` pipes an inbound body into it chunk by chunk.
"""

import asyncio
from typing import AsyncIterable, AsyncIterator, Optional

_CLOSED = object()


class _SinkError:
    def __init__(self, error: BaseException):
        self.error = error


class BodySink:
    """
    Single-consumer byte sink exposed as an async iterable.

    Chunks are yielded in the order they were added. An error added with
    ``add_error`` is raised to the consumer when reached. Iteration ends once
    the sink is closed and drained.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self.error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def add(self, chunk: bytes) -> None:
        if self._closed:
            raise RuntimeError("Cannot add data to a closed body sink")
        self._queue.put_nowait(chunk)

    def add_error(self, error: BaseException) -> None:
        if self._closed:
            raise RuntimeError("Cannot add an error to a closed body sink")
        self.error = error
        self._queue.put_nowait(_SinkError(error))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            if isinstance(item, _SinkError):
                raise item.error
            yield item


async def store(
    source: AsyncIterable[bytes],
    sink: BodySink,
    cancel_on_error: bool = True,
    close_sink: bool = True,
) -> None:
    """
    Pipe all data and errors from ``source`` into ``sink``.

    When ``source`` is exhausted the coroutine returns, closing ``sink`` if
    ``close_sink`` is true.

    When ``source`` raises, the error is passed to ``sink`` and this coroutine
    still returns normally. With ``cancel_on_error`` the source is closed so
    nothing more is read from it. An async iterator cannot produce data after
    raising, so without ``cancel_on_error`` the source simply counts as done.
    """
    try:
        async for chunk in source:
            sink.add(chunk)
    except Exception as exc:
        sink.add_error(exc)
        if cancel_on_error:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()
    if close_sink:
        sink.close()
