import asyncio
from unittest.mock import AsyncMock

import pytest

from shelf_proxy.proxy.streams import BodySink, store


async def _chunks(*chunks, error=None):
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


async def _drain(sink: BodySink):
    return [chunk async for chunk in sink]


class _ClosableSource:
    """Async iterator that fails after its data and records being closed."""

    def __init__(self, chunks, error):
        self._chunks = list(chunks)
        self._error = error
        self.aclose = AsyncMock()

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._chunks:
            return self._chunks.pop(0)
        raise self._error


class TestBodySink:
    @pytest.mark.asyncio
    async def test_yields_chunks_in_order_until_closed(self):
        sink = BodySink()
        sink.add(b"a")
        sink.add(b"b")
        sink.close()

        assert await _drain(sink) == [b"a", b"b"]

    @pytest.mark.asyncio
    async def test_error_is_raised_to_consumer(self):
        sink = BodySink()
        sink.add(b"a")
        sink.add_error(ValueError("broken body"))
        sink.close()

        received = []
        with pytest.raises(ValueError, match="broken body"):
            async for chunk in sink:
                received.append(chunk)
        assert received == [b"a"]

    @pytest.mark.asyncio
    async def test_consumer_waits_for_data(self):
        sink = BodySink()
        consumer = asyncio.create_task(_drain(sink))
        await asyncio.sleep(0)
        assert not consumer.done()

        sink.add(b"late")
        sink.close()

        assert await consumer == [b"late"]

    def test_add_after_close_fails(self):
        sink = BodySink()
        sink.close()

        with pytest.raises(RuntimeError):
            sink.add(b"x")
        with pytest.raises(RuntimeError):
            sink.add_error(ValueError("x"))

    def test_close_is_idempotent(self):
        sink = BodySink()
        sink.close()
        sink.close()

        assert sink.closed is True


class TestStore:
    @pytest.mark.asyncio
    async def test_forwards_all_chunks_and_closes(self):
        sink = BodySink()

        result = await store(_chunks(b"he", b"llo"), sink)

        assert result is None
        assert sink.closed is True
        assert await _drain(sink) == [b"he", b"llo"]

    @pytest.mark.asyncio
    async def test_empty_source_closes_sink(self):
        sink = BodySink()

        await store(_chunks(), sink)

        assert sink.closed is True
        assert await _drain(sink) == []

    @pytest.mark.asyncio
    async def test_keeps_sink_open_without_close_sink(self):
        sink = BodySink()

        await store(_chunks(b"x"), sink, close_sink=False)

        assert sink.closed is False

    @pytest.mark.asyncio
    async def test_error_is_relayed_not_raised(self):
        sink = BodySink()
        error = OSError("connection reset while reading body")

        # Must complete normally even though the source failed
        await store(_chunks(b"partial", error=error), sink)

        assert sink.error is error
        assert sink.closed is True
        received = []
        with pytest.raises(OSError):
            async for chunk in sink:
                received.append(chunk)
        assert received == [b"partial"]

    @pytest.mark.asyncio
    async def test_error_with_close_sink_disabled(self):
        sink = BodySink()

        await store(_chunks(error=ValueError("bad")), sink, close_sink=False)

        assert isinstance(sink.error, ValueError)
        assert sink.closed is False

    @pytest.mark.asyncio
    async def test_cancel_on_error_closes_source(self):
        sink = BodySink()
        source = _ClosableSource([b"a"], RuntimeError("boom"))

        await store(source, sink)

        source.aclose.assert_awaited_once()
        assert sink.closed is True

    @pytest.mark.asyncio
    async def test_without_cancel_on_error_source_is_left_alone(self):
        sink = BodySink()
        source = _ClosableSource([b"a"], RuntimeError("boom"))

        await store(source, sink, cancel_on_error=False)

        source.aclose.assert_not_awaited()
        assert isinstance(sink.error, RuntimeError)
        assert sink.closed is True
