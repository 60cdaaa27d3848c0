"""
Live queries over MongoDB change streams

A ``LiveQuery`` pairs a fetch coroutine with a change stream. Iterating it
yields the fetched result once at subscribe time and again after every
change event, skipping results equal to the previous one. The change stream
is opened before the first fetch so no change between the two is missed,
and it is closed when the iterator is closed (``aclose()`` or cancellation).
"""

from typing import Any, AsyncIterator, Awaitable, Callable, Generic, TypeVar
import logging

from fastapi.responses import StreamingResponse
from pymongo.errors import PyMongoError
import orjson

from .metrics import active_subscriptions

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LiveQuery(Generic[T]):
    """Continuously refreshed query result"""

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        open_stream: Callable[[], Any],
        target: str = "collection"
    ):
        self._fetch = fetch
        self._open_stream = open_stream
        self._target = target

    @property
    def target(self) -> str:
        return self._target

    def __aiter__(self) -> AsyncIterator[T]:
        return self.snapshots()

    async def snapshots(self) -> AsyncIterator[T]:
        gauge = active_subscriptions.labels(self._target)
        gauge.inc()
        try:
            async with self._open_stream() as stream:
                last = await self._fetch()
                yield last

                async for _change in stream:
                    current = await self._fetch()
                    if current == last:
                        continue
                    last = current
                    yield current
        finally:
            gauge.dec()
            logger.debug(f"Live query on {self._target} closed")


def event_stream(query: LiveQuery, serialize: Callable[[Any], Any]) -> StreamingResponse:
    """Serve a live query as Server-Sent Events, one ``data:`` frame per snapshot"""

    async def generate():
        snapshots = query.snapshots()
        try:
            async for snapshot in snapshots:
                yield b"data: " + orjson.dumps(serialize(snapshot)) + b"\n\n"
        except PyMongoError as e:
            logger.error(f"Live query on {query.target} failed: {e}")
            yield b"data: " + orjson.dumps({"type": "error", "message": "Live updates interrupted"}) + b"\n\n"
        finally:
            await snapshots.aclose()

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no"
        }
    )
