"""Multi-shot channel of stream lifecycle events."""

import asyncio
from typing import Any, List, NamedTuple


EVENT_NAMES = ("drain", "error", "finish", "pipe", "unpipe")


class StreamEvent(NamedTuple):
    name: str
    detail: Any = None


_CLOSED = object()


class EventChannel:
    """Ordered, buffered stream of StreamEvents.

    Events published before anyone iterates are kept, so a subscriber never
    misses the start of a stream's life. Iteration stops once the channel
    is closed and the buffer is empty.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def publish(self, name: str, detail: Any = None):
        if self.closed:
            return
        self._queue.put_nowait(StreamEvent(name, detail))

    def close(self):
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_CLOSED)

    def pending(self) -> List[StreamEvent]:
        """Return the events already buffered, without waiting."""
        events = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                # Keep the end marker for the next reader.
                self._queue.put_nowait(_CLOSED)
                break
            events.append(item)
        return events

    def __aiter__(self):
        return self

    async def __anext__(self) -> StreamEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item
