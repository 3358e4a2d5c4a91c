"""Live bidirectional compression stream."""

import asyncio
import inspect
import time
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .engine import ZlibEngine, to_bytes, translate_error
from .errors import (
    CompressionError,
    ContractError,
    InvalidTypeError,
    StreamClosedError,
    StreamDestroyedError,
    StreamStateError,
)
from .events import EVENT_NAMES, EventChannel, StreamEvent
from .promise import Deferred


class StreamState(Enum):
    """Lifecycle of a stream once it has been opened."""

    OPEN = "open"
    CORKED = "corked"
    ENDING = "ending"
    ENDED = "ended"
    DESTROYED = "destroyed"


TERMINAL_STATES = (StreamState.ENDED, StreamState.DESTROYED)


class _Write:
    """One unit of input for the pump; corked writes are merged into one."""

    __slots__ = ("data", "deferreds", "final")

    def __init__(self, data: bytes, deferreds: List[Deferred], final: bool = False):
        self.data = data
        self.deferreds = deferreds
        self.final = final


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException):
        self.error = error


_EOF = object()


class DeflateStream:
    """Writable compression input joined to a readable output.

    Writes are handed to a single pump task in call order; each library call
    runs in the loop's default executor so the event loop never blocks.
    Output is read with ``read()``/``read_all()``/``async for`` unless the
    stream is piped, in which case it goes to the pipe destinations.
    """

    def __init__(self, settings, encoding: str = "utf-8", logger=None, metrics=None):
        self.settings = settings
        self.variant = settings.variant()
        self.encoding = encoding
        self.high_water_mark = settings.chunk_size()
        self.logger = logger
        self.metrics = metrics
        self._loop = asyncio.get_running_loop()
        self._state = StreamState.OPEN
        self._listeners: Dict[str, List[Callable]] = defaultdict(list)
        self._channel = EventChannel()
        self._subscribed = False
        self._writes: asyncio.Queue = asyncio.Queue()
        self._output: asyncio.Queue = asyncio.Queue()
        self._output_done = False
        self._pending: List[Deferred] = []
        self._cork_count = 0
        self._corked: List[Tuple[bytes, Deferred]] = []
        self._buffered = 0
        self._need_drain = False
        self._pipes: List[Tuple[Any, bool]] = []
        self._opened_at = time.time()
        self.error: Optional[BaseException] = None

        if self.metrics:
            self.metrics.stream_opened(self.variant)
        self._pump = None
        try:
            self._engine = ZlibEngine(settings)
        except CompressionError as e:
            # Reported through the error event like any other library failure.
            self._engine = None
            self._loop.call_soon(self._fail, e)
        else:
            self._pump = self._loop.create_task(self._run())

    @property
    def state(self) -> str:
        return self._state.value

    @property
    def closed(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def needs_drain(self) -> bool:
        """True once buffered input reached the high-water mark and no drain followed yet."""
        return self._need_drain

    def _ensure_writable(self, action: str):
        if self._state in TERMINAL_STATES:
            raise StreamClosedError(f"cannot {action}: stream is {self._state.value}")
        if self._state is StreamState.ENDING:
            raise StreamClosedError(f"cannot {action} after end")

    def write(self, chunk, encoding: Optional[str] = None) -> Deferred:
        """Queue a chunk; the deferred resolves once the library has consumed it."""
        self._ensure_writable("write")
        data = to_bytes(chunk, encoding or self.encoding, field="chunk")
        deferred = self._track(Deferred(self._loop))
        self._buffered += len(data)
        if self._buffered >= self.high_water_mark:
            self._need_drain = True
        if self._cork_count:
            self._corked.append((data, deferred))
        else:
            self._writes.put_nowait(_Write(data, [deferred]))
        return deferred

    def end(self, chunk=None, encoding: Optional[str] = None) -> Deferred:
        """Write an optional last chunk and finish; resolves after the final flush."""
        self._ensure_writable("end")
        data = b"" if chunk is None else to_bytes(chunk, encoding or self.encoding, field="chunk")
        self._cork_count = 0
        self._flush_cork()
        deferred = self._track(Deferred(self._loop))
        self._buffered += len(data)
        self._state = StreamState.ENDING
        self._writes.put_nowait(_Write(data, [deferred], final=True))
        return deferred

    def cork(self):
        self._ensure_writable("cork")
        self._cork_count += 1
        self._state = StreamState.CORKED

    def uncork(self):
        self._ensure_writable("uncork")
        if self._cork_count:
            self._cork_count -= 1
        if not self._cork_count:
            self._flush_cork()
            self._state = StreamState.OPEN

    def destroy(self, error=None):
        """Terminate the stream now.

        Every unresolved deferred is rejected with ``error`` (or
        StreamDestroyedError when no reason is given); a given reason is also
        delivered through the ``error`` event.
        """
        if self._state in TERMINAL_STATES:
            raise StreamClosedError(f"cannot destroy: stream is {self._state.value}")
        if error is not None and not isinstance(error, BaseException):
            error = CompressionError(str(error))
        self._state = StreamState.DESTROYED
        self.error = error
        if self._pump is not None:
            self._pump.cancel()
        self._reject_pending(error if error is not None else StreamDestroyedError())
        self._output.put_nowait(_Failure(error) if error is not None else _EOF)
        if error is not None:
            self._emit("error", error)
        self._close()
        self._log("info", "Stream destroyed", reason=str(error) if error is not None else None)

    def events(self) -> EventChannel:
        """Hand out the event channel; a stream has exactly one subscriber."""
        if self._state in TERMINAL_STATES:
            raise StreamClosedError(f"cannot subscribe: stream is {self._state.value}")
        if self._subscribed:
            raise StreamStateError("events already subscribed for this stream")
        self._subscribed = True
        return self._channel

    def on(self, name: str, callback: Callable[[StreamEvent], Any]):
        if name not in EVENT_NAMES:
            raise ContractError(f"unknown event '{name}', expected one of {list(EVENT_NAMES)}")
        self._listeners[name].append(callback)
        return self

    def off(self, name: str, callback: Callable[[StreamEvent], Any]):
        if callback in self._listeners.get(name, []):
            self._listeners[name].remove(callback)
        return self

    def pipe(self, destination, end: bool = True):
        """Send all further output to ``destination`` instead of the read side.

        The destination needs a ``write`` method (plain or async); when
        ``end`` is true its ``end`` is called after the final flush. Output
        produced before the call stays readable through ``read()``.
        """
        if self._state in TERMINAL_STATES:
            raise StreamClosedError(f"cannot pipe: stream is {self._state.value}")
        if not callable(getattr(destination, "write", None)):
            raise InvalidTypeError("pipe destination must have a write method")
        self._pipes.append((destination, end))
        if isinstance(destination, DeflateStream):
            destination._emit("pipe", self)
        return destination

    def unpipe(self, destination=None):
        removed = [entry for entry in self._pipes if destination is None or entry[0] is destination]
        self._pipes = [entry for entry in self._pipes if entry not in removed]
        for target, _ in removed:
            if isinstance(target, DeflateStream):
                target._emit("unpipe", self)
        return self

    async def read(self) -> bytes:
        """Return the next output chunk, or b"" once the output is complete."""
        if self._output_done:
            return b""
        item = await self._output.get()
        if item is _EOF:
            self._output_done = True
            return b""
        if isinstance(item, _Failure):
            self._output_done = True
            raise item.error
        return item

    async def read_all(self) -> bytes:
        chunks = []
        while True:
            chunk = await self.read()
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    async def __aiter__(self):
        while True:
            chunk = await self.read()
            if not chunk:
                return
            yield chunk

    async def _run(self):
        """Pump queued writes through the engine, one at a time."""
        while True:
            request = await self._writes.get()
            started = time.time()
            try:
                if request.final:
                    output = await self._loop.run_in_executor(None, self._finish_with, request.data)
                else:
                    output = await self._loop.run_in_executor(None, self._engine.feed, request.data)
            except Exception as e:
                self._fail(translate_error(e))
                return

            self._buffered -= len(request.data)
            if self.metrics:
                self.metrics.record_bytes(self.variant, "stream", len(request.data), sum(len(p) for p in output))
                self.metrics.observe_duration(self.variant, "stream", time.time() - started)
            for piece in output:
                await self._push(piece)

            if request.final:
                await self._complete(request)
                return

            for deferred in request.deferreds:
                self._settle(deferred, "data")
            if self._need_drain and self._buffered < self.high_water_mark:
                self._need_drain = False
                self._emit("drain")

    def _finish_with(self, data: bytes) -> List[bytes]:
        return self._engine.feed(data) + self._engine.finish()

    async def _push(self, piece: bytes):
        if not self._pipes:
            self._output.put_nowait(piece)
            return
        for destination, _ in list(self._pipes):
            try:
                result = destination.write(piece)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._log("warn", "Pipe destination failed, unpiping", error=str(e))
                self.unpipe(destination)

    async def _complete(self, request: _Write):
        self._state = StreamState.ENDED
        for destination, end in list(self._pipes):
            if not end or not callable(getattr(destination, "end", None)):
                continue
            try:
                result = destination.end()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._log("warn", "Pipe destination failed to end", error=str(e))
        self._output.put_nowait(_EOF)
        self._emit("finish")
        for deferred in request.deferreds:
            self._settle(deferred, "finish")
        self._close()
        self._log("debug", "Stream finished", duration=round(time.time() - self._opened_at, 6))

    def _fail(self, error: BaseException):
        if self._state in TERMINAL_STATES:
            return
        self._state = StreamState.DESTROYED
        self.error = error
        self._reject_pending(error)
        self._output.put_nowait(_Failure(error))
        self._emit("error", error)
        if self.metrics:
            self.metrics.record_failure(self.variant, "stream")
        self._close()
        self._log("error", "Stream failed", error=str(error), code=getattr(error, "code_name", None))

    def _flush_cork(self):
        if not self._corked:
            return
        data = b"".join(chunk for chunk, _ in self._corked)
        deferreds = [deferred for _, deferred in self._corked]
        self._corked = []
        self._writes.put_nowait(_Write(data, deferreds))

    def _track(self, deferred: Deferred) -> Deferred:
        self._pending.append(deferred)
        return deferred

    def _settle(self, deferred: Deferred, signal: str, *payload):
        deferred.resolve(signal, *payload)
        if deferred in self._pending:
            self._pending.remove(deferred)

    def _reject_pending(self, error: BaseException):
        for deferred in self._pending:
            deferred.reject(error)
            # Mark as retrieved; callers that never await still see the error event.
            deferred.exception()
        self._pending = []
        self._corked = []

    def _emit(self, name: str, detail: Any = None):
        self._channel.publish(name, detail)
        event = StreamEvent(name, detail)
        for callback in list(self._listeners.get(name, [])):
            self._loop.call_soon(callback, event)

    def _close(self):
        self._channel.close()
        if self.metrics:
            self.metrics.stream_closed(self.variant)

    def _log(self, level: str, message: str, **kwargs):
        if self.logger:
            getattr(self.logger, level)(message, variant=self.variant, **kwargs)
