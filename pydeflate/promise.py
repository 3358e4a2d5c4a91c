"""Single-resolution deferred values driven by named signals."""

import asyncio
from typing import Any, Optional

from .errors import CompressionError


class Deferred:
    """Awaitable result resolved through ``resolve(signal, *payload)``.

    Resolving with ``"error"`` rejects the value with the given detail (an
    exception, or a message wrapped in CompressionError). Any other signal
    resolves it: one payload item becomes the result, several become a
    tuple, none becomes None. Only the first resolution counts.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self._future = self._loop.create_future()
        self.signal: Optional[str] = None

    def resolve(self, signal: str, *payload) -> bool:
        if self._future.done():
            return False
        self.signal = signal
        if signal == "error":
            detail = payload[0] if payload else None
            if not isinstance(detail, BaseException):
                detail = CompressionError(str(detail) if detail is not None else "unknown error")
            self._future.set_exception(detail)
        elif len(payload) == 1:
            self._future.set_result(payload[0])
        else:
            self._future.set_result(payload or None)
        return True

    def reject(self, error) -> bool:
        return self.resolve("error", error)

    def done(self) -> bool:
        return self._future.done()

    def result(self) -> Any:
        return self._future.result()

    def exception(self) -> Optional[BaseException]:
        return self._future.exception()

    def add_done_callback(self, callback):
        self._future.add_done_callback(lambda _: callback(self))

    def __await__(self):
        return self._future.__await__()

    def __repr__(self):
        state = self.signal if self.done() else "pending"
        return f"<Deferred {state}>"
