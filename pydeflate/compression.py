"""Compression facade: one-shot transforms and a managed stream."""

import asyncio
import codecs
import time
from typing import Optional

from .engine import to_bytes, transform, translate_error
from .errors import CompressionError, SettingsError, StreamNotOpenError, StreamStateError
from .events import EventChannel
from .logger import Logger
from .metrics import CompressionMetrics
from .promise import Deferred
from .settings import Settings
from .stream import DeflateStream


DEFAULT_ENCODING = "utf-8"


class Compression:
    """Entry point bound to one compression variant.

    The same settings drive either independent one-shot ``compress`` calls
    or a single stream materialized by ``open``. Contract violations raise
    immediately; library failures only reject the returned deferred values
    or arrive as the stream's ``error`` event.
    """

    def __init__(self, variant: Optional[str] = None, config=None, logger: Optional[Logger] = None,
                 metrics: Optional[CompressionMetrics] = None, encoding: Optional[str] = None):
        self.config = config
        self._settings = Settings.from_config(config, variant=variant)

        if encoding is None and config is not None:
            encoding = config.get("compression", "encoding")
        self.encoding = encoding or DEFAULT_ENCODING
        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise SettingsError(f"unknown text encoding '{self.encoding}'") from None

        if logger is None:
            level = config.get("logging", "level", "INFO") if config is not None else "INFO"
            logger = Logger("compression", level=level)
        self.logger = logger
        if metrics is None:
            metrics = CompressionMetrics.from_config(config) if config is not None else CompressionMetrics()
        self.metrics = metrics
        self._stream: Optional[DeflateStream] = None

    def settings(self) -> Settings:
        return self._settings

    @property
    def state(self) -> str:
        if self._stream is None:
            return "unopened"
        return self._stream.state

    def compress(self, data, overrides=None, encoding: Optional[str] = None) -> Deferred:
        """Transform a whole buffer with the configured variant.

        Returns at once with a deferred value that resolves with the
        ``"data"`` signal and the output bytes, or rejects with the library's
        CompressionError. Must be called from a running event loop.
        """
        payload = to_bytes(data, encoding or self.encoding)
        settings = self._settings.merged(overrides)
        variant = settings.variant()
        loop = asyncio.get_running_loop()
        deferred = Deferred(loop)
        started = time.time()

        self.metrics.record_operation(variant, "oneshot")
        self.logger.debug("Compression scheduled", variant=variant, size=len(payload))

        def on_done(future):
            if future.cancelled():
                deferred.resolve("error", CompressionError("compression was cancelled"))
                deferred.exception()
                return
            error = future.exception()
            if error is not None:
                if not isinstance(error, CompressionError):
                    error = translate_error(error)
                self.metrics.record_failure(variant, "oneshot")
                self.logger.error("Compression failed", variant=variant, error=str(error), code=error.code_name)
                deferred.resolve("error", error)
                # Mark as retrieved; an unawaited rejection is already logged above.
                deferred.exception()
                return
            result = future.result()
            self.metrics.record_bytes(variant, "oneshot", len(payload), len(result))
            self.metrics.observe_duration(variant, "oneshot", time.time() - started)
            deferred.resolve("data", result)

        loop.run_in_executor(None, transform, settings, payload).add_done_callback(on_done)
        return deferred

    def open(self, overrides=None) -> DeflateStream:
        """Materialize the stream; a facade opens at most one in its lifetime."""
        if self._stream is not None:
            raise StreamStateError("stream already opened; use a new Compression for another stream")
        settings = self._settings.merged(overrides)
        self._stream = DeflateStream(settings, encoding=self.encoding, logger=self.logger, metrics=self.metrics)
        self.logger.info("Stream opened", variant=settings.variant(), chunk_size=settings.chunk_size())
        return self._stream

    def _require_stream(self) -> DeflateStream:
        if self._stream is None:
            raise StreamNotOpenError()
        return self._stream

    def events(self) -> EventChannel:
        return self._require_stream().events()

    def write(self, chunk, encoding: Optional[str] = None) -> Deferred:
        return self._require_stream().write(chunk, encoding)

    def end(self, chunk=None, encoding: Optional[str] = None) -> Deferred:
        return self._require_stream().end(chunk, encoding)

    def cork(self):
        self._require_stream().cork()

    def uncork(self):
        self._require_stream().uncork()

    def destroy(self, error=None):
        self._require_stream().destroy(error)

    def stream(self) -> Optional[DeflateStream]:
        """The live stream, or None before open and after it closed."""
        if self._stream is None or self._stream.closed:
            return None
        return self._stream
