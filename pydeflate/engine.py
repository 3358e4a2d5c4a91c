"""Variant resolution and the adapter around the zlib library."""

import re
import zlib
from typing import List

from .constants import COMPRESSING_VARIANTS, VARIANTS, constants
from .errors import CompressionError, InvalidTypeError, UnknownVariantError


GZIP_MAGIC = b"\x1f\x8b"
MULTI_MEMBER_VARIANTS = ("gunzip", "unzip")

_ERROR_CODE = re.compile(r"Error (-?\d+)")


def normalize_variant(variant) -> str:
    """Return the canonical lower-case variant name or raise."""
    if not isinstance(variant, str):
        raise InvalidTypeError(f"variant must be a string, got {type(variant).__name__}")
    name = variant.lower()
    if name not in VARIANTS:
        raise UnknownVariantError(variant)
    return name


def is_compressing(variant) -> bool:
    return normalize_variant(variant) in COMPRESSING_VARIANTS


def wbits_for(variant, window_bits: int) -> int:
    """Map a window size onto the wbits value zlib expects for a variant.

    A window of 8 is promoted to 9 for every variant. zlib refuses 8 for
    the raw and gzip containers, and its compressor writes 9 into the zlib
    header, which an inflater opened with 8 would reject.
    """
    variant = normalize_variant(variant)
    window_bits = max(window_bits, 9)
    if variant in ("deflate", "inflate"):
        return window_bits
    if variant in ("deflate_raw", "inflate_raw"):
        return -window_bits
    if variant in ("gzip", "gunzip"):
        return 16 + window_bits
    return 32 + window_bits


def to_bytes(data, encoding: str = "utf-8", field: str = "data") -> bytes:
    """Encode text, copy bytes-like input, reject everything else."""
    if isinstance(data, str):
        return data.encode(encoding)
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise InvalidTypeError(f"{field} must be str or bytes, got {type(data).__name__}")


def translate_error(error: Exception) -> CompressionError:
    """Convert a zlib failure into a CompressionError carrying its status code."""
    if isinstance(error, CompressionError):
        return error
    if isinstance(error, MemoryError):
        return CompressionError("out of memory", code=constants.codes().mem_error)
    if isinstance(error, (ValueError, OverflowError)):
        return CompressionError(str(error), code=constants.codes().stream_error)
    match = _ERROR_CODE.search(str(error))
    code = int(match.group(1)) if match else None
    return CompressionError(str(error), code=code)


class ZlibEngine:
    """Drives one zlib compress or decompress object for a single variant.

    ``feed`` and ``finish`` return output split into ``chunk_size`` pieces.
    Decompressors continue across concatenated gzip members for gunzip and
    unzip, and ignore anything after the end of the compressed data.
    """

    def __init__(self, settings):
        self.variant = normalize_variant(settings.variant())
        self.compressing = self.variant in COMPRESSING_VARIANTS
        self.flush_mode = settings.flush()
        self.finish_mode = settings.finish()
        self.chunk_size = settings.chunk_size()
        self._level = settings.level()
        self._memory_level = settings.memory_level()
        self._strategy = settings.strategy()
        self._wbits = wbits_for(self.variant, settings.window_bits())
        self._tail = b""
        self.finished = False
        self._obj = self._create()

    def _create(self):
        try:
            if self.compressing:
                return zlib.compressobj(
                    self._level, zlib.DEFLATED, self._wbits, self._memory_level, self._strategy
                )
            return zlib.decompressobj(self._wbits)
        except (zlib.error, ValueError, OverflowError, MemoryError) as e:
            raise translate_error(e) from e

    def feed(self, data: bytes) -> List[bytes]:
        try:
            if self.compressing:
                return self._deflate(data, final=False)
            return self._slice(self._inflate(data))
        except (zlib.error, ValueError, OverflowError, MemoryError) as e:
            raise translate_error(e) from e

    def finish(self) -> List[bytes]:
        try:
            if self.compressing:
                out = self._deflate(b"", final=True)
            else:
                pieces = self._inflate(b"")
                if not self._obj.eof:
                    pieces.append(self._obj.flush())
                if self.finish_mode == zlib.Z_FINISH and not self._obj.eof:
                    raise CompressionError("unexpected end of file", code=constants.codes().buf_error)
                out = self._slice(pieces)
        except (zlib.error, ValueError, OverflowError, MemoryError) as e:
            raise translate_error(e) from e
        self.finished = True
        return out

    def _deflate(self, data: bytes, final: bool) -> List[bytes]:
        pieces = []
        if data:
            pieces.append(self._obj.compress(data))
        if final:
            pieces.append(self._obj.flush(self.finish_mode))
        elif self.flush_mode != zlib.Z_NO_FLUSH:
            pieces.append(self._obj.flush(self.flush_mode))
        return self._slice(pieces)

    def _inflate(self, data: bytes) -> List[bytes]:
        pieces = []
        while True:
            if self._obj.eof:
                data = self._tail + data
                self._tail = b""
                if not self._next_member(data):
                    # A lone first magic byte may be the start of another member.
                    if self.variant in MULTI_MEMBER_VARIANTS and data == GZIP_MAGIC[:1]:
                        self._tail = data
                    return pieces
            piece = self._obj.decompress(data, self.chunk_size)
            if piece:
                pieces.append(piece)
            data = self._obj.unconsumed_tail
            if self._obj.eof:
                self._tail = self._obj.unused_data
                data = b""
                continue
            if not data and len(piece) < self.chunk_size:
                return pieces

    def _next_member(self, data: bytes) -> bool:
        if self.variant not in MULTI_MEMBER_VARIANTS or data[:2] != GZIP_MAGIC:
            return False
        self._obj = self._create()
        return True

    def _slice(self, pieces: List[bytes]) -> List[bytes]:
        data = b"".join(pieces)
        size = self.chunk_size
        return [data[i:i + size] for i in range(0, len(data), size)]


def transform(settings, data: bytes) -> bytes:
    """Run a whole buffer through a fresh engine."""
    engine = ZlibEngine(settings)
    return b"".join(engine.feed(data) + engine.finish())
