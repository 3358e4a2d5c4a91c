"""Named constants for the compression settings."""

import sys
import zlib
from collections.abc import Mapping
from typing import Dict, Optional


VARIANTS = ("deflate", "deflate_raw", "gunzip", "gzip", "inflate", "inflate_raw", "unzip")
COMPRESSING_VARIANTS = ("deflate", "deflate_raw", "gzip")


class ConstantFamily(Mapping):
    """Read-only mapping of short names to library values.

    Values are reachable both as keys and as attributes, so
    ``constants.flush()["sync"]`` and ``constants.flush().sync`` agree.
    """

    def __init__(self, name: str, values: Dict[str, int]):
        self._name = name
        self._values = dict(values)

    @property
    def name(self) -> str:
        return self._name

    def __getitem__(self, key):
        return self._values[key]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __getattr__(self, key):
        try:
            return self.__dict__["_values"][key]
        except KeyError:
            raise AttributeError(f"{self.__dict__.get('_name', 'family')} has no constant '{key}'") from None

    def name_of(self, value) -> Optional[str]:
        """Reverse lookup: return the short name for a value."""
        for key, candidate in self._values.items():
            if candidate == value:
                return key
        return None

    def __repr__(self):
        return f"ConstantFamily({self._name!r}, {self._values!r})"


def _flush():
    return {
        "no": zlib.Z_NO_FLUSH,
        "partial": zlib.Z_PARTIAL_FLUSH,
        "sync": zlib.Z_SYNC_FLUSH,
        "full": zlib.Z_FULL_FLUSH,
        "finish": zlib.Z_FINISH,
        "block": zlib.Z_BLOCK,
        "trees": zlib.Z_TREES,
    }


def _codes():
    # zlib.h return codes; the Python module does not export them.
    return {
        "ok": 0,
        "stream_end": 1,
        "need_dict": 2,
        "errno": -1,
        "stream_error": -2,
        "data_error": -3,
        "mem_error": -4,
        "buf_error": -5,
        "version_error": -6,
    }


def _level():
    return {
        "no": zlib.Z_NO_COMPRESSION,
        "speed": zlib.Z_BEST_SPEED,
        "compression": zlib.Z_BEST_COMPRESSION,
        "default": zlib.Z_DEFAULT_COMPRESSION,
    }


def _strategy():
    return {
        "default": zlib.Z_DEFAULT_STRATEGY,
        "filtered": zlib.Z_FILTERED,
        "huffman_only": zlib.Z_HUFFMAN_ONLY,
        "rle": zlib.Z_RLE,
        "fixed": zlib.Z_FIXED,
    }


def _window_bits():
    return {"min": 8, "max": zlib.MAX_WBITS, "default": zlib.MAX_WBITS}


def _memory_level():
    return {"min": 1, "max": 9, "default": zlib.DEF_MEM_LEVEL}


def _chunk_size():
    return {"min": 64, "max": sys.maxsize, "default": zlib.DEF_BUF_SIZE}


_BUILDERS = {
    "flush": _flush,
    "codes": _codes,
    "level": _level,
    "strategy": _strategy,
    "window_bits": _window_bits,
    "memory_level": _memory_level,
    "chunk_size": _chunk_size,
}

_families: Dict[str, ConstantFamily] = {}


def family(name: str) -> ConstantFamily:
    """Return a constant family, building it on first access."""
    cached = _families.get(name)
    if cached is None:
        cached = ConstantFamily(name, _BUILDERS[name]())
        _families[name] = cached
    return cached


class Constants:
    """Catalog of every constant family the settings understand."""

    def flush(self) -> ConstantFamily:
        """Flush modes for the per-write and finish policies."""
        return family("flush")

    def codes(self) -> ConstantFamily:
        """Status codes the library may report."""
        return family("codes")

    def level(self) -> ConstantFamily:
        """Compression levels."""
        return family("level")

    def strategy(self) -> ConstantFamily:
        """Compression strategies."""
        return family("strategy")

    def window_bits(self) -> ConstantFamily:
        """Bounds and default for the window size exponent."""
        return family("window_bits")

    def memory_level(self) -> ConstantFamily:
        """Bounds and default for the compressor memory level."""
        return family("memory_level")

    def chunk_size(self) -> ConstantFamily:
        """Bounds and default for the internal chunk size."""
        return family("chunk_size")


constants = Constants()


def code_name(code: int) -> Optional[str]:
    """Return the catalog name of a library status code."""
    return family("codes").name_of(code)
