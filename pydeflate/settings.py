"""Mutable compression settings with combined getter/setter accessors."""

from typing import Any, Dict, Optional

from .constants import constants
from .errors import InvalidTypeError, SettingsError
from .engine import normalize_variant
from .options import coerce_options


FIELDS = ("flush", "finish", "chunk_size", "level", "memory_level", "strategy", "window_bits", "variant")

# Format bits zlib adds on top of the window size: gzip container and header auto-detection.
_FORMAT_BITS = (0, 16, 32)


def _as_int(field: str, value) -> int:
    """Accept ints and integral floats; never strings or bools."""
    if isinstance(value, bool):
        raise InvalidTypeError(f"{field} must be a number, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise SettingsError(f"{field} must be a whole number, got {value}")
        return int(value)
    raise InvalidTypeError(f"{field} must be a number, got {type(value).__name__}")


def _as_member(field: str, value, family) -> int:
    """Accept a value from a constant family, or its short name."""
    if isinstance(value, str):
        if value not in family:
            raise SettingsError(f"unknown {field} name '{value}', expected one of {sorted(family)}")
        return family[value]
    number = _as_int(field, value)
    if number not in family.values():
        raise SettingsError(f"invalid {field} value {number}")
    return number


def _in_range(field: str, value: int, bounds) -> int:
    if value < bounds["min"] or value > bounds["max"]:
        raise SettingsError(f"{field} must be between {bounds['min']} and {bounds['max']}, got {value}")
    return value


class Settings:
    """The tunable options of one compression facade.

    Every accessor works both ways: ``settings.level()`` reads the current
    value and ``settings.level(9)`` validates, stores and returns ``9``.
    Passing ``None`` is the same as passing nothing.
    """

    def __init__(self, variant: str = "deflate"):
        self._flush = constants.flush().no
        self._finish = constants.flush().finish
        self._chunk_size = constants.chunk_size().default
        self._level = constants.level().default
        self._memory_level = constants.memory_level().default
        self._strategy = constants.strategy().default
        self._window_bits = constants.window_bits().default
        self._variant = normalize_variant(variant)

    @classmethod
    def from_config(cls, config=None, variant: Optional[str] = None) -> "Settings":
        """Seed settings from a Config's compression section.

        Keys the config does not carry keep their catalog defaults. An
        explicit ``variant`` always wins over the configured one.
        """
        settings = cls()
        if config is not None:
            for field in FIELDS:
                if field == "variant" and variant is not None:
                    continue
                value = config.get("compression", field)
                if value is not None:
                    getattr(settings, field)(value)
        if variant is not None:
            settings.variant(variant)
        return settings

    def flush(self, flush=None) -> int:
        if flush is not None:
            self._flush = _as_member("flush", flush, constants.flush())
        return self._flush

    def finish(self, finish=None) -> int:
        if finish is not None:
            self._finish = _as_member("finish", finish, constants.flush())
        return self._finish

    def chunk_size(self, chunk_size=None) -> int:
        if chunk_size is not None:
            self._chunk_size = _in_range("chunk_size", _as_int("chunk_size", chunk_size), constants.chunk_size())
        return self._chunk_size

    def level(self, level=None) -> int:
        if level is not None:
            bounds = {"min": constants.level().default, "max": constants.level().compression}
            self._level = _in_range("level", _as_int("level", level), bounds)
        return self._level

    def memory_level(self, memory_level=None) -> int:
        if memory_level is not None:
            self._memory_level = _in_range(
                "memory_level", _as_int("memory_level", memory_level), constants.memory_level()
            )
        return self._memory_level

    def strategy(self, strategy=None) -> int:
        if strategy is not None:
            self._strategy = _as_member("strategy", strategy, constants.strategy())
        return self._strategy

    def window_bits(self, window_bits=None) -> int:
        """Window size exponent.

        Values carrying the gzip (+16) or auto-detect (+32) format bit are
        accepted; the bit is stripped because the variant picks the container.
        """
        if window_bits is not None:
            value = _as_int("window_bits", window_bits)
            base = value & 0x0F
            if value - base not in _FORMAT_BITS:
                raise SettingsError(f"invalid window_bits value {value}")
            self._window_bits = _in_range("window_bits", base, constants.window_bits())
        return self._window_bits

    def variant(self, variant=None) -> str:
        if variant is not None:
            self._variant = normalize_variant(variant)
        return self._variant

    def copy(self) -> "Settings":
        clone = Settings.__new__(Settings)
        clone.__dict__.update(self.__dict__)
        return clone

    def merged(self, overrides=None) -> "Settings":
        """Return a copy with the overrides applied; this instance is untouched."""
        options = coerce_options(overrides)
        merged = self.copy()
        for field, value in options.model_dump(exclude_none=True).items():
            getattr(merged, field)(value)
        return merged

    def as_dict(self) -> Dict[str, Any]:
        return {field: getattr(self, field)() for field in FIELDS}

    def __repr__(self):
        fields = ", ".join(f"{key}={value!r}" for key, value in self.as_dict().items())
        return f"Settings({fields})"
