"""Typed per-call overrides for the compression settings."""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, ValidationError

from .errors import InvalidTypeError, SettingsError


Number = Union[StrictInt, StrictFloat]


class CompressionOptions(BaseModel):
    """Partial settings; fields left as None fall back to the base settings."""

    model_config = ConfigDict(extra="forbid")

    flush: Optional[Union[StrictInt, StrictFloat, StrictStr]] = None
    finish: Optional[Union[StrictInt, StrictFloat, StrictStr]] = None
    chunk_size: Optional[Number] = None
    level: Optional[Number] = None
    memory_level: Optional[Number] = None
    strategy: Optional[Union[StrictInt, StrictFloat, StrictStr]] = None
    window_bits: Optional[Number] = None
    variant: Optional[StrictStr] = None


def coerce_options(overrides=None) -> CompressionOptions:
    """Turn None, a dict or a CompressionOptions into a CompressionOptions."""
    if overrides is None:
        return CompressionOptions()
    if isinstance(overrides, CompressionOptions):
        return overrides
    if not isinstance(overrides, dict):
        raise InvalidTypeError(f"overrides must be a dict or CompressionOptions, got {type(overrides).__name__}")
    try:
        return CompressionOptions.model_validate(overrides)
    except ValidationError as e:
        raise SettingsError(f"invalid overrides: {e}") from e
