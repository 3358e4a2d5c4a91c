"""Typed errors for pydeflate.

Policy:
- Contract violations (caller misuse) extend ``ContractError`` and are raised
  synchronously, before any work is scheduled.
- Failures reported by the compression library extend ``CompressionError``
  and are only delivered through deferred values and the stream ``error``
  event.
"""

from typing import Optional

from .constants import code_name


class PyDeflateError(Exception):
    """Base error for pydeflate."""


class ContractError(PyDeflateError):
    """The caller used the API incorrectly."""


class InvalidTypeError(ContractError, TypeError):
    pass


class SettingsError(ContractError, ValueError):
    pass


class UnknownVariantError(ContractError, ValueError):
    def __init__(self, variant):
        super().__init__(f"unrecognized variant: {variant!r}")
        self.variant = variant


class StreamNotOpenError(ContractError, RuntimeError):
    def __init__(self, message: str = "stream not open yet"):
        super().__init__(message)


class StreamStateError(ContractError, RuntimeError):
    pass


class StreamClosedError(StreamStateError):
    pass


class CompressionError(PyDeflateError):
    """The compression library rejected the input or the parameters."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.code_name = code_name(code) if code is not None else None


class StreamDestroyedError(CompressionError):
    def __init__(self, message: str = "stream was destroyed"):
        super().__init__(message)
