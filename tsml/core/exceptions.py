# tsml/core/exceptions.py
from __future__ import annotations


class CoreError(Exception):
    """Base error for all core-domain exceptions."""


# ---- Contract violations ----
class InvalidArgument(CoreError, ValueError):
    """Raised when an operation receives an argument it cannot accept."""


class IllegalState(CoreError, RuntimeError):
    """Raised when an operation is used before the object is set up for it."""


# ---- Lookup errors (also behave like the builtin lookup errors) ----
class NotFound(CoreError, KeyError):
    """Raised when a requested key is not present."""


class IndexOutOfRange(CoreError, IndexError):
    """Raised when a positional index is outside the container bounds."""


# ---- Domain-specific validation errors ----
class InvalidTimeSeries(InvalidArgument):
    """Raised when a TimeSeries receives invalid values or time stamps."""


class InvalidInstance(InvalidArgument):
    """Raised when an Instance receives invalid dimensions or label state."""


class InvalidDataset(InvalidArgument):
    """Raised when a Dataset receives an incompatible instance or vocabulary."""


class InvalidLabel(InvalidArgument):
    """Raised when a label vocabulary would contain duplicates or bad labels."""


class LabelNotFound(NotFound):
    """Raised when a label is absent from a vocabulary."""
