# src/objslots/core/errors.py
from __future__ import annotations


class SlotsError(Exception):
    """Base class for dispatcher errors. Exceptions raised by slots are never wrapped."""


class SlotError(SlotsError):
    """The bind target cannot be turned into a slot."""


class SignalError(SlotsError):
    """Unknown signal, or a signal declared on another publisher type."""


class SignalShapeError(SignalError, TypeError):
    """Callable or emit arguments do not fit the signal's argument list."""


class UnbindError(SlotsError, TypeError):
    """unbind() called without any owner or callback to match."""


class LockReentryError(SlotsError, RuntimeError):
    """A thread holding the shared lock asked for the exclusive lock."""


class ConfigError(SlotsError, ValueError):
    pass
