# src/objslots/core/slot.py
"""Slots: one registered callable plus the identities used to unbind it.

A slot is a tagged variant. The tag selects the invoke routine from a table
instead of dispatching through subclasses:

============  =====================  ============================  ====================
kind          owner identity         callback identity             invoke
============  =====================  ============================  ====================
METHOD        id(owner object)       id(underlying function)       func(owner, *args)
FUNCTION      None                   id(function)                  func(*args)
CLOSURE       id(the slot itself)    id(key), key defaults to fn   fn(*args)
============  =====================  ============================  ====================

Identities are plain ints. Every slot holds strong references to the
objects its identities are taken from, so a token stays unique for as long
as the slot is registered.
"""
from __future__ import annotations

import enum
import inspect
import types
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from objslots.core.errors import SlotError


class SlotKind(enum.Enum):
    METHOD = "method"
    FUNCTION = "function"
    CLOSURE = "closure"


def _invoke_method(slot: "Slot", args: Tuple[Any, ...]) -> Any:
    return slot.target(slot.obj, *args)


def _invoke_plain(slot: "Slot", args: Tuple[Any, ...]) -> Any:
    return slot.target(*args)


_INVOKE: Dict[SlotKind, Callable[["Slot", Tuple[Any, ...]], Any]] = {
    SlotKind.METHOD: _invoke_method,
    SlotKind.FUNCTION: _invoke_plain,
    SlotKind.CLOSURE: _invoke_plain,
}


@dataclass(frozen=True, eq=False, slots=True)
class Slot:
    kind: SlotKind
    target: Callable[..., Any]
    obj: Any = None        # METHOD: the owner
    key: Any = None        # CLOSURE: the identity object

    def invoke(self, *args: Any) -> Any:
        """Call the wrapped callable; whatever it raises propagates."""
        return _INVOKE[self.kind](self, args)

    __call__ = invoke

    def owner_identity(self) -> Optional[int]:
        if self.kind is SlotKind.METHOD:
            return id(self.obj)
        if self.kind is SlotKind.CLOSURE:
            return id(self)
        return None

    def callback_identity(self) -> int:
        if self.kind is SlotKind.CLOSURE:
            return id(self.key)
        return id(self.target)

    @property
    def name(self) -> str:
        return getattr(self.target, "__qualname__", None) or getattr(self.target, "__name__", None) or repr(self.target)

    def __repr__(self) -> str:
        if self.kind is SlotKind.METHOD:
            return f"<Slot method {type(self.obj).__name__}@{id(self.obj):#x}.{self.name}>"
        return f"<Slot {self.kind.value} {self.name}>"


def unwrap_bound(fn: Any) -> Optional[Tuple[Any, Callable[..., Any]]]:
    """Split a bound method into (owner, function), or None.

    ``obj.method`` builds a fresh bound object on every access, so bound
    methods are never usable as identities themselves.
    """
    if inspect.ismethod(fn):
        if isinstance(fn.__self__, type):
            return None  # classmethod: the class is not an owner instance
        return fn.__self__, fn.__func__
    if isinstance(fn, types.BuiltinMethodType):
        owner = getattr(fn, "__self__", None)
        if owner is None or isinstance(owner, (types.ModuleType, type)):
            return None
        unbound = getattr(type(owner), fn.__name__, None)
        if unbound is None:
            return None
        return owner, unbound
    return None


def resolve_method(obj: Any, method: Any) -> Callable[..., Any]:
    """Turn a method given as function, bound method or name into the
    function stored in a METHOD slot."""
    if isinstance(method, str):
        attr = inspect.getattr_static(type(obj), method, None)
        if attr is None:
            raise SlotError(f"{type(obj).__name__} has no method {method!r}")
        if isinstance(attr, (staticmethod, classmethod)) or not callable(attr):
            raise SlotError(f"{type(obj).__name__}.{method} is not an instance method")
        return attr
    bound = unwrap_bound(method)
    if bound is not None:
        owner, func = bound
        if owner is not obj:
            raise SlotError(f"{method!r} is bound to another object")
        return func
    if not callable(method):
        raise SlotError(f"method {method!r} is not callable")
    return method


def method_slot(obj: Any, method: Any) -> Slot:
    if obj is None:
        raise SlotError("a method slot needs an owner object")
    return Slot(SlotKind.METHOD, resolve_method(obj, method), obj=obj)


def function_slot(fn: Callable[..., Any]) -> Slot:
    if not callable(fn):
        raise SlotError(f"{fn!r} is not callable")
    return Slot(SlotKind.FUNCTION, fn)


def closure_slot(fn: Callable[..., Any], key: Any = None) -> Slot:
    if not callable(fn):
        raise SlotError(f"{fn!r} is not callable")
    return Slot(SlotKind.CLOSURE, fn, key=fn if key is None else key)


def is_plain_function(fn: Any) -> bool:
    return isinstance(fn, (types.FunctionType, types.BuiltinFunctionType)) and unwrap_bound(fn) is None


def make_slot(target: Any, method: Any = None, key: Any = None) -> Slot:
    """Choose the slot variant from the shape of the bind arguments."""
    if method is not None:
        if key is not None:
            raise SlotError("key= only applies to closures")
        return method_slot(target, method)
    if key is not None:
        return closure_slot(target, key)
    bound = unwrap_bound(target)
    if bound is not None:
        return method_slot(*bound)
    if is_plain_function(target) and not getattr(target, "__closure__", None):
        return function_slot(target)
    if callable(target):
        return closure_slot(target)
    raise SlotError(f"cannot bind {target!r}: not callable")
