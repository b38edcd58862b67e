# src/objslots/core/signal.py
from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from objslots.core.errors import SignalError, SignalShapeError
from objslots.core.slot import Slot, SlotKind


@dataclass(frozen=True, slots=True)
class SignalId:
    """Registry key of one signal declaration: (declaring class, attribute)."""
    owner: type
    name: str

    def __repr__(self) -> str:
        return f"{self.owner.__qualname__}.{self.name}"


class Signal:
    """Signal declared in a publisher class body.

    Two spellings::

        class Door(SignalEmitter):
            opened = Signal(str)

            @signal
            def closed(self, who: str, force: bool): ...

    ``Door.opened`` is the identity handle passed to bind()/emit();
    ``door.opened("bob")`` emits on that instance. The body of a decorated
    method is never run, only its parameter list is kept.
    """

    def __init__(self, *arg_types: Any, name: Optional[str] = None, doc: Optional[str] = None):
        self.arg_types: Tuple[Any, ...] = arg_types
        self.arity: Optional[int] = len(arg_types)
        self.parameters: Tuple[str, ...] = tuple(f"arg{i}" for i in range(len(arg_types)))
        self.name = name
        self.owner: Optional[type] = None
        self._id: Optional[SignalId] = None
        self.__doc__ = doc

    @classmethod
    def from_function(cls, fn: Callable[..., Any]) -> "Signal":
        params = list(inspect.signature(fn).parameters.values())[1:]  # drop self
        sig = cls(name=fn.__name__, doc=fn.__doc__)
        if any(p.kind is p.VAR_POSITIONAL for p in params):
            sig.arity = None
        else:
            params = [p for p in params if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)]
            sig.arity = len(params)
        sig.parameters = tuple(p.name for p in params if p.kind is not p.VAR_POSITIONAL)
        sig.arg_types = tuple(p.annotation for p in params if p.kind is not p.VAR_POSITIONAL)
        return sig

    def __set_name__(self, owner: type, name: str) -> None:
        if self.name is not None and self.name != name:
            raise SignalError(f"signal {self.name!r} assigned to attribute {name!r}")
        self.name = name
        self.owner = owner
        self._id = SignalId(owner, name)

    @property
    def id(self) -> SignalId:
        if self._id is None:
            raise SignalError("signal is not declared in a class body")
        return self._id

    def __get__(self, instance: Any, owner: type) -> Any:
        if instance is None:
            return self
        return BoundSignal(self, instance)

    def check_slot(self, slot: Slot) -> None:
        """Reject a slot whose callable cannot take this signal's arguments."""
        if self.arity is None:
            return
        try:
            sig = inspect.signature(slot.target)
        except (TypeError, ValueError):
            return  # some builtins have no introspectable signature
        args = [None] * self.arity
        if slot.kind is SlotKind.METHOD:
            args.insert(0, slot.obj)
        try:
            sig.bind(*args)
        except TypeError as e:
            raise SignalShapeError(f"{slot.name} cannot receive {self!r}: {e}") from None

    def check_args(self, args: Tuple[Any, ...]) -> None:
        if self.arity is not None and len(args) != self.arity:
            raise SignalShapeError(f"{self!r} takes {self.arity} argument(s), emitted with {len(args)}")

    def __repr__(self) -> str:
        if self._id is None:
            return "<Signal (undeclared)>"
        return f"<Signal {self._id!r}({', '.join(self.parameters)})>"


class BoundSignal:
    """Signal seen through a publisher instance; calling it emits."""
    __slots__ = ("signal", "emitter")

    def __init__(self, signal: Signal, emitter: Any):
        self.signal = signal
        self.emitter = emitter

    def __call__(self, *args: Any) -> None:
        self.emitter.emit(self.signal, *args)

    def bind(self, target: Any, method: Any = None, *, key: Any = None) -> Slot:
        return self.emitter.bind(self.signal, target, method, key=key)

    def unbind(self, target: Any, method: Any = None) -> int:
        """Same as emitter.unbind(): matching slots go from every signal."""
        return self.emitter.unbind(target, method)

    def __repr__(self) -> str:
        return f"<BoundSignal {self.signal.id!r} of {type(self.emitter).__name__}@{id(self.emitter):#x}>"


def signal(fn: Callable[..., Any]) -> Signal:
    """Declare a signal from a method signature."""
    return Signal.from_function(fn)
