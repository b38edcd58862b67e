# src/objslots/core/emitter.py
from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from typing import Any, Iterator, List, Optional, Tuple

from objslots.core import log
from objslots.core.config import DispatchConfig, default_config
from objslots.core.errors import SignalError, SlotError, UnbindError
from objslots.core.metrics import Timer, inc_counter, set_gauge
from objslots.core.registry import Matcher, SlotRegistry
from objslots.core.rwlock import NullLock, RWLock
from objslots.core.signal import BoundSignal, Signal, SignalId
from objslots.core.slot import Slot, is_plain_function, make_slot, resolve_method, unwrap_bound

_init_lock = threading.Lock()
_worker_seq = itertools.count(1)


class SignalEmitter:
    """Mixin giving a publisher class signals, bind() and unbind().

    Dispatch mode is fixed when the class is defined, either from class
    keywords or from the loaded DispatchConfig::

        class Sensor(SignalEmitter, thread_safe=True, parallel=False):
            reading = Signal(float)

    - sequential (default): emit() runs every slot in the caller, in bind
      order; an exception from a slot propagates and skips the rest
    - parallel: emit() starts one daemon thread per slot and returns; worker
      exceptions are logged, never raised to the publisher
    - thread_safe: the registry sits behind a reader-writer lock; emit()
      holds shared mode, bind()/unbind() exclusive mode. Calling bind() or
      unbind() from inside a slot of the same emitter raises
      LockReentryError.

    Method slots keep their owner alive until unbound; nothing is unbound
    automatically.
    """

    _dispatch: Optional[DispatchConfig] = None
    _log = log.get("emitter")

    def __init_subclass__(cls, thread_safe: Optional[bool] = None, parallel: Optional[bool] = None, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        cfg = cls._dispatch or default_config()
        if thread_safe is not None:
            cfg = replace(cfg, thread_safe=bool(thread_safe))
        if parallel is not None:
            cfg = replace(cfg, parallel=bool(parallel))
        cls._dispatch = cfg
        cls._log = log.get(f"emitter.{cls.__qualname__}")

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._slots_init()

    # ---------------- state ----------------

    def _slots_init(self) -> None:
        cfg = self.dispatch_config()
        self._slots_registry = SlotRegistry()
        self._slots_lock = RWLock() if cfg.thread_safe else NullLock()

    def _slots_state(self) -> Tuple[SlotRegistry, Any]:
        # publishers whose __init__ skips super().__init__() get state lazily
        try:
            return self._slots_registry, self._slots_lock
        except AttributeError:
            with _init_lock:
                if "_slots_registry" not in self.__dict__:
                    self._slots_init()
            return self._slots_registry, self._slots_lock

    @classmethod
    def dispatch_config(cls) -> DispatchConfig:
        return cls._dispatch or default_config()

    def _resolve(self, signal: Any) -> Signal:
        if isinstance(signal, BoundSignal):
            if signal.emitter is not self:
                raise SignalError(f"{signal!r} belongs to another emitter")
            signal = signal.signal
        if not isinstance(signal, Signal):
            raise SignalError(f"{signal!r} is not a Signal")
        sid = signal.id
        if not isinstance(self, sid.owner):
            raise SignalError(f"{sid!r} is not declared on {type(self).__qualname__}")
        return signal

    # ---------------- bind / unbind ----------------

    def bind(self, signal: Any, target: Any, method: Any = None, *, key: Any = None) -> Slot:
        """Register a slot for ``signal`` and return it.

        - ``bind(sig, func)``: free function
        - ``bind(sig, obj, method)`` or ``bind(sig, obj.method)``: method of obj;
          ``method`` may be the function, a bound method or its name
        - ``bind(sig, callable_obj, key=ref)``: closure; ``ref`` (default: the
          callable itself) is what unbind() later matches. Callable objects,
          partials and functions that capture variables are closures even
          without ``key``; only functions that capture nothing become
          function slots

        Binding the same callable twice stores two independent slots.
        """
        sig = self._resolve(signal)
        slot = make_slot(target, method, key)
        sig.check_slot(slot)
        registry, lock = self._slots_state()
        with lock.write():
            registry.store(sig.id, slot)
            self._publish_bound(registry, (sig.id,))
        inc_counter("slots_bind_total", signal=repr(sig.id), kind=slot.kind.value)
        self._log.debug("bind %r -> %r", sig.id, slot)
        return slot

    def unbind(self, target: Any, method: Any = None) -> int:
        """Remove matching slots from every signal; returns how many.

        - ``unbind(func)``: slots calling that free function
        - ``unbind(obj, method)`` / ``unbind(obj.method)``: that method of obj
        - ``unbind(obj)``: every method slot owned by obj, and any closure
          bound with ``key=obj`` or bound as obj itself
        - ``unbind(slot)``: exactly the Slot returned by bind()

        Unbinding something that is not bound is a no-op.
        """
        if target is None:
            raise UnbindError("unbind() needs an owner, a callback or a slot")
        matchers = self._matchers(target, method)
        registry, lock = self._slots_state()
        with lock.write():
            touched = registry.signals()
            removed = sum(registry.remove(m) for m in matchers)
            if removed:
                self._publish_bound(registry, touched)
        if removed:
            inc_counter("slots_unbind_total", removed)
        self._log.debug("unbind %r%s removed=%d", target, f".{method}" if method is not None else "", removed)
        return removed

    @staticmethod
    def _matchers(target: Any, method: Any) -> List[Any]:
        if method is not None:
            try:
                func = resolve_method(target, method)
            except SlotError:
                return []  # a method that cannot exist cannot be bound either
            return [Matcher(owner=id(target), callback=id(func))]
        if isinstance(target, Slot):
            return [lambda s: s is target]
        bound = unwrap_bound(target)
        if bound is not None:
            owner, func = bound
            return [Matcher(owner=id(owner), callback=id(func))]
        if is_plain_function(target):
            return [Matcher(callback=id(target))]
        # an owner and a closure key look the same from here
        return [Matcher(owner=id(target)), Matcher(callback=id(target))]

    # ---------------- emit ----------------

    def emit(self, signal: Any, *args: Any) -> None:
        """Invoke every slot bound to ``signal`` with ``args``.

        Meant to be called by the publisher itself, usually through the
        signal attribute (``self.changed(value)``). Return values are
        discarded.
        """
        sig = self._resolve(signal)
        sig.check_args(args)
        registry, lock = self._slots_state()
        cfg = self.dispatch_config()
        label = repr(sig.id)
        inc_counter("slots_emit_total", signal=label)
        with lock.read(), Timer("slots_emit_ms", signal=label, parallel=cfg.parallel):
            for slot in self._walk(registry, sig.id):
                if cfg.parallel:
                    self._spawn(cfg, slot, args, label)
                    continue
                inc_counter("slots_invoke_total", signal=label)
                try:
                    slot.invoke(*args)
                except Exception:
                    inc_counter("slots_invoke_errors_total", signal=label)
                    raise

    @staticmethod
    def _walk(registry: SlotRegistry, sid: SignalId) -> Iterator[Slot]:
        """Yield slots by index, re-reading the registry between slots.

        Slots bound during the walk are reached when appended past the
        cursor. After a removal the cursor moves to the first bound slot
        not yet dispatched, so a slot still bound is never skipped and
        none runs twice.
        """
        dispatched: List[Slot] = []  # keeps ids in `seen` unique
        seen = set()
        i = 0
        while True:
            if dispatched and registry.at(sid, i - 1) is not dispatched[-1]:
                i = 0
            slot = registry.at(sid, i)
            while slot is not None and id(slot) in seen:
                i += 1
                slot = registry.at(sid, i)
            if slot is None:
                return
            yield slot
            dispatched.append(slot)
            seen.add(id(slot))
            i += 1

    @staticmethod
    def _publish_bound(registry: SlotRegistry, sids: Tuple[SignalId, ...]) -> None:
        for sid in sids:
            set_gauge("slots_bound", float(registry.count(sid)), signal=repr(sid))

    def _spawn(self, cfg: DispatchConfig, slot: Slot, args: Tuple[Any, ...], label: str) -> None:
        th = threading.Thread(
            target=self._run_worker,
            args=(slot, tuple(args), label),
            name=f"{cfg.worker_prefix}-{next(_worker_seq)}",
            daemon=cfg.daemon_workers,
        )
        inc_counter("slots_invoke_total", signal=label)
        th.start()

    def _run_worker(self, slot: Slot, args: Tuple[Any, ...], label: str) -> None:
        try:
            slot.invoke(*args)
        except Exception as e:
            inc_counter("slots_invoke_errors_total", signal=label)
            self._log.error("slot error signal=%s slot=%r err=%s", label, slot, e, exc_info=True)

    # ---------------- introspection / teardown ----------------

    def slot_count(self, signal: Any = None) -> int:
        registry, lock = self._slots_state()
        sid = self._resolve(signal).id if signal is not None else None
        with lock.read():
            return registry.count(sid)

    def bound_signals(self) -> Tuple[SignalId, ...]:
        registry, lock = self._slots_state()
        with lock.read():
            return registry.signals()

    def close(self) -> int:
        """Drop every slot; returns how many were bound."""
        registry, lock = self._slots_state()
        with lock.write():
            touched = registry.signals()
            n = registry.clear()
            self._publish_bound(registry, touched)
        if n:
            self._log.debug("close dropped %d slot(s)", n)
        return n

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
