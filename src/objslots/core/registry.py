# src/objslots/core/registry.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional, Tuple

from objslots.core.slot import Slot


@dataclass(frozen=True, slots=True)
class Matcher:
    """Unbind predicate.

    owner only    -> slot.owner_identity() == owner
    callback only -> slot.callback_identity() == callback
    both          -> both must match
    neither       -> matches nothing
    """
    owner: Optional[int] = None
    callback: Optional[int] = None

    def __call__(self, slot: Slot) -> bool:
        if self.owner is None and self.callback is None:
            return False
        if self.callback is not None and slot.callback_identity() != self.callback:
            return False
        if self.owner is not None and slot.owner_identity() != self.owner:
            return False
        return True


class SlotRegistry:
    """Signal identity -> slots in bind order.

    Not synchronised; the owning emitter holds its lock around every call.
    A signal whose last slot is removed disappears from the registry.
    """

    def __init__(self) -> None:
        self._signals: Dict[Hashable, List[Slot]] = {}

    def store(self, signal_id: Hashable, slot: Slot) -> None:
        self._signals.setdefault(signal_id, []).append(slot)

    def at(self, signal_id: Hashable, index: int) -> Optional[Slot]:
        slots = self._signals.get(signal_id)
        if slots is None or index < 0 or index >= len(slots):
            return None
        return slots[index]

    def remove(self, matcher: Callable[[Slot], bool]) -> int:
        removed = 0
        for signal_id in list(self._signals):
            slots = self._signals[signal_id]
            keep = [s for s in slots if not matcher(s)]
            removed += len(slots) - len(keep)
            if not keep:
                del self._signals[signal_id]
            elif len(keep) != len(slots):
                # in-place so an emit walking this list by index sees the removal
                slots[:] = keep
        return removed

    def clear(self) -> int:
        n = self.count()
        self._signals.clear()
        return n

    def count(self, signal_id: Optional[Hashable] = None) -> int:
        if signal_id is not None:
            return len(self._signals.get(signal_id, ()))
        return sum(len(v) for v in self._signals.values())

    def signals(self) -> Tuple[Hashable, ...]:
        return tuple(self._signals)

    def slots(self, signal_id: Hashable) -> Tuple[Slot, ...]:
        return tuple(self._signals.get(signal_id, ()))

    def __contains__(self, signal_id: Hashable) -> bool:
        return signal_id in self._signals

    def __len__(self) -> int:
        return len(self._signals)
