import functools

import pytest

from objslots.core.errors import SlotError
from objslots.core.slot import SlotKind, closure_slot, function_slot, make_slot, method_slot


def shout(s):
    return s.upper()


class Recv:
    def __init__(self):
        self.got = []

    def on(self, s):
        self.got.append(s)
        return len(self.got)

    @staticmethod
    def helper(s):
        return s


def test_function_slot_identity_and_invoke():
    s = function_slot(shout)
    assert s.kind is SlotKind.FUNCTION
    assert s.owner_identity() is None
    assert s.callback_identity() == id(shout)
    assert s.invoke("hi") == "HI"


def test_method_slot_forms_share_identity():
    r = Recv()
    a = method_slot(r, Recv.on)
    b = method_slot(r, r.on)
    c = method_slot(r, "on")
    for s in (a, b, c):
        assert s.kind is SlotKind.METHOD
        assert s.owner_identity() == id(r)
        assert s.callback_identity() == id(Recv.on)
    assert a.invoke("x") == 1
    assert c("y") == 2
    assert r.got == ["x", "y"]


def test_method_slot_rejects_bad_input():
    r = Recv()
    with pytest.raises(SlotError):
        method_slot(None, Recv.on)
    with pytest.raises(SlotError):
        method_slot(r, "missing")
    with pytest.raises(SlotError):
        method_slot(r, "helper")
    with pytest.raises(SlotError):
        method_slot(r, Recv().on)  # bound to another object


def test_closure_slot_owner_is_the_slot_itself():
    seen = []
    fn = lambda s: seen.append(s)  # noqa: E731
    token = object()
    s = closure_slot(fn, key=token)
    assert s.kind is SlotKind.CLOSURE
    assert s.owner_identity() == id(s)
    assert s.callback_identity() == id(token)
    s.invoke(3)
    assert seen == [3]
    assert closure_slot(fn).callback_identity() == id(fn)


def test_make_slot_picks_variant_from_shape():
    r = Recv()
    assert make_slot(shout).kind is SlotKind.FUNCTION
    assert make_slot(print).kind is SlotKind.FUNCTION
    assert make_slot(r.on).kind is SlotKind.METHOD
    assert make_slot(r, "on").kind is SlotKind.METHOD
    assert make_slot(functools.partial(shout)).kind is SlotKind.CLOSURE
    assert make_slot(shout, key="k").kind is SlotKind.CLOSURE
    with pytest.raises(SlotError):
        make_slot(42)
    with pytest.raises(SlotError):
        make_slot(r, "on", key="k")


def test_builtin_bound_method_becomes_method_slot():
    box = []
    s = make_slot(box.append)
    assert s.kind is SlotKind.METHOD
    assert s.owner_identity() == id(box)
    assert s.callback_identity() == id(list.append)
    s.invoke(1)
    assert box == [1]


def test_slot_exception_propagates():
    def boom(_):
        raise ValueError("nope")

    with pytest.raises(ValueError):
        function_slot(boom).invoke(1)


def test_slot_is_immutable():
    s = function_slot(shout)
    with pytest.raises(Exception):
        s.target = print  # type: ignore[misc]
